"""Error taxonomy and batch failure reporting for the pipeline.

Configuration errors are fatal. Storage and LLM errors are transient and are
never retried inside a component; callers decide whether to degrade or
propagate. ``PipelineReport`` collects per-item outcomes so one failure never
stops the rest of a batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


class DigitalDnaError(Exception):
    """Base error for the pipeline. Carries a machine-readable code."""

    code = "DIGITALDNA_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ConfigurationError(DigitalDnaError):
    """A required setting (storage location, AI credential) is missing."""

    code = "CONFIGURATION_ERROR"


class StorageError(DigitalDnaError):
    """Blob store read/write failure."""

    code = "STORAGE_ERROR"


class BlobNotFoundError(StorageError):
    """The requested key does not exist."""

    code = "BLOB_NOT_FOUND"

    def __init__(self, key: str) -> None:
        super().__init__(f"Object not found: {key}")
        self.key = key


class InvalidKeyError(DigitalDnaError):
    """Key does not follow ``{userId}/{stage}/{relativePath}``."""

    code = "INVALID_KEY"


class AuthenticationError(DigitalDnaError):
    """No principal was supplied by the upstream authorizer."""

    code = "UNAUTHENTICATED"


class ExtractionError(DigitalDnaError):
    """Text could not be extracted from an uploaded document."""

    code = "EXTRACTION_FAILED"


class LLMError(DigitalDnaError):
    """Base error for AI completion calls."""

    code = "LLM_ERROR"


class RateLimitedError(LLMError):
    code = "LLM_RATE_LIMITED"


class LLMTimeoutError(LLMError):
    code = "LLM_TIMEOUT"


class UpstreamError(LLMError):
    code = "LLM_UPSTREAM_ERROR"


@dataclass
class ItemFailure:
    """One failed item in a batch."""

    item: str
    error: str
    code: str = DigitalDnaError.code


@dataclass
class PipelineReport:
    """Collects successes and failures across a multi-item invocation."""

    label: str = "pipeline"
    succeeded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    def record_success(self, item: str) -> None:
        self.succeeded.append(item)

    def record_skip(self, item: str) -> None:
        self.skipped.append(item)

    def record_failure(self, item: str, error: BaseException) -> None:
        code = getattr(error, "code", DigitalDnaError.code)
        self.failures.append(ItemFailure(item=item, error=str(error), code=code))
        logger.warning("%s: %s failed: %s", self.label, item, error)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.skipped) + len(self.failures)

    def summary(self) -> str:
        return (
            f"{self.label}: {len(self.succeeded)} succeeded, "
            f"{len(self.skipped)} skipped, {len(self.failures)} failed"
        )
