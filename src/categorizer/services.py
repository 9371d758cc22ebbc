"""Categorizer: AI classification of normalized text and master profile update."""

from __future__ import annotations

import logging
import posixpath

from pydantic import ValidationError

from digitaldna.categorizer.models import (
    CategorizationOutcome,
    CategoryResult,
    placeholder_result,
)
from digitaldna.categorizer.prompts import CATEGORIZE_SYSTEM_PROMPT, build_categorize_prompt
from digitaldna.profile.merge import DEFAULT_POLICY, MergePolicy
from digitaldna.profile.models import PROFILE_SECTIONS, MasterProfile
from digitaldna.profile.services import apply_file, load_master_profile, save_master_profile
from digitaldna.shared.errors import ConfigurationError, LLMError, PipelineReport
from digitaldna.shared.llm import LLMClient, ParseStatus, parse_json_response
from digitaldna.shared.throttle import TokenBucket
from digitaldna.storage.base import BlobStore
from digitaldna.storage.keys import Stage, build_key, category_result_key, is_data_key

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONTENT_CHARS = 100_000
CATEGORIZE_TEMPERATURE = 0.2


class Categorizer:
    """Classifies one normalized object and folds it into the master profile.

    Args:
        store: Blob store holding every stage.
        llm: Completion client; ``None`` means no AI credential is configured.
        max_content_chars: Content beyond this many characters is dropped.
        max_tokens: Completion token limit.
        policy: Numeric merge semantics for the extracted profile.
    """

    def __init__(
        self,
        store: BlobStore,
        llm: LLMClient | None,
        *,
        max_content_chars: int = DEFAULT_MAX_CONTENT_CHARS,
        max_tokens: int = 4000,
        policy: MergePolicy = DEFAULT_POLICY,
    ) -> None:
        self._store = store
        self._llm = llm
        self._max_content_chars = max_content_chars
        self._max_tokens = max_tokens
        self._policy = policy

    def _require_llm(self) -> LLMClient:
        if self._llm is None:
            raise ConfigurationError("AI credential is not configured")
        return self._llm

    def analyze(
        self, file_name: str, content: str, master: MasterProfile
    ) -> tuple[CategoryResult, ParseStatus]:
        """Ask the AI to categorize *content*; never raises on AI failure."""
        llm = self._require_llm()
        if len(content) > self._max_content_chars:
            logger.info(
                "Truncating %s from %d to %d characters",
                file_name,
                len(content),
                self._max_content_chars,
            )
            content = content[: self._max_content_chars]

        prompt = build_categorize_prompt(
            file_name, content, master.render_for_prompt(), PROFILE_SECTIONS
        )
        try:
            response = llm.complete(
                CATEGORIZE_SYSTEM_PROMPT,
                prompt,
                temperature=CATEGORIZE_TEMPERATURE,
                max_tokens=self._max_tokens,
                json_mode=True,
                label=f"categorize:{file_name}",
            )
        except LLMError as exc:
            logger.warning("AI call failed for %s (%s), using placeholder", file_name, exc.code)
            return placeholder_result(file_name), ParseStatus.FAILED

        parsed = parse_json_response(response)
        if not parsed.ok:
            logger.warning("Unparseable AI response for %s, using placeholder", file_name)
            return placeholder_result(file_name), ParseStatus.FAILED
        if parsed.status == ParseStatus.RECOVERED:
            logger.warning("Recovered JSON from non-strict AI response for %s", file_name)
        else:
            logger.info("Parsed AI response for %s", file_name)

        try:
            result = CategoryResult.model_validate(parsed.value)
        except ValidationError as exc:
            logger.warning(
                "AI response for %s failed validation (%d errors), using placeholder",
                file_name,
                exc.error_count(),
            )
            return placeholder_result(file_name), ParseStatus.FAILED
        result.file_name = file_name
        return result, parsed.status

    def categorize_file(
        self, user_id: str, key: str, file_name: str | None = None
    ) -> CategorizationOutcome:
        """Categorize one normalized object and persist the results.

        Raises:
            ConfigurationError: If no AI credential is configured.
            StorageError: If the source object cannot be read.
        """
        self._require_llm()
        file_name = file_name or posixpath.basename(key)
        master = load_master_profile(self._store, user_id)
        content = self._store.get_text(key)
        logger.info("Categorizing %s (%d characters)", key, len(content))

        result, status = self.analyze(file_name, content, master)

        updated, duplicate = apply_file(
            master,
            file_name=file_name,
            file_type=result.file_type,
            categories=result.categories,
            insights=result.insights,
            fragment=result.extracted_profile,
            policy=self._policy,
        )
        save_master_profile(self._store, user_id, updated)

        result_key = category_result_key(user_id, file_name)
        self._store.put_json(result_key, result.to_document())
        logger.info(
            "Wrote %s with %d categories (parse=%s)",
            result_key,
            len(result.categories),
            status,
        )
        return CategorizationOutcome(
            file_name=file_name,
            result_key=result_key,
            categories=list(result.categories),
            parse_status=status,
            duplicate=duplicate,
        )

    def process_backlog(
        self,
        user_id: str,
        *,
        bucket: TokenBucket | None = None,
        force: bool = False,
    ) -> PipelineReport:
        """Categorize every normalized object not yet in the master profile.

        Files are processed one at a time, each waiting for a throttle token.
        A failure is recorded and the remaining files still run.

        Raises:
            ConfigurationError: If no AI credential is configured.
        """
        self._require_llm()
        bucket = bucket or TokenBucket()
        report = PipelineReport(label=f"backlog:{user_id}")

        master = load_master_profile(self._store, user_id)
        prefix = build_key(user_id, Stage.NORMALIZED, "")
        items = [info for info in self._store.list(prefix) if is_data_key(info.key)]
        logger.info("Backlog for %s: %d normalized objects", user_id, len(items))

        for info in items:
            file_name = posixpath.basename(info.key)
            if not force and master.has_source_file(file_name):
                report.record_skip(file_name)
                continue
            waited = bucket.acquire()
            if waited:
                logger.debug("Throttled %.2fs before %s", waited, file_name)
            try:
                self.categorize_file(user_id, info.key, file_name)
            except Exception as exc:
                report.record_failure(file_name, exc)
                continue
            report.record_success(file_name)

        logger.info("%s", report.summary())
        return report
