"""Shared LLM calling utilities.

Centralizes the AI completion client used by the Categorizer and the
Persona Builder, and the two-stage JSON recovery applied to its output.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

import anthropic

from digitaldna.shared.errors import (
    ConfigurationError,
    LLMError,
    LLMTimeoutError,
    RateLimitedError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Model name mapping
# ---------------------------------------------------------------------------

_MODEL_MAP: dict[str, str] = {
    "sonnet": "claude-sonnet-4-6",
    "haiku": "claude-haiku-4-5-20251001",
    "opus": "claude-opus-4-6",
}

_DEFAULT_MODEL = "claude-haiku-4-5-20251001"

_JSON_MODE_INSTRUCTION = (
    "Respond with a single valid JSON object and nothing else: "
    "no markdown fences, no commentary."
)


def resolve_model(model: str | None) -> str:
    """Resolve a short model name to an API model ID."""
    if model is None:
        return _DEFAULT_MODEL
    return _MODEL_MAP.get(model, model)


# ---------------------------------------------------------------------------
# Client interface
# ---------------------------------------------------------------------------


class LLMClient(ABC):
    """Text completion service: system message + prompt in, one text blob out."""

    @abstractmethod
    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        json_mode: bool = True,
        label: str = "completion",
    ) -> str:
        """Return the completion text.

        Raises:
            RateLimitedError, LLMTimeoutError, UpstreamError: On failure.
        """


class AnthropicLLM(LLMClient):
    """LLM client backed by the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str | None = None,
        timeout: float = 60,
        client: Any = None,
    ) -> None:
        if not api_key and client is None:
            raise ConfigurationError("AI credential is not set (ANTHROPIC_API_KEY)")
        self._model = resolve_model(model)
        self._timeout = timeout
        # max_retries=0: transient failures surface to the caller, never retried here
        self._client = client or anthropic.Anthropic(
            api_key=api_key, timeout=timeout, max_retries=0
        )

    @property
    def model(self) -> str:
        return self._model

    def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        temperature: float = 0.2,
        max_tokens: int = 4000,
        json_mode: bool = True,
        label: str = "completion",
    ) -> str:
        system = system_prompt
        if json_mode:
            system = f"{system_prompt}\n\n{_JSON_MODE_INSTRUCTION}"

        logger.debug("Calling Anthropic API model=%s (%s)", self._model, label)

        try:
            response = self._client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.RateLimitError as exc:
            raise RateLimitedError(f"AI service rate limited (label={label})") from exc
        except anthropic.APITimeoutError as exc:
            raise LLMTimeoutError(
                f"AI service timed out after {self._timeout}s (label={label})"
            ) from exc
        except anthropic.APIError as exc:
            raise UpstreamError(f"AI service failed (label={label}): {exc}") from exc

        text_parts: list[str] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)

        result = "".join(text_parts).strip()
        if not result:
            raise UpstreamError(f"AI service returned empty response (label={label})")
        return result


# ---------------------------------------------------------------------------
# JSON output helpers
# ---------------------------------------------------------------------------

_JSON_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?```", re.DOTALL)


class ParseStatus(StrEnum):
    """Which parse path produced the value."""

    OK = "ok"
    RECOVERED = "recovered"
    FAILED = "failed"


@dataclass(frozen=True)
class ParseResult:
    status: ParseStatus
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status is not ParseStatus.FAILED


def strip_json_fences(text: str) -> str:
    """Strip markdown code fences from LLM JSON output."""
    text = text.strip()
    match = _JSON_FENCE_RE.search(text)
    if match:
        return match.group(1).strip()
    return text


def _balanced_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` of every top-level balanced ``{...}`` span.

    Braces inside JSON string literals are ignored.
    """
    spans: list[tuple[int, int]] = []
    depth = 0
    start = -1
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            if depth > 0:
                in_string = True
        elif ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                spans.append((start, i + 1))
    return spans


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Parse the largest balanced brace span that decodes to an object."""
    spans = sorted(_balanced_spans(text), key=lambda s: s[1] - s[0], reverse=True)
    for start, end in spans:
        try:
            value = json.loads(text[start:end])
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def parse_json_response(text: str) -> ParseResult:
    """Two-stage parse of an AI response expected to hold one JSON object.

    1. Strict ``json.loads`` of the whole text.
    2. Fallback: strip code fences and take the largest balanced ``{...}``
       span that decodes.
    """
    if not text or not text.strip():
        return ParseResult(ParseStatus.FAILED)

    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        pass
    else:
        if isinstance(value, dict):
            return ParseResult(ParseStatus.OK, value)

    recovered = extract_json_object(strip_json_fences(text))
    if recovered is None and "```" in text:
        recovered = extract_json_object(text)
    if recovered is not None:
        return ParseResult(ParseStatus.RECOVERED, recovered)
    return ParseResult(ParseStatus.FAILED)


__all__ = [
    "AnthropicLLM",
    "LLMClient",
    "LLMError",
    "ParseResult",
    "ParseStatus",
    "extract_json_object",
    "parse_json_response",
    "resolve_model",
    "strip_json_fences",
]
