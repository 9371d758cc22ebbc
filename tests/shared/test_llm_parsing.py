"""Tests for shared/llm.py: JSON recovery and the Anthropic client wrapper."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import anthropic
import httpx
import pytest

from digitaldna.shared.errors import (
    ConfigurationError,
    LLMTimeoutError,
    RateLimitedError,
    UpstreamError,
)
from digitaldna.shared.llm import (
    AnthropicLLM,
    ParseStatus,
    extract_json_object,
    parse_json_response,
    resolve_model,
    strip_json_fences,
)


def _request() -> httpx.Request:
    return httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _response(status: int) -> httpx.Response:
    return httpx.Response(status, request=_request())


def _message(*texts: str):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=t) for t in texts])


class TestResolveModel:
    def test_aliases(self):
        assert resolve_model("sonnet") == "claude-sonnet-4-6"
        assert resolve_model("haiku").startswith("claude-haiku")

    def test_passthrough_and_default(self):
        assert resolve_model("my-model") == "my-model"
        assert resolve_model(None).startswith("claude-")


class TestStripJsonFences:
    def test_json_fence(self):
        assert strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_json_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_json_fences('  {"a": 1} ') == '{"a": 1}'


class TestExtractJsonObject:
    def test_picks_largest_decodable_span(self):
        text = 'note {"x": 1} and then {"categories": [], "fileName": "a.txt"} done'
        assert extract_json_object(text) == {"categories": [], "fileName": "a.txt"}

    def test_braces_inside_strings_ignored(self):
        text = 'prefix {"summary": "uses } and { freely", "n": 2} suffix'
        assert extract_json_object(text) == {"summary": "uses } and { freely", "n": 2}

    def test_nothing_decodable(self):
        assert extract_json_object("no braces here") is None
        assert extract_json_object("{not json}") is None


class TestParseJsonResponse:
    def test_strict_parse(self):
        result = parse_json_response('{"a": 1}')
        assert result.status is ParseStatus.OK
        assert result.value == {"a": 1}
        assert result.ok

    def test_recovered_from_prose_and_fences(self):
        text = 'Here you go:\n```json\n{"a": {"b": 2}}\n```\nHope that helps!'
        result = parse_json_response(text)
        assert result.status is ParseStatus.RECOVERED
        assert result.value == {"a": {"b": 2}}

    def test_top_level_array_is_not_an_object(self):
        result = parse_json_response("[1, 2, 3]")
        assert result.status is ParseStatus.FAILED
        assert not result.ok

    @pytest.mark.parametrize("text", ["", "   ", "I cannot help with that.", '{"a": '])
    def test_failed(self, text):
        result = parse_json_response(text)
        assert result.status is ParseStatus.FAILED
        assert result.value is None


class TestAnthropicLLM:
    def test_requires_key(self):
        with pytest.raises(ConfigurationError):
            AnthropicLLM("")

    def test_complete_joins_text_blocks(self):
        client = MagicMock()
        client.messages.create.return_value = _message('{"a":', " 1}")
        llm = AnthropicLLM("key", model="haiku", client=client)

        assert llm.complete("sys", "prompt", temperature=0.3, max_tokens=100) == '{"a": 1}'

        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == resolve_model("haiku")
        assert kwargs["temperature"] == 0.3
        assert kwargs["max_tokens"] == 100
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["system"].startswith("sys")
        assert "JSON" in kwargs["system"]

    def test_plain_text_mode_keeps_system_prompt(self):
        client = MagicMock()
        client.messages.create.return_value = _message("hello")
        llm = AnthropicLLM("key", client=client)
        llm.complete("sys", "prompt", json_mode=False)
        assert client.messages.create.call_args.kwargs["system"] == "sys"

    def test_empty_response(self):
        client = MagicMock()
        client.messages.create.return_value = _message("   ")
        llm = AnthropicLLM("key", client=client)
        with pytest.raises(UpstreamError):
            llm.complete("sys", "prompt")

    def test_rate_limited(self):
        client = MagicMock()
        client.messages.create.side_effect = anthropic.RateLimitError(
            "slow down", response=_response(429), body=None
        )
        llm = AnthropicLLM("key", client=client)
        with pytest.raises(RateLimitedError):
            llm.complete("sys", "prompt")

    def test_timeout(self):
        client = MagicMock()
        client.messages.create.side_effect = anthropic.APITimeoutError(request=_request())
        llm = AnthropicLLM("key", client=client)
        with pytest.raises(LLMTimeoutError):
            llm.complete("sys", "prompt")

    def test_other_api_error(self):
        client = MagicMock()
        client.messages.create.side_effect = anthropic.InternalServerError(
            "boom", response=_response(500), body=None
        )
        llm = AnthropicLLM("key", client=client)
        with pytest.raises(UpstreamError):
            llm.complete("sys", "prompt")
