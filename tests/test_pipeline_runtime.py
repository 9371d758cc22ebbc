"""End-to-end tests for PipelineRuntime wiring."""

from unittest.mock import patch

import pytest
from conftest import FakeLLM

from digitaldna.config import DigitalDnaConfig
from digitaldna.pipeline import PipelineRuntime, build_llm
from digitaldna.router import (
    InlineDispatcher,
    RouteStatus,
    StorageNotification,
    ThreadPoolDispatcher,
)
from digitaldna.shared.llm import AnthropicLLM
from digitaldna.storage.notifying import NotifyingBlobStore

CATEGORIZE_RESPONSE = {
    "fileType": "bank statement",
    "categories": {"financial": {"relevance": 9, "dataPoints": ["Acme Bank"]}},
    "extractedProfile": {"financial": {"totalSpent": 100}},
    "insights": ["Banks with Acme"],
}
PERSONA_RESPONSE = {"summary": "Saver", "completeness": 20}


def _config(**pipeline) -> DigitalDnaConfig:
    return DigitalDnaConfig.model_validate(
        {"storage": {"backend": "memory"}, "pipeline": pipeline}
    )


class TestBuildLlm:
    def test_none_without_key(self):
        assert build_llm(DigitalDnaConfig()) is None

    def test_anthropic_with_key(self):
        cfg = DigitalDnaConfig.model_validate({"llm": {"api_key": "sk-test", "model": "sonnet"}})
        with patch("digitaldna.shared.llm.anthropic.Anthropic") as mock_cls:
            llm = build_llm(cfg)
        assert isinstance(llm, AnthropicLLM)
        assert llm.model == "claude-sonnet-4-6"
        assert mock_cls.call_args.kwargs["max_retries"] == 0


class TestNotifyMode:
    def test_upload_flows_through_every_stage(self, store):
        llm = FakeLLM(CATEGORIZE_RESPONSE, PERSONA_RESPONSE)
        runtime = PipelineRuntime(_config(), store=store, llm=llm, inline=True, notify=True)

        assert isinstance(runtime.store, NotifyingBlobStore)
        assert isinstance(runtime.dispatcher, InlineDispatcher)

        runtime.store.put("u/raw/statement.txt", b"2024-01-02 ACME 100.00")

        assert store.get_text("u/normalized/statement.txt") == "2024-01-02 ACME 100.00"
        assert store.exists("u/categorized/statement.txt.json")
        master = store.get_json("u/categorized/user_master_profile.json")
        assert master["fileCount"] == 1
        assert master["profile"]["financial"]["totalSpent"] == 100
        personas = store.get_json("u/personas/personas.json")
        assert personas["financial"]["summary"] == "Saver"
        assert [call["label"] for call in llm.calls] == [
            "categorize:statement.txt",
            "persona:financial",
        ]

    def test_chunked_upload_categorized_once_per_chunk(self, store):
        llm = FakeLLM(CATEGORIZE_RESPONSE, PERSONA_RESPONSE)
        runtime = PipelineRuntime(
            _config(chunk_size=100, chunk_overlap=10),
            store=store,
            llm=llm,
            inline=True,
            notify=True,
        )

        runtime.store.put("u/raw/log.txt", b"x" * 250)

        categorize_calls = [c for c in llm.calls if c["label"].startswith("categorize:")]
        assert [c["label"] for c in categorize_calls] == [
            "categorize:log_chunk000.txt",
            "categorize:log_chunk001.txt",
            "categorize:log_chunk002.txt",
        ]
        assert store.get_json("u/categorized/user_master_profile.json")["fileCount"] == 3

    def test_oversized_upload_is_not_normalized(self, store):
        runtime = PipelineRuntime(
            _config(max_raw_bytes=10), store=store, llm=FakeLLM(), inline=True, notify=True
        )
        runtime.store.put("u/raw/big.txt", b"x" * 11)
        assert store.list("u/normalized/") == []


class TestHandoffMode:
    def test_normalizer_hands_off_to_categorizer(self, store):
        llm = FakeLLM(CATEGORIZE_RESPONSE)
        runtime = PipelineRuntime(_config(), store=store, llm=llm, inline=True)
        store.put("u/raw/a.txt", b"content")

        outcome = runtime.router.route(StorageNotification.for_key("u/raw/a.txt"))

        assert outcome.status is RouteStatus.DISPATCHED
        assert store.exists("u/categorized/a.txt.json")
        # No notifications outside notify mode, so personas are not built
        assert not store.exists("u/personas/personas.json")

    def test_thread_pool(self, store):
        llm = FakeLLM(CATEGORIZE_RESPONSE)
        store.put("u/raw/a.txt", b"content")
        with PipelineRuntime(_config(dispatch_workers=2), store=store, llm=llm) as runtime:
            assert isinstance(runtime.dispatcher, ThreadPoolDispatcher)
            runtime.router.route(StorageNotification.for_key("u/raw/a.txt"))
            runtime.wait()
        assert store.exists("u/normalized/a.txt")
        assert store.exists("u/categorized/a.txt.json")

    def test_token_bucket_from_config(self, store):
        cfg = DigitalDnaConfig.model_validate(
            {"storage": {"backend": "memory"}, "throttle": {"capacity": 2, "refill_per_second": 1.0}}
        )
        runtime = PipelineRuntime(cfg, store=store, llm=FakeLLM(), inline=True)
        bucket = runtime.token_bucket()
        assert bucket.available == pytest.approx(2.0)
