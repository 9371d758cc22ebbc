"""Shared fakes for the pipeline tests."""

from __future__ import annotations

import json
from typing import Any

import pytest

from digitaldna.shared.llm import LLMClient
from digitaldna.storage.memory import InMemoryBlobStore


class FakeLLM(LLMClient):
    """Scripted completion client.

    Returns queued responses in order, repeating the last one. An exception
    instance in the queue is raised instead of returned.
    """

    def __init__(self, *responses: Any) -> None:
        self.responses: list[Any] = list(responses) or ["{}"]
        self.calls: list[dict[str, Any]] = []

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
        self.calls.append(
            {
                "system": system_prompt,
                "prompt": user_prompt,
                "temperature": temperature,
                "max_tokens": max_tokens,
                "json_mode": json_mode,
                "label": label,
            }
        )
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, (dict, list)):
            return json.dumps(response)
        return response


class FakeClock:
    """Manual monotonic clock; ``sleep`` advances it."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
