"""Pipeline runtime: wires store, AI client, dispatcher and processors.

This is the hosting runtime that executes dispatched units of work. Each
handler receives a ``WorkItem`` and calls the processor for its stage.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from digitaldna.categorizer import Categorizer
from digitaldna.normalizer import TextNormalizer
from digitaldna.personas import PersonaBuilder
from digitaldna.router import (
    Dispatcher,
    InlineDispatcher,
    StageRouter,
    StorageNotification,
    Target,
    ThreadPoolDispatcher,
    WorkItem,
)
from digitaldna.shared.llm import AnthropicLLM, LLMClient
from digitaldna.shared.throttle import TokenBucket
from digitaldna.storage import create_store
from digitaldna.storage.base import BlobStore
from digitaldna.storage.notifying import NotifyingBlobStore

if TYPE_CHECKING:
    from digitaldna.config import DigitalDnaConfig

logger = logging.getLogger(__name__)


def build_llm(config: DigitalDnaConfig) -> LLMClient | None:
    """Anthropic client from config, or ``None`` when no key is configured."""
    if not config.llm.api_key:
        return None
    return AnthropicLLM(
        config.llm.api_key,
        model=config.llm.model,
        timeout=config.llm.timeout,
    )


class PipelineRuntime:
    """All processors for one configuration, sharing one store.

    Args:
        config: Loaded configuration.
        store: Blob store; built from ``config`` when omitted.
        llm: Completion client; built from ``config`` when omitted.
        inline: Run dispatched work on the caller's thread instead of a pool.
        notify: Wrap the store so every write is routed, standing in for
            bucket notifications. Normalizer hand-off is disabled in this
            mode since the routed writes already trigger categorization.
    """

    def __init__(
        self,
        config: DigitalDnaConfig,
        *,
        store: BlobStore | None = None,
        llm: LLMClient | None = None,
        inline: bool = False,
        notify: bool = False,
    ) -> None:
        self.config = config
        base_store = store if store is not None else create_store(config)
        self.llm = llm if llm is not None else build_llm(config)

        self.dispatcher: Dispatcher
        if inline:
            self.dispatcher = InlineDispatcher()
        else:
            self.dispatcher = ThreadPoolDispatcher(
                max_workers=config.pipeline.dispatch_workers
            )

        self.store: BlobStore = NotifyingBlobStore(base_store) if notify else base_store
        pipeline = config.pipeline
        self.normalizer = TextNormalizer(
            self.store,
            dispatcher=self.dispatcher,
            chunk_size=pipeline.chunk_size,
            overlap=pipeline.chunk_overlap,
            handoff=pipeline.normalizer_handoff and not notify,
        )
        self.categorizer = Categorizer(
            self.store,
            self.llm,
            max_content_chars=pipeline.max_content_chars,
            max_tokens=config.llm.max_tokens,
        )
        self.personas = PersonaBuilder(self.store, self.llm, max_tokens=config.llm.max_tokens)
        self.router = StageRouter(
            self.store,
            self.dispatcher,
            max_raw_bytes=pipeline.max_raw_bytes,
            max_normalized_bytes=pipeline.max_normalized_bytes,
        )

        self.dispatcher.register(Target.NORMALIZE, self._run_normalize)
        self.dispatcher.register(Target.CATEGORIZE, self._run_categorize)
        self.dispatcher.register(Target.PERSONAS, self._run_personas)

        if isinstance(self.store, NotifyingBlobStore):
            self.store.listener = self._on_write

    # ── Handlers ────────────────────────────────────────────────────

    def _run_normalize(self, item: WorkItem) -> object:
        return self.normalizer.normalize_object(item.user_id, item.key)

    def _run_categorize(self, item: WorkItem) -> object:
        return self.categorizer.categorize_file(item.user_id, item.key, item.file_name)

    def _run_personas(self, item: WorkItem) -> object:
        return self.personas.build(item.user_id, item.key)

    def _on_write(self, notification: StorageNotification) -> None:
        self.router.route(notification)

    # ── Lifecycle ───────────────────────────────────────────────────

    def token_bucket(self) -> TokenBucket:
        return TokenBucket(
            capacity=self.config.throttle.capacity,
            refill_per_second=self.config.throttle.refill_per_second,
        )

    def wait(self) -> None:
        """Block until dispatched work has finished (no-op when inline)."""
        if isinstance(self.dispatcher, ThreadPoolDispatcher):
            self.dispatcher.wait()

    def close(self) -> None:
        if isinstance(self.dispatcher, ThreadPoolDispatcher):
            self.dispatcher.shutdown(wait=True)

    def __enter__(self) -> PipelineRuntime:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
