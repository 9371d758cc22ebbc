"""Fire-and-forget dispatch of pipeline work to stage handlers."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import StrEnum

logger = logging.getLogger(__name__)


class Target(StrEnum):
    """Processors the router can hand work to."""

    NORMALIZE = "normalize"
    CATEGORIZE = "categorize"
    PERSONAS = "personas"


@dataclass(frozen=True)
class WorkItem:
    """One unit of work: a stored object for one user."""

    user_id: str
    key: str
    file_name: str


Handler = Callable[[WorkItem], object]


class Dispatcher(ABC):
    """Hands a work item to the handler registered for a target."""

    def __init__(self, handlers: Mapping[str, Handler] | None = None) -> None:
        self._handlers: dict[str, Handler] = dict(handlers or {})

    def register(self, target: str, handler: Handler) -> None:
        self._handlers[str(target)] = handler

    def handler_for(self, target: str) -> Handler:
        try:
            return self._handlers[str(target)]
        except KeyError:
            raise LookupError(f"No handler registered for target {target!r}") from None

    @abstractmethod
    def submit(self, target: str, item: WorkItem) -> None:
        """Schedule *item* for *target*. Returns without waiting for the result.

        Raises:
            LookupError: If no handler is registered for *target*.
        """


class InlineDispatcher(Dispatcher):
    """Runs the handler immediately on the caller's thread.

    Handler failures are logged, never raised, matching the detached
    semantics of the pooled dispatcher.
    """

    def submit(self, target: str, item: WorkItem) -> None:
        handler = self.handler_for(target)
        try:
            handler(item)
        except Exception:
            logger.error("%s failed for %s", target, item.key, exc_info=True)


class ThreadPoolDispatcher(Dispatcher):
    """Runs handlers on a ``ThreadPoolExecutor``.

    Call ``wait()`` to block until every submitted item (including items
    submitted by handlers while waiting) has finished.
    """

    def __init__(self, handlers: Mapping[str, Handler] | None = None, max_workers: int = 4) -> None:
        super().__init__(handlers)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="digitaldna"
        )
        self._lock = threading.Lock()
        self._pending: set[Future] = set()
        logger.info("Dispatcher pool started with %d workers", max_workers)

    def submit(self, target: str, item: WorkItem) -> None:
        handler = self.handler_for(target)
        future = self._executor.submit(handler, item)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda f: self._on_done(f, target, item))

    def _on_done(self, future: Future, target: str, item: WorkItem) -> None:
        with self._lock:
            self._pending.discard(future)
        if future.cancelled():
            logger.warning("%s cancelled for %s", target, item.key)
            return
        exc = future.exception()
        if exc is not None:
            logger.error("%s failed for %s", target, item.key, exc_info=exc)

    def wait(self, timeout: float | None = None) -> None:
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                return
            _, not_done = wait(pending, timeout=timeout)
            if not_done:
                logger.warning("%d dispatched items still running after wait", len(not_done))
                return

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logger.info("Dispatcher pool shut down")
