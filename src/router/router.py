"""Stage router: storage notifications to fire-and-forget processor dispatch."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from digitaldna.router.dispatch import Dispatcher, Target, WorkItem
from digitaldna.router.events import StorageNotification, parse_event
from digitaldna.shared.errors import BlobNotFoundError, InvalidKeyError, StorageError
from digitaldna.storage.base import BlobStore
from digitaldna.storage.keys import Stage, is_data_key, is_master_profile_key, parse_key

logger = logging.getLogger(__name__)

MIB = 1024 * 1024
DEFAULT_MAX_RAW_BYTES = 50 * MIB
DEFAULT_MAX_NORMALIZED_BYTES = 10 * MIB


class RouteStatus(StrEnum):
    DISPATCHED = "dispatched"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RouteOutcome:
    """Decision taken for one notification."""

    key: str
    target: Target | None
    status: RouteStatus
    reason: str = ""


class StageRouter:
    """Maps each stored object to the processor owning its next step.

    ======================  =========================
    stage                   target
    ======================  =========================
    raw (<= max_raw)        normalize
    normalized (<= max)     categorize
    categorized             personas (not the master profile)
    personas / unknown      nothing
    ======================  =========================
    """

    def __init__(
        self,
        store: BlobStore,
        dispatcher: Dispatcher,
        *,
        max_raw_bytes: int = DEFAULT_MAX_RAW_BYTES,
        max_normalized_bytes: int = DEFAULT_MAX_NORMALIZED_BYTES,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._limits: dict[str, int] = {
            Stage.RAW: max_raw_bytes,
            Stage.NORMALIZED: max_normalized_bytes,
        }

    def _size_of(self, notification: StorageNotification) -> int | None:
        if notification.size is not None:
            return notification.size
        try:
            return self._store.head(notification.key)
        except (BlobNotFoundError, StorageError) as exc:
            logger.warning("Could not size %s (%s), admitting", notification.key, exc)
            return None

    def decide(self, notification: StorageNotification) -> RouteOutcome:
        """Pick the target for one notification without dispatching."""
        key = notification.key
        if not is_data_key(key):
            return RouteOutcome(key, None, RouteStatus.SKIPPED, "not a data object")
        try:
            parsed = parse_key(key)
        except InvalidKeyError:
            return RouteOutcome(key, None, RouteStatus.SKIPPED, "invalid key")

        stage = parsed.known_stage
        if stage == Stage.RAW:
            target = Target.NORMALIZE
        elif stage == Stage.NORMALIZED:
            target = Target.CATEGORIZE
        elif stage == Stage.CATEGORIZED:
            if is_master_profile_key(key):
                return RouteOutcome(key, None, RouteStatus.SKIPPED, "master profile")
            target = Target.PERSONAS
        else:
            return RouteOutcome(key, None, RouteStatus.SKIPPED, "no processor for stage")

        limit = self._limits.get(parsed.stage)
        if limit is not None:
            size = self._size_of(notification)
            if size is not None and size > limit:
                return RouteOutcome(key, target, RouteStatus.SKIPPED, "too large")
        return RouteOutcome(key, target, RouteStatus.DISPATCHED)

    def route(self, notification: StorageNotification) -> RouteOutcome:
        """Decide and dispatch one notification. Never raises."""
        outcome = self.decide(notification)
        if outcome.status != RouteStatus.DISPATCHED or outcome.target is None:
            logger.info("Skipping %s: %s", outcome.key, outcome.reason)
            return outcome

        parsed = parse_key(outcome.key)
        item = WorkItem(user_id=parsed.user_id, key=outcome.key, file_name=parsed.file_name)
        try:
            self._dispatcher.submit(outcome.target, item)
        except Exception as exc:
            logger.error("Dispatch to %s failed for %s", outcome.target, outcome.key, exc_info=True)
            return RouteOutcome(outcome.key, outcome.target, RouteStatus.FAILED, str(exc))
        logger.info("Routed %s to %s", outcome.key, outcome.target)
        return outcome

    def route_all(self, notifications: Iterable[StorageNotification]) -> list[RouteOutcome]:
        """Route notifications in the order received."""
        return [self.route(notification) for notification in notifications]

    def handle_event(self, event: Mapping[str, Any]) -> list[RouteOutcome]:
        """Route every record in an S3-style event."""
        return self.route_all(parse_event(event))
