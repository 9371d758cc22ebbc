"""Stage router: storage notifications to processor dispatch."""

from digitaldna.router.dispatch import (
    Dispatcher,
    InlineDispatcher,
    Target,
    ThreadPoolDispatcher,
    WorkItem,
)
from digitaldna.router.events import StorageNotification, parse_event
from digitaldna.router.router import RouteOutcome, RouteStatus, StageRouter

__all__ = [
    "Dispatcher",
    "InlineDispatcher",
    "RouteOutcome",
    "RouteStatus",
    "StageRouter",
    "StorageNotification",
    "Target",
    "ThreadPoolDispatcher",
    "WorkItem",
    "parse_event",
]
