"""Tests for the stage router and bucket event parsing."""

import pytest

from digitaldna.router import (
    InlineDispatcher,
    RouteStatus,
    StageRouter,
    StorageNotification,
    Target,
    parse_event,
)
from digitaldna.shared.errors import StorageError
from digitaldna.storage.memory import InMemoryBlobStore


class RecordingDispatcher(InlineDispatcher):
    def __init__(self):
        super().__init__()
        self.submitted = []
        for target in Target:
            self.register(target, self._record(target))

    def _record(self, target):
        def handler(item):
            self.submitted.append((target, item))

        return handler


def _event(*keys, size=None):
    records = []
    for key in keys:
        obj = {"key": key}
        if size is not None:
            obj["size"] = size
        records.append({"s3": {"bucket": {"name": "data-bucket"}, "object": obj}})
    return {"Records": records}


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def router(store, dispatcher):
    return StageRouter(store, dispatcher, max_raw_bytes=100, max_normalized_bytes=50)


class TestRoutingTable:
    @pytest.mark.parametrize(
        "key,target",
        [
            ("u/raw/a.pdf", Target.NORMALIZE),
            ("u/normalized/a_chunk000.txt", Target.CATEGORIZE),
            ("u/categorized/a.txt.json", Target.PERSONAS),
        ],
    )
    def test_dispatches_by_stage(self, router, dispatcher, key, target):
        outcome = router.route(StorageNotification.for_key(key, size=10))

        assert outcome.status is RouteStatus.DISPATCHED
        assert outcome.target is target
        (submitted_target, item), = dispatcher.submitted
        assert submitted_target is target
        assert item.user_id == "u"
        assert item.key == key
        assert item.file_name == key.rsplit("/", 1)[1]

    @pytest.mark.parametrize(
        "key,reason",
        [
            ("u/categorized/user_master_profile.json", "master profile"),
            ("u/personas/personas.json", "no processor for stage"),
            ("u/archive/a.txt", "no processor for stage"),
            ("u/raw/folder/", "not a data object"),
            ("u/raw/upload.tmp", "not a data object"),
            ("loose-file.txt", "invalid key"),
        ],
    )
    def test_skips(self, router, dispatcher, key, reason):
        outcome = router.route(StorageNotification.for_key(key, size=1))
        assert outcome.status is RouteStatus.SKIPPED
        assert outcome.reason == reason
        assert dispatcher.submitted == []


class TestSizeLimits:
    def test_too_large_raw(self, router, dispatcher):
        outcome = router.route(StorageNotification.for_key("u/raw/big.bin", size=101))
        assert outcome.status is RouteStatus.SKIPPED
        assert outcome.reason == "too large"
        assert outcome.target is Target.NORMALIZE
        assert dispatcher.submitted == []

    def test_limit_is_inclusive(self, router):
        outcome = router.route(StorageNotification.for_key("u/normalized/a.txt", size=50))
        assert outcome.status is RouteStatus.DISPATCHED

    def test_categorized_has_no_limit(self, router):
        outcome = router.route(StorageNotification.for_key("u/categorized/a.json", size=10_000))
        assert outcome.status is RouteStatus.DISPATCHED

    def test_missing_size_uses_head(self, router, store):
        store.put("u/normalized/a.txt", b"x" * 51)
        outcome = router.route(StorageNotification.for_key("u/normalized/a.txt"))
        assert outcome.reason == "too large"

    def test_head_failure_admits(self, dispatcher):
        class BrokenStore(InMemoryBlobStore):
            def head(self, key):
                raise StorageError("unavailable")

        router = StageRouter(BrokenStore(), dispatcher, max_raw_bytes=1)
        outcome = router.route(StorageNotification.for_key("u/raw/a.txt"))
        assert outcome.status is RouteStatus.DISPATCHED


class TestDispatchFailure:
    def test_failure_reported_not_raised(self, store):
        class FailingDispatcher(InlineDispatcher):
            def submit(self, target, item):
                raise RuntimeError("queue full")

        router = StageRouter(store, FailingDispatcher())
        outcome = router.route(StorageNotification.for_key("u/raw/a.txt", size=1))
        assert outcome.status is RouteStatus.FAILED
        assert outcome.reason == "queue full"

    def test_unregistered_target(self, store):
        router = StageRouter(store, InlineDispatcher())
        outcome = router.route(StorageNotification.for_key("u/raw/a.txt", size=1))
        assert outcome.status is RouteStatus.FAILED


class TestEvents:
    def test_parse_event_decodes_keys(self):
        notifications = parse_event(_event("alice%40example.com/raw/my+file.txt", size=12))
        assert len(notifications) == 1
        n = notifications[0]
        assert n.key == "alice@example.com/raw/my file.txt"
        assert n.user_id == "alice@example.com"
        assert n.stage == "raw"
        assert n.size == 12
        assert n.bucket == "data-bucket"

    def test_records_without_key_skipped(self):
        event = {"Records": [{"s3": {"object": {}}}, {"eventName": "x"}, "junk"]}
        assert parse_event(event) == []

    def test_empty_event(self):
        assert parse_event({}) == []

    def test_handle_event_in_order(self, router, dispatcher):
        outcomes = router.handle_event(
            _event("u/raw/a.txt", "u/categorized/user_master_profile.json", "u/normalized/b.txt", size=5)
        )
        assert [o.status for o in outcomes] == [
            RouteStatus.DISPATCHED,
            RouteStatus.SKIPPED,
            RouteStatus.DISPATCHED,
        ]
        assert [t for t, _ in dispatcher.submitted] == [Target.NORMALIZE, Target.CATEGORIZE]
