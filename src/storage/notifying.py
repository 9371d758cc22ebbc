"""Store wrapper that reports every write, standing in for bucket notifications."""

from __future__ import annotations

import logging
from collections.abc import Callable

from digitaldna.router.events import StorageNotification
from digitaldna.shared.errors import InvalidKeyError
from digitaldna.storage.base import TEXT_CONTENT_TYPE, BlobInfo, BlobStore
from digitaldna.storage.keys import parse_key

logger = logging.getLogger(__name__)

NotificationListener = Callable[[StorageNotification], object]


class NotifyingBlobStore(BlobStore):
    """Delegates to *inner* and calls *listener* after each successful put.

    The listener is set after construction when it needs the store itself
    (router wiring), so it may be ``None`` until then.
    """

    def __init__(self, inner: BlobStore, listener: NotificationListener | None = None) -> None:
        self._inner = inner
        self.listener = listener

    @property
    def inner(self) -> BlobStore:
        return self._inner

    def put(self, key: str, data: bytes, content_type: str = TEXT_CONTENT_TYPE) -> None:
        self._inner.put(key, data, content_type)
        if self.listener is None:
            return
        try:
            parsed = parse_key(key)
        except InvalidKeyError:
            logger.debug("Not notifying for unparseable key %s", key)
            return
        self.listener(
            StorageNotification(
                user_id=parsed.user_id, stage=parsed.stage, key=key, size=len(data)
            )
        )

    def get(self, key: str) -> bytes:
        return self._inner.get(key)

    def list(self, prefix: str) -> list[BlobInfo]:
        return self._inner.list(prefix)

    def head(self, key: str) -> int:
        return self._inner.head(key)
