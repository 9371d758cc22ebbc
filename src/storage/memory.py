"""In-process blob store, used by tests and dry runs."""

from __future__ import annotations

import threading
from datetime import UTC, datetime

from digitaldna.shared.errors import BlobNotFoundError
from digitaldna.storage.base import TEXT_CONTENT_TYPE, BlobInfo, BlobStore


class InMemoryBlobStore(BlobStore):
    """Dictionary-backed store. Thread-safe so dispatcher workers can share it."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self._lock = threading.Lock()
        self._objects: dict[str, tuple[bytes, str, datetime]] = {}
        for key, data in (objects or {}).items():
            self.put(key, data)

    def put(self, key: str, data: bytes, content_type: str = TEXT_CONTENT_TYPE) -> None:
        with self._lock:
            self._objects[key] = (bytes(data), content_type, datetime.now(tz=UTC))

    def get(self, key: str) -> bytes:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise BlobNotFoundError(key)
        return entry[0]

    def list(self, prefix: str) -> list[BlobInfo]:
        with self._lock:
            items = [
                BlobInfo(key=key, size=len(data), last_modified=modified)
                for key, (data, _ct, modified) in self._objects.items()
                if key.startswith(prefix)
            ]
        return sorted(items, key=lambda info: info.key)

    def head(self, key: str) -> int:
        return len(self.get(key))

    def content_type(self, key: str) -> str:
        with self._lock:
            entry = self._objects.get(key)
        if entry is None:
            raise BlobNotFoundError(key)
        return entry[1]

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._objects)
