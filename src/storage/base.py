"""Blob store interface shared by every pipeline component.

Components receive a ``BlobStore`` instance; none of them holds state
between invocations. All state lives in the store.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from digitaldna.shared.errors import BlobNotFoundError

JSON_CONTENT_TYPE = "application/json"
TEXT_CONTENT_TYPE = "text/plain"


@dataclass(frozen=True)
class BlobInfo:
    """Listing entry for a stored object."""

    key: str
    size: int
    last_modified: datetime | None = None


def content_type_for(key: str) -> str:
    return JSON_CONTENT_TYPE if key.endswith(".json") else TEXT_CONTENT_TYPE


class BlobStore(ABC):
    """Key-value object storage with put/get/list/head.

    Every ``put`` replaces the whole object in one call; readers never
    observe a partially written object.
    """

    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str = TEXT_CONTENT_TYPE) -> None:
        """Write *data* under *key*, replacing any existing object."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the object's bytes.

        Raises:
            BlobNotFoundError: If the key does not exist.
            StorageError: On any other backend failure.
        """

    @abstractmethod
    def list(self, prefix: str) -> list[BlobInfo]:
        """Return all objects whose key starts with *prefix*, sorted by key."""

    @abstractmethod
    def head(self, key: str) -> int:
        """Return the object's size in bytes.

        Raises:
            BlobNotFoundError: If the key does not exist.
        """

    # ── Convenience helpers ─────────────────────────────────────────

    def exists(self, key: str) -> bool:
        try:
            self.head(key)
        except BlobNotFoundError:
            return False
        return True

    def get_text(self, key: str) -> str:
        return self.get(key).decode("utf-8", errors="replace")

    def put_text(self, key: str, text: str) -> None:
        self.put(key, text.encode("utf-8"), content_type_for(key))

    def get_json(self, key: str) -> Any:
        return json.loads(self.get(key).decode("utf-8"))

    def put_json(self, key: str, value: Any) -> None:
        payload = json.dumps(value, indent=2, ensure_ascii=False, default=str)
        self.put(key, payload.encode("utf-8"), JSON_CONTENT_TYPE)
