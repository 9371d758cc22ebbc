"""Storage-change notifications and bucket event parsing."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from digitaldna.shared.errors import InvalidKeyError
from digitaldna.storage.keys import decode_event_key, parse_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageNotification:
    """An object was created or overwritten.

    ``size`` is ``None`` when the event did not carry one.
    """

    user_id: str
    stage: str
    key: str
    size: int | None = None
    bucket: str | None = None

    @classmethod
    def for_key(cls, key: str, size: int | None = None, bucket: str | None = None) -> StorageNotification:
        """Build from a bare key; unparseable keys keep empty user and stage."""
        try:
            parsed = parse_key(key)
        except InvalidKeyError:
            return cls(user_id="", stage="", key=key, size=size, bucket=bucket)
        return cls(
            user_id=parsed.user_id, stage=parsed.stage, key=key, size=size, bucket=bucket
        )


def parse_event(event: Mapping[str, Any]) -> list[StorageNotification]:
    """Parse an S3-style ``{"Records": [...]}`` event.

    Records without an object key are skipped with a warning.
    """
    notifications: list[StorageNotification] = []
    for index, record in enumerate(event.get("Records", []) or []):
        s3 = record.get("s3", {}) if isinstance(record, Mapping) else {}
        obj = s3.get("object", {}) or {}
        raw_key = obj.get("key")
        if not raw_key:
            logger.warning("Event record %d has no object key, skipping", index)
            continue
        size = obj.get("size")
        notifications.append(
            StorageNotification.for_key(
                decode_event_key(str(raw_key)),
                size=int(size) if size is not None else None,
                bucket=(s3.get("bucket") or {}).get("name"),
            )
        )
    return notifications
