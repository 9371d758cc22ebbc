"""Filesystem-backed blob store.

Keys map to paths under a root directory. Writes go to a temp file in the
same directory and are moved into place with ``os.replace`` so a reader
never sees a half-written object.
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from digitaldna.shared.errors import BlobNotFoundError, StorageError
from digitaldna.storage.base import TEXT_CONTENT_TYPE, BlobInfo, BlobStore

logger = logging.getLogger(__name__)


class LocalBlobStore(BlobStore):
    """Blob store rooted at a local directory."""

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser().resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if path != self._root and self._root not in path.parents:
            raise StorageError(f"Key escapes store root: {key!r}")
        return path

    def put(self, key: str, data: bytes, content_type: str = TEXT_CONTENT_TYPE) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"Failed to write {key}: {exc}") from exc
        logger.debug("Stored %s (%d bytes)", key, len(data))

    def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise BlobNotFoundError(key) from exc
        except OSError as exc:
            raise StorageError(f"Failed to read {key}: {exc}") from exc

    def list(self, prefix: str) -> list[BlobInfo]:
        # Walk from the deepest directory fully contained in the prefix
        directory = self._root / prefix.rsplit("/", 1)[0] if "/" in prefix else self._root
        if not directory.is_dir():
            return []
        results: list[BlobInfo] = []
        for path in directory.rglob("*"):
            if not path.is_file() or path.name.endswith(".tmp"):
                continue
            key = path.relative_to(self._root).as_posix()
            if not key.startswith(prefix):
                continue
            stat = path.stat()
            results.append(
                BlobInfo(
                    key=key,
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=UTC),
                )
            )
        return sorted(results, key=lambda info: info.key)

    def head(self, key: str) -> int:
        path = self._path(key)
        try:
            return path.stat().st_size
        except FileNotFoundError as exc:
            raise BlobNotFoundError(key) from exc
