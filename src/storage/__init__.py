"""Blob storage: naming scheme, store interface and backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from digitaldna.storage.base import BlobInfo, BlobStore
from digitaldna.storage.local import LocalBlobStore
from digitaldna.storage.memory import InMemoryBlobStore

if TYPE_CHECKING:
    from digitaldna.config import DigitalDnaConfig


def create_store(config: DigitalDnaConfig) -> BlobStore:
    """Build the backend named by ``[storage].backend``.

    Raises:
        ConfigurationError: If the backend's location is not configured.
    """
    config.require_storage()
    backend = config.storage.backend
    if backend == "memory":
        return InMemoryBlobStore()
    if backend == "s3":
        from digitaldna.storage.s3 import S3BlobStore

        return S3BlobStore(
            config.storage.bucket, endpoint_url=config.storage.endpoint_url or None
        )
    return LocalBlobStore(config.storage.root_dir)


__all__ = [
    "BlobInfo",
    "BlobStore",
    "InMemoryBlobStore",
    "LocalBlobStore",
    "create_store",
]
