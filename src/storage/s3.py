"""S3-backed blob store using boto3."""

from __future__ import annotations

import logging
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from digitaldna.shared.errors import BlobNotFoundError, StorageError
from digitaldna.storage.base import TEXT_CONTENT_TYPE, BlobInfo, BlobStore

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BlobStore):
    """Blob store over a single S3 bucket.

    Args:
        bucket: Bucket name.
        endpoint_url: Optional endpoint for S3-compatible services.
        client: Pre-built boto3 client (tests inject a stub).
    """

    def __init__(
        self,
        bucket: str,
        *,
        endpoint_url: str | None = None,
        client: Any = None,
    ) -> None:
        self._bucket = bucket
        if client is None:
            kwargs: dict[str, Any] = {
                "config": Config(
                    retries={"max_attempts": 3, "mode": "standard"},
                    connect_timeout=10,
                    read_timeout=60,
                )
            }
            if endpoint_url:
                kwargs["endpoint_url"] = endpoint_url
            client = boto3.client("s3", **kwargs)
        self._client = client

    @property
    def bucket(self) -> str:
        return self._bucket

    def put(self, key: str, data: bytes, content_type: str = TEXT_CONTENT_TYPE) -> None:
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=data, ContentType=content_type
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to write s3://{self._bucket}/{key}: {exc}") from exc
        logger.debug("Stored s3://%s/%s (%d bytes)", self._bucket, key, len(data))

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self._bucket, Key=key)
            return response["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise BlobNotFoundError(key) from exc
            raise StorageError(f"Failed to read s3://{self._bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to read s3://{self._bucket}/{key}: {exc}") from exc

    def list(self, prefix: str) -> list[BlobInfo]:
        results: list[BlobInfo] = []
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    results.append(
                        BlobInfo(
                            key=obj["Key"],
                            size=int(obj.get("Size", 0)),
                            last_modified=obj.get("LastModified"),
                        )
                    )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"Failed to list s3://{self._bucket}/{prefix}: {exc}") from exc
        return sorted(results, key=lambda info: info.key)

    def head(self, key: str) -> int:
        try:
            response = self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as exc:
            if _error_code(exc) in _NOT_FOUND_CODES:
                raise BlobNotFoundError(key) from exc
            raise StorageError(f"Failed to stat s3://{self._bucket}/{key}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to stat s3://{self._bucket}/{key}: {exc}") from exc
        return int(response.get("ContentLength", 0))
