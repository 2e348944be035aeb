"""S3 adapter implementing BlobStore."""

import logging
from collections.abc import Iterator
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from rowsync.domain.ingest.port import BlobStore
from rowsync.domain.shared.error import SourceUnavailableError

logger = logging.getLogger(__name__)


class S3BlobStore(BlobStore):
    """Reads source files from an S3 (or S3-compatible) bucket."""

    def __init__(
        self,
        client: Any | None = None,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
    ) -> None:
        self._client = client or boto3.client(
            "s3", region_name=region, endpoint_url=endpoint_url
        )

    def fetch_object(self, bucket: str, key: str) -> Iterator[bytes]:
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise SourceUnavailableError(f"Cannot fetch s3://{bucket}/{key}: {e}") from e

        body = response["Body"]
        logger.debug(f"Streaming s3://{bucket}/{key} ({response.get('ContentLength')} bytes)")
        try:
            yield from body.iter_lines(keepends=True)
        except (BotoCoreError, ClientError) as e:
            raise SourceUnavailableError(f"Lost stream for s3://{bucket}/{key}: {e}") from e
        finally:
            body.close()

    def list_folders(self, bucket: str) -> list[str]:
        folders: list[str] = []
        for page in self._paginate(bucket, Delimiter="/"):
            folders.extend(prefix["Prefix"] for prefix in page.get("CommonPrefixes", []))
        return sorted(folders)

    def list_objects(self, bucket: str, prefix: str = "") -> list[str]:
        keys: list[str] = []
        for page in self._paginate(bucket, Prefix=prefix):
            keys.extend(obj["Key"] for obj in page.get("Contents", []))
        return sorted(keys)

    def _paginate(self, bucket: str, **kwargs: str) -> Iterator[dict]:
        paginator = self._client.get_paginator("list_objects_v2")
        try:
            yield from paginator.paginate(Bucket=bucket, **kwargs)
        except (BotoCoreError, ClientError) as e:
            raise SourceUnavailableError(f"Cannot list s3://{bucket}: {e}") from e
