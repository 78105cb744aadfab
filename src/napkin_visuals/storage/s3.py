"""Amazon S3 (and S3-compatible) storage backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from napkin_visuals.errors import StorageError
from napkin_visuals.storage.base import (
    StorageContent,
    StorageResult,
    decode_content,
    require_bare_filename,
    string_metadata,
)
from napkin_visuals.storage.destinations import S3Destination

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., Any]


class S3Storage:
    """Puts objects under `{prefix}/{filename}`; the PUT result is authoritative.

    Without static credentials boto3 resolves ambient ones (environment,
    shared config, instance role).
    """

    kind = S3Destination.kind

    def __init__(
        self,
        destination: S3Destination,
        *,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._destination = destination
        self._client_factory = client_factory or boto3.client
        self._client: Any | None = None

    def object_key(self, filename: str) -> str:
        prefix = (self._destination.prefix or "").rstrip("/")
        return f"{prefix}/{filename}" if prefix else filename

    def public_url(self, key: str) -> str:
        bucket = self._destination.bucket
        if self._destination.endpoint:
            return f"{self._destination.endpoint.rstrip('/')}/{bucket}/{key}"
        return f"https://{bucket}.s3.{self._destination.region}.amazonaws.com/{key}"

    async def store(
        self,
        content: StorageContent,
        filename: str,
        mime_type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> StorageResult:
        require_bare_filename(filename)
        data = decode_content(content)
        key = self.object_key(filename)
        params: dict[str, Any] = {
            "Bucket": self._destination.bucket,
            "Key": key,
            "Body": data,
            "Metadata": string_metadata(metadata),
        }
        if mime_type:
            params["ContentType"] = mime_type

        try:
            await asyncio.to_thread(lambda: self._get_client().put_object(**params))
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(
                message=f"Failed to upload s3://{self._destination.bucket}/{key}: {exc}",
                backend=self.kind,
            ) from exc

        logger.info("Stored %d bytes at s3://%s/%s", len(data), self._destination.bucket, key)
        return StorageResult(
            location=f"s3://{self._destination.bucket}/{key}",
            public_url=self.public_url(key),
            metadata={
                "bucket": self._destination.bucket,
                "key": key,
                "region": self._destination.region,
            },
        )

    def is_configured(self) -> bool:
        return bool(self._destination.bucket and self._destination.region)

    def _get_client(self) -> Any:
        if self._client is None:
            kwargs: dict[str, Any] = {"region_name": self._destination.region}
            if self._destination.endpoint:
                kwargs["endpoint_url"] = self._destination.endpoint
            if self._destination.access_key_id and self._destination.secret_access_key:
                kwargs["aws_access_key_id"] = self._destination.access_key_id
                kwargs["aws_secret_access_key"] = self._destination.secret_access_key
            if self._destination.force_path_style:
                kwargs["config"] = Config(s3={"addressing_style": "path"})
            self._client = self._client_factory("s3", **kwargs)
        return self._client
