"""Blob storage for rendered artifacts.

``ArtifactStore`` is a thin wrapper over a blob backend's put and delete
operations that validates artifact locations locally and converts backend
failures into StoreError.
"""

from __future__ import annotations

import asyncio
import mimetypes
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from ..framework.config import AWSConfig
from ..framework.metrics import PipelineMetrics
from ..utils.errors import ConfigError, StoreError


logger = structlog.get_logger(__name__)

DEFAULT_CONTENT_TYPE = "text/html"


@dataclass(frozen=True)
class RenderedArtifact:
    """Rendered output ready to be persisted."""
    bucket: Optional[str]
    name: str
    content: str


class BlobBackend(Protocol):
    """Write interface of the blob store."""

    async def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        ...


class S3BlobBackend:
    """BlobBackend backed by S3."""

    def __init__(self, config: Optional[AWSConfig] = None, client: Any = None):
        self.config = config or AWSConfig()
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.config.region,
                endpoint_url=self.config.endpoint_url,
            )
        return self._client

    async def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        await asyncio.to_thread(
            self.client.put_object,
            Bucket=bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
        )

    async def delete_object(self, bucket: str, key: str) -> None:
        await asyncio.to_thread(self.client.delete_object, Bucket=bucket, Key=key)


class ArtifactStore:
    """Persists and removes rendered artifacts."""

    def __init__(self, backend: BlobBackend, metrics: Optional[PipelineMetrics] = None):
        self.backend = backend
        self.metrics = metrics
        self.logger = structlog.get_logger("artifact-store")

    async def put(self, bucket: Optional[str], key: Optional[str], content: str) -> None:
        """
        Store content under bucket/key.

        Raises:
            ConfigError: If bucket or key is missing.
            StoreError: If the backend write fails.
        """
        self._require_location(bucket, key, "put")
        content_type = mimetypes.guess_type(key)[0] or DEFAULT_CONTENT_TYPE

        try:
            await self.backend.put_object(bucket, key, content.encode("utf-8"), content_type)
        except (BotoCoreError, ClientError, OSError) as e:
            self.logger.error("Artifact put error", error=str(e), bucket=bucket, key=key)
            raise StoreError(
                f"Failed to store {bucket}/{key}: {e}",
                operation="put",
                bucket=bucket,
                details={"key": key},
            ) from e

        if self.metrics:
            self.metrics.artifacts_stored.inc()
        self.logger.info("Artifact stored", bucket=bucket, key=key, size=len(content))

    async def store(self, artifact: RenderedArtifact) -> None:
        await self.put(artifact.bucket, artifact.name, artifact.content)

    async def delete(self, bucket: Optional[str], key: Optional[str]) -> None:
        """
        Delete the object at bucket/key.

        Raises:
            ConfigError: If bucket or key is missing; no backend call is made.
            StoreError: If the backend delete fails.
        """
        self._require_location(bucket, key, "delete")

        try:
            await self.backend.delete_object(bucket, key)
        except (BotoCoreError, ClientError, OSError) as e:
            self.logger.error("Artifact delete error", error=str(e), bucket=bucket, key=key)
            raise StoreError(
                f"Failed to delete {bucket}/{key}: {e}",
                operation="delete",
                bucket=bucket,
                details={"key": key},
            ) from e

        if self.metrics:
            self.metrics.artifacts_deleted.inc()
        self.logger.info("Artifact deleted", bucket=bucket, key=key)

    @staticmethod
    def _require_location(bucket: Optional[str], key: Optional[str], operation: str) -> None:
        if not bucket or not key:
            raise ConfigError(
                "Artifact is missing bucket or key",
                config_key="bucket" if not bucket else "key",
                details={"operation": operation, "bucket": bucket, "key": key},
            )
