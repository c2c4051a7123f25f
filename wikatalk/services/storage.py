"""S3 staging helpers for transient audio uploads.

Every pipeline run stages exactly one object. The processed variant is never
stored: its address is derived from the staged key using the delivery host's
transformation path segment, and fetched over HTTP for analysis.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any
from urllib.parse import quote
from uuid import uuid4

import httpx
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from wikatalk.config.settings import StorageConfig
from wikatalk.domain.models import PipelineError, StagedResource

logger = logging.getLogger(__name__)


class StagingUploadError(PipelineError):
    """Raised when the remote store rejects or fails an upload."""

    def __init__(self, object_key: str | None, cause: Exception | None = None):
        self.object_key = object_key
        self.cause = cause
        super().__init__("Failed to upload audio to staging storage")


class StagingDownloadError(PipelineError):
    """Raised when the processed variant cannot be fetched."""

    def __init__(
        self,
        url: str,
        cause: Exception | None = None,
        *,
        status_code: int | None = None,
    ):
        self.url = url
        self.cause = cause
        self.status_code = status_code
        super().__init__("Failed to download processed audio from staging storage")


def _object_url(bucket: str, region: str, key: str) -> str:
    if region == "us-east-1":
        return f"https://{bucket}.s3.amazonaws.com/{key}"
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


class StagingClient:
    """Upload, address, fetch and delete transient audio objects."""

    def __init__(
        self,
        s3_client: Any,
        *,
        bucket: str,
        region: str = "us-east-1",
        prefix: str = "audio-processing",
        staged_format: str = "webm",
        object_ttl_seconds: int = 3600,
        delivery_base_url: str | None = None,
        processed_transformation: str = "e_volume:150",
        download_timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._s3 = s3_client
        self._bucket = bucket
        self._region = region
        self._prefix = prefix.strip("/")
        self._format = staged_format.lstrip(".")
        self._ttl = timedelta(seconds=object_ttl_seconds)
        self._delivery_base_url = (delivery_base_url or "").rstrip("/") or None
        self._transformation = processed_transformation.strip("/")
        self._download_timeout = download_timeout_seconds
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        s3_client: Any,
        config: StorageConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "StagingClient":
        return cls(
            s3_client,
            bucket=config.bucket_name,
            region=config.region,
            prefix=config.prefix,
            staged_format=config.staged_format,
            object_ttl_seconds=config.object_ttl_seconds,
            delivery_base_url=config.delivery_base_url,
            processed_transformation=config.processed_transformation,
            download_timeout_seconds=config.download_timeout_seconds,
            transport=transport,
        )

    @property
    def staged_format(self) -> str:
        return self._format

    async def upload(
        self,
        audio_bytes: bytes,
        *,
        content_type: str = "audio/webm",
    ) -> StagedResource:
        """Put the bytes under ``<prefix>/<uuid>.<format>`` and return the handle.

        ``Expires`` is a cache header and does not make S3 delete the object.
        The pipeline deletes it explicitly; objects orphaned by a crash are
        reaped by a bucket lifecycle rule filtering on the
        ``lifecycle=transient`` tag, which must be configured on the bucket.
        """

        if not audio_bytes:
            raise StagingUploadError(None, ValueError("Audio payload for upload was empty."))
        if not self._bucket:
            raise StagingUploadError(None, ValueError("S3 bucket name is not configured."))

        object_key = f"{self._prefix}/{uuid4().hex}.{self._format}"
        expires_at = datetime.now(timezone.utc) + self._ttl
        try:
            await run_in_threadpool(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=object_key,
                Body=audio_bytes,
                ContentType=content_type,
                Expires=expires_at,
                Tagging="lifecycle=transient",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed key=%s: %s", object_key, exc)
            raise StagingUploadError(object_key, exc) from exc

        url = _object_url(self._bucket, self._region, object_key)
        logger.info(
            "Staged audio key=%s size=%d expires_at=%s",
            object_key,
            len(audio_bytes),
            expires_at.isoformat(),
        )
        return StagedResource(resource_id=object_key, url=url, expires_at=expires_at)

    def resolve_processed_address(self, resource: StagedResource) -> str:
        """Compute the transformed variant's URL. Pure string work, no I/O."""

        if not self._delivery_base_url:
            logger.debug(
                "No delivery host configured, using raw object URL for key=%s",
                resource.resource_id,
            )
            return resource.url

        encoded_key = quote(resource.resource_id, safe="/")
        if not self._transformation:
            return f"{self._delivery_base_url}/{encoded_key}"
        transformation = quote(self._transformation, safe=":,_")
        return f"{self._delivery_base_url}/{transformation}/{encoded_key}"

    async def download(self, url: str) -> bytes:
        """Fetch the bytes behind ``url``."""

        async with httpx.AsyncClient(
            timeout=self._download_timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "Processed audio download returned %s for %s",
                    exc.response.status_code,
                    url,
                )
                raise StagingDownloadError(
                    url, exc, status_code=exc.response.status_code
                ) from exc
            except httpx.HTTPError as exc:
                logger.error("Processed audio download failed for %s: %r", url, exc)
                raise StagingDownloadError(url, exc) from exc

        content = response.content
        if not content:
            raise StagingDownloadError(url, ValueError("Downloaded audio was empty."))
        return content

    async def delete(self, resource: StagedResource) -> bool:
        """Best-effort removal of a staged object; never raises."""

        try:
            await run_in_threadpool(
                self._s3.delete_object,
                Bucket=self._bucket,
                Key=resource.resource_id,
            )
        except Exception as exc:
            logger.warning(
                "Failed to delete staged audio key=%s: %s",
                resource.resource_id,
                exc,
            )
            return False

        logger.info("Deleted staged audio key=%s", resource.resource_id)
        return True


__all__ = [
    "StagingClient",
    "StagingDownloadError",
    "StagingUploadError",
]
