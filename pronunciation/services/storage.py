"""S3 storage adapter for user recordings and generated reference audio."""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Optional

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from pronunciation.application.interfaces import ObjectStorageInterface
from pronunciation.config.settings import settings
from pronunciation.domain.models import StoredAudio
from pronunciation.services.aws import create_boto3_client
from pronunciation.services.media import (
    MediaConversionError,
    probe_duration,
    remove_quietly,
    transcode_to_mp3,
)
from pronunciation.services.resilience import ExternalServiceError

logger = logging.getLogger(__name__)


class StorageError(ExternalServiceError):
    """Raised when S3 asset persistence fails."""


def _is_retryable(exc: ClientError) -> bool:
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 500
    return status >= 500 or status == 429


class S3AudioStorage(ObjectStorageInterface):
    """Store audio as MP3 objects in the configured bucket."""

    def __init__(
        self,
        *,
        bucket: str | None = None,
        region: str | None = None,
        public_base_url: str | None = None,
        client: Any = None,
    ) -> None:
        self._bucket = bucket or settings.s3.bucket_name
        self._region = region or settings.s3.region
        self._public_base_url = public_base_url or settings.s3.public_base_url
        self._client = client or create_boto3_client("s3", region_name=self._region)

    def object_url(self, key: str, *, secure: bool = True) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        scheme = "https" if secure else "http"
        if self._region == "us-east-1":
            return f"{scheme}://{self._bucket}.s3.amazonaws.com/{key}"
        return f"{scheme}://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    async def upload(
        self,
        local_path: str,
        *,
        folder: str,
        public_id: str,
        user_id: Optional[str] = None,
    ) -> StoredAudio:
        """Transcode to MP3 when needed, upload, and describe the stored object."""

        if not self._bucket:
            raise StorageError("S3 bucket name is not configured.", retryable=False)
        if not os.path.exists(local_path):
            raise StorageError(f"File not found: {local_path}", retryable=False)

        mp3_path = local_path
        transcoded: str | None = None
        if not local_path.lower().endswith(".mp3"):
            try:
                transcoded = mp3_path = await transcode_to_mp3(local_path)
            except MediaConversionError as exc:
                raise StorageError(f"Audio conversion failed: {exc}", retryable=False) from exc

        try:
            duration = await probe_duration(mp3_path)
            with open(mp3_path, "rb") as audio_fp:
                body = audio_fp.read()

            prefix = f"{folder}/{user_id}" if user_id else folder
            key = f"{prefix}/{public_id}.mp3"
            metadata = {"uploaded-at": datetime.now(timezone.utc).isoformat()}
            if user_id:
                metadata["user-id"] = str(user_id)

            logger.info("Uploading audio to S3 key=%s bytes=%d", key, len(body))
            try:
                await run_in_threadpool(
                    self._client.put_object,
                    Bucket=self._bucket,
                    Key=key,
                    Body=body,
                    ContentType="audio/mpeg",
                    Metadata=metadata,
                )
            except ClientError as exc:
                raise StorageError(
                    f"Failed to upload audio: {exc}", retryable=_is_retryable(exc)
                ) from exc
            except BotoCoreError as exc:
                raise StorageError(f"Failed to upload audio: {exc}") from exc
        finally:
            remove_quietly(transcoded)

        return StoredAudio(
            url=self.object_url(key, secure=False),
            secure_url=self.object_url(key),
            public_id=key,
            format="mp3",
            duration=duration,
            bytes=len(body),
        )

    async def download(self, public_id: str, local_path: str) -> str:
        """Fetch a stored object to ``local_path``."""

        try:
            await run_in_threadpool(
                self._client.download_file, self._bucket, public_id, local_path
            )
        except ClientError as exc:
            raise StorageError(
                f"Failed to download {public_id}: {exc}", retryable=_is_retryable(exc)
            ) from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to download {public_id}: {exc}") from exc
        return local_path

    async def delete(self, public_id: str) -> None:
        """Remove an object; errors are logged, never raised."""

        if not public_id:
            return
        try:
            await run_in_threadpool(
                self._client.delete_object, Bucket=self._bucket, Key=public_id
            )
            logger.info("Deleted S3 object %s", public_id)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Failed to delete S3 object %s: %s", public_id, exc)


__all__ = ["S3AudioStorage", "StorageError"]
