"""Request ingestion helpers (Stage 01 of the scoring pipeline)."""

from __future__ import annotations

import mimetypes
import os
from typing import Final

from fastapi import HTTPException, UploadFile, status

from pronunciation.config.settings import settings
from pronunciation.services.media import remove_quietly, temp_audio_path

_ALLOWED_CONTENT_TYPES: Final[set[str]] = {
    "audio/webm",
    "audio/mp3",
    "audio/mpeg",
    "audio/wav",
    "audio/x-wav",
    "audio/ogg",
    "audio/mp4",
    "audio/x-m4a",
}

_SUFFIXES: Final[dict[str, str]] = {
    "audio/webm": ".webm",
    "audio/mp3": ".mp3",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
}

_CHUNK_SIZE: Final[int] = 1024 * 1024


def resolve_content_type(audio_file: UploadFile) -> str:
    """Accept browser recordings and common audio formats, guessing from the filename if needed."""

    content_type = (audio_file.content_type or "").split(";")[0].strip().lower()
    if (not content_type or content_type == "application/octet-stream") and audio_file.filename:
        guessed_type, _ = mimetypes.guess_type(audio_file.filename)
        content_type = guessed_type or content_type

    if content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only audio files are allowed.",
        )
    return content_type


async def save_upload(audio_file: UploadFile, content_type: str) -> str:
    """Stream the upload to a temp file, rejecting empty or oversized payloads."""

    suffix = _SUFFIXES.get(content_type)
    if not suffix and audio_file.filename:
        suffix = os.path.splitext(audio_file.filename)[1]
    local_path = temp_audio_path("recording", suffix or ".webm")

    max_bytes = settings.max_upload_bytes
    written = 0
    try:
        with open(local_path, "wb") as output_fp:
            while chunk := await audio_file.read(_CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise HTTPException(
                        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                        detail=f"Audio file exceeds the {max_bytes // (1024 * 1024)}MB limit",
                    )
                output_fp.write(chunk)
    except BaseException:
        remove_quietly(local_path)
        raise
    finally:
        await audio_file.close()

    if written == 0:
        remove_quietly(local_path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Audio file is required",
        )
    return local_path


__all__ = ["resolve_content_type", "save_upload"]
