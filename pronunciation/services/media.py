"""ffmpeg helpers and temporary audio file management."""

from __future__ import annotations

import json
import logging
import os
import subprocess
from pathlib import Path
from uuid import uuid4

from fastapi.concurrency import run_in_threadpool

from pronunciation.config.settings import settings

logger = logging.getLogger(__name__)


class MediaConversionError(RuntimeError):
    """Raised when ffmpeg cannot decode or re-encode an audio file."""


def temp_audio_path(prefix: str, suffix: str = ".mp3") -> str:
    """Return a unique path inside the shared temp audio directory."""

    directory = Path(settings.temp_audio_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return str(directory / f"{prefix}-{uuid4().hex}{suffix}")


def remove_quietly(path: str | None) -> None:
    """Delete a temp file; failures are logged and swallowed."""

    if not path:
        return
    try:
        if os.path.exists(path):
            os.remove(path)
            logger.debug("Removed temp file %s", path)
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", path, exc)


def _run_ffmpeg(args: list[str]) -> bytes:
    try:
        process = subprocess.run(
            ["ffmpeg", "-y", "-loglevel", "error", *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
    except FileNotFoundError as exc:
        raise MediaConversionError("ffmpeg is not installed") from exc
    except subprocess.CalledProcessError as exc:
        error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
        logger.error("ffmpeg failed. stderr: %s", error_msg)
        raise MediaConversionError(f"ffmpeg failed: {error_msg}") from exc
    return process.stdout


def transcode_to_mp3_sync(source_path: str) -> str:
    """Re-encode any ffmpeg-readable file to mono MP3 and return the new path."""

    target = temp_audio_path("transcoded", ".mp3")
    _run_ffmpeg(["-i", source_path, "-ac", "1", "-codec:a", "libmp3lame", "-q:a", "4", target])
    return target


def convert_to_pcm_sync(source_path: str, sample_rate: int) -> bytes:
    """Decode to raw PCM s16le mono at ``sample_rate`` (used for streaming ASR)."""

    pcm = _run_ffmpeg(
        ["-i", source_path, "-f", "s16le", "-ac", "1", "-ar", str(sample_rate), "pipe:1"]
    )
    if not pcm:
        raise MediaConversionError("ffmpeg produced empty PCM output")
    return pcm


def probe_duration_sync(path: str) -> float:
    """Return duration in seconds via ffprobe, or 0.0 when it cannot be read."""

    try:
        process = subprocess.run(
            [
                "ffprobe",
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "json",
                path,
            ],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=True,
        )
        payload = json.loads(process.stdout or b"{}")
        return round(float(payload.get("format", {}).get("duration", 0.0)), 3)
    except (OSError, subprocess.CalledProcessError, ValueError, TypeError) as exc:
        logger.warning("Could not probe duration of %s: %s", path, exc)
        return 0.0


async def transcode_to_mp3(source_path: str) -> str:
    return await run_in_threadpool(transcode_to_mp3_sync, source_path)


async def convert_to_pcm(source_path: str, sample_rate: int) -> bytes:
    return await run_in_threadpool(convert_to_pcm_sync, source_path, sample_rate)


async def probe_duration(path: str) -> float:
    return await run_in_threadpool(probe_duration_sync, path)


__all__ = [
    "MediaConversionError",
    "convert_to_pcm",
    "probe_duration",
    "remove_quietly",
    "temp_audio_path",
    "transcode_to_mp3",
]
