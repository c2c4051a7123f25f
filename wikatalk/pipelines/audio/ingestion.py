"""Request ingestion helpers (Validating stage of the audio pipeline)."""

from __future__ import annotations

import logging
import mimetypes
from typing import Final

from fastapi import UploadFile

from wikatalk.domain.models import AudioSubmission, PipelineError

logger = logging.getLogger("wikatalk.pipelines.audio")

DEFAULT_CONTENT_TYPE: Final[str] = "audio/webm"
MISSING_FILE_MESSAGE: Final[str] = "No audio file uploaded"
MISSING_LANGUAGES_MESSAGE: Final[str] = "Source and target languages are required"


class ValidationError(PipelineError):
    """Raised when the inbound submission is incomplete or too large."""


def resolve_content_type(audio_file: UploadFile) -> str:
    """Use the declared content-type, falling back to the filename, then webm."""

    content_type = audio_file.content_type
    if not content_type or content_type == "application/octet-stream":
        if audio_file.filename:
            guessed_type, _ = mimetypes.guess_type(audio_file.filename)
            content_type = guessed_type or content_type
    return content_type or DEFAULT_CONTENT_TYPE


async def read_audio_bytes(audio_file: UploadFile, *, max_bytes: int) -> bytes:
    """Load the upload into memory, rejecting empty or oversized payloads."""

    if audio_file.size is not None and audio_file.size > max_bytes:
        await audio_file.close()
        raise ValidationError(_too_large_message(max_bytes))

    # One byte past the ceiling is enough to tell the payload is too large.
    audio_bytes = await audio_file.read(max_bytes + 1)
    await audio_file.close()

    if not audio_bytes:
        raise ValidationError("Uploaded audio file is empty")
    if len(audio_bytes) > max_bytes:
        raise ValidationError(_too_large_message(max_bytes))
    return audio_bytes


def normalize_language(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


async def build_submission(
    audio_file: UploadFile | None,
    source_language: str | None,
    target_language: str | None,
    *,
    max_bytes: int,
) -> AudioSubmission:
    """Validate the multipart fields and freeze them into an AudioSubmission."""

    if audio_file is None:
        raise ValidationError(MISSING_FILE_MESSAGE)

    src_lang = normalize_language(source_language)
    tgt_lang = normalize_language(target_language)
    if not src_lang or not tgt_lang:
        await audio_file.close()
        raise ValidationError(MISSING_LANGUAGES_MESSAGE)

    content_type = resolve_content_type(audio_file)
    audio_bytes = await read_audio_bytes(audio_file, max_bytes=max_bytes)

    logger.info(
        "File received name=%s type=%s size=%d languages=%s->%s",
        audio_file.filename,
        content_type,
        len(audio_bytes),
        src_lang,
        tgt_lang,
    )
    return AudioSubmission(
        audio_bytes=audio_bytes,
        content_type=content_type,
        size=len(audio_bytes),
        source_language=src_lang,
        target_language=tgt_lang,
        filename=audio_file.filename,
    )


def _too_large_message(max_bytes: int) -> str:
    if max_bytes % (1024 * 1024) == 0:
        return f"Audio file exceeds the {max_bytes // (1024 * 1024)} MiB upload limit"
    return f"Audio file exceeds the {max_bytes} byte upload limit"


__all__ = [
    "DEFAULT_CONTENT_TYPE",
    "MISSING_FILE_MESSAGE",
    "MISSING_LANGUAGES_MESSAGE",
    "ValidationError",
    "build_submission",
    "normalize_language",
    "read_audio_bytes",
    "resolve_content_type",
]
