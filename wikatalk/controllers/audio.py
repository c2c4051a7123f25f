"""Audio processing endpoint.

For a stage-by-stage map see `wikatalk.pipelines.audio.flow`. The POST
`/api/audio/process` handler only validates the multipart body; staging,
analysis, translation and cleanup happen inside `AudioTranslationPipeline`.
Failures are mapped to the JSON error contract by the handlers registered in
`wikatalk.main`.
"""

import logging
from typing import Optional

from fastapi import APIRouter, File, Form, UploadFile

from wikatalk.config.settings import settings
from wikatalk.controllers.dependencies import PipelineDep
from wikatalk.pipelines.audio import AudioTranslationPipeline, build_submission
from wikatalk.views import ErrorResponse, ProcessAudioResponse

router = APIRouter(prefix="/api/audio", tags=["audio"])

logger = logging.getLogger(__name__)

PIPELINE_STAGES = tuple(AudioTranslationPipeline.describe())
"""Ordered pipeline metadata used for quick reference and debugging."""

_AUDIO_FILE_UPLOAD = File(None)
_SRC_LANG_FORM = Form(None, alias="srcLang")
_TGT_LANG_FORM = Form(None, alias="tgtLang")


@router.post(
    "/process",
    response_model=ProcessAudioResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def process_audio(
    pipeline: PipelineDep,
    file: Optional[UploadFile] = _AUDIO_FILE_UPLOAD,
    source_language: Optional[str] = _SRC_LANG_FORM,
    target_language: Optional[str] = _TGT_LANG_FORM,
) -> ProcessAudioResponse:
    """Stage, analyze and (when speech is present) translate a voice recording."""

    submission = await build_submission(
        file,
        source_language,
        target_language,
        max_bytes=settings.max_upload_bytes,
    )
    result = await pipeline.run(submission)

    if result.message:
        logger.info("Audio processed without translation: %s", result.message)
    return ProcessAudioResponse.from_result(result)
