"""Orchestration for the `/api/audio/process` pipeline.

One ``AudioTranslationPipeline`` instance handles one submission. Stages run
strictly in sequence because each consumes the previous stage's output:

1. ``Validating`` – re-check the submission built by ``ingestion``.
2. ``Uploading`` – stage the raw bytes in S3.
3. ``Resolving`` – derive the gain-adjusted variant's address (no I/O).
4. ``Downloading`` – fetch the processed variant.
5. ``Analyzing`` – silence detection and the speech decision.
6. ``Translating`` or ``Skipped`` – call the NLP service only when speech
   was detected.
7. ``CleaningUp`` – delete the staged object, on every exit path including
   cancellation of the request.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Iterator, List, Protocol

import anyio

from wikatalk.domain.models import (
    AnalysisResult,
    AudioSubmission,
    PipelineResult,
    StagedResource,
    TranslationOutcome,
)
from wikatalk.telemetry import increment_cleanup_failure, observe_stage, record_pipeline_run

from .ingestion import MISSING_FILE_MESSAGE, MISSING_LANGUAGES_MESSAGE, ValidationError

logger = logging.getLogger("wikatalk.pipelines.audio")
translation_logger = logging.getLogger("wikatalk.logs.translation")

NO_SPEECH_MESSAGE = "No speech detected in the audio"


class PipelineState(str, Enum):
    VALIDATING = "validating"
    UPLOADING = "uploading"
    RESOLVING = "resolving"
    DOWNLOADING = "downloading"
    ANALYZING = "analyzing"
    TRANSLATING = "translating"
    SKIPPED = "skipped"
    CLEANING_UP = "cleaning_up"
    DONE = "done"


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the audio pipeline."""

    order: int
    state: PipelineState
    component: str
    summary: str


class StagingBackend(Protocol):
    async def upload(self, audio_bytes: bytes, *, content_type: str) -> StagedResource: ...

    def resolve_processed_address(self, resource: StagedResource) -> str: ...

    async def download(self, url: str) -> bytes: ...

    async def delete(self, resource: StagedResource) -> bool: ...


class SpeechAnalyzer(Protocol):
    async def analyze(self, audio_bytes: bytes) -> AnalysisResult: ...


class Translator(Protocol):
    async def translate(
        self,
        audio_bytes: bytes,
        source_language: str,
        target_language: str,
        *,
        audio_format: str = "webm",
    ) -> TranslationOutcome: ...


class AudioTranslationPipeline:
    """Sequence staging, analysis and translation for a single submission."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(1, PipelineState.VALIDATING, "wikatalk.pipelines.audio.ingestion",
                      "File present, both language codes present, payload within the upload limit."),
        PipelineStage(2, PipelineState.UPLOADING, "wikatalk.services.storage",
                      "Stage the raw recording in S3 under the transient prefix."),
        PipelineStage(3, PipelineState.RESOLVING, "wikatalk.services.storage",
                      "Derive the volume-boosted variant's delivery URL."),
        PipelineStage(4, PipelineState.DOWNLOADING, "wikatalk.services.storage",
                      "Fetch the processed variant for analysis."),
        PipelineStage(5, PipelineState.ANALYZING, "wikatalk.pipelines.audio.analysis",
                      "Run silencedetect and decide whether the clip contains speech."),
        PipelineStage(6, PipelineState.TRANSLATING, "wikatalk.services.translation",
                      "Forward the processed audio to the NLP service (skipped on silence)."),
        PipelineStage(7, PipelineState.CLEANING_UP, "wikatalk.services.storage",
                      "Delete the staged object, whatever happened before."),
    ]

    def __init__(
        self,
        storage: StagingBackend,
        analyzer: SpeechAnalyzer,
        translator: Translator,
        *,
        audio_format: str = "webm",
    ) -> None:
        self._storage = storage
        self._analyzer = analyzer
        self._translator = translator
        self._audio_format = audio_format
        self.state = PipelineState.VALIDATING
        self.transitions: list[PipelineState] = []

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)

    async def run(self, submission: AudioSubmission) -> PipelineResult:
        resource: StagedResource | None = None
        outcome_label = "failed"
        try:
            with self._stage(PipelineState.VALIDATING):
                self._validate(submission)

            with self._stage(PipelineState.UPLOADING):
                resource = await self._storage.upload(
                    submission.audio_bytes,
                    content_type=submission.content_type,
                )

            with self._stage(PipelineState.RESOLVING):
                processed_url = self._storage.resolve_processed_address(resource)
                logger.info("Processed audio URL: %s", processed_url)

            with self._stage(PipelineState.DOWNLOADING):
                processed_audio = await self._storage.download(processed_url)
                logger.info("Downloaded processed audio, size: %d", len(processed_audio))

            with self._stage(PipelineState.ANALYZING):
                analysis = await self._analyzer.analyze(processed_audio)

            if not analysis.has_speech:
                self._enter(PipelineState.SKIPPED)
                outcome_label = "no_speech"
                return PipelineResult(
                    outcome=TranslationOutcome(),
                    analysis=analysis,
                    message=NO_SPEECH_MESSAGE,
                )

            with self._stage(PipelineState.TRANSLATING):
                outcome = await self._translator.translate(
                    processed_audio,
                    submission.source_language,
                    submission.target_language,
                    audio_format=self._audio_format,
                )

            translation_logger.info(
                "%s->%s | transcribed=%s | translated=%s",
                submission.source_language,
                submission.target_language,
                outcome.transcribed_text,
                outcome.translated_text,
            )
            outcome_label = "translated"
            return PipelineResult(outcome=outcome, analysis=analysis)
        except ValidationError as exc:
            outcome_label = "rejected"
            logger.warning("Submission rejected: %s", exc.message)
            raise
        except Exception:
            logger.exception("Audio pipeline failed during %s", self.state.value)
            raise
        finally:
            # Cancellation of the request must not cancel the delete as well.
            with anyio.CancelScope(shield=True):
                if resource is not None:
                    with self._stage(PipelineState.CLEANING_UP):
                        await self._cleanup(resource)
                self._enter(PipelineState.DONE)
                record_pipeline_run(outcome_label)

    def _validate(self, submission: AudioSubmission) -> None:
        if not submission.audio_bytes:
            raise ValidationError(MISSING_FILE_MESSAGE)
        if not submission.source_language or not submission.target_language:
            raise ValidationError(MISSING_LANGUAGES_MESSAGE)

    async def _cleanup(self, resource: StagedResource) -> None:
        try:
            deleted = await self._storage.delete(resource)
        except Exception as exc:
            logger.warning("Cleanup raised for key=%s: %s", resource.resource_id, exc)
            deleted = False
        if not deleted:
            increment_cleanup_failure()

    def _enter(self, state: PipelineState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug("Pipeline state -> %s", state.value)

    @contextmanager
    def _stage(self, state: PipelineState) -> Iterator[None]:
        self._enter(state)
        start = time.perf_counter()
        try:
            yield
        finally:
            observe_stage(state.value, time.perf_counter() - start)


__all__ = [
    "AudioTranslationPipeline",
    "NO_SPEECH_MESSAGE",
    "PipelineStage",
    "PipelineState",
    "SpeechAnalyzer",
    "StagingBackend",
    "Translator",
]
