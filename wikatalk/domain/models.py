"""Typed containers shared across the audio translation pipeline.

These dataclasses live in the domain layer so the pipeline stages and the
service clients can import them without creating circular dependencies.
None of them outlive a single request.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class PipelineError(RuntimeError):
    """Base class for failures surfaced by the audio pipeline.

    ``message`` is safe to return to API callers; the underlying cause is
    only exposed through the debug stack trace.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


@dataclass(frozen=True)
class AudioSubmission:
    """Inbound unit of work built by the ingestion gateway."""

    audio_bytes: bytes
    content_type: str
    size: int
    source_language: str
    target_language: str
    filename: str | None = None


@dataclass(frozen=True)
class StagedResource:
    """Handle to a transient object held in remote storage."""

    resource_id: str
    url: str
    expires_at: datetime | None = None


@dataclass(frozen=True)
class SilenceInterval:
    """One silence run reported by the decoder, in seconds."""

    start: float
    duration: float


@dataclass(frozen=True)
class SilenceReport:
    """Structured output of the decoding backend.

    ``duration`` is ``None`` when the container did not expose a usable
    stream duration.
    """

    duration: float | None
    intervals: tuple[SilenceInterval, ...] = ()


class SpeechDecision(str, Enum):
    """Which branch of the decision policy produced an AnalysisResult."""

    MEASURED = "measured"
    SILENCE_WITHOUT_DURATION = "silence_without_duration"
    UNDETERMINED_DURATION = "undetermined_duration"
    ANALYSIS_FAILED = "analysis_failed"


@dataclass(frozen=True)
class AnalysisResult:
    total_duration: float | None
    silence_duration: float
    speech_percentage: float
    has_speech: bool
    decision: SpeechDecision
    silence_count: int = 0


@dataclass(frozen=True)
class TranslationOutcome:
    """Text returned by the speech-translation service (never ``None``)."""

    transcribed_text: str = ""
    translated_text: str = ""
    success: bool = True


@dataclass(frozen=True)
class PipelineResult:
    """Value handed back to the HTTP layer after a completed run."""

    outcome: TranslationOutcome
    analysis: AnalysisResult
    message: str | None = None


__all__ = [
    "AnalysisResult",
    "AudioSubmission",
    "PipelineError",
    "PipelineResult",
    "SilenceInterval",
    "SilenceReport",
    "SpeechDecision",
    "StagedResource",
    "TranslationOutcome",
]
