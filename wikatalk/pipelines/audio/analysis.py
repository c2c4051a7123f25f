"""Speech detection stage (Analyzing) of the audio pipeline.

The decoding backend reports the stream duration and its silence runs; this
module reduces that report into a single ``has_speech`` decision. The policy
is applied in a fixed order:

1. duration unknown, silence detected   -> speech (something decoded)
2. duration unknown, no silence         -> speech (not enough information)
3. otherwise                            -> speech iff speech % >= threshold

A decoder failure is the one branch that answers "no speech".
"""

from __future__ import annotations

import logging

from fastapi.concurrency import run_in_threadpool

from wikatalk.config.settings import AnalyzerConfig
from wikatalk.domain.models import AnalysisResult, SilenceReport, SpeechDecision
from wikatalk.services.silence import FFmpegSilenceDetector, SilenceDetector

logger = logging.getLogger("wikatalk.pipelines.audio")

DEFAULT_SPEECH_THRESHOLD_PERCENT = 15.0


def decide_speech(
    report: SilenceReport,
    *,
    threshold_percent: float = DEFAULT_SPEECH_THRESHOLD_PERCENT,
) -> AnalysisResult:
    """Apply the speech decision policy to a decoder report."""

    silence_duration = sum(interval.duration for interval in report.intervals)
    silence_count = len(report.intervals)

    if report.duration is None:
        decision = (
            SpeechDecision.SILENCE_WITHOUT_DURATION
            if silence_count
            else SpeechDecision.UNDETERMINED_DURATION
        )
        return AnalysisResult(
            total_duration=None,
            silence_duration=silence_duration,
            speech_percentage=100.0,
            has_speech=True,
            decision=decision,
            silence_count=silence_count,
        )

    total_duration = report.duration
    speech_percentage = 100 * (total_duration - silence_duration) / total_duration
    return AnalysisResult(
        total_duration=total_duration,
        silence_duration=silence_duration,
        speech_percentage=speech_percentage,
        has_speech=speech_percentage >= threshold_percent,
        decision=SpeechDecision.MEASURED,
        silence_count=silence_count,
    )


def analysis_failed_result() -> AnalysisResult:
    """Result used when the clip cannot be decoded: treated as silence."""

    return AnalysisResult(
        total_duration=None,
        silence_duration=0.0,
        speech_percentage=0.0,
        has_speech=False,
        decision=SpeechDecision.ANALYSIS_FAILED,
    )


class AudioAnalyzer:
    """Run the decoder off the event loop and apply the decision policy."""

    def __init__(
        self,
        detector: SilenceDetector,
        *,
        speech_threshold_percent: float = DEFAULT_SPEECH_THRESHOLD_PERCENT,
    ) -> None:
        self._detector = detector
        self._threshold = speech_threshold_percent

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "AudioAnalyzer":
        return cls(
            FFmpegSilenceDetector.from_config(config),
            speech_threshold_percent=config.speech_threshold_percent,
        )

    async def analyze(self, audio_bytes: bytes) -> AnalysisResult:
        try:
            report = await run_in_threadpool(self._detector.detect, audio_bytes)
        except Exception as exc:
            logger.warning("Audio analysis failed, treating clip as silence: %s", exc, exc_info=True)
            return analysis_failed_result()

        result = decide_speech(report, threshold_percent=self._threshold)
        logger.info(
            "Speech analysis decision=%s has_speech=%s duration=%s silence=%.2fs speech=%.1f%%",
            result.decision.value,
            result.has_speech,
            result.total_duration,
            result.silence_duration,
            result.speech_percentage,
        )
        return result


__all__ = [
    "AudioAnalyzer",
    "DEFAULT_SPEECH_THRESHOLD_PERCENT",
    "analysis_failed_result",
    "decide_speech",
]
