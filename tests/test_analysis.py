"""Speech decision policy and the threadpool-backed analyzer."""

from __future__ import annotations

import pytest

from wikatalk.config.settings import AnalyzerConfig
from wikatalk.domain.models import SilenceInterval, SilenceReport, SpeechDecision
from wikatalk.pipelines.audio import AudioAnalyzer, decide_speech
from wikatalk.services.silence import AnalysisError, FFmpegSilenceDetector, SilenceDetector


def _report(duration, *silences) -> SilenceReport:
    intervals = []
    cursor = 0.0
    for length in silences:
        intervals.append(SilenceInterval(start=cursor, duration=length))
        cursor += length
    return SilenceReport(duration=duration, intervals=tuple(intervals))


def test_threshold_is_inclusive() -> None:
    result = decide_speech(_report(100.0, 85.0))

    assert result.speech_percentage == pytest.approx(15.0)
    assert result.has_speech is True
    assert result.decision is SpeechDecision.MEASURED


def test_just_below_threshold_is_silence() -> None:
    result = decide_speech(_report(100.0, 86.0))

    assert result.speech_percentage == pytest.approx(14.0)
    assert result.has_speech is False


def test_silence_runs_are_summed() -> None:
    result = decide_speech(_report(10.0, 2.0, 3.0))

    assert result.silence_duration == pytest.approx(5.0)
    assert result.silence_count == 2
    assert result.speech_percentage == pytest.approx(50.0)
    assert result.has_speech is True


def test_fully_silent_clip_has_no_speech() -> None:
    result = decide_speech(_report(3.0, 3.0))

    assert result.speech_percentage == pytest.approx(0.0)
    assert result.has_speech is False


def test_unknown_duration_with_silence_counts_as_speech() -> None:
    result = decide_speech(_report(None, 1.5))

    assert result.has_speech is True
    assert result.total_duration is None
    assert result.decision is SpeechDecision.SILENCE_WITHOUT_DURATION


def test_unknown_duration_without_silence_counts_as_speech() -> None:
    result = decide_speech(_report(None))

    assert result.has_speech is True
    assert result.decision is SpeechDecision.UNDETERMINED_DURATION


def test_custom_threshold() -> None:
    result = decide_speech(_report(10.0, 7.0), threshold_percent=50.0)

    assert result.has_speech is False


class RecordingDetector(SilenceDetector):
    def __init__(self, report=None, error=None):
        self.report = report
        self.error = error
        self.calls = []

    def detect(self, audio_bytes: bytes) -> SilenceReport:
        self.calls.append(audio_bytes)
        if self.error is not None:
            raise self.error
        return self.report


@pytest.mark.asyncio
async def test_analyzer_applies_policy_to_detector_report() -> None:
    detector = RecordingDetector(_report(4.0, 1.0))
    analyzer = AudioAnalyzer(detector, speech_threshold_percent=15.0)

    result = await analyzer.analyze(b"audio")

    assert detector.calls == [b"audio"]
    assert result.has_speech is True
    assert result.speech_percentage == pytest.approx(75.0)


@pytest.mark.asyncio
async def test_analyzer_failure_means_no_speech() -> None:
    analyzer = AudioAnalyzer(RecordingDetector(error=AnalysisError("Audio could not be decoded")))

    result = await analyzer.analyze(b"garbage")

    assert result.has_speech is False
    assert result.speech_percentage == 0.0
    assert result.decision is SpeechDecision.ANALYSIS_FAILED


@pytest.mark.asyncio
async def test_analyzer_treats_unexpected_errors_as_failure() -> None:
    analyzer = AudioAnalyzer(RecordingDetector(error=ValueError("bad header")))

    result = await analyzer.analyze(b"garbage")

    assert result.decision is SpeechDecision.ANALYSIS_FAILED


def test_analyzer_from_config_builds_ffmpeg_detector() -> None:
    config = AnalyzerConfig(
        ffmpeg_binary="/opt/ffmpeg/bin/ffmpeg",
        noise_floor_db=-40,
        min_silence_seconds=1.0,
        speech_threshold_percent=20,
    )

    analyzer = AudioAnalyzer.from_config(config)

    assert isinstance(analyzer._detector, FFmpegSilenceDetector)
    assert analyzer._detector.filter_spec == "silencedetect=noise=-40dB:d=1"
    assert analyzer._threshold == 20
