"""Orchestrator behaviour: stage order, skip branch and exactly-once cleanup."""

from __future__ import annotations

import anyio
import pytest
from prometheus_client import REGISTRY

from conftest import FakeAnalyzer, FakeStaging, FakeTranslator, silence_result
from wikatalk.domain.models import AudioSubmission, SilenceReport, SpeechDecision
from wikatalk.pipelines.audio import (
    NO_SPEECH_MESSAGE,
    AudioAnalyzer,
    AudioTranslationPipeline,
    PipelineState,
    ValidationError,
)
from wikatalk.services.silence import AnalysisError, SilenceDetector
from wikatalk.services.storage import StagingDownloadError, StagingUploadError


def _submission(**overrides) -> AudioSubmission:
    fields = dict(
        audio_bytes=b"raw-audio",
        content_type="audio/webm",
        size=9,
        source_language="en",
        target_language="tl",
        filename="clip.webm",
    )
    fields.update(overrides)
    return AudioSubmission(**fields)


class StaticDetector(SilenceDetector):
    def __init__(self, report: SilenceReport | None = None, error: Exception | None = None):
        self.report = report
        self.error = error

    def detect(self, audio_bytes: bytes) -> SilenceReport:
        if self.error is not None:
            raise self.error
        return self.report


@pytest.mark.asyncio
async def test_speech_path_walks_every_stage_in_order() -> None:
    staging = FakeStaging()
    translator = FakeTranslator()
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(), translator)

    result = await pipeline.run(_submission())

    assert result.message is None
    assert result.outcome.translated_text == "Magandang umaga"
    assert pipeline.transitions == [
        PipelineState.VALIDATING,
        PipelineState.UPLOADING,
        PipelineState.RESOLVING,
        PipelineState.DOWNLOADING,
        PipelineState.ANALYZING,
        PipelineState.TRANSLATING,
        PipelineState.CLEANING_UP,
        PipelineState.DONE,
    ]
    assert pipeline.state is PipelineState.DONE
    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_silent_clip_is_skipped_and_cleaned_up() -> None:
    staging = FakeStaging()
    translator = FakeTranslator()
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(silence_result()), translator)

    result = await pipeline.run(_submission())

    assert result.message == NO_SPEECH_MESSAGE
    assert result.outcome.transcribed_text == ""
    assert result.outcome.translated_text == ""
    assert translator.calls == []
    assert PipelineState.SKIPPED in pipeline.transitions
    assert PipelineState.TRANSLATING not in pipeline.transitions
    assert pipeline.transitions[-2:] == [PipelineState.CLEANING_UP, PipelineState.DONE]
    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_invalid_submission_never_reaches_storage() -> None:
    staging = FakeStaging()
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(), FakeTranslator())

    with pytest.raises(ValidationError):
        await pipeline.run(_submission(source_language=""))

    assert staging.uploads == []
    assert staging.deleted == []
    assert pipeline.transitions == [PipelineState.VALIDATING, PipelineState.DONE]


@pytest.mark.asyncio
async def test_download_failure_deletes_exactly_once() -> None:
    staging = FakeStaging(fail_download=True)
    analyzer = FakeAnalyzer()
    pipeline = AudioTranslationPipeline(staging, analyzer, FakeTranslator())

    with pytest.raises(StagingDownloadError):
        await pipeline.run(_submission())

    assert analyzer.calls == []
    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_cleanup_errors_are_swallowed() -> None:
    staging = FakeStaging(delete_raises=True)
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(), FakeTranslator())

    result = await pipeline.run(_submission())

    assert result.outcome.transcribed_text == "Good morning"
    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_cleanup_does_not_mask_the_original_error() -> None:
    staging = FakeStaging(delete_result=False)
    translator = FakeTranslator(error=RuntimeError("nlp exploded"))
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(), translator)

    with pytest.raises(RuntimeError, match="nlp exploded"):
        await pipeline.run(_submission())

    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_undecodable_audio_is_treated_as_silence() -> None:
    staging = FakeStaging()
    translator = FakeTranslator()
    analyzer = AudioAnalyzer(StaticDetector(error=AnalysisError("Audio could not be decoded")))
    pipeline = AudioTranslationPipeline(staging, analyzer, translator)

    result = await pipeline.run(_submission())

    assert result.message == NO_SPEECH_MESSAGE
    assert result.analysis.decision is SpeechDecision.ANALYSIS_FAILED
    assert translator.calls == []
    assert len(staging.deleted) == 1


@pytest.mark.asyncio
async def test_continuous_tone_is_forwarded_for_translation() -> None:
    staging = FakeStaging(processed_bytes=b"tone-3s")
    translator = FakeTranslator()
    analyzer = AudioAnalyzer(StaticDetector(SilenceReport(duration=3.0)))
    pipeline = AudioTranslationPipeline(staging, analyzer, translator, audio_format="ogg")

    result = await pipeline.run(_submission())

    assert result.analysis.speech_percentage == pytest.approx(100.0)
    assert translator.calls == [(b"tone-3s", "en", "tl", "ogg")]


def test_describe_lists_stages_in_order() -> None:
    stages = AudioTranslationPipeline.describe()

    assert [stage.order for stage in stages] == list(range(1, len(stages) + 1))
    assert stages[0].state is PipelineState.VALIDATING
    assert stages[-1].state is PipelineState.CLEANING_UP


@pytest.mark.asyncio
async def test_cancelled_run_still_deletes_staged_object() -> None:
    staging = FakeStaging(download_delay=10)
    translator = FakeTranslator()
    pipeline = AudioTranslationPipeline(staging, FakeAnalyzer(), translator)

    with anyio.move_on_after(0.1) as scope:
        await pipeline.run(_submission())

    assert scope.cancelled_caught
    assert len(staging.deleted) == 1
    assert translator.calls == []
    assert pipeline.transitions[-3:] == [
        PipelineState.DOWNLOADING,
        PipelineState.CLEANING_UP,
        PipelineState.DONE,
    ]


@pytest.mark.asyncio
async def test_rejected_submission_is_counted_separately() -> None:
    before = _runs("rejected")
    failed_before = _runs("failed")
    pipeline = AudioTranslationPipeline(FakeStaging(), FakeAnalyzer(), FakeTranslator())

    with pytest.raises(ValidationError):
        await pipeline.run(_submission(audio_bytes=b""))

    assert _runs("rejected") == before + 1
    assert _runs("failed") == failed_before


@pytest.mark.asyncio
async def test_pipeline_failure_is_counted_as_failed() -> None:
    before = _runs("failed")
    pipeline = AudioTranslationPipeline(
        FakeStaging(fail_upload=True), FakeAnalyzer(), FakeTranslator()
    )

    with pytest.raises(StagingUploadError):
        await pipeline.run(_submission())

    assert _runs("failed") == before + 1


def _runs(outcome: str) -> float:
    return REGISTRY.get_sample_value("audio_pipeline_runs_total", {"outcome": outcome}) or 0.0
