"""Shared pytest fixtures and test doubles for the audio pipeline."""

from __future__ import annotations

from pathlib import Path
import sys
from typing import Iterator

import anyio
import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from wikatalk.controllers.dependencies import (  # noqa: E402
    get_audio_analyzer,
    get_staging_client,
    get_translation_client,
)
from wikatalk.domain.models import (  # noqa: E402
    AnalysisResult,
    SpeechDecision,
    StagedResource,
    TranslationOutcome,
)
from wikatalk.main import app  # noqa: E402
from wikatalk.services.storage import (  # noqa: E402
    StagingDownloadError,
    StagingUploadError,
)

PROCESSED_BYTES = b"processed-webm-bytes"


class FakeStaging:
    """In-memory stand-in for StagingClient that records every call."""

    def __init__(
        self,
        *,
        fail_upload: bool = False,
        fail_download: bool = False,
        delete_result: bool = True,
        delete_raises: bool = False,
        processed_bytes: bytes = PROCESSED_BYTES,
        download_delay: float = 0.0,
    ) -> None:
        self.fail_upload = fail_upload
        self.fail_download = fail_download
        self.delete_result = delete_result
        self.delete_raises = delete_raises
        self.processed_bytes = processed_bytes
        self.download_delay = download_delay
        self.uploads: list[tuple[bytes, str]] = []
        self.resolved: list[StagedResource] = []
        self.downloads: list[str] = []
        self.deleted: list[StagedResource] = []

    async def upload(self, audio_bytes: bytes, *, content_type: str) -> StagedResource:
        self.uploads.append((audio_bytes, content_type))
        if self.fail_upload:
            raise StagingUploadError("audio-processing/fail.webm", RuntimeError("denied"))
        return StagedResource(
            resource_id="audio-processing/test.webm",
            url="https://test-bucket.s3.amazonaws.com/audio-processing/test.webm",
        )

    def resolve_processed_address(self, resource: StagedResource) -> str:
        self.resolved.append(resource)
        return f"https://cdn.example.com/e_volume:150/{resource.resource_id}"

    async def download(self, url: str) -> bytes:
        self.downloads.append(url)
        if self.download_delay:
            await anyio.sleep(self.download_delay)
        if self.fail_download:
            raise StagingDownloadError(url, RuntimeError("404"), status_code=404)
        return self.processed_bytes

    async def delete(self, resource: StagedResource) -> bool:
        # Checkpoint first so a cancelled caller never records the delete.
        await anyio.sleep(0)
        self.deleted.append(resource)
        if self.delete_raises:
            raise RuntimeError("delete exploded")
        return self.delete_result


class FakeAnalyzer:
    def __init__(self, result: AnalysisResult | None = None, error: Exception | None = None) -> None:
        self.result = result or speech_result()
        self.error = error
        self.calls: list[bytes] = []

    async def analyze(self, audio_bytes: bytes) -> AnalysisResult:
        self.calls.append(audio_bytes)
        if self.error is not None:
            raise self.error
        return self.result


class FakeTranslator:
    def __init__(
        self,
        outcome: TranslationOutcome | None = None,
        error: Exception | None = None,
    ) -> None:
        self.outcome = outcome or TranslationOutcome(
            transcribed_text="Good morning",
            translated_text="Magandang umaga",
        )
        self.error = error
        self.calls: list[tuple[bytes, str, str, str]] = []

    async def translate(
        self,
        audio_bytes: bytes,
        source_language: str,
        target_language: str,
        *,
        audio_format: str = "webm",
    ) -> TranslationOutcome:
        self.calls.append((audio_bytes, source_language, target_language, audio_format))
        if self.error is not None:
            raise self.error
        return self.outcome


def speech_result() -> AnalysisResult:
    return AnalysisResult(
        total_duration=3.0,
        silence_duration=0.0,
        speech_percentage=100.0,
        has_speech=True,
        decision=SpeechDecision.MEASURED,
    )


def silence_result() -> AnalysisResult:
    return AnalysisResult(
        total_duration=3.0,
        silence_duration=3.0,
        speech_percentage=0.0,
        has_speech=False,
        decision=SpeechDecision.MEASURED,
        silence_count=1,
    )


@pytest.fixture
def staging() -> FakeStaging:
    return FakeStaging()


@pytest.fixture
def analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def client(
    staging: FakeStaging,
    analyzer: FakeAnalyzer,
    translator: FakeTranslator,
) -> Iterator[TestClient]:
    """TestClient whose pipeline collaborators are the fakes above."""

    app.dependency_overrides[get_staging_client] = lambda: staging
    app.dependency_overrides[get_audio_analyzer] = lambda: analyzer
    app.dependency_overrides[get_translation_client] = lambda: translator

    yield TestClient(app, raise_server_exceptions=False)

    app.dependency_overrides.clear()
