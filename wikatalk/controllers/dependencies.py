"""FastAPI dependencies that assemble the audio pipeline per request."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Any

from botocore.config import Config
from fastapi import Depends

from wikatalk.config.settings import settings
from wikatalk.pipelines.audio import AudioAnalyzer, AudioTranslationPipeline
from wikatalk.services import StagingClient, TranslationClient
from wikatalk.services.aws import create_boto3_client


@lru_cache(maxsize=1)
def get_s3_client() -> Any:
    """Build the shared S3 client on first use; boto3 clients are thread-safe."""

    return create_boto3_client(
        "s3",
        region_name=settings.storage.region,
        config=Config(retries={"max_attempts": 3, "mode": "standard"}),
    )


def get_staging_client() -> StagingClient:
    return StagingClient.from_config(get_s3_client(), settings.storage)


def get_audio_analyzer() -> AudioAnalyzer:
    return AudioAnalyzer.from_config(settings.analyzer)


def get_translation_client() -> TranslationClient:
    return TranslationClient.from_config(settings.translation)


StagingDep = Annotated[StagingClient, Depends(get_staging_client)]
AnalyzerDep = Annotated[AudioAnalyzer, Depends(get_audio_analyzer)]
TranslatorDep = Annotated[TranslationClient, Depends(get_translation_client)]


def get_audio_pipeline(
    storage: StagingDep,
    analyzer: AnalyzerDep,
    translator: TranslatorDep,
) -> AudioTranslationPipeline:
    """A fresh, stateless orchestrator for every request."""

    return AudioTranslationPipeline(
        storage,
        analyzer,
        translator,
        audio_format=settings.storage.staged_format,
    )


PipelineDep = Annotated[AudioTranslationPipeline, Depends(get_audio_pipeline)]


__all__ = [
    "AnalyzerDep",
    "PipelineDep",
    "StagingDep",
    "TranslatorDep",
    "get_audio_analyzer",
    "get_audio_pipeline",
    "get_s3_client",
    "get_staging_client",
    "get_translation_client",
]
