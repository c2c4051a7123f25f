"""Service layer helpers for external integrations."""

from .silence import (
    AnalysisError,
    FFmpegSilenceDetector,
    SilenceDetector,
    parse_silencedetect_log,
)
from .storage import StagingClient, StagingDownloadError, StagingUploadError
from .translation import TranslationClient, TranslationServiceError

__all__ = [
    "AnalysisError",
    "FFmpegSilenceDetector",
    "SilenceDetector",
    "parse_silencedetect_log",
    "StagingClient",
    "StagingDownloadError",
    "StagingUploadError",
    "TranslationClient",
    "TranslationServiceError",
]
