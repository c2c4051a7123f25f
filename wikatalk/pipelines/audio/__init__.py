"""Audio translation pipeline package.

Modules are organised by the order in which `/api/audio/process` executes:

1. `ingestion` – validate the multipart fields and build the submission.
2. `analysis` – reduce silencedetect output into a speech decision.
3. `flow` – the orchestrator that stages, analyzes, translates and cleans up.

The I/O clients it drives live in `wikatalk.services`.
"""

from .analysis import AudioAnalyzer, analysis_failed_result, decide_speech
from .flow import (
    NO_SPEECH_MESSAGE,
    AudioTranslationPipeline,
    PipelineStage,
    PipelineState,
)
from .ingestion import ValidationError, build_submission, read_audio_bytes, resolve_content_type

__all__ = [
    "AudioAnalyzer",
    "AudioTranslationPipeline",
    "NO_SPEECH_MESSAGE",
    "PipelineStage",
    "PipelineState",
    "ValidationError",
    "analysis_failed_result",
    "build_submission",
    "decide_speech",
    "read_audio_bytes",
    "resolve_content_type",
]
