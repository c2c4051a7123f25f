"""Schemas for the audio processing endpoint."""

from typing import Optional

from pydantic import BaseModel

from wikatalk.domain.models import PipelineResult


class ProcessAudioResponse(BaseModel):
    success: bool = True
    transcribed_text: str = ""
    translated_text: str = ""
    message: Optional[str] = None

    @classmethod
    def from_result(cls, result: PipelineResult) -> "ProcessAudioResponse":
        return cls(
            success=True,
            transcribed_text=result.outcome.transcribed_text or "",
            translated_text=result.outcome.translated_text or "",
            message=result.message,
        )
