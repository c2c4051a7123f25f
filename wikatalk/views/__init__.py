"""Pydantic schemas used as views in the MVC architecture."""

from .audio import ProcessAudioResponse
from .common import ErrorResponse

__all__ = [
    "ErrorResponse",
    "ProcessAudioResponse",
]
