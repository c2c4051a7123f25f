"""ffmpeg ``silencedetect`` backend for the audio analyzer."""

from __future__ import annotations

import logging
import os
import re
import subprocess
import tempfile
from abc import ABC, abstractmethod

from wikatalk.config.settings import AnalyzerConfig
from wikatalk.domain.models import PipelineError, SilenceInterval, SilenceReport

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_SILENCE_START_RE = re.compile(r"silence_start:\s*(-?\d+(?:\.\d+)?)")
_SILENCE_END_RE = re.compile(
    r"silence_end:\s*(-?\d+(?:\.\d+)?)\s*\|\s*silence_duration:\s*(\d+(?:\.\d+)?)"
)


class AnalysisError(PipelineError):
    """Raised when the audio stream cannot be decoded or filtered."""


class SilenceDetector(ABC):
    """Decode an in-memory audio buffer and report its silence runs."""

    @abstractmethod
    def detect(self, audio_bytes: bytes) -> SilenceReport:
        """Return the stream duration and silence intervals.

        Raises:
            AnalysisError: If the buffer cannot be decoded.
        """


def parse_silencedetect_log(log_text: str) -> SilenceReport:
    """Reduce ffmpeg's stderr into a typed SilenceReport."""

    duration: float | None = None
    intervals: list[SilenceInterval] = []
    open_start: float | None = None

    for line in log_text.splitlines():
        if duration is None:
            match = _DURATION_RE.search(line)
            if match:
                hours, minutes, seconds = match.groups()
                duration = int(hours) * 3600 + int(minutes) * 60 + float(seconds)

        match = _SILENCE_START_RE.search(line)
        if match:
            open_start = max(0.0, float(match.group(1)))
            continue

        match = _SILENCE_END_RE.search(line)
        if match:
            end = float(match.group(1))
            silence_duration = float(match.group(2))
            start = open_start if open_start is not None else max(0.0, end - silence_duration)
            intervals.append(SilenceInterval(start=start, duration=silence_duration))
            open_start = None

    # Stream ended while silent and the filter never emitted silence_end.
    if open_start is not None and duration and duration > open_start:
        intervals.append(SilenceInterval(start=open_start, duration=duration - open_start))

    if duration is not None and duration <= 0:
        duration = None

    return SilenceReport(duration=duration, intervals=tuple(intervals))


class FFmpegSilenceDetector(SilenceDetector):
    """Run ``ffmpeg -af silencedetect`` against a temporary copy of the buffer."""

    def __init__(
        self,
        *,
        ffmpeg_binary: str = "ffmpeg",
        noise_floor_db: float = -30.0,
        min_silence_seconds: float = 0.5,
    ) -> None:
        self._ffmpeg = ffmpeg_binary
        self._noise_floor_db = noise_floor_db
        self._min_silence_seconds = min_silence_seconds

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "FFmpegSilenceDetector":
        return cls(
            ffmpeg_binary=config.ffmpeg_binary,
            noise_floor_db=config.noise_floor_db,
            min_silence_seconds=config.min_silence_seconds,
        )

    @property
    def filter_spec(self) -> str:
        return (
            f"silencedetect=noise={self._noise_floor_db:g}dB"
            f":d={self._min_silence_seconds:g}"
        )

    def build_command(self, input_path: str) -> list[str]:
        return [
            self._ffmpeg,
            "-hide_banner",
            "-nostats",
            "-i", input_path,
            "-vn",
            "-af", self.filter_spec,
            "-f", "null",
            "-",
        ]

    def detect(self, audio_bytes: bytes) -> SilenceReport:
        if not audio_bytes:
            raise AnalysisError("Audio buffer is empty")

        # A real file lets the demuxer seek, which webm/mp4 containers need.
        with tempfile.NamedTemporaryFile(delete=False, suffix=".audio") as tmp_file:
            tmp_file.write(audio_bytes)
            tmp_path = tmp_file.name

        try:
            process = subprocess.run(
                self.build_command(tmp_path),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                check=True,
            )
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg silencedetect failed. stderr: %s", error_msg[-2000:])
            raise AnalysisError("Audio could not be decoded") from exc
        except OSError as exc:
            logger.error("Unable to run %s: %s", self._ffmpeg, exc)
            raise AnalysisError("Audio decoder is unavailable") from exc
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

        report = parse_silencedetect_log(process.stderr.decode("utf-8", errors="replace"))
        logger.debug(
            "silencedetect duration=%s intervals=%d",
            report.duration,
            len(report.intervals),
        )
        return report


__all__ = [
    "AnalysisError",
    "FFmpegSilenceDetector",
    "SilenceDetector",
    "parse_silencedetect_log",
]
