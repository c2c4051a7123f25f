"""Telemetry helpers and metrics."""

from .metrics import (
    CLEANUP_FAILURES,
    ERROR_COUNTER,
    PIPELINE_RUNS,
    PIPELINE_STAGE_LATENCY,
    REQUEST_COUNT,
    REQUEST_LATENCY,
    REQUESTS_IN_PROGRESS,
    increment_cleanup_failure,
    observe_request,
    observe_stage,
    record_pipeline_run,
)

__all__ = [
    "CLEANUP_FAILURES",
    "ERROR_COUNTER",
    "PIPELINE_RUNS",
    "PIPELINE_STAGE_LATENCY",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "REQUESTS_IN_PROGRESS",
    "increment_cleanup_failure",
    "observe_request",
    "observe_stage",
    "record_pipeline_run",
]
