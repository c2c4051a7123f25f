"""Per-request structured logging for the audio API."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("wikatalk.middleware.structured")

REQUEST_ID_HEADER = "X-Request-ID"

_STATUS_COLORS = (
    (500, "\u001b[31m"),
    (400, "\u001b[33m"),
    (200, "\u001b[32m"),
)
_DEFAULT_COLOR = "\u001b[36m"
_RESET = "\u001b[0m"


def _status_color(status: int) -> str:
    for floor, color in _STATUS_COLORS:
        if status >= floor:
            return color
    return _DEFAULT_COLOR


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """Tag every request with an id and log one summary line when it finishes.

    The id is taken from ``X-Request-ID`` when the caller supplies one, stored
    on ``request.state.request_id`` and echoed back on the response. Multipart
    uploads also log their declared body size so oversized clips are visible
    before the handler rejects them.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex[:12]
        request.state.request_id = request_id

        record: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "body_bytes": request.headers.get("content-length"),
            "content_type": request.headers.get("content-type", "").split(";")[0] or None,
        }

        try:
            response = await call_next(request)
        except Exception as exc:
            record.update(status_code=500, duration_ms=_elapsed_ms(started), error=repr(exc))
            logger.exception(_console_line(record))
            raise

        record.update(status_code=response.status_code, duration_ms=_elapsed_ms(started))
        route = request.scope.get("route")
        if route is not None:
            record["route"] = getattr(route, "path", None)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(_console_line(record))
        logger.debug(json.dumps(record, default=str, separators=(",", ":")))
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def _console_line(record: dict[str, Any]) -> str:
    """``[rid] METHOD /path -> status (ms)`` wrapped in an ANSI status colour."""

    status = record.get("status_code") or 0
    line = (
        f"[{record['request_id']}] {record['method']} {record['path']}"
        f" -> {status} ({record.get('duration_ms', '-')} ms)"
    )
    if record.get("body_bytes"):
        line += f" body={record['body_bytes']}B"
    if record.get("error"):
        line += f" error={record['error']}"
    return f"{_status_color(status)}{line}{_RESET}"


__all__ = ["REQUEST_ID_HEADER", "StructuredLoggingMiddleware"]
