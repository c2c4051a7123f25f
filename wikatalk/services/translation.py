"""HTTP client for the external speech-translation (NLP) service."""

from __future__ import annotations

import logging
import time
from typing import Any

import anyio
import httpx

from wikatalk.config.settings import TranslationConfig
from wikatalk.domain.models import PipelineError, TranslationOutcome

logger = logging.getLogger(__name__)


class TranslationServiceError(PipelineError):
    """Raised when the NLP service fails, times out or answers non-2xx."""

    def __init__(
        self,
        detail: str,
        *,
        status_code: int | None = None,
        upstream_message: str | None = None,
    ) -> None:
        self.detail = detail
        self.status_code = status_code
        self.upstream_message = upstream_message
        message = "Failed to process audio with NLP service"
        if upstream_message:
            message = f"{message}: {upstream_message}"
        super().__init__(message)


def _upstream_message(response: httpx.Response) -> str | None:
    """Best-effort extraction of an error message from the upstream body."""

    try:
        payload = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:300] or None

    if isinstance(payload, dict):
        for key in ("message", "detail", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def _text_field(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    return str(value)


class TranslationClient:
    """Send audio plus a language pair and return transcribed/translated text."""

    def __init__(
        self,
        api_url: str | None,
        *,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = timeout_seconds
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: TranslationConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "TranslationClient":
        return cls(config.api_url, timeout_seconds=config.timeout_seconds, transport=transport)

    async def translate(
        self,
        audio_bytes: bytes,
        source_language: str,
        target_language: str,
        *,
        audio_format: str = "webm",
    ) -> TranslationOutcome:
        if not self._api_url:
            raise TranslationServiceError("NLP service URL is not configured")

        filename = f"processed-audio-{int(time.time() * 1000)}.{audio_format}"
        files = {"file": (filename, audio_bytes, f"audio/{audio_format}")}
        data = {"srcLang": source_language, "tgtLang": target_language}

        logger.info(
            "Sending %d bytes to NLP service at %s (%s->%s)",
            len(audio_bytes),
            self._api_url,
            source_language,
            target_language,
        )

        # No body-size ceiling on the request. httpx limits each phase
        # separately, so the whole exchange also runs under one deadline.
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                with anyio.fail_after(self._timeout):
                    response = await client.post(
                        self._api_url,
                        files=files,
                        data=data,
                        headers={"Accept": "application/json"},
                    )
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                upstream = _upstream_message(exc.response)
                logger.error(
                    "NLP service returned %s: %s",
                    exc.response.status_code,
                    upstream,
                )
                raise TranslationServiceError(
                    f"NLP service returned HTTP {exc.response.status_code}",
                    status_code=exc.response.status_code,
                    upstream_message=upstream,
                ) from exc
            except (httpx.TimeoutException, TimeoutError) as exc:
                logger.error("NLP service timed out after %.1fs", self._timeout)
                raise TranslationServiceError(
                    "NLP service timed out",
                    upstream_message=f"request timed out after {self._timeout:g}s",
                ) from exc
            except httpx.HTTPError as exc:
                logger.error("NLP service request failed: %r", exc)
                raise TranslationServiceError(f"NLP service request failed: {exc}") from exc

        logger.info("NLP service response status: %s", response.status_code)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranslationServiceError(
                "NLP service returned invalid JSON",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise TranslationServiceError(
                "NLP service returned an unexpected payload",
                status_code=response.status_code,
            )

        return TranslationOutcome(
            transcribed_text=_text_field(payload, "transcribed_text"),
            translated_text=_text_field(payload, "translated_text"),
            success=True,
        )


__all__ = ["TranslationClient", "TranslationServiceError"]
