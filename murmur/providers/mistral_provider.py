"""Mistral provider over its REST API (Voxtral transcription, chat completion)."""

from __future__ import annotations

import logging
import re
import time
from typing import Any

import httpx

from murmur.errors import ProviderError, ProviderErrorKind
from murmur.providers.base import (
    HTTP_TIMEOUT_SECONDS,
    MAX_TOKENS,
    TEMPERATURE,
    ProviderClient,
    check_response,
    parse_segments,
)
from murmur.types import KeyValidation, TranscriptionResult

logger = logging.getLogger(__name__)

MISTRAL_API_URL = "https://api.mistral.ai/v1"
DEFAULT_TRANSCRIPTION_MODEL = "voxtral-mini-latest"
DEFAULT_COMPLETION_MODEL = "mistral-small-latest"

_KEY_RE = re.compile(r"^[A-Za-z0-9]{32}$")


class MistralProvider(ProviderClient):
    provider_id = "mistral"
    display_name = "Mistral"

    def __init__(
        self,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        base_url: str = MISTRAL_API_URL,
    ) -> None:
        self._transport = transport
        self._base_url = base_url
        super().__init__(api_key)

    def _create_client(self, api_key: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    def key_format_warning(self, api_key: str) -> str | None:
        if (
            not _KEY_RE.match(api_key)
            or not any(c.isupper() for c in api_key)
            or not any(c.islower() for c in api_key)
            or not any(c.isdigit() for c in api_key)
        ):
            return "Mistral API keys are 32 letters and digits"
        return None

    async def _send(self, client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise self._error(ProviderErrorKind.NETWORK, f"request failed: {exc}") from exc
        return check_response(response, self)

    async def transcribe(
        self, audio: bytes, model: str, language: str | None = None
    ) -> TranscriptionResult:
        client = self._require_client()
        data = {
            "model": model or DEFAULT_TRANSCRIPTION_MODEL,
            "timestamp_granularities": "segment",
        }
        if language:
            data["language"] = language

        started = time.monotonic()
        body = await self._send(
            client,
            "POST",
            "/audio/transcriptions",
            files={"file": ("audio.wav", audio, "audio/wav")},
            data=data,
        )
        return TranscriptionResult(
            text=body.get("text") or "",
            duration_seconds=time.monotonic() - started,
            language=body.get("language") or None,
            segments=parse_segments(body.get("segments")),
        )

    async def complete(self, prompt: str, model: str) -> str:
        return await self._chat(prompt, model)

    async def complete_json(self, prompt: str, model: str) -> str:
        return await self._chat(prompt, model, response_format={"type": "json_object"})

    async def _chat(self, prompt: str, model: str, **extra: Any) -> str:
        client = self._require_client()
        payload = {
            "model": model or DEFAULT_COMPLETION_MODEL,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            **extra,
        }
        body = await self._send(client, "POST", "/chat/completions", json=payload)
        choices = body.get("choices") or []
        if not choices:
            return ""
        return (choices[0].get("message") or {}).get("content") or ""

    async def validate_key(self, candidate_key: str) -> KeyValidation:
        async with self._create_client(candidate_key) as client:
            try:
                await self._send(client, "GET", "/models")
            except ProviderError as exc:
                return {"valid": False, "error": str(exc)}
        return {"valid": True}
