"""OpenAI provider, and the shared implementation for OpenAI-style SDKs."""

from __future__ import annotations

import logging
import time
from types import ModuleType
from typing import Any, ClassVar

import openai

from murmur.errors import ProviderError
from murmur.providers.base import (
    MAX_TOKENS,
    TEMPERATURE,
    ProviderClient,
    parse_segments,
    translate_sdk_error,
)
from murmur.types import KeyValidation, TranscriptionResult

logger = logging.getLogger(__name__)


class ChatCompletionsProvider(ProviderClient):
    """
    Transcription and chat completion over an OpenAI-compatible SDK.

    Subclasses set ``sdk`` to the SDK module (whose exception classes are used
    for error translation) and implement ``_create_client``.
    """

    sdk: ClassVar[ModuleType]
    default_transcription_model: ClassVar[str]
    default_completion_model: ClassVar[str]

    def _response_format(self, model: str) -> str:
        return "verbose_json"

    def _translate(self, exc: Exception) -> ProviderError:
        return translate_sdk_error(self.sdk, exc, self)

    async def transcribe(
        self, audio: bytes, model: str, language: str | None = None
    ) -> TranscriptionResult:
        client = self._require_client()
        model = model or self.default_transcription_model

        params: dict[str, Any] = {
            "file": ("audio.wav", audio, "audio/wav"),
            "model": model,
            "response_format": self._response_format(model),
        }
        if language:
            params["language"] = language

        logger.debug("Transcribing %d bytes with %s/%s", len(audio), self.provider_id, model)
        started = time.monotonic()
        try:
            response = await client.audio.transcriptions.create(**params)
        except self.sdk.APIError as exc:
            raise self._translate(exc) from exc

        return TranscriptionResult(
            text=getattr(response, "text", "") or "",
            duration_seconds=time.monotonic() - started,
            language=getattr(response, "language", None) or None,
            segments=parse_segments(getattr(response, "segments", None)),
        )

    async def complete(self, prompt: str, model: str) -> str:
        return await self._chat(prompt, model)

    async def complete_json(self, prompt: str, model: str) -> str:
        return await self._chat(prompt, model, response_format={"type": "json_object"})

    async def _chat(self, prompt: str, model: str, **extra: Any) -> str:
        client = self._require_client()
        try:
            response = await client.chat.completions.create(
                model=model or self.default_completion_model,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
                **extra,
            )
        except self.sdk.APIError as exc:
            raise self._translate(exc) from exc

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def validate_key(self, candidate_key: str) -> KeyValidation:
        try:
            async with self._create_client(candidate_key) as client:
                await client.models.list()
        except self.sdk.APIError as exc:
            return {"valid": False, "error": str(self._translate(exc))}
        return {"valid": True}


class OpenAIProvider(ChatCompletionsProvider):
    provider_id = "openai"
    display_name = "OpenAI"
    sdk = openai
    default_transcription_model = "whisper-1"
    default_completion_model = "gpt-4o-mini"

    def _create_client(self, api_key: str) -> openai.AsyncOpenAI:
        return openai.AsyncOpenAI(api_key=api_key)

    def _response_format(self, model: str) -> str:
        # gpt-4o-*-transcribe models only accept json or text
        return "json" if "transcribe" in model else "verbose_json"
