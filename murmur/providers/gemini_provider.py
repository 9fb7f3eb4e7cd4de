"""Google Gemini provider (google-genai SDK)."""

from __future__ import annotations

import logging
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from murmur.errors import ProviderError, ProviderErrorKind
from murmur.providers.base import MAX_TOKENS, TEMPERATURE, ProviderClient, kind_for_status
from murmur.types import KeyValidation

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"


class GeminiProvider(ProviderClient):
    provider_id = "gemini"
    display_name = "Google Gemini"

    def _create_client(self, api_key: str) -> genai.Client:
        return genai.Client(api_key=api_key)

    def _translate(self, exc: Exception) -> ProviderError:
        if isinstance(exc, genai_errors.APIError):
            return self._error(kind_for_status(exc.code), exc.message or exc)
        return self._error(ProviderErrorKind.NETWORK, exc)

    async def complete(self, prompt: str, model: str) -> str:
        return await self._generate(prompt, model)

    async def complete_json(self, prompt: str, model: str) -> str:
        return await self._generate(prompt, model, response_mime_type="application/json")

    async def _generate(self, prompt: str, model: str, **options: Any) -> str:
        client = self._require_client()
        config = genai_types.GenerateContentConfig(
            max_output_tokens=MAX_TOKENS,
            temperature=TEMPERATURE,
            **options,
        )
        try:
            response = await client.aio.models.generate_content(
                model=model or DEFAULT_MODEL,
                contents=prompt,
                config=config,
            )
        except (genai_errors.APIError, httpx.RequestError) as exc:
            raise self._translate(exc) from exc
        return response.text or ""

    async def validate_key(self, candidate_key: str) -> KeyValidation:
        client = self._create_client(candidate_key)
        try:
            await client.aio.models.list(config={"page_size": 1})
        except (genai_errors.APIError, httpx.RequestError) as exc:
            return {"valid": False, "error": str(self._translate(exc))}
        return {"valid": True}
