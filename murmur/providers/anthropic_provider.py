"""Anthropic provider. Text generation only, without a JSON output mode."""

from __future__ import annotations

import logging

import anthropic

from murmur.providers.base import MAX_TOKENS, TEMPERATURE, ProviderClient, translate_sdk_error
from murmur.types import KeyValidation

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-3-5-haiku-latest"


class AnthropicProvider(ProviderClient):
    provider_id = "anthropic"
    display_name = "Anthropic"

    def _create_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        return anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(self, prompt: str, model: str) -> str:
        client = self._require_client()
        try:
            response = await client.messages.create(
                model=model or DEFAULT_MODEL,
                max_tokens=MAX_TOKENS,
                temperature=TEMPERATURE,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            raise translate_sdk_error(anthropic, exc, self) from exc

        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )

    async def validate_key(self, candidate_key: str) -> KeyValidation:
        try:
            async with self._create_client(candidate_key) as client:
                await client.models.list(limit=1)
        except anthropic.APIError as exc:
            return {"valid": False, "error": str(translate_sdk_error(anthropic, exc, self))}
        return {"valid": True}
