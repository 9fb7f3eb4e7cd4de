"""Ollama provider for locally hosted text generation. Needs no API key."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from murmur.config import DEFAULT_OLLAMA_HOST
from murmur.errors import ProviderError, ProviderErrorKind
from murmur.providers.base import HTTP_TIMEOUT_SECONDS, TEMPERATURE, ProviderClient, check_response

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.2"


class OllamaProvider(ProviderClient):
    provider_id = "ollama"
    display_name = "Ollama"
    requires_key = False

    def __init__(
        self,
        host: str = DEFAULT_OLLAMA_HOST,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        self._transport = transport
        self.host = host
        self._client = self._connect(host)

    def _connect(self, host: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=host.rstrip("/"),
            timeout=HTTP_TIMEOUT_SECONDS,
            transport=self._transport,
        )

    def update_host(self, host: str) -> None:
        if host and host != self.host:
            logger.info("Ollama host changed to %s", host)
            self.host = host
            self._client = self._connect(host)

    async def _send(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as exc:
            raise self._error(
                ProviderErrorKind.NETWORK, f"cannot reach {self.host}: {exc}"
            ) from exc
        return check_response(response, self)

    async def complete(self, prompt: str, model: str) -> str:
        return await self._generate(prompt, model)

    async def complete_json(self, prompt: str, model: str) -> str:
        return await self._generate(prompt, model, format="json")

    async def _generate(self, prompt: str, model: str, **extra: Any) -> str:
        payload = {
            "model": model or DEFAULT_MODEL,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": TEMPERATURE},
            **extra,
        }
        body = await self._send("POST", "/api/generate", json=payload)
        return body.get("response") or ""

    async def list_models(self) -> list[str]:
        body = await self._send("GET", "/api/tags")
        return [m["name"] for m in body.get("models", []) if m.get("name")]

    async def is_available(self) -> bool:
        try:
            await self.list_models()
        except ProviderError as exc:
            logger.debug("Ollama not available: %s", exc)
            return False
        return True
