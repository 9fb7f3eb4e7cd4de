"""Provider lookup by id and capability."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from murmur.errors import ProviderError, ProviderErrorKind
from murmur.providers.base import Completer, KeyValidator, ProviderClient, Transcriber
from murmur.types import KeyValidation

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Providers keyed by their id.

    Adding a backend is a ``register`` call; routers only ever look providers
    up here and check the capability they need.
    """

    def __init__(self, providers: Iterable[ProviderClient] = ()) -> None:
        self._providers: dict[str, ProviderClient] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: ProviderClient) -> None:
        if provider.provider_id in self._providers:
            logger.warning("Replacing provider %s", provider.provider_id)
        self._providers[provider.provider_id] = provider

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    def __iter__(self):
        return iter(self._providers.values())

    @property
    def ids(self) -> list[str]:
        return list(self._providers)

    def get(self, provider_id: str) -> ProviderClient:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderError(
                ProviderErrorKind.UNKNOWN_PROVIDER,
                f"Unknown provider: {provider_id}",
                provider_id,
            ) from None

    def transcriber(self, provider_id: str) -> Transcriber:
        provider = self.get(provider_id)
        if not isinstance(provider, Transcriber):
            raise ProviderError(
                ProviderErrorKind.UNKNOWN_PROVIDER,
                f"{provider.display_name} does not support transcription",
                provider_id,
            )
        return provider

    def completer(self, provider_id: str) -> Completer:
        provider = self.get(provider_id)
        if not isinstance(provider, Completer):
            raise ProviderError(
                ProviderErrorKind.UNKNOWN_PROVIDER,
                f"{provider.display_name} does not support text generation",
                provider_id,
            )
        return provider

    def requires_key(self, provider_id: str) -> bool:
        provider = self._providers.get(provider_id)
        return provider is not None and provider.requires_key

    def is_configured(self, provider_id: str) -> bool:
        provider = self._providers.get(provider_id)
        return provider is not None and provider.configured

    def update_api_keys(self, api_keys: Mapping[str, str]) -> None:
        """Push the current keys into every provider. Takes effect immediately."""
        for provider in self._providers.values():
            provider.update_api_key(api_keys.get(provider.provider_id))

    async def validate_api_key(self, provider_id: str, candidate_key: str | None) -> KeyValidation:
        """
        Probe ``provider_id`` with ``candidate_key`` without storing it.

        Returns ``{"valid": True}`` or ``{"valid": False, "error": ...}``.
        """
        provider = self._providers.get(provider_id)
        if provider is None or not isinstance(provider, KeyValidator):
            return {"valid": False, "error": "Unknown provider"}

        key = (candidate_key or "").strip()
        if not key:
            return {"valid": False, "error": "API key is required"}
        if warning := provider.key_format_warning(key):
            return {"valid": False, "error": warning}

        result = await provider.validate_key(key)
        logger.info(
            "Key validation for %s: %s", provider_id, "valid" if result.get("valid") else "invalid"
        )
        return result
