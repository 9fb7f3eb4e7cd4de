"""Speech-to-text dispatch to the configured transcription provider."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import TYPE_CHECKING

from murmur.errors import ConfigurationError

if TYPE_CHECKING:
    from murmur.providers.registry import ProviderRegistry
    from murmur.types import TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionRouter:
    """Selects a transcription provider by id and normalizes its result."""

    def __init__(self, registry: "ProviderRegistry") -> None:
        self._registry = registry

    def needs_key(self, provider_id: str) -> bool:
        """True when the provider requires an API key and has none."""
        return self._registry.requires_key(provider_id) and not self._registry.is_configured(
            provider_id
        )

    async def transcribe(
        self,
        provider_id: str,
        audio: bytes,
        model: str,
        language: str | None = None,
    ) -> "TranscriptionResult":
        """
        Transcribe WAV audio.

        Raises:
            ProviderError: ``unknownProvider`` for an unknown id or a provider
                without transcription support, or whatever the provider raises.
            ConfigurationError: The provider needs an API key and has none.
        """
        provider = self._registry.transcriber(provider_id)
        if self.needs_key(provider_id):
            raise ConfigurationError(provider_id)

        logger.info(
            "Transcribing %.1f KB with %s (%s)", len(audio) / 1024, provider_id, model or "default"
        )
        t0 = time.time()
        result = await provider.transcribe(audio, model, language)
        logger.info("Transcription done in %.2fs", time.time() - t0)

        segments = result.segments
        if segments:
            segments = sorted(segments, key=lambda s: (s.start, s.end))
        return replace(result, text=result.text.strip(), segments=segments or None)
