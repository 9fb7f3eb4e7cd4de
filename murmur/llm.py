"""Text generation dispatch and the sanitized-completion protocol."""

from __future__ import annotations

import logging
import re
import time
from typing import TYPE_CHECKING

from murmur.config import ProcessingMode
from murmur.errors import ConfigurationError, ProviderError, ProviderErrorKind
from murmur.prompts import processing_prompt
from murmur.providers.base import Completer, JsonCompleter
from murmur.sanitize import PREAMBLE_RE, sanitize_completion
from murmur.types import CompletionResult

if TYPE_CHECKING:
    from murmur.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)


class TextGenerationRouter:
    """
    Runs prompts through the configured text-generation provider.

    Every completion goes through ``complete_sanitized``: JSON mode first,
    plain completion if the provider rejects JSON mode, then the preamble and
    quote table on whatever came back.
    """

    def __init__(
        self,
        registry: "ProviderRegistry",
        preamble: re.Pattern[str] = PREAMBLE_RE,
    ) -> None:
        self._registry = registry
        self._preamble = preamble

    def is_usable(self, provider_id: str) -> bool:
        """True when the provider exists, generates text and has its key."""
        if provider_id not in self._registry:
            return False
        provider = self._registry.get(provider_id)
        return isinstance(provider, Completer) and provider.configured

    def _completer(self, provider_id: str) -> Completer:
        completer = self._registry.completer(provider_id)
        if not self._registry.is_configured(provider_id):
            raise ConfigurationError(provider_id)
        return completer

    async def complete_sanitized(self, prompt: str, provider_id: str, model: str) -> str:
        completer = self._completer(provider_id)

        if isinstance(completer, JsonCompleter):
            try:
                raw = await completer.complete_json(prompt, model)
            except ProviderError as exc:
                if exc.kind is ProviderErrorKind.UNAUTHORIZED:
                    raise
                logger.warning(
                    "JSON mode failed for %s/%s (%s), retrying as plain completion",
                    provider_id,
                    model,
                    exc,
                )
                raw = await completer.complete(prompt, model)
        else:
            raw = await completer.complete(prompt, model)

        return sanitize_completion(raw, self._preamble)

    async def process(
        self,
        text: str,
        provider_id: str,
        model: str,
        mode: ProcessingMode,
    ) -> CompletionResult:
        """Clean or polish transcribed text. Raw mode returns it untouched."""
        mode = ProcessingMode(mode)
        if mode is ProcessingMode.RAW or not text.strip():
            return CompletionResult(text, text, provider_id, model)

        logger.info("Running %s processing with %s (%s)...", mode.value, provider_id, model)
        t0 = time.time()
        processed = (
            await self.complete_sanitized(processing_prompt(mode, text), provider_id, model)
        ).strip()
        logger.info("Processing done in %.2fs", time.time() - t0)

        if not processed:
            logger.warning("Model returned empty text, keeping the transcription")
            processed = text
        return CompletionResult(text, processed, provider_id, model)
