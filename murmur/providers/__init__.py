"""Transcription and text-generation backends."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from murmur.config import DEFAULT_OLLAMA_HOST
from murmur.providers.anthropic_provider import AnthropicProvider
from murmur.providers.base import (
    Completer,
    JsonCompleter,
    KeyValidator,
    ProviderClient,
    Transcriber,
)
from murmur.providers.gemini_provider import GeminiProvider
from murmur.providers.groq_provider import GroqProvider
from murmur.providers.mistral_provider import MistralProvider
from murmur.providers.ollama_provider import OllamaProvider
from murmur.providers.openai_provider import OpenAIProvider
from murmur.providers.registry import ProviderRegistry
from murmur.providers.whisper_local_provider import WhisperLocalProvider


def build_registry(
    api_keys: Mapping[str, str],
    data_dir: Path,
    ollama_host: str = DEFAULT_OLLAMA_HOST,
) -> ProviderRegistry:
    """Create the registry with every built-in provider."""
    return ProviderRegistry(
        [
            GroqProvider(api_keys.get("groq")),
            OpenAIProvider(api_keys.get("openai")),
            MistralProvider(api_keys.get("mistral")),
            AnthropicProvider(api_keys.get("anthropic")),
            GeminiProvider(api_keys.get("gemini")),
            OllamaProvider(ollama_host),
            WhisperLocalProvider(data_dir),
        ]
    )


__all__ = [
    "Completer",
    "JsonCompleter",
    "KeyValidator",
    "ProviderClient",
    "ProviderRegistry",
    "Transcriber",
    "build_registry",
]
