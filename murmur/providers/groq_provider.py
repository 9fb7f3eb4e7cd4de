"""Groq provider (Whisper transcription and Llama chat completion)."""

from __future__ import annotations

import groq

from murmur.providers.openai_provider import ChatCompletionsProvider


class GroqProvider(ChatCompletionsProvider):
    provider_id = "groq"
    display_name = "Groq"
    sdk = groq
    default_transcription_model = "whisper-large-v3"
    default_completion_model = "llama-3.3-70b-versatile"

    def _create_client(self, api_key: str) -> groq.AsyncGroq:
        return groq.AsyncGroq(api_key=api_key)
