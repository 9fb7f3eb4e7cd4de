"""Configuration for the Murmur application."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir, user_data_dir

from murmur.hotkeys import parse_binding

APP_NAME = "murmur"
SETTINGS_FILENAME = "murmur-store.json"


class ProcessingMode(str, Enum):
    RAW = "raw"
    CLEAN = "clean"
    POLISH = "polish"


class ActivationMode(str, Enum):
    PUSH_TO_TALK = "push-to-talk"
    TOGGLE = "toggle"


class CorrectionMode(str, Enum):
    GRAMMAR = "grammar"
    REWRITE = "rewrite"
    CUSTOM = "custom"


# Language codes accepted by the transcription providers ("auto" detects)
LANGUAGE_NAMES = {
    "auto": "Auto-detect",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "it": "Italian",
    "pt": "Portuguese",
    "nl": "Dutch",
    "pl": "Polish",
    "ru": "Russian",
    "zh": "Chinese",
    "ja": "Japanese",
    "ko": "Korean",
}

# Environment variables used to seed API keys that are missing from the store
API_KEY_ENV_VARS = {
    "groq": "GROQ_API_KEY",
    "openai": "OPENAI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


@dataclass
class AudioConfig:
    sample_rate: int = 16_000
    channels: int = 1
    block_ms: int = 30
    device_id: int | None = None

    @property
    def block_size(self) -> int:
        return int(self.sample_rate * (self.block_ms / 1000.0))


@dataclass
class ServerConfig:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8765


@dataclass(frozen=True)
class HotkeyConfig:
    push_to_talk_key: str = "`"
    toggle_key: str = "f2"
    cancel_key: str = "esc"
    correction_key: str | None = "ctrl+shift+space"
    activation_mode: ActivationMode = ActivationMode.PUSH_TO_TALK

    def __post_init__(self) -> None:
        object.__setattr__(self, "activation_mode", ActivationMode(self.activation_mode))
        for name in ("push_to_talk_key", "toggle_key", "cancel_key"):
            parse_binding(getattr(self, name))
        if self.correction_key:
            parse_binding(self.correction_key)

    @property
    def active_key(self) -> str:
        if self.activation_mode is ActivationMode.TOGGLE:
            return self.toggle_key
        return self.push_to_talk_key

    def to_dict(self) -> dict[str, Any]:
        return {
            "push_to_talk_key": self.push_to_talk_key,
            "toggle_key": self.toggle_key,
            "cancel_key": self.cancel_key,
            "correction_key": self.correction_key,
            "activation_mode": self.activation_mode.value,
        }


@dataclass(frozen=True)
class Settings:
    """
    Persisted user settings.

    Instances are immutable snapshots: every read from the store returns a new
    one, so a settings update never changes a request that is already running.
    """

    transcription_provider: str = "groq"
    transcription_model: str = "whisper-large-v3"
    language: str = "auto"
    llm_provider: str = "groq"
    llm_model: str = "llama-3.3-70b-versatile"
    processing_mode: ProcessingMode = ProcessingMode.CLEAN
    correction_mode: CorrectionMode = CorrectionMode.GRAMMAR
    correction_prompt: str = ""
    api_keys: Mapping[str, str] = field(default_factory=dict)
    hotkeys: HotkeyConfig = field(default_factory=HotkeyConfig)
    ollama_host: str = DEFAULT_OLLAMA_HOST

    @property
    def transcription_language(self) -> str | None:
        return None if self.language == "auto" else self.language

    def api_key(self, provider_id: str) -> str:
        return (self.api_keys.get(provider_id) or "").strip()

    def merge(self, partial: Mapping[str, Any], strict: bool = True) -> "Settings":
        """
        Return a new snapshot with ``partial`` applied.

        ``api_keys`` and ``hotkeys`` are merged key by key. With ``strict`` an
        unknown field raises ``ValueError``; otherwise it is ignored.
        """
        known = {f.name for f in fields(self)}
        changes: dict[str, Any] = {}

        for name, value in partial.items():
            if name not in known:
                if strict:
                    raise ValueError(f"Unknown setting: {name}")
                continue

            if name == "api_keys":
                if not isinstance(value, Mapping):
                    raise ValueError("api_keys must be a mapping")
                merged = dict(self.api_keys)
                merged.update({str(k): str(v or "") for k, v in value.items()})
                changes[name] = merged
            elif name == "hotkeys":
                if not isinstance(value, Mapping):
                    raise ValueError("hotkeys must be a mapping")
                current = self.hotkeys.to_dict()
                unknown = set(value) - set(current)
                if unknown:
                    raise ValueError(f"Unknown hotkey setting: {', '.join(sorted(unknown))}")
                current.update(value)
                changes[name] = HotkeyConfig(**current)
            elif name == "processing_mode":
                changes[name] = ProcessingMode(value)
            elif name == "correction_mode":
                changes[name] = CorrectionMode(value)
            elif name == "language":
                if value not in LANGUAGE_NAMES:
                    raise ValueError(f"Unsupported language: {value}")
                changes[name] = value
            else:
                if not isinstance(value, str):
                    raise ValueError(f"{name} must be a string")
                changes[name] = value

        return replace(self, **changes)

    def with_env_keys(self, environ: Mapping[str, str] | None = None) -> "Settings":
        """Fill API keys missing from the snapshot from the environment."""
        environ = os.environ if environ is None else environ
        keys = dict(self.api_keys)
        for provider_id, var in API_KEY_ENV_VARS.items():
            if not keys.get(provider_id) and (value := environ.get(var)):
                keys[provider_id] = value
        return replace(self, api_keys=keys)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Settings":
        return cls().merge(data, strict=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcription_provider": self.transcription_provider,
            "transcription_model": self.transcription_model,
            "language": self.language,
            "llm_provider": self.llm_provider,
            "llm_model": self.llm_model,
            "processing_mode": self.processing_mode.value,
            "correction_mode": self.correction_mode.value,
            "correction_prompt": self.correction_prompt,
            "api_keys": dict(self.api_keys),
            "hotkeys": self.hotkeys.to_dict(),
            "ollama_host": self.ollama_host,
        }


@dataclass
class Config:
    audio: AudioConfig = field(default_factory=AudioConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    settings_path: Path = field(
        default_factory=lambda: Path(user_config_dir(APP_NAME)) / SETTINGS_FILENAME
    )
    data_dir: Path = field(default_factory=lambda: Path(user_data_dir(APP_NAME)))
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if device := os.environ.get("MURMUR_AUDIO_DEVICE"):
            config.audio.device_id = int(device)

        if server := os.environ.get("MURMUR_SERVER"):
            config.server.enabled = server.lower() in ("1", "true", "yes")

        if host := os.environ.get("MURMUR_HOST"):
            config.server.host = host

        if port := os.environ.get("MURMUR_PORT"):
            config.server.port = int(port)

        if path := os.environ.get("MURMUR_SETTINGS_PATH"):
            config.settings_path = Path(path).expanduser()

        if data_dir := os.environ.get("MURMUR_DATA_DIR"):
            config.data_dir = Path(data_dir).expanduser()

        if verbose := os.environ.get("MURMUR_VERBOSE"):
            config.verbose = verbose.lower() in ("1", "true", "yes")

        return config
