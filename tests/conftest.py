"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import os
from pathlib import Path
from typing import TYPE_CHECKING, Generator

import numpy as np
import pytest

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from murmur.store import SettingsStore


@pytest.fixture
def sample_audio_16k() -> NDArray[np.int16]:
    """Generate 1 second of sample audio at 16kHz."""
    sample_rate = 16000
    duration = 1.0
    t = np.linspace(0, duration, int(sample_rate * duration), dtype=np.float32)
    # Generate a 440Hz sine wave
    audio = np.sin(2 * np.pi * 440 * t) * 0.5
    return (audio * 32767).astype(np.int16)


@pytest.fixture
def sample_wav_bytes(sample_audio_16k: NDArray[np.int16]) -> bytes:
    """The sample audio as an in-memory WAV file."""
    from scipy.io.wavfile import write as wav_write

    buffer = io.BytesIO()
    wav_write(buffer, 16000, sample_audio_16k)
    return buffer.getvalue()


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Fixture to clean environment variables before/after tests."""
    env_vars = [
        "MURMUR_AUDIO_DEVICE",
        "MURMUR_SERVER",
        "MURMUR_HOST",
        "MURMUR_PORT",
        "MURMUR_SETTINGS_PATH",
        "MURMUR_DATA_DIR",
        "MURMUR_VERBOSE",
        "GROQ_API_KEY",
        "OPENAI_API_KEY",
        "MISTRAL_API_KEY",
        "ANTHROPIC_API_KEY",
        "GEMINI_API_KEY",
    ]
    original_values = {var: os.environ.get(var) for var in env_vars}

    for var in env_vars:
        os.environ.pop(var, None)

    yield

    for var, value in original_values.items():
        if value is not None:
            os.environ[var] = value
        else:
            os.environ.pop(var, None)


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "murmur-store.json"


@pytest.fixture
def store(settings_path: Path) -> SettingsStore:
    """An empty settings store backed by a temporary file."""
    from murmur.store import SettingsStore

    return SettingsStore(settings_path)
