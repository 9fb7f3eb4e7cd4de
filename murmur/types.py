"""Type definitions for the Murmur application."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypedDict, Union


class OverlayState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class Segment:
    start: float
    end: float
    text: str


@dataclass(frozen=True)
class TranscriptionResult:
    """Result from a transcription provider."""

    text: str
    duration_seconds: float
    language: str | None = None
    segments: list[Segment] | None = None


@dataclass(frozen=True)
class CompletionResult:
    """Result of running transcribed text through a text-generation provider."""

    original_text: str
    processed_text: str
    provider_id: str
    model_id: str


class KeyValidation(TypedDict, total=False):
    """Outcome of probing a provider with a candidate API key."""

    valid: bool
    error: str


@dataclass(frozen=True)
class OverlayUpdate:
    """One state broadcast to the overlay."""

    state: OverlayState
    word_count: int | None = None
    error: str | None = None

    def to_message(self) -> dict[str, Any]:
        message: dict[str, Any] = {"state": self.state.value}
        if self.word_count is not None:
            message["wordCount"] = self.word_count
        if self.error is not None:
            message["error"] = self.error
        return message


# Events emitted by the capture surface


@dataclass(frozen=True)
class CaptureStartedEvent:
    pass


@dataclass(frozen=True)
class AudioReadyEvent:
    audio_base64: str
    duration_seconds: float


@dataclass(frozen=True)
class CaptureFailedEvent:
    message: str


@dataclass(frozen=True)
class AudioLevelEvent:
    average: float
    peak: float


CaptureEvent = Union[CaptureStartedEvent, AudioReadyEvent, CaptureFailedEvent, AudioLevelEvent]


@dataclass(frozen=True)
class HistoryItem:
    """A completed dictation, kept in the settings store."""

    original_text: str
    processed_text: str
    duration_seconds: float
    transcription_provider: str
    processing_mode: str
    llm_provider: str | None = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: float = field(default_factory=time.time)
