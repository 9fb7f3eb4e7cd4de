"""In-memory collaborators for controller and app tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Callable

from murmur.config import Settings
from murmur.controller import RecordingController
from murmur.errors import PasteError
from murmur.llm import TextGenerationRouter
from murmur.output import Selection
from murmur.providers.base import ProviderClient
from murmur.providers.registry import ProviderRegistry
from murmur.transcribe import TranscriptionRouter
from murmur.types import KeyValidation, OverlayState, OverlayUpdate, TranscriptionResult


class FakeCapture:
    def __init__(self) -> None:
        self.commands: list[str] = []
        self.on_end: Callable[[], None] | None = None

    def begin_capture(self) -> None:
        self.commands.append("begin")

    def end_capture(self) -> None:
        self.commands.append("end")
        if self.on_end is not None:
            self.on_end()

    def discard_capture(self) -> None:
        self.commands.append("discard")


class FakeOverlay:
    def __init__(self) -> None:
        self.updates: list[OverlayUpdate] = []
        self.levels: list[Any] = []

    @property
    def current(self) -> OverlayUpdate:
        return self.updates[-1] if self.updates else OverlayUpdate(OverlayState.IDLE)

    @property
    def states(self) -> list[OverlayState]:
        return [u.state for u in self.updates]

    def broadcast(self, update: OverlayUpdate) -> None:
        self.updates.append(update)

    def audio_level(self, event: Any) -> None:
        self.levels.append(event)


class FakePaste:
    def __init__(self, clipboard: str = "previous", selection: str = "") -> None:
        self.clipboard = clipboard
        self.selection = selection
        self.pasted: list[str] = []
        self.restored: list[str] = []
        self.fail_paste = False

    async def copy_selection(self) -> Selection:
        previous = self.clipboard
        self.clipboard = self.selection
        return Selection(selected_text=self.selection, previous_clipboard=previous)

    async def paste(self, text: str) -> None:
        self.clipboard = text
        if self.fail_paste:
            raise PasteError("Failed to simulate V shortcut. The text is on the clipboard.")
        self.pasted.append(text)

    async def restore_clipboard(self, text: str) -> None:
        self.clipboard = text
        self.restored.append(text)


class FakeProvider(ProviderClient):
    """Scriptable provider with every capability."""

    display_name = "Fake"

    def __init__(
        self,
        provider_id: str = "groq",
        api_key: str | None = "valid",
        *,
        requires_key: bool = True,
        transcript: str = "",
        completion: str = "",
        json_completion: str | None = None,
        json_error: Exception | None = None,
        transcribe_error: Exception | None = None,
    ) -> None:
        self.provider_id = provider_id
        self.requires_key = requires_key
        super().__init__(api_key)
        self.transcript = transcript
        self.completion = completion
        self.json_completion = json_completion
        self.json_error = json_error
        self.transcribe_error = transcribe_error
        self.transcribe_gate: asyncio.Event | None = None
        self.calls: list[tuple[str, ...]] = []

    def _create_client(self, api_key: str) -> Any:
        return api_key

    def _check_key(self) -> None:
        if self.requires_key:
            self._require_client()

    async def transcribe(
        self, audio: bytes, model: str, language: str | None = None
    ) -> TranscriptionResult:
        self._check_key()
        self.calls.append(("transcribe", model))
        if self.transcribe_gate is not None:
            await self.transcribe_gate.wait()
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return TranscriptionResult(text=self.transcript, duration_seconds=0.5, language=language)

    async def complete(self, prompt: str, model: str) -> str:
        self._check_key()
        self.calls.append(("complete", model))
        return self.completion

    async def complete_json(self, prompt: str, model: str) -> str:
        self._check_key()
        self.calls.append(("complete_json", model))
        if self.json_error is not None:
            raise self.json_error
        return self.json_completion if self.json_completion is not None else self.completion

    async def validate_key(self, candidate_key: str) -> KeyValidation:
        self.calls.append(("validate_key", candidate_key))
        if candidate_key == "valid":
            return {"valid": True}
        return {"valid": False, "error": "Fake: invalid key"}


class PlainCompleter(ProviderClient):
    """Text generation without a JSON mode."""

    provider_id = "plain"
    display_name = "Plain"
    requires_key = False

    def __init__(self, completion: str) -> None:
        super().__init__()
        self.completion = completion
        self.prompts: list[str] = []

    async def complete(self, prompt: str, model: str) -> str:
        self.prompts.append(prompt)
        return self.completion


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "transcription_provider": "groq",
        "llm_provider": "groq",
        "processing_mode": "clean",
        "api_keys": {"groq": "valid"},
    }
    values.update(overrides)
    return Settings().merge(values)


@dataclass
class Harness:
    controller: RecordingController
    capture: FakeCapture
    overlay: FakeOverlay
    paste: FakePaste
    registry: ProviderRegistry
    settings: Settings
    history: list[Any] = field(default_factory=list)
    configuration_needed: list[str] = field(default_factory=list)


def make_harness(
    *providers: ProviderClient,
    settings: Settings | None = None,
    capture_timeout_s: float = 1.0,
    revert_s: float = 0.01,
    blocked_by: Callable[[], bool] | None = None,
) -> Harness:
    registry = ProviderRegistry(providers or [FakeProvider()])
    capture = FakeCapture()
    overlay = FakeOverlay()
    paste = FakePaste()
    history: list[Any] = []
    needed: list[str] = []
    harness_settings = settings or make_settings()

    controller = RecordingController(
        capture=capture,
        overlay=overlay,
        paste=paste,
        transcription=TranscriptionRouter(registry),
        generation=TextGenerationRouter(registry),
        settings=lambda: harness.settings,
        history=history.append,
        on_configuration_needed=needed.append,
        blocked_by=blocked_by,
        capture_timeout_s=capture_timeout_s,
        complete_revert_s=revert_s,
        error_revert_s=revert_s,
    )
    harness = Harness(
        controller=controller,
        capture=capture,
        overlay=overlay,
        paste=paste,
        registry=registry,
        settings=harness_settings,
        history=history,
        configuration_needed=needed,
    )
    return harness


def make_app(tmp_path: Any, *providers: ProviderClient, paste: FakePaste | None = None):
    """A DictationApp wired to fakes, with no listener, microphone or console output."""
    from murmur.app import DictationApp
    from murmur.config import Config, HotkeyConfig
    from murmur.hotkeys import HotkeyDispatcher
    from murmur.overlay import OverlayHub
    from murmur.store import SettingsStore

    config = Config(settings_path=tmp_path / "murmur-store.json", data_dir=tmp_path / "data")
    app = DictationApp(
        config,
        store=SettingsStore(config.settings_path),
        registry=ProviderRegistry(providers or [FakeProvider(transcript="hello there")]),
        overlay=OverlayHub(echo=False),
        paste=paste or FakePaste(),
        capture=FakeCapture(),
        hotkeys=HotkeyDispatcher(HotkeyConfig(), lambda event: None),
    )
    return app
