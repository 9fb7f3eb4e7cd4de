"""Main Murmur application."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

from murmur.audio import AudioRecorder, list_input_devices
from murmur.config import ActivationMode, Config, Settings
from murmur.controller import RecordingController
from murmur.correction import TextCorrectionController
from murmur.errors import ConfigurationError
from murmur.hotkeys import HotkeyDispatcher, HotkeyEvent
from murmur.llm import TextGenerationRouter
from murmur.output import PasteService
from murmur.overlay import OverlayHub
from murmur.providers import ProviderRegistry, build_registry
from murmur.providers.ollama_provider import OllamaProvider
from murmur.store import SettingsStore
from murmur.transcribe import TranscriptionRouter
from murmur.types import (
    AudioLevelEvent,
    AudioReadyEvent,
    CaptureFailedEvent,
    CaptureStartedEvent,
    KeyValidation,
    OverlayState,
)

logger = logging.getLogger(__name__)


class DictationApp:
    """
    Hotkey-driven voice dictation.

    Owns every component for the life of the process. Hotkey and capture
    events from library threads are published onto one asyncio queue and
    handled in order on the event loop by ``process_events``.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        store: SettingsStore | None = None,
        registry: ProviderRegistry | None = None,
        overlay: OverlayHub | None = None,
        paste: Any = None,
        capture: Any = None,
        hotkeys: HotkeyDispatcher | None = None,
    ) -> None:
        self._config = config or Config()
        self._store = store or SettingsStore(self._config.settings_path)

        settings = self.settings
        self._registry = registry or build_registry(
            settings.api_keys, self._config.data_dir, settings.ollama_host
        )
        self._overlay = overlay or OverlayHub()
        self._paste = paste or PasteService()
        self._capture = capture or AudioRecorder(self._config.audio, self._publish)
        self._hotkeys = hotkeys or HotkeyDispatcher(settings.hotkeys, self._publish)

        self.transcription = TranscriptionRouter(self._registry)
        self.generation = TextGenerationRouter(self._registry)
        self.recording = RecordingController(
            capture=self._capture,
            overlay=self._overlay,
            paste=self._paste,
            transcription=self.transcription,
            generation=self.generation,
            settings=lambda: self.settings,
            history=self._store.add_history,
            on_configuration_needed=self._on_configuration_needed,
            blocked_by=lambda: self.correction.is_active,
        )
        self.correction = TextCorrectionController(
            paste=self._paste,
            generation=self.generation,
            overlay=self._overlay,
            settings=lambda: self.settings,
            blocked_by=lambda: not self.recording.is_idle,
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._events: asyncio.Queue[Any] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._shut_down = False

    @property
    def config(self) -> Config:
        return self._config

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def overlay(self) -> OverlayHub:
        return self._overlay

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def settings(self) -> Settings:
        """Current settings snapshot, with API keys filled from the environment."""
        return self._store.get().with_env_keys()

    @property
    def state(self) -> OverlayState:
        return self._overlay.current.state

    # Settings

    def update_settings(self, partial: Mapping[str, Any]) -> Settings:
        self._store.set(partial)
        settings = self.settings
        self._apply_settings(settings)
        return settings

    def reset_settings(self) -> Settings:
        self._store.reset()
        settings = self.settings
        self._apply_settings(settings)
        return settings

    def _apply_settings(self, settings: Settings) -> None:
        self._registry.update_api_keys(settings.api_keys)
        if "ollama" in self._registry:
            ollama = self._registry.get("ollama")
            if isinstance(ollama, OllamaProvider):
                ollama.update_host(settings.ollama_host)
        self._hotkeys.update_config(settings.hotkeys)

    async def validate_api_key(self, provider_id: str, api_key: str | None) -> KeyValidation:
        return await self._registry.validate_api_key(provider_id, api_key)

    def _on_configuration_needed(self, provider_id: str) -> None:
        print(f"⚙️  {ConfigurationError(provider_id)}")

    # Actions

    def start_recording(self) -> bool:
        return self.recording.start()

    def stop_recording(self) -> None:
        self._spawn(self.recording.stop())

    def cancel_recording(self) -> bool:
        return self.recording.cancel()

    def correct_selection(self) -> None:
        self._spawn(self.correction.correct())

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and (exc := task.exception()) is not None:
            logger.error("Background task failed", exc_info=exc)

    async def wait_tasks(self) -> None:
        """Wait for every running stop/correct task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Events

    def _publish(self, event: Any) -> None:
        """Queue an event from any thread."""
        loop, events = self._loop, self._events
        if loop is None or events is None or loop.is_closed():
            logger.debug("Dropping %r, event loop not running", event)
            return
        loop.call_soon_threadsafe(events.put_nowait, event)

    async def dispatch(self, event: Any) -> None:
        """Handle one hotkey or capture event."""
        if isinstance(event, HotkeyEvent):
            self._on_hotkey(event)
        elif isinstance(event, AudioLevelEvent):
            self._overlay.audio_level(event)
        elif isinstance(event, AudioReadyEvent):
            try:
                audio = base64.b64decode(event.audio_base64, validate=True)
            except (binascii.Error, ValueError) as e:
                self.recording.fail_capture(f"Invalid audio data: {e}")
                return
            self.recording.deliver_audio(audio, event.duration_seconds)
        elif isinstance(event, CaptureFailedEvent):
            self.recording.fail_capture(event.message)
        elif isinstance(event, CaptureStartedEvent):
            logger.debug("Capture started")
        else:
            logger.warning("Unknown event: %r", event)

    def _on_hotkey(self, event: HotkeyEvent) -> None:
        mode = self.settings.hotkeys.activation_mode
        if event is HotkeyEvent.KEY_DOWN:
            if mode is ActivationMode.TOGGLE and self.recording.state is OverlayState.LISTENING:
                self.stop_recording()
            else:
                self.start_recording()
        elif event is HotkeyEvent.KEY_UP:
            if mode is ActivationMode.PUSH_TO_TALK:
                self.stop_recording()
        elif event is HotkeyEvent.CORRECTION_KEY_DOWN:
            self.correct_selection()
        elif event is HotkeyEvent.CANCEL_KEY_DOWN:
            if self.cancel_recording():
                print("🚫 Cancelled")

    async def process_events(self) -> None:
        assert self._events is not None
        while True:
            event = await self._events.get()
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Error handling %r", event)

    # Lifecycle

    def _print_banner(self) -> None:
        print("=" * 60)
        print("🎙️ MURMUR - Voice Dictation")
        print("=" * 60)

    def _print_devices(self) -> None:
        try:
            devices = list_input_devices()
        except Exception as e:
            logger.warning("Cannot list audio devices: %s", e)
            return
        print("\n🎤 Available audio input devices:")
        print("-" * 50)
        for device in devices:
            print(f"  {device}")
        print("-" * 50)

    def _print_instructions(self) -> None:
        settings = self.settings
        hotkeys = settings.hotkeys
        print("\n" + "=" * 60)
        print("📌 INSTRUCTIONS:")
        if hotkeys.activation_mode is ActivationMode.TOGGLE:
            print(f"   • Press {hotkeys.toggle_key} to start, press again to stop.")
        else:
            print(f"   • Hold {hotkeys.push_to_talk_key} to talk. Release to stop.")
        print(f"   • Press {hotkeys.cancel_key} to cancel a recording.")
        if hotkeys.correction_key:
            print(f"   • Select text and press {hotkeys.correction_key} to correct it.")
        print(f"   • Transcription: {settings.transcription_provider} ({settings.transcription_model})")
        print(f"   • Processing: {settings.processing_mode.value}")
        print("   • Ctrl+C to quit.")
        print("=" * 60)
        print("\n🟢 Ready!\n")

    async def run_async(self) -> None:
        """Run until the HTTP server exits or the task is cancelled."""
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()

        self._print_banner()
        self._print_devices()
        self._hotkeys.start()
        consumer = asyncio.create_task(self.process_events())
        self._print_instructions()

        try:
            server = self._config.server
            if server.enabled:
                import uvicorn

                from murmur.server import create_app

                print(f"🌐 Settings API on http://{server.host}:{server.port}")
                await uvicorn.Server(
                    uvicorn.Config(
                        create_app(self),
                        host=server.host,
                        port=server.port,
                        log_level="warning",
                    )
                ).serve()
            else:
                await asyncio.Event().wait()
        finally:
            consumer.cancel()
            self.shutdown()

    def run(self) -> None:
        asyncio.run(self.run_async())

    def shutdown(self) -> None:
        """Shutdown the application gracefully."""
        if self._shut_down:
            return
        self._shut_down = True
        logger.info("Shutting down...")
        self._hotkeys.stop()
        self.recording.close()
        self.correction.close()
        for task in list(self._tasks):
            task.cancel()
        self._loop = None
