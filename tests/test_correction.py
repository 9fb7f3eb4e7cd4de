"""Tests for the text correction flow."""

from __future__ import annotations

import asyncio

import pytest

from fakes import FakeOverlay, FakePaste, FakeProvider, make_settings
from murmur.correction import TextCorrectionController
from murmur.errors import PasteError, ProviderError, ProviderErrorKind
from murmur.llm import TextGenerationRouter
from murmur.output import Selection
from murmur.providers.registry import ProviderRegistry
from murmur.types import OverlayState, OverlayUpdate


def make_controller(
    provider: FakeProvider,
    paste: FakePaste,
    overlay: FakeOverlay,
    blocked: bool = False,
    **settings,
) -> TextCorrectionController:
    snapshot = make_settings(**settings)
    return TextCorrectionController(
        paste=paste,
        generation=TextGenerationRouter(ProviderRegistry([provider])),
        overlay=overlay,
        settings=lambda: snapshot,
        blocked_by=lambda: blocked,
        restore_delay_s=0,
        complete_revert_s=0.01,
        error_revert_s=0.01,
    )


class TestCorrect:
    """Tests for TextCorrectionController.correct."""

    def test_corrects_selection(self) -> None:
        """Test the corrected text is pasted and the clipboard restored."""
        provider = FakeProvider(json_completion='{"text": "Their going home."}')
        paste = FakePaste(clipboard="user clipboard", selection="there going home")
        overlay = FakeOverlay()
        controller = make_controller(provider, paste, overlay)

        async def scenario() -> None:
            assert await controller.correct() is True
            assert controller.is_active
            await asyncio.sleep(0.05)
            assert not controller.is_active

        asyncio.run(scenario())

        assert paste.pasted == ["Their going home."]
        assert paste.restored == ["user clipboard"]
        assert paste.clipboard == "user clipboard"
        assert overlay.updates == [
            OverlayUpdate(OverlayState.PROCESSING),
            OverlayUpdate(OverlayState.COMPLETE, word_count=3),
            OverlayUpdate(OverlayState.IDLE),
        ]

    def test_prompt_uses_correction_mode(self) -> None:
        """Test the custom prompt and the selection reach the provider."""
        prompts: list[str] = []

        class RecordingProvider(FakeProvider):
            async def complete_json(self, prompt, model):
                prompts.append(prompt)
                return '{"text": "ok"}'

        paste = FakePaste(selection="bonjour")
        controller = make_controller(
            RecordingProvider(),
            paste,
            FakeOverlay(),
            correction_mode="custom",
            correction_prompt="Translate to English.",
        )

        asyncio.run(controller.correct())

        assert prompts[0].startswith("Translate to English.")
        assert prompts[0].endswith("Text to correct:\nbonjour")

    def test_empty_selection(self) -> None:
        """Test nothing selected restores the clipboard without a model call."""
        provider = FakeProvider(completion="never")
        paste = FakePaste(clipboard="keep me", selection="   ")
        overlay = FakeOverlay()
        controller = make_controller(provider, paste, overlay)

        asyncio.run(controller.correct())

        assert provider.calls == []
        assert paste.pasted == []
        assert paste.clipboard == "keep me"
        assert overlay.updates[0] == OverlayUpdate(OverlayState.ERROR, error="No text selected")

    def test_generation_failure_restores_clipboard(self) -> None:
        """Test a provider error still restores the clipboard."""
        provider = FakeProvider(
            json_error=ProviderError(ProviderErrorKind.UNAUTHORIZED, "Groq: invalid key")
        )
        paste = FakePaste(clipboard="keep me", selection="text")
        overlay = FakeOverlay()
        controller = make_controller(provider, paste, overlay)

        asyncio.run(controller.correct())

        assert paste.clipboard == "keep me"
        assert overlay.updates[-1] == OverlayUpdate(OverlayState.ERROR, error="Groq: invalid key")

    def test_paste_failure_restores_clipboard(self) -> None:
        """Test a failed paste still restores the clipboard."""
        provider = FakeProvider(json_completion='{"text": "fixed"}')
        paste = FakePaste(clipboard="keep me", selection="fixd")
        paste.fail_paste = True
        overlay = FakeOverlay()
        controller = make_controller(provider, paste, overlay)

        asyncio.run(controller.correct())

        assert paste.restored == ["keep me"]
        assert overlay.updates[-1].state is OverlayState.ERROR

    def test_copy_failure(self) -> None:
        """Test a failing copy keystroke is reported as an error."""

        class BrokenCopy(FakePaste):
            async def copy_selection(self) -> Selection:
                raise PasteError("Failed to simulate C shortcut: denied")

        overlay = FakeOverlay()
        paste = BrokenCopy()
        controller = make_controller(FakeProvider(), paste, overlay)

        asyncio.run(controller.correct())

        assert paste.restored == []
        assert overlay.updates[-1].error == "Failed to simulate C shortcut: denied"

    def test_blocked_while_recording(self) -> None:
        """Test correction does not start while a recording is active."""
        paste = FakePaste(selection="text")
        controller = make_controller(FakeProvider(), paste, FakeOverlay(), blocked=True)

        assert asyncio.run(controller.correct()) is False
        assert paste.restored == []

    def test_not_reentrant(self) -> None:
        """Test a second correction is refused while one is active."""
        provider = FakeProvider(json_completion='{"text": "ok"}')
        paste = FakePaste(selection="text")
        controller = make_controller(provider, paste, FakeOverlay())

        async def scenario() -> None:
            first = asyncio.create_task(controller.correct())
            await asyncio.sleep(0)
            assert await controller.correct() is False
            assert await first is True

        asyncio.run(scenario())

        assert paste.pasted == ["ok"]

    def test_cancelled_mid_run(self) -> None:
        """Test cancelling a correction restores the clipboard and frees the controller."""
        started = asyncio.Event()

        class StalledProvider(FakeProvider):
            async def complete_json(self, prompt, model):
                started.set()
                await asyncio.Event().wait()

        paste = FakePaste(clipboard="keep me", selection="text")
        overlay = FakeOverlay()
        controller = make_controller(StalledProvider(), paste, overlay)

        async def scenario() -> None:
            task = asyncio.create_task(controller.correct())
            await started.wait()
            assert controller.is_active
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert not controller.is_active
        assert paste.restored == ["keep me"]
        assert paste.clipboard == "keep me"
        assert paste.pasted == []
        assert overlay.updates[-1] == OverlayUpdate(OverlayState.IDLE)
