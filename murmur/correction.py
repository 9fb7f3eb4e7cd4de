"""Correct the selected text in place through the clipboard."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Callable, Protocol

from murmur.controller import COMPLETE_REVERT_S, ERROR_REVERT_S, OverlaySink
from murmur.errors import MurmurError, PasteError
from murmur.prompts import correction_prompt
from murmur.types import OverlayState, OverlayUpdate

if TYPE_CHECKING:
    from murmur.config import Settings
    from murmur.llm import TextGenerationRouter
    from murmur.output import Selection

logger = logging.getLogger(__name__)

CLIPBOARD_RESTORE_DELAY_S = 0.5


class NoSelectionError(MurmurError):
    def __init__(self) -> None:
        super().__init__("No text selected")


class ClipboardPaster(Protocol):
    async def copy_selection(self) -> "Selection": ...
    async def paste(self, text: str) -> None: ...
    async def restore_clipboard(self, text: str) -> None: ...


class TextCorrectionController:
    """
    Two states: idle and correcting.

    A run copies the selection, sends it through the sanitized completion
    with the configured correction prompt, pastes the answer over the
    selection and then puts the user's previous clipboard back. The previous
    clipboard is restored on every exit path, cancellation included. The
    controller stays "correcting" until its overlay result has reverted to
    idle, or until the run is cancelled.
    """

    def __init__(
        self,
        paste: ClipboardPaster,
        generation: "TextGenerationRouter",
        overlay: OverlaySink,
        settings: Callable[[], "Settings"],
        *,
        blocked_by: Callable[[], bool] | None = None,
        restore_delay_s: float = CLIPBOARD_RESTORE_DELAY_S,
        complete_revert_s: float = COMPLETE_REVERT_S,
        error_revert_s: float = ERROR_REVERT_S,
    ) -> None:
        self._paste = paste
        self._generation = generation
        self._overlay = overlay
        self._settings = settings
        self._blocked_by = blocked_by
        self._restore_delay_s = restore_delay_s
        self._complete_revert_s = complete_revert_s
        self._error_revert_s = error_revert_s
        self._active = False
        self._revert_handle: asyncio.TimerHandle | None = None

    @property
    def is_active(self) -> bool:
        return self._active

    async def correct(self) -> bool:
        """Run one correction. Returns False if it could not start."""
        if self._active:
            logger.debug("Correction already running")
            return False
        if self._blocked_by is not None and self._blocked_by():
            logger.debug("Ignoring correction while recording")
            return False

        self._active = True
        settings = self._settings()
        previous: str | None = None
        try:
            selection = await self._paste.copy_selection()
            previous = selection.previous_clipboard
            if not selection.selected_text.strip():
                raise NoSelectionError()

            self._overlay.broadcast(OverlayUpdate(OverlayState.PROCESSING))
            prompt = correction_prompt(
                settings.correction_mode, selection.selected_text, settings.correction_prompt
            )
            corrected = await self._generation.complete_sanitized(
                prompt, settings.llm_provider, settings.llm_model
            )
            if not corrected.strip():
                raise MurmurError("The model returned no text")

            await self._paste.paste(corrected)
            await asyncio.sleep(self._restore_delay_s)
        except asyncio.CancelledError:
            logger.info("Correction cancelled")
            self._active = False
            self._overlay.broadcast(OverlayUpdate(OverlayState.IDLE))
            raise
        except Exception as exc:
            if isinstance(exc, MurmurError):
                logger.error("Correction failed: %s", exc)
            else:
                logger.exception("Unexpected correction failure")
            outcome = OverlayUpdate(OverlayState.ERROR, error=str(exc) or type(exc).__name__)
            delay = self._error_revert_s
        else:
            logger.info("Corrected %d characters", len(corrected))
            outcome = OverlayUpdate(OverlayState.COMPLETE, word_count=len(corrected.split()))
            delay = self._complete_revert_s
        finally:
            if previous is not None:
                await self._restore(previous)

        self._overlay.broadcast(outcome)
        self._revert_handle = asyncio.get_running_loop().call_later(delay, self._revert)
        return True

    async def _restore(self, previous: str) -> None:
        try:
            await self._paste.restore_clipboard(previous)
        except PasteError as e:
            logger.error("Failed to restore clipboard: %s", e)

    def _revert(self) -> None:
        self._revert_handle = None
        self._active = False
        self._overlay.broadcast(OverlayUpdate(OverlayState.IDLE))

    def close(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None
        self._active = False
