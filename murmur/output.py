"""Clipboard handoff and paste keystrokes at the OS cursor."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Any

import pyperclip

from murmur.errors import PasteError

logger = logging.getLogger(__name__)

COPY_TIMEOUT_S = 0.15
COPY_POLL_INTERVAL_S = 0.01
PASTE_SETTLE_BEFORE_S = 0.05
PASTE_SETTLE_AFTER_S = 0.1


@dataclass(frozen=True)
class Selection:
    selected_text: str
    previous_clipboard: str


class PasteService:
    """
    Copy the current selection and paste text through the system clipboard.

    Keystrokes are sent with a pynput keyboard controller using ``cmd`` on
    macOS and ``ctrl`` elsewhere. Blocking clipboard and keyboard calls run in
    a worker thread so the event loop keeps serving other events.
    """

    def __init__(
        self,
        keyboard: Any = None,
        modifier: Any = None,
        copy_timeout_s: float = COPY_TIMEOUT_S,
        poll_interval_s: float = COPY_POLL_INTERVAL_S,
        settle_before_s: float = PASTE_SETTLE_BEFORE_S,
        settle_after_s: float = PASTE_SETTLE_AFTER_S,
    ) -> None:
        self._keyboard = keyboard
        self._modifier = modifier
        self._copy_timeout_s = copy_timeout_s
        self._poll_interval_s = poll_interval_s
        self._settle_before_s = settle_before_s
        self._settle_after_s = settle_after_s

    def _controller(self) -> tuple[Any, Any]:
        if self._keyboard is None or self._modifier is None:
            from pynput.keyboard import Controller, Key

            if self._keyboard is None:
                self._keyboard = Controller()
            if self._modifier is None:
                self._modifier = Key.cmd if sys.platform == "darwin" else Key.ctrl
        return self._keyboard, self._modifier

    def _send_shortcut(self, char: str) -> None:
        keyboard, modifier = self._controller()
        try:
            with keyboard.pressed(modifier):
                keyboard.press(char)
                keyboard.release(char)
        except Exception as e:
            logger.error("Failed to send shortcut %s: %s", char, e)
            raise PasteError(f"Failed to simulate {char.upper()} shortcut: {e}") from e

    async def _read(self) -> str:
        try:
            return await asyncio.to_thread(pyperclip.paste) or ""
        except pyperclip.PyperclipException as e:
            raise PasteError(f"Clipboard unavailable: {e}") from e

    async def _write(self, text: str) -> None:
        try:
            await asyncio.to_thread(pyperclip.copy, text)
        except pyperclip.PyperclipException as e:
            raise PasteError(f"Clipboard unavailable: {e}") from e

    async def copy_selection(self) -> Selection:
        """
        Copy the focused application's selection through the clipboard.

        The clipboard is cleared before the copy keystroke so an empty result
        means nothing was selected. On failure or cancellation the previous
        clipboard contents are put back before the error propagates.
        """
        previous = await self._read()
        loop = asyncio.get_running_loop()
        try:
            await self._write("")
            await asyncio.to_thread(self._send_shortcut, "c")
            deadline = loop.time() + self._copy_timeout_s
            while not (selected := await self._read()) and loop.time() < deadline:
                await asyncio.sleep(self._poll_interval_s)
        except (PasteError, asyncio.CancelledError):
            await self.restore_clipboard(previous)
            raise
        return Selection(selected_text=selected, previous_clipboard=previous)

    async def paste(self, text: str) -> None:
        """Paste ``text`` at the cursor. The text stays on the clipboard."""
        if not text or not text.strip():
            logger.info("No text to paste")
            return
        await self._write(text)
        await asyncio.sleep(self._settle_before_s)
        try:
            await asyncio.to_thread(self._send_shortcut, "v")
        except PasteError as e:
            raise PasteError(f"{e}. The text is on the clipboard.") from e
        await asyncio.sleep(self._settle_after_s)
        logger.info("Pasted %d characters", len(text))

    async def restore_clipboard(self, text: str) -> None:
        await self._write(text)
