"""Overlay state broadcasting: console status lines and websocket fan-out."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from murmur.types import AudioLevelEvent, OverlayState, OverlayUpdate

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 64


class OverlayHub:
    """
    Holds the current overlay state and forwards every update.

    Each websocket client gets its own queue from ``subscribe``. A client that
    falls behind loses messages instead of stalling the controllers.
    """

    def __init__(self, echo: bool = True) -> None:
        self._echo = echo
        self._current = OverlayUpdate(OverlayState.IDLE)
        self._subscribers: set[asyncio.Queue[dict[str, Any]]] = set()

    @property
    def current(self) -> OverlayUpdate:
        return self._current

    def broadcast(self, update: OverlayUpdate) -> None:
        self._current = update
        logger.debug("Overlay state: %s", update.to_message())
        if self._echo:
            self._print_status(update)
        self._fan_out(update.to_message())

    def audio_level(self, event: AudioLevelEvent) -> None:
        self._fan_out({"audioLevel": {"average": event.average, "peak": event.peak}})

    def subscribe(self) -> asyncio.Queue[dict[str, Any]]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        queue.put_nowait(self._current.to_message())
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue[dict[str, Any]]) -> None:
        self._subscribers.discard(queue)

    def _fan_out(self, message: dict[str, Any]) -> None:
        for queue in list(self._subscribers):
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                logger.debug("Overlay subscriber is behind, dropping message")

    @staticmethod
    def _print_status(update: OverlayUpdate) -> None:
        if update.state is OverlayState.LISTENING:
            print("🎙️ Recording...")
        elif update.state is OverlayState.PROCESSING:
            print("⏳ Processing...")
        elif update.state is OverlayState.COMPLETE:
            print(f"✅ Done ({update.word_count or 0} words)")
        elif update.state is OverlayState.ERROR:
            print(f"❌ {update.error}")
