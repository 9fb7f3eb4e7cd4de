"""
Recording lifecycle: idle -> listening -> processing -> complete/error -> idle.

All methods run on the application's event loop. The capture surface reports
back through ``deliver_audio`` and ``fail_capture``; the pending-audio future
created by ``stop`` is the only thing those calls touch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Protocol

from murmur.config import ProcessingMode
from murmur.errors import (
    CaptureError,
    CaptureTimeoutError,
    MurmurError,
    RecordingCancelledError,
)
from murmur.types import HistoryItem, OverlayState, OverlayUpdate

if TYPE_CHECKING:
    from murmur.config import Settings
    from murmur.llm import TextGenerationRouter
    from murmur.transcribe import TranscriptionRouter

logger = logging.getLogger(__name__)

CAPTURE_TIMEOUT_S = 30.0
COMPLETE_REVERT_S = 1.5
ERROR_REVERT_S = 3.0


class CaptureSurface(Protocol):
    def begin_capture(self) -> None: ...
    def end_capture(self) -> None: ...
    def discard_capture(self) -> None: ...


class OverlaySink(Protocol):
    def broadcast(self, update: OverlayUpdate) -> None: ...


class Paster(Protocol):
    async def paste(self, text: str) -> None: ...


@dataclass(eq=False)
class RecordingSession:
    """One dictation, from ``start`` until the overlay is back to idle."""

    started_at: float
    stopped_at: float | None = None
    pending_audio: "asyncio.Future[tuple[bytes, float]] | None" = None
    timeout_handle: asyncio.TimerHandle | None = None

    @property
    def awaiting_audio(self) -> bool:
        return self.pending_audio is not None and not self.pending_audio.done()


class RecordingController:
    """
    The dictation state machine.

    ``start`` and ``cancel`` are synchronous transitions. ``stop`` performs
    the listening -> processing transition immediately and then runs the
    transcription pipeline until the session completes, fails or is
    cancelled, so callers normally schedule it as a task.

    A session abandoned by ``cancel`` is detached from the controller. Any
    result it produces afterwards is dropped without touching the overlay,
    the paste collaborator or the history.
    """

    def __init__(
        self,
        capture: CaptureSurface,
        overlay: OverlaySink,
        paste: Paster,
        transcription: "TranscriptionRouter",
        generation: "TextGenerationRouter",
        settings: Callable[[], "Settings"],
        *,
        history: Callable[[HistoryItem], None] | None = None,
        on_configuration_needed: Callable[[str], None] | None = None,
        blocked_by: Callable[[], bool] | None = None,
        capture_timeout_s: float = CAPTURE_TIMEOUT_S,
        complete_revert_s: float = COMPLETE_REVERT_S,
        error_revert_s: float = ERROR_REVERT_S,
    ) -> None:
        self._capture = capture
        self._overlay = overlay
        self._paste = paste
        self._transcription = transcription
        self._generation = generation
        self._settings = settings
        self._history = history
        self._on_configuration_needed = on_configuration_needed
        self._blocked_by = blocked_by
        self._capture_timeout_s = capture_timeout_s
        self._complete_revert_s = complete_revert_s
        self._error_revert_s = error_revert_s

        self._state = OverlayState.IDLE
        self._session: RecordingSession | None = None
        self._revert_handle: asyncio.TimerHandle | None = None

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def session(self) -> RecordingSession | None:
        return self._session

    @property
    def is_idle(self) -> bool:
        return self._state is OverlayState.IDLE

    def start(self) -> bool:
        """idle -> listening. Returns False when the call is a no-op or refused."""
        if self._state is not OverlayState.IDLE:
            logger.debug("Ignoring start while %s", self._state.value)
            return False
        if self._blocked_by is not None and self._blocked_by():
            logger.debug("Ignoring start while text correction is running")
            return False

        provider_id = self._settings().transcription_provider
        if self._transcription.needs_key(provider_id):
            logger.warning("No API key for %s, recording refused", provider_id)
            if self._on_configuration_needed is not None:
                self._on_configuration_needed(provider_id)
            return False

        self._session = RecordingSession(started_at=time.time())
        self._set_state(OverlayUpdate(OverlayState.LISTENING))
        self._capture.begin_capture()
        return True

    async def stop(self) -> None:
        """listening -> processing, then run the session to its end."""
        session = self._session
        if self._state is not OverlayState.LISTENING or session is None:
            logger.debug("Ignoring stop while %s", self._state.value)
            return

        loop = asyncio.get_running_loop()
        settings = self._settings()
        session.stopped_at = time.time()
        session.pending_audio = loop.create_future()
        session.timeout_handle = loop.call_later(
            self._capture_timeout_s, self._on_capture_timeout, session
        )
        self._set_state(OverlayUpdate(OverlayState.PROCESSING))
        self._capture.end_capture()

        try:
            audio, duration = await session.pending_audio
            self._clear_pending(session)
            text = await self._run_pipeline(session, settings, audio, duration)
        except RecordingCancelledError:
            logger.info("Recording cancelled")
            return
        except Exception as exc:
            self._clear_pending(session)
            self._fail(session, exc)
            return

        if self._session is not session:
            logger.info("Dropping result of an abandoned recording")
            return
        self._finish(
            session,
            OverlayUpdate(OverlayState.COMPLETE, word_count=len(text.split())),
            self._complete_revert_s,
        )

    def cancel(self) -> bool:
        """listening/processing -> idle, abandoning the session."""
        session = self._session
        if session is None or self._state not in (OverlayState.LISTENING, OverlayState.PROCESSING):
            return False

        self._session = None
        self._cancel_timeout(session)
        if session.awaiting_audio:
            session.pending_audio.set_exception(RecordingCancelledError())
        session.pending_audio = None

        self._capture.discard_capture()
        self._set_state(OverlayUpdate(OverlayState.IDLE))
        logger.info("Recording cancelled by user")
        return True

    def deliver_audio(self, audio: bytes, duration_seconds: float) -> bool:
        """Settle the pending-audio future. Audio nobody waits for is ignored."""
        session = self._session
        if session is None or not session.awaiting_audio:
            logger.warning("Ignoring %.2fs of audio with no pending recording", duration_seconds)
            return False
        logger.info("Received audio: %.2fs", duration_seconds)
        session.pending_audio.set_result((audio, duration_seconds))
        return True

    def fail_capture(self, message: str) -> bool:
        """Report a capture surface failure for the current session."""
        session = self._session
        if session is None:
            logger.warning("Capture error with no recording: %s", message)
            return False
        if session.awaiting_audio:
            session.pending_audio.set_exception(CaptureError(message))
            return True
        if self._state is OverlayState.LISTENING:
            self._fail(session, CaptureError(message))
            return True
        logger.warning("Ignoring capture error while %s: %s", self._state.value, message)
        return False

    def close(self) -> None:
        """Cancel any recording and pending timers. Used at shutdown."""
        self.cancel()
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None

    async def _run_pipeline(
        self,
        session: RecordingSession,
        settings: "Settings",
        audio: bytes,
        duration: float,
    ) -> str:
        result = await self._transcription.transcribe(
            settings.transcription_provider,
            audio,
            settings.transcription_model,
            settings.transcription_language,
        )
        self._ensure_current(session)

        text = result.text
        if not text:
            raise CaptureError("No speech detected")
        logger.info('Raw transcription: "%s"', text)

        final_text = text
        llm_provider = None
        if settings.processing_mode is not ProcessingMode.RAW:
            if self._generation.is_usable(settings.llm_provider):
                completion = await self._generation.process(
                    text, settings.llm_provider, settings.llm_model, settings.processing_mode
                )
                self._ensure_current(session)
                final_text = completion.processed_text
                llm_provider = completion.provider_id
                logger.info('Processed text: "%s"', final_text)
            else:
                logger.warning(
                    "%s is not usable, keeping the raw transcription", settings.llm_provider
                )

        await self._paste.paste(final_text)
        self._ensure_current(session)
        self._record_history(
            HistoryItem(
                original_text=text,
                processed_text=final_text,
                duration_seconds=duration,
                transcription_provider=settings.transcription_provider,
                processing_mode=settings.processing_mode.value,
                llm_provider=llm_provider,
            )
        )
        return final_text

    def _record_history(self, item: HistoryItem) -> None:
        if self._history is None:
            return
        try:
            self._history(item)
        except OSError as e:
            logger.warning("Failed to save history: %s", e)

    def _ensure_current(self, session: RecordingSession) -> None:
        if self._session is not session:
            raise RecordingCancelledError()

    def _on_capture_timeout(self, session: RecordingSession) -> None:
        session.timeout_handle = None
        if session.awaiting_audio:
            logger.warning("No audio within %.0fs", self._capture_timeout_s)
            session.pending_audio.set_exception(CaptureTimeoutError(self._capture_timeout_s))

    def _cancel_timeout(self, session: RecordingSession) -> None:
        if session.timeout_handle is not None:
            session.timeout_handle.cancel()
            session.timeout_handle = None

    def _clear_pending(self, session: RecordingSession) -> None:
        self._cancel_timeout(session)
        session.pending_audio = None

    def _fail(self, session: RecordingSession, exc: BaseException) -> None:
        if self._session is not session:
            logger.info("Dropping failure of an abandoned recording: %s", exc)
            return
        if isinstance(exc, MurmurError):
            logger.error("Dictation failed: %s", exc)
        else:
            logger.exception("Unexpected dictation failure")
        self._finish(
            session,
            OverlayUpdate(OverlayState.ERROR, error=str(exc) or type(exc).__name__),
            self._error_revert_s,
        )

    def _finish(self, session: RecordingSession, update: OverlayUpdate, delay: float) -> None:
        self._cancel_timeout(session)
        self._set_state(update)
        loop = asyncio.get_running_loop()
        self._revert_handle = loop.call_later(delay, self._revert, session)

    def _revert(self, session: RecordingSession) -> None:
        self._revert_handle = None
        if self._session is not session:
            return
        self._session = None
        self._set_state(OverlayUpdate(OverlayState.IDLE))

    def _set_state(self, update: OverlayUpdate) -> None:
        self._state = update.state
        self._overlay.broadcast(update)
