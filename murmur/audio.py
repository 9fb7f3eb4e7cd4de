"""Microphone capture with sounddevice, delivered as a single WAV buffer."""

from __future__ import annotations

import base64
import io
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

import numpy as np
from scipy.io.wavfile import write as wav_write

from murmur.types import (
    AudioLevelEvent,
    AudioReadyEvent,
    CaptureEvent,
    CaptureFailedEvent,
    CaptureStartedEvent,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from murmur.config import AudioConfig

logger = logging.getLogger(__name__)

INT16_MAX = 32767.0
AUDIO_CLIP_MIN = -1.0
AUDIO_CLIP_MAX = 1.0
RMS_EPSILON = 1e-12
FIRST_CHANNEL_INDEX = 0


@dataclass
class AudioDevice:
    index: int
    name: str
    is_default: bool = False

    def __str__(self) -> str:
        marker = " (DEFAULT)" if self.is_default else ""
        return f"[{self.index}] {self.name}{marker}"


def list_input_devices() -> list[AudioDevice]:
    import sounddevice as sd

    devices = sd.query_devices()
    default_input = sd.default.device[FIRST_CHANNEL_INDEX]

    input_devices = []
    for i, dev in enumerate(devices):
        if dev["max_input_channels"] > 0:  # type: ignore[index]
            input_devices.append(
                AudioDevice(
                    index=i,
                    name=dev["name"],  # type: ignore[index]
                    is_default=(i == default_input),
                )
            )
    return input_devices


def to_int16(audio: "NDArray[np.float32]") -> "NDArray[np.int16]":
    clipped = np.clip(audio, AUDIO_CLIP_MIN, AUDIO_CLIP_MAX)
    return (clipped * INT16_MAX).astype(np.int16)


def encode_wav(samples: "NDArray[np.int16]", sample_rate: int) -> bytes:
    """16-bit PCM WAV bytes for ``samples``."""
    buffer = io.BytesIO()
    wav_write(buffer, sample_rate, samples)
    return buffer.getvalue()


def audio_level(block: "NDArray[np.float32]") -> AudioLevelEvent:
    rms = float(np.sqrt(np.mean(block * block) + RMS_EPSILON))
    peak = float(np.max(np.abs(block))) if block.size else 0.0
    return AudioLevelEvent(average=min(rms, 1.0), peak=min(peak, 1.0))


class AudioRecorder:
    """
    Capture surface backed by a sounddevice input stream.

    Commands (``begin_capture``, ``end_capture``, ``discard_capture``) come from
    the event loop. Results are reported as events through ``publish``, which
    is also called from the PortAudio callback thread and so must be
    thread-safe.
    """

    def __init__(
        self,
        config: "AudioConfig",
        publish: Callable[[CaptureEvent], None],
    ) -> None:
        self._config = config
        self._publish = publish
        self._stream: Any = None
        self._recording = False
        self._started_at = 0.0
        self._blocks: list["NDArray[np.float32]"] = []
        self._lock = threading.Lock()

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._recording

    def begin_capture(self) -> None:
        with self._lock:
            if self._recording:
                return
            self._recording = True
            self._started_at = time.time()
            self._blocks = []

        try:
            self._start_stream()
        except Exception as e:
            logger.error("Failed to open input stream: %s", e)
            with self._lock:
                self._recording = False
            self._publish(CaptureFailedEvent(f"Microphone error: {e}"))
            return
        self._publish(CaptureStartedEvent())

    def end_capture(self) -> None:
        blocks = self._finish()
        if blocks is None:
            return

        samples = to_int16(np.concatenate(blocks)) if blocks else np.zeros(0, dtype=np.int16)
        if samples.size == 0:
            self._publish(CaptureFailedEvent("No audio captured"))
            return

        duration = samples.size / self._config.sample_rate
        wav = encode_wav(samples, self._config.sample_rate)
        logger.info("Captured %.2fs of audio (%d bytes)", duration, len(wav))
        self._publish(
            AudioReadyEvent(
                audio_base64=base64.b64encode(wav).decode("ascii"),
                duration_seconds=duration,
            )
        )

    def discard_capture(self) -> None:
        if self._finish() is not None:
            logger.info("Discarded captured audio")

    def _finish(self) -> list["NDArray[np.float32]"] | None:
        with self._lock:
            if not self._recording:
                return None
            self._recording = False
            blocks, self._blocks = self._blocks, []
        self._stop_stream()
        return blocks

    def _start_stream(self) -> None:
        import sounddevice as sd

        self._stream = sd.InputStream(
            samplerate=self._config.sample_rate,
            channels=self._config.channels,
            dtype="float32",
            blocksize=self._config.block_size,
            device=self._config.device_id,
            callback=self._audio_callback,
        )
        self._stream.start()

    def _stop_stream(self) -> None:
        if self._stream:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning("Error stopping audio stream: %s", e)
            finally:
                self._stream = None

    def _audio_callback(
        self,
        indata: "NDArray[np.float32]",
        frames: int,
        time_info: Any,
        status: Any,
    ) -> None:
        if status:
            logger.warning("Audio callback status: %s", status)

        audio = indata[:, FIRST_CHANNEL_INDEX].astype(np.float32, copy=True)
        self._process_audio_block(audio)

    def _process_audio_block(self, audio: "NDArray[np.float32]") -> None:
        with self._lock:
            if not self._recording:
                return
            self._blocks.append(audio)
        self._publish(audio_level(audio))
