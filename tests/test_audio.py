"""Tests for audio capture."""

from __future__ import annotations

import base64
import io
from unittest.mock import patch

import numpy as np
from scipy.io.wavfile import read as wav_read

from murmur.audio import AudioDevice, AudioRecorder, audio_level, encode_wav, to_int16
from murmur.config import AudioConfig
from murmur.types import (
    AudioLevelEvent,
    AudioReadyEvent,
    CaptureFailedEvent,
    CaptureStartedEvent,
)


def make_recorder() -> tuple[AudioRecorder, list]:
    events: list = []
    recorder = AudioRecorder(AudioConfig(), events.append)
    return recorder, events


class TestHelpers:
    """Tests for the audio helpers."""

    def test_to_int16_clips(self) -> None:
        """Test float samples are clipped and scaled."""
        samples = to_int16(np.array([-2.0, 0.0, 0.5, 2.0], dtype=np.float32))
        assert samples.dtype == np.int16
        assert samples.tolist() == [-32767, 0, 16383, 32767]

    def test_encode_wav(self, sample_audio_16k) -> None:
        """Test WAV encoding keeps rate and samples."""
        rate, data = wav_read(io.BytesIO(encode_wav(sample_audio_16k, 16000)))
        assert rate == 16000
        assert np.array_equal(data, sample_audio_16k)

    def test_audio_level(self) -> None:
        """Test RMS and peak of a block."""
        level = audio_level(np.array([0.5, -0.5], dtype=np.float32))
        assert abs(level.average - 0.5) < 1e-6
        assert level.peak == 0.5

    def test_silence_level(self) -> None:
        """Test silence has a near-zero level."""
        level = audio_level(np.zeros(480, dtype=np.float32))
        assert level.average < 1e-5
        assert level.peak == 0.0

    def test_device_str(self) -> None:
        """Test device display text."""
        assert str(AudioDevice(2, "USB Mic", is_default=True)) == "[2] USB Mic (DEFAULT)"


@patch.object(AudioRecorder, "_stop_stream")
@patch.object(AudioRecorder, "_start_stream")
class TestAudioRecorder:
    """Tests for AudioRecorder with the input stream mocked out."""

    def test_capture(self, start_stream, stop_stream) -> None:
        """Test captured blocks are delivered as one WAV buffer."""
        recorder, events = make_recorder()

        recorder.begin_capture()
        assert recorder.is_recording
        block = np.full(1600, 0.25, dtype=np.float32)
        recorder._process_audio_block(block)
        recorder._process_audio_block(block)
        recorder.end_capture()

        start_stream.assert_called_once()
        stop_stream.assert_called_once()
        assert not recorder.is_recording
        assert isinstance(events[0], CaptureStartedEvent)
        assert all(isinstance(e, AudioLevelEvent) for e in events[1:3])

        ready = events[-1]
        assert isinstance(ready, AudioReadyEvent)
        assert abs(ready.duration_seconds - 0.2) < 1e-9
        rate, data = wav_read(io.BytesIO(base64.b64decode(ready.audio_base64)))
        assert rate == 16000
        assert data.size == 3200

    def test_no_audio(self, start_stream, stop_stream) -> None:
        """Test stopping without audio reports a failure."""
        recorder, events = make_recorder()

        recorder.begin_capture()
        recorder.end_capture()

        assert events[-1] == CaptureFailedEvent("No audio captured")

    def test_discard(self, start_stream, stop_stream) -> None:
        """Test discarded audio is never delivered."""
        recorder, events = make_recorder()

        recorder.begin_capture()
        recorder._process_audio_block(np.ones(160, dtype=np.float32))
        recorder.discard_capture()
        recorder.end_capture()

        assert not any(isinstance(e, (AudioReadyEvent, CaptureFailedEvent)) for e in events)
        stop_stream.assert_called_once()

    def test_blocks_ignored_when_idle(self, start_stream, stop_stream) -> None:
        """Test blocks outside a capture are dropped."""
        recorder, events = make_recorder()

        recorder._process_audio_block(np.ones(160, dtype=np.float32))

        assert events == []

    def test_begin_twice(self, start_stream, stop_stream) -> None:
        """Test a second begin while recording is ignored."""
        recorder, events = make_recorder()

        recorder.begin_capture()
        recorder.begin_capture()

        start_stream.assert_called_once()
        assert len(events) == 1

    def test_stream_failure(self, start_stream, stop_stream) -> None:
        """Test a microphone error is reported as an event."""
        start_stream.side_effect = OSError("device busy")
        recorder, events = make_recorder()

        recorder.begin_capture()

        assert events == [CaptureFailedEvent("Microphone error: device busy")]
        assert not recorder.is_recording
