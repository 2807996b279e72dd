"""Tests for PyAudio capture and playback."""

import io
import wave
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from voice_scheduler.speech.audio_io import AudioCapture, AudioPlayer
from voice_scheduler.speech.exceptions import (
    AudioCaptureError,
    MicrophoneNotFoundError,
    PlaybackError,
)

PYAUDIO = "voice_scheduler.speech.audio_io.pyaudio.PyAudio"


def make_wav(frames: int = 2048) -> bytes:
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(22050)
        wav_file.writeframes(b"\x01\x00" * frames)
    return buffer.getvalue()


@pytest.mark.unit
class TestAudioCapture:
    """Test cases for microphone capture."""

    def test_defaults_match_platform_frames(self) -> None:
        """Test default rate and chunk size."""
        capture = AudioCapture()
        assert capture.sample_rate == 48000
        assert capture.chunk_size == 960
        assert capture.channels == 1
        assert not capture.is_capturing()

    def test_invalid_parameters(self) -> None:
        """Test that non-positive settings are rejected."""
        with pytest.raises(ValueError):
            AudioCapture(sample_rate=0)
        with pytest.raises(ValueError):
            AudioCapture(chunk_size=-1)

    def test_start_and_stop_capture(self) -> None:
        """Test that the stream is opened and released."""
        with patch(PYAUDIO) as mock_pyaudio_cls:
            mock_audio = mock_pyaudio_cls.return_value
            mock_audio.get_default_input_device_info.return_value = {"name": "Mic"}
            capture = AudioCapture()

            capture.start_capture()
            assert capture.is_capturing()
            assert mock_audio.open.call_args.kwargs["rate"] == 48000

            capture.stop_capture()

        assert not capture.is_capturing()
        mock_audio.open.return_value.close.assert_called_once()
        mock_audio.terminate.assert_called_once()

    def test_missing_microphone(self) -> None:
        """Test that no input device raises MicrophoneNotFoundError."""
        with patch(PYAUDIO) as mock_pyaudio_cls:
            mock_audio = mock_pyaudio_cls.return_value
            mock_audio.get_default_input_device_info.side_effect = OSError("none")

            with pytest.raises(MicrophoneNotFoundError):
                AudioCapture().start_capture()

        mock_audio.terminate.assert_called_once()

    def test_start_twice_raises(self) -> None:
        """Test that capture cannot be started twice."""
        with patch(PYAUDIO):
            capture = AudioCapture()
            capture.start_capture()
            with pytest.raises(AudioCaptureError, match="Already capturing"):
                capture.start_capture()

    @pytest.mark.asyncio
    async def test_get_audio_chunk_reads_stream(self) -> None:
        """Test that chunks are read from the open stream."""
        with patch(PYAUDIO) as mock_pyaudio_cls:
            stream = mock_pyaudio_cls.return_value.open.return_value
            stream.is_active.return_value = True
            stream.read.return_value = b"\x10\x00" * 960
            capture = AudioCapture()
            capture.start_capture()

            chunk = await capture.get_audio_chunk()

        assert chunk == b"\x10\x00" * 960
        stream.read.assert_called_with(960, exception_on_overflow=False)

    @pytest.mark.asyncio
    async def test_get_audio_chunk_when_stopped(self) -> None:
        """Test that nothing is returned before capture starts."""
        assert await AudioCapture().get_audio_chunk() is None

    def test_audio_level(self) -> None:
        """Test RMS level normalization."""
        capture = AudioCapture()
        full_scale = np.full(100, 32767, dtype="<i2").tobytes()
        assert capture._calculate_audio_level(full_scale) == pytest.approx(1.0)
        assert capture._calculate_audio_level(b"") == 0.0


@pytest.mark.unit
class TestAudioPlayer:
    """Test cases for speaker playback."""

    @pytest.mark.asyncio
    async def test_play_writes_all_frames(self) -> None:
        """Test that the whole WAV is written to the output stream."""
        with patch(PYAUDIO) as mock_pyaudio_cls:
            mock_audio = mock_pyaudio_cls.return_value
            stream = mock_audio.open.return_value

            await AudioPlayer(chunk_frames=1024).play(make_wav(2048))

        assert mock_audio.open.call_args.kwargs["rate"] == 22050
        assert stream.write.call_count == 2
        stream.close.assert_called_once()
        mock_audio.terminate.assert_called_once()

    @pytest.mark.asyncio
    async def test_invalid_wav_raises(self) -> None:
        """Test that non-WAV data is a playback error."""
        with patch(PYAUDIO):
            with pytest.raises(PlaybackError):
                await AudioPlayer().play(b"not a wav file")
