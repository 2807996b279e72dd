"""Microphone capture and speaker playback through PyAudio."""

import asyncio
import io
import time
import wave
from typing import Any

import numpy as np
import pyaudio

from .config import (
    DEFAULT_SAMPLE_RATE,
    FRAME_SAMPLES,
    LOCAL_CAPTURE_CHANNELS,
    PLAYBACK_CHUNK_FRAMES,
)
from .exceptions import AudioCaptureError, MicrophoneNotFoundError, PlaybackError
from .logging_utils import get_logger

logger = get_logger(__name__)


class AudioCapture:
    """Manages microphone input and audio streaming."""

    def __init__(
        self,
        sample_rate: int | None = None,
        chunk_size: int | None = None,
        channels: int = LOCAL_CAPTURE_CHANNELS,
    ) -> None:
        """
        Initialize audio capture with specified parameters.

        Args:
            sample_rate: Audio sample rate in Hz
            chunk_size: Number of samples per chunk
            channels: Number of input channels to request
        """
        self.sample_rate = sample_rate if sample_rate is not None else DEFAULT_SAMPLE_RATE
        self.chunk_size = chunk_size if chunk_size is not None else FRAME_SAMPLES
        self.channels = channels

        if self.sample_rate <= 0:
            raise ValueError("Sample rate must be positive")
        if self.chunk_size <= 0:
            raise ValueError("Chunk size must be positive")
        self._capturing = False
        self._pyaudio: Any | None = None
        self._stream: Any | None = None

        # Debug tracking
        self._audio_chunks_received = 0
        self._last_audio_level_log = 0.0
        self._audio_level_log_interval = 5.0  # seconds

    def start_capture(self) -> None:
        """Start capturing audio from microphone."""
        if self._capturing:
            raise AudioCaptureError("Already capturing")

        try:
            self._pyaudio = pyaudio.PyAudio()
            logger.debug("PyAudio initialized successfully")

            try:
                device_info = self._pyaudio.get_default_input_device_info()
                logger.debug(
                    f"🎤 Default input device found: {device_info.get('name', 'Unknown')}"
                )
            except OSError as e:
                logger.error("❌ No default input device found")
                raise MicrophoneNotFoundError("No microphone found") from e

            try:
                self._stream = self._pyaudio.open(
                    format=pyaudio.paInt16,
                    channels=self.channels,
                    rate=self.sample_rate,
                    input=True,
                    frames_per_buffer=self.chunk_size,
                )
                self._stream.start_stream()
                self._capturing = True
                logger.debug(
                    f"✅ Audio stream started successfully "
                    f"(sample_rate: {self.sample_rate}, chunk_size: {self.chunk_size})"
                )
                self._audio_chunks_received = 0
                self._last_audio_level_log = time.time()

            except OSError as e:
                if "Permission denied" in str(e):
                    logger.error("❌ Microphone permission denied")
                    raise AudioCaptureError("Permission denied") from e
                logger.error(f"❌ Failed to open audio stream: {e}")
                raise AudioCaptureError(f"Failed to open audio stream: {e}") from e

        except Exception:
            if self._stream:
                self._stream.close()
                self._stream = None
            if self._pyaudio:
                self._pyaudio.terminate()
                self._pyaudio = None
            raise

    def stop_capture(self) -> None:
        """Stop capturing audio."""
        if not self._capturing:
            return

        self._capturing = False

        if self._stream:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None

        if self._pyaudio:
            self._pyaudio.terminate()
            self._pyaudio = None

    def _read_chunk(self) -> bytes:
        return self._stream.read(self.chunk_size, exception_on_overflow=False)

    async def get_audio_chunk(self) -> bytes | None:
        """
        Get the next audio chunk.

        Returns:
            Audio chunk data or None if capture is stopped
        """
        if not self._capturing or self._stream is None or not self._stream.is_active():
            return None

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._read_chunk)
        except OSError as e:
            logger.error(f"❌ Failed to read audio from stream: {e}")
            raise AudioCaptureError("Failed to read audio") from e

        if not data:
            return None

        self._audio_chunks_received += 1
        current_time = time.time()
        if current_time - self._last_audio_level_log >= self._audio_level_log_interval:
            logger.trace(
                f"🔊 Chunks: {self._audio_chunks_received}, "
                f"current level: {self._calculate_audio_level(data):.3f}, "
                f"chunk size: {len(data)} bytes"
            )
            self._last_audio_level_log = current_time
        return data

    def is_capturing(self) -> bool:
        """
        Check if currently capturing audio.

        Returns:
            True if capturing, False otherwise
        """
        return self._capturing

    def _calculate_audio_level(self, audio_data: bytes) -> float:
        """
        Calculate the audio level (RMS) of the given audio data.

        Args:
            audio_data: Raw audio data bytes

        Returns:
            Audio level as a float between 0.0 and 1.0
        """
        usable = len(audio_data) - len(audio_data) % 2
        if usable == 0:
            return 0.0
        samples = np.frombuffer(audio_data[:usable], dtype="<i2").astype(np.float64)
        rms = float(np.sqrt(np.mean(samples**2)))
        # 16-bit audio max value is 32767
        return min(rms / 32767.0, 1.0)


class AudioPlayer:
    """Plays WAV data on the default output device."""

    def __init__(self, chunk_frames: int = PLAYBACK_CHUNK_FRAMES) -> None:
        self.chunk_frames = chunk_frames

    def _play_sync(self, wav_data: bytes) -> None:
        audio = pyaudio.PyAudio()
        stream = None
        try:
            with io.BytesIO(wav_data) as buffer, wave.open(buffer, "rb") as wav_file:
                stream = audio.open(
                    format=audio.get_format_from_width(wav_file.getsampwidth()),
                    channels=wav_file.getnchannels(),
                    rate=wav_file.getframerate(),
                    output=True,
                )
                data = wav_file.readframes(self.chunk_frames)
                while data:
                    stream.write(data)
                    data = wav_file.readframes(self.chunk_frames)
        finally:
            if stream is not None:
                stream.stop_stream()
                stream.close()
            audio.terminate()

    async def play(self, wav_data: bytes) -> None:
        """
        Play a WAV file and wait until it has finished.

        Args:
            wav_data: WAV file bytes

        Raises:
            PlaybackError: If the data is not a WAV file or the device fails
        """
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._play_sync, wav_data)
        except (OSError, wave.Error, EOFError) as e:
            logger.error(f"❌ Playback failed: {e}")
            raise PlaybackError(f"Playback failed: {e}") from e
        logger.debug(f"🔈 Played {len(wav_data)} bytes of audio")
