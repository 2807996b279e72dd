"""Whisper transcription functionality."""

from __future__ import annotations

import asyncio
import io
import re
import time
from typing import Any

import faster_whisper

from .config import (
    MAX_AUDIO_FILE_SIZE,
    TRANSCRIBER_COMPUTE_TYPE,
    TRANSCRIBER_DEVICE,
    TRANSCRIBER_LANGUAGE,
    TRANSCRIBER_MODEL_SIZE,
)
from .exceptions import TranscriptionError
from .interfaces import TranscriptionService
from .logging_utils import get_logger

logger = get_logger(__name__)


class WhisperTranscriber(TranscriptionService):
    """Uses faster-whisper library for local speech-to-text conversion."""

    def __init__(
        self,
        model_size: str = TRANSCRIBER_MODEL_SIZE,
        device: str = TRANSCRIBER_DEVICE,
        compute_type: str = TRANSCRIBER_COMPUTE_TYPE,
        language: str | None = TRANSCRIBER_LANGUAGE,
    ) -> None:
        """
        Initialize Whisper transcriber.

        Args:
            model_size: Size of Whisper model to use
            device: Device to use for inference ("cpu" or "cuda")
            compute_type: Compute type for inference ("int8", "float16", etc.)
            language: Spoken language hint, None to auto-detect
        """
        self.model_size = model_size
        self.device = device
        self.compute_type = compute_type
        self.language = language
        self._model: Any | None = None

    def _load_model(self) -> Any:
        """
        Load the Whisper model on first use.

        Returns:
            Loaded WhisperModel

        Raises:
            TranscriptionError: If the model cannot be loaded
        """
        if self._model is not None:
            return self._model

        logger.debug(
            f"Loading Whisper '{self.model_size}' on {self.device} ({self.compute_type})"
        )
        try:
            self._model = faster_whisper.WhisperModel(
                self.model_size,
                device=self.device,
                compute_type=self.compute_type,
            )
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            raise TranscriptionError(f"Failed to load Whisper model: {e}") from e

        logger.debug(f"Successfully loaded Whisper model '{self.model_size}'")
        return self._model

    def _post_process_text(self, text: str) -> str:
        """
        Post-process transcribed text for better formatting.

        Args:
            text: Raw transcribed text

        Returns:
            Cleaned and formatted text
        """
        processed = re.sub(r"\s+", " ", text or "").strip()
        if processed and processed[0].islower():
            processed = processed[0].upper() + processed[1:]
        return processed

    def _transcribe_sync(self, audio: bytes) -> str:
        model = self._load_model()
        segments, _ = model.transcribe(io.BytesIO(audio), language=self.language)
        # Segments are produced lazily; consume them here, off the event loop
        return "".join(segment.text for segment in segments)

    async def transcribe(self, audio: bytes) -> str:
        """
        Transcribe a WAV file.

        Args:
            audio: WAV file bytes

        Returns:
            Transcribed text, empty if nothing was said

        Raises:
            TranscriptionError: If the audio is unusable or Whisper fails
        """
        if not audio:
            raise TranscriptionError("No audio to transcribe")
        if len(audio) > MAX_AUDIO_FILE_SIZE:
            raise TranscriptionError(
                f"Audio data too large ({len(audio)} bytes > {MAX_AUDIO_FILE_SIZE})"
            )

        logger.debug(f"🎤 Transcriber processing {len(audio)} bytes of audio data")
        start_time = time.time()

        loop = asyncio.get_running_loop()
        try:
            raw_text = await loop.run_in_executor(None, self._transcribe_sync, audio)
        except TranscriptionError:
            raise
        except MemoryError as e:
            logger.error(f"Transcription memory error: {e}")
            raise TranscriptionError(f"Out of memory: {e}") from e
        except Exception as e:
            logger.error(f"Transcription failed: {e}")
            raise TranscriptionError(f"Transcription failed: {e}") from e

        text = self._post_process_text(raw_text)
        logger.trace(
            f"✅ Transcription: '{text}' ({len(audio)} bytes, "
            f"{time.time() - start_time:.2f}s)"
        )
        return text
