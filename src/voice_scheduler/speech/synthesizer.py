"""Text-to-speech using Piper voices."""

from __future__ import annotations

import asyncio
import io
import wave
from pathlib import Path
from typing import Any

from piper import PiperVoice, SynthesisConfig

from .config import PIPER_LENGTH_SCALE, PIPER_VOICE_PATH
from .exceptions import SynthesisError
from .interfaces import SynthesisService
from .logging_utils import get_logger

logger = get_logger(__name__)


class PiperSynthesizer(SynthesisService):
    """Synthesizes replies locally with a Piper ONNX voice."""

    def __init__(
        self,
        voice_path: Path | str = PIPER_VOICE_PATH,
        length_scale: float = PIPER_LENGTH_SCALE,
    ) -> None:
        """
        Initialize the synthesizer.

        Args:
            voice_path: Path to the ``.onnx`` voice (its ``.onnx.json`` config
                must sit next to it)
            length_scale: Speaking rate, values above 1.0 speak slower
        """
        self.voice_path = Path(voice_path)
        self.length_scale = length_scale
        self._voice: Any | None = None

    def _load_voice(self) -> Any:
        if self._voice is not None:
            return self._voice
        if not self.voice_path.exists():
            raise SynthesisError(f"Piper voice model not found: {self.voice_path}")

        logger.debug(f"Loading Piper voice '{self.voice_path.name}'")
        try:
            self._voice = PiperVoice.load(str(self.voice_path))
        except Exception as e:
            raise SynthesisError(f"Failed to load Piper voice: {e}") from e
        return self._voice

    def _synthesize_sync(self, text: str) -> bytes:
        voice = self._load_voice()
        buffer = io.BytesIO()
        with wave.open(buffer, "wb") as wav_file:
            voice.synthesize_wav(
                text, wav_file, syn_config=SynthesisConfig(length_scale=self.length_scale)
            )
        return buffer.getvalue()

    async def synthesize(self, text: str) -> bytes:
        """
        Convert text to a WAV file.

        Args:
            text: Text to speak

        Returns:
            WAV file bytes

        Raises:
            SynthesisError: If the text is empty or Piper fails
        """
        if not text or not text.strip():
            raise SynthesisError("Nothing to synthesize")

        loop = asyncio.get_running_loop()
        try:
            audio = await loop.run_in_executor(None, self._synthesize_sync, text)
        except SynthesisError:
            raise
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
            raise SynthesisError(f"Speech synthesis failed: {e}") from e

        logger.debug(f"🔊 Synthesized {len(text)} chars into {len(audio)} bytes")
        return audio
