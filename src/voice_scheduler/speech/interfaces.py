"""Abstract interfaces for the voice platform and speech backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable

SpeakingStartCallback = Callable[[str, str], Awaitable[None]]


class VoicePlatform(ABC):
    """Abstract interface for the chat/voice platform the bot lives on."""

    @abstractmethod
    def subscribe(self, user_id: str) -> AsyncIterator[bytes]:
        """
        Subscribe to a user's decoded audio.

        Args:
            user_id: User to listen to

        Returns:
            Async iterator of fixed-size interleaved 16-bit PCM frames that
            finishes when the subscription ends
        """
        pass

    @abstractmethod
    def on_speaking_start(self, callback: SpeakingStartCallback) -> None:
        """
        Register a coroutine called with ``(user_id, channel_id)`` whenever
        a user starts speaking.
        """
        pass

    @abstractmethod
    async def play(self, audio: bytes, channel_id: str) -> None:
        """
        Play an audio resource in a voice channel and wait for it to finish.

        Raises:
            PlaybackError: If playback fails
        """
        pass

    @abstractmethod
    async def send_text(self, channel_id: str, message: str) -> None:
        """Post a message to the text channel paired with ``channel_id``."""
        pass

    @abstractmethod
    async def leave(self, channel_id: str) -> None:
        """Disconnect from a voice channel."""
        pass


class TranscriptionService(ABC):
    """Abstract interface for speech-to-text."""

    @abstractmethod
    async def transcribe(self, audio: bytes) -> str:
        """
        Transcribe an encoded audio file.

        Args:
            audio: WAV file bytes

        Returns:
            Transcribed text (may be empty)

        Raises:
            RateLimitedError: If the backend is throttling requests
            TranscriptionError: For any other failure
        """
        pass


class SynthesisService(ABC):
    """Abstract interface for text-to-speech."""

    @abstractmethod
    async def synthesize(self, text: str) -> bytes:
        """
        Convert text to speech.

        Args:
            text: Text to speak

        Returns:
            WAV file bytes

        Raises:
            SynthesisError: If synthesis fails
        """
        pass
