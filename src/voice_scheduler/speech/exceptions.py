"""Custom exceptions for voice capture and speech services."""


class SpeechError(Exception):
    """Base exception for speech errors."""

    pass


class AudioCaptureError(SpeechError):
    """Exception raised for audio capture related errors."""

    pass


class MicrophoneNotFoundError(AudioCaptureError):
    """Exception raised when no microphone is found."""

    pass


class TranscriptionError(SpeechError):
    """Exception raised for transcription related errors."""

    pass


class RateLimitedError(TranscriptionError):
    """Exception raised when the transcription backend asks us to slow down."""

    def __init__(self, message: str = "Rate limited", retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class SynthesisError(SpeechError):
    """Exception raised when text cannot be turned into audio."""

    pass


class PlaybackError(SpeechError):
    """Exception raised when audio cannot be played back."""

    pass
