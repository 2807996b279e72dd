"""Data models for voice capture and segmentation."""

import time
from dataclasses import dataclass, field
from enum import Enum

from .config import DEFAULT_CHANNELS, DEFAULT_SAMPLE_RATE, SAMPLE_WIDTH


@dataclass(frozen=True)
class PcmFormat:
    """Describes interleaved signed 16-bit little-endian PCM."""

    sample_rate: int = DEFAULT_SAMPLE_RATE
    channels: int = DEFAULT_CHANNELS
    sample_width: int = SAMPLE_WIDTH

    @property
    def frame_bytes(self) -> int:
        """Bytes in one interleaved frame (one sample for every channel)."""
        return self.channels * self.sample_width

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.frame_bytes

    def duration_of(self, n_bytes: int) -> float:
        """Duration in seconds of ``n_bytes`` of audio in this format."""
        return n_bytes / self.bytes_per_second


class SegmenterState(str, Enum):
    """States of the per-user voice activity state machine."""

    IDLE = "idle"
    COLLECTING = "collecting"
    SILENCE_PENDING = "silence_pending"
    FINALIZING = "finalizing"


@dataclass
class RecordingSession:
    """Per-speaker recording state, kept across utterances."""

    user_id: str
    channel_id: str
    started_at: float = field(default_factory=time.monotonic)
    is_recording: bool = True
    last_processed_at: float | None = None
    state: SegmenterState = SegmenterState.IDLE
    silence_started_at: float | None = None
    dropped_frames: int = 0


@dataclass
class Utterance:
    """A finalized span of one user's speech, ready for transcription."""

    user_id: str
    channel_id: str
    audio: bytes
    pcm_format: PcmFormat
    captured_at: float

    @property
    def duration(self) -> float:
        return self.pcm_format.duration_of(len(self.audio))
