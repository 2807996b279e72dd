"""Voice capture, segmentation and speech I/O for the meeting scheduler."""

from .models import PcmFormat, RecordingSession, SegmenterState, Utterance
from .segmenter import SegmenterConfig, VoiceActivitySegmenter
from .trimmer import trim_silence

__all__ = [
    "PcmFormat",
    "RecordingSession",
    "SegmenterState",
    "Utterance",
    "SegmenterConfig",
    "VoiceActivitySegmenter",
    "trim_silence",
]
