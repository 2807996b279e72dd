"""Configuration constants for voice capture, segmentation and speech I/O."""

from pathlib import Path

# Voice Platform PCM format (decoded Opus from the voice channel)
DEFAULT_SAMPLE_RATE = 48000  # Hz
DEFAULT_CHANNELS = 2  # interleaved stereo
SAMPLE_WIDTH = 2  # bytes, signed 16-bit little-endian
FRAME_SAMPLES = 960  # samples per channel in one 20ms platform frame

# Voice Activity Segmenter
# A frame counts as speech when its mean absolute sample exceeds this value.
AMPLITUDE_THRESHOLD = 100
# Trailing silence that closes an utterance.
SILENCE_DURATION = 2.0  # seconds
# Shorter accumulations (trailing silence included) are dropped.
MIN_UTTERANCE_DURATION = 0.3  # seconds
# Minimum gap between two finalized utterances of the same user.
PROCESSING_COOLDOWN = 5.0  # seconds

# Silence Trimmer
TRIM_RMS_THRESHOLD = 500  # RMS of a window above which it counts as speech
TRIM_WINDOW_SAMPLES = 960  # samples per RMS window (20ms at 48kHz)
TRIM_GUARD_SECONDS = 0.5  # padding kept around the detected speech

# Transcription
TRANSCRIBER_SAMPLE_RATE = 16000  # Hz, what Whisper expects
TRANSCRIBER_MODEL_SIZE = "small"
TRANSCRIBER_DEVICE = "cpu"
TRANSCRIBER_COMPUTE_TYPE = "int8"
TRANSCRIBER_LANGUAGE = "en"
TRANSCRIPTION_MAX_ATTEMPTS = 2  # total attempts on rate limiting
TRANSCRIPTION_BACKOFF_BASE = 2.0  # seconds, delay = base ** attempt
MAX_AUDIO_FILE_SIZE = 25 * 1024 * 1024  # 25MB

# Speech Synthesis
PIPER_VOICE_PATH = Path.home() / ".local" / "share" / "piper" / "en_US-amy-medium.onnx"
PIPER_LENGTH_SCALE = 1.0  # >1 speaks slower

# Local playback / capture
PLAYBACK_CHUNK_FRAMES = 1024  # frames written to the output stream per call
LOCAL_CAPTURE_CHANNELS = 1  # most microphones are mono
