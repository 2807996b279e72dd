"""Silence trimming for finalized utterances."""

import numpy as np

from .config import TRIM_GUARD_SECONDS, TRIM_RMS_THRESHOLD, TRIM_WINDOW_SAMPLES
from .logging_utils import get_logger
from .models import PcmFormat

logger = get_logger(__name__)


def window_rms(samples: np.ndarray, window_samples: int) -> np.ndarray:
    """
    Compute the RMS energy of consecutive windows of samples.

    The last window may be shorter than ``window_samples``.

    Args:
        samples: Interleaved 16-bit samples
        window_samples: Number of samples per window

    Returns:
        One RMS value per window
    """
    if samples.size == 0:
        return np.zeros(0, dtype=np.float64)

    values = samples.astype(np.float64)
    n_windows = -(-values.size // window_samples)
    padded = np.zeros(n_windows * window_samples, dtype=np.float64)
    padded[: values.size] = values
    squares = np.square(padded).reshape(n_windows, window_samples).sum(axis=1)

    counts = np.full(n_windows, window_samples, dtype=np.float64)
    counts[-1] = values.size - (n_windows - 1) * window_samples
    return np.sqrt(squares / counts)


def trim_silence(
    pcm: bytes,
    pcm_format: PcmFormat | None = None,
    threshold: float = TRIM_RMS_THRESHOLD,
    window_samples: int = TRIM_WINDOW_SAMPLES,
    guard_seconds: float = TRIM_GUARD_SECONDS,
) -> bytes:
    """
    Remove leading and trailing low-energy audio, keeping a guard interval.

    The buffer is cut into windows of ``window_samples`` interleaved samples
    and the region from the first to the last window whose RMS exceeds
    ``threshold`` is kept, widened by ``guard_seconds`` worth of windows on
    each side and clamped to the buffer. When no window is loud enough the
    whole buffer is returned unchanged.

    Args:
        pcm: Interleaved signed 16-bit little-endian PCM
        pcm_format: Format of ``pcm`` (defaults to 48kHz stereo)
        threshold: RMS level separating speech from silence
        window_samples: Samples per RMS window
        guard_seconds: Padding kept around the speech region

    Returns:
        Trimmed PCM in the same format
    """
    pcm_format = pcm_format or PcmFormat()
    usable = len(pcm) - len(pcm) % pcm_format.frame_bytes
    if usable <= 0:
        return b""

    # Windows are aligned to whole interleaved frames
    window_samples = max(
        pcm_format.channels,
        window_samples - window_samples % pcm_format.channels,
    )
    samples = np.frombuffer(pcm[:usable], dtype="<i2")
    rms = window_rms(samples, window_samples)

    loud = np.flatnonzero(rms > threshold)
    if loud.size == 0:
        logger.trace(f"No window above RMS {threshold}, keeping {usable} bytes as-is")
        return pcm[:usable]

    frames_per_window = window_samples // pcm_format.channels
    guard_windows = int(guard_seconds * pcm_format.sample_rate / frames_per_window)
    first = max(0, int(loud[0]) - guard_windows)
    last = min(rms.size - 1, int(loud[-1]) + guard_windows)

    start = first * window_samples * pcm_format.sample_width
    end = min(usable, (last + 1) * window_samples * pcm_format.sample_width)
    trimmed = pcm[start:end]

    logger.debug(
        f"🎵 Trimmed audio: {pcm_format.duration_of(len(trimmed)) * 1000:.0f}ms "
        f"(was {pcm_format.duration_of(usable) * 1000:.0f}ms)"
    )
    return trimmed
