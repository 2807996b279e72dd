"""Framing of raw platform PCM into WAV files for the transcriber."""

import io
import wave

import numpy as np

from .config import TRANSCRIBER_SAMPLE_RATE
from .logging_utils import get_logger
from .models import PcmFormat

logger = get_logger(__name__)


def to_mono(samples: np.ndarray, channels: int) -> np.ndarray:
    """
    Downmix interleaved samples to mono by averaging channels.

    Args:
        samples: Interleaved 16-bit samples
        channels: Number of interleaved channels

    Returns:
        Mono 16-bit samples
    """
    if channels == 1:
        return samples
    usable = samples.size - samples.size % channels
    frames = samples[:usable].reshape(-1, channels).astype(np.int32)
    return np.mean(frames, axis=1).astype(np.int16)


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """
    Simple audio resampling using linear interpolation.

    Args:
        samples: Mono audio samples
        source_rate: Original sample rate
        target_rate: Target sample rate

    Returns:
        Resampled audio samples
    """
    if source_rate == target_rate or samples.size == 0:
        return samples

    new_length = max(1, int(samples.size * target_rate / source_rate))
    old_indices = np.linspace(0, samples.size - 1, new_length)
    new_samples = np.interp(old_indices, np.arange(samples.size), samples)
    return new_samples.astype(np.int16)


def pcm_to_wav(
    pcm: bytes,
    pcm_format: PcmFormat | None = None,
    target_sample_rate: int = TRANSCRIBER_SAMPLE_RATE,
) -> bytes:
    """
    Wrap raw PCM in a mono WAV container at the transcriber's sample rate.

    Args:
        pcm: Interleaved signed 16-bit little-endian PCM
        pcm_format: Format of ``pcm`` (defaults to 48kHz stereo)
        target_sample_rate: Sample rate of the produced WAV

    Returns:
        WAV file data as bytes
    """
    pcm_format = pcm_format or PcmFormat()
    usable = len(pcm) - len(pcm) % pcm_format.frame_bytes
    samples = np.frombuffer(pcm[:usable], dtype="<i2")

    mono = to_mono(samples, pcm_format.channels)
    mono = resample(mono, pcm_format.sample_rate, target_sample_rate)

    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(target_sample_rate)
        wav_file.writeframes(mono.astype("<i2").tobytes())

    logger.trace(
        f"Framed {usable} bytes of {pcm_format.sample_rate}Hz/{pcm_format.channels}ch "
        f"PCM as {target_sample_rate}Hz mono WAV"
    )
    return buffer.getvalue()


def wav_to_pcm(wav_data: bytes) -> tuple[bytes, PcmFormat]:
    """
    Unwrap a WAV file into raw frames and their format.

    Args:
        wav_data: WAV file bytes

    Returns:
        Tuple of (raw PCM, format)
    """
    with io.BytesIO(wav_data) as buffer, wave.open(buffer, "rb") as wav_file:
        pcm_format = PcmFormat(
            sample_rate=wav_file.getframerate(),
            channels=wav_file.getnchannels(),
            sample_width=wav_file.getsampwidth(),
        )
        return wav_file.readframes(wav_file.getnframes()), pcm_format
