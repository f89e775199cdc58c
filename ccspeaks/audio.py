"""
PCM16 helpers and the text-to-DFPWM transcoding pipeline.

Pipeline (one request):
  speech engine i16 PCM @ native rate
    -> s / 32767.0                 (normalize)
    -> Resampler native -> 48 kHz  (linear, phase accumulator)
    -> floor(x * 127.0)            (quantize, toward -inf)
    -> DfpwmEncoder                (1 bit per sample, 8 per byte)
    -> raw bytes, no header

Every stage is a lazy iterator, so memory stays flat apart from the
engine's PCM buffer and the final payload.
"""
from __future__ import annotations

import io
import logging
import math
import wave
from typing import Iterable, Iterator, Sequence

import numpy as np

from .dfpwm import DfpwmEncoder
from .resample import Resampler

logger = logging.getLogger(__name__)

I16_MAX = 32767
TARGET_SAMPLE_RATE = 48000


def pcm16_samples(pcm: bytes) -> np.ndarray:
    """Decode PCM16-LE bytes to an int16 array.  A trailing odd byte is dropped."""
    if len(pcm) % 2:
        pcm = pcm[:-1]
    return np.frombuffer(pcm, dtype="<i2")


def wav_to_pcm16(data: bytes) -> tuple[np.ndarray, int]:
    """Decode a mono 16-bit WAV blob.  Returns (samples, sample_rate)."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            channels = wav.getnchannels()
            width = wav.getsampwidth()
            rate = wav.getframerate()
            frames = wav.readframes(wav.getnframes())
    except (wave.Error, EOFError) as e:
        raise ValueError(f"Malformed WAV data: {e}") from e

    if width != 2:
        raise ValueError(f"Expected 16-bit WAV, got {width * 8}-bit")
    samples = pcm16_samples(frames)
    if channels > 1:
        # Engines are expected to be mono; keep the first channel if not.
        logger.warning("WAV has %d channels, keeping channel 0", channels)
        samples = samples[::channels]
    return samples, rate


def normalize(samples: Iterable[int]) -> Iterator[float]:
    """i16 -> float in about [-1, 1]."""
    for s in samples:
        yield s / 32767.0


def quantize(samples: Iterable[float]) -> Iterator[int]:
    """float -> 8-bit level, truncating toward negative infinity."""
    for x in samples:
        yield math.floor(x * 127.0)


def transcode(
    samples: Iterable[int],
    sample_rate: int,
    *,
    target_rate: int = TARGET_SAMPLE_RATE,
    corrective: bool = False,
) -> DfpwmEncoder:
    """Lazy i16 PCM -> DFPWM byte stream."""
    resampled = Resampler(normalize(samples), sample_rate, target_rate, corrective=corrective)
    return DfpwmEncoder(quantize(resampled))


def transcode_pcm16(
    samples: Sequence[int] | np.ndarray,
    sample_rate: int,
    *,
    target_rate: int = TARGET_SAMPLE_RATE,
    corrective: bool = False,
) -> bytes:
    """Transcode a whole PCM buffer to a DFPWM payload."""
    if isinstance(samples, np.ndarray):
        # Plain ints keep the per-sample loop off numpy scalars.
        samples = samples.tolist()
    return bytes(transcode(samples, sample_rate, target_rate=target_rate, corrective=corrective))


def pcm16_duration_ms(n_samples: int, sample_rate: int) -> float:
    """Length of *n_samples* at *sample_rate*, in milliseconds."""
    if sample_rate <= 0:
        return 0.0
    return n_samples / sample_rate * 1000.0
