"""Kit Sample Editor — PCM helpers

Integer PCM conversions shared by the resampler, the DSP pipeline and the
bank codec. All rounding is half-up so that the nibble quantizer maps a
decoded bank sample back onto the nibble it came from.
"""
import numpy as np

from constants import INT16_MIN, INT16_MAX


def round_half_up(values):
    """Round to the nearest integer, ties toward +inf. Returns int64."""
    return np.floor(np.asarray(values, dtype=np.float64) + 0.5).astype(np.int64)


def to_int_buffer(samples: np.ndarray) -> np.ndarray:
    """Widen int16 samples to int64 for processing."""
    return np.asarray(samples, dtype=np.int64).copy()


def to_int16_buffer(buf: np.ndarray) -> np.ndarray:
    """Narrow a wide buffer back to int16, clamping out-of-range values."""
    return np.clip(buf, INT16_MIN, INT16_MAX).astype(np.int16)


def float_to_int16(pcm: np.ndarray) -> np.ndarray:
    """Convert float PCM (nominally -1..1) to int16 via round(x * 32767)."""
    return to_int16_buffer(round_half_up(np.asarray(pcm, dtype=np.float64) * INT16_MAX))
