"""Kit Sample Editor — Sample Pipeline

Turns a sample's editable buffer plus its parameters into the processed
buffer that gets packed into the bank. The chain is fixed:

    normalize → trim silence → (dither) → narrow to int16

Everything works on a wide int64 copy so gain above 0 dB can overshoot
until the final clamp.
"""
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from constants import (SILENCE_THRESHOLD, FRAME_SAMPLES, DITHER_NOISE_LEVEL)
from sample_editor.pcm import round_half_up, to_int_buffer, to_int16_buffer


@dataclass
class PipelineResult:
    samples: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int16))
    untrimmed_length: int = 0


# =============================================================================
# Stages
# =============================================================================

def normalize(buf: np.ndarray, volume_db: float) -> np.ndarray:
    """Peak-normalize to full scale, then apply volume_db relative to it."""
    if len(buf) == 0:
        return buf
    neg = buf < 0
    scaled = np.where(neg, buf / -32768.0, buf / 32767.0)
    peak = float(np.max(np.abs(scaled)))
    if peak == 0:
        return buf
    gain = 10.0 ** (volume_db / 20.0)
    return round_half_up(buf * gain / peak)


def head_pos(buf: np.ndarray) -> int:
    """Index of the first non-silent sample, len(buf) if none."""
    loud = np.flatnonzero(np.abs(buf) >= SILENCE_THRESHOLD)
    return int(loud[0]) if len(loud) else len(buf)


def tail_pos(buf: np.ndarray) -> int:
    """Index of the last non-silent sample, 0 if none."""
    loud = np.flatnonzero(np.abs(buf) >= SILENCE_THRESHOLD)
    return int(loud[-1]) if len(loud) else 0


def trim_samples(buf: np.ndarray, trim: int) -> Tuple[np.ndarray, int]:
    """Cut leading/trailing silence and `trim` frames off the end.

    Returns (trimmed, untrimmed_length). The result is zero-padded to one
    full frame since shorter samples cannot be played.
    """
    head = head_pos(buf)
    tail = tail_pos(buf)
    if head > tail:
        return np.zeros(0, dtype=np.int64), 0

    untrimmed_length = tail + 1 - head
    adjusted_tail = max(head, tail - trim * FRAME_SAMPLES)
    trimmed = np.array(buf[head:adjusted_tail + 1], dtype=np.int64)

    if len(trimmed) < FRAME_SAMPLES:
        padded = np.zeros(FRAME_SAMPLES, dtype=np.int64)
        padded[:len(trimmed)] = trimmed
        trimmed = padded
    return trimmed, untrimmed_length


def apply_dither(buf: np.ndarray,
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """Triangular-PDF dither: difference of two chained uniform draws."""
    if len(buf) == 0:
        return buf
    if rng is None:
        rng = np.random.default_rng()
    draws = rng.random(len(buf) + 1)
    noise = round_half_up((draws[:-1] - draws[1:]) * DITHER_NOISE_LEVEL)
    return buf + noise


# =============================================================================
# Full chain
# =============================================================================

def run_pipeline(original: np.ndarray, volume_db: float = 0.0, trim: int = 0,
                 dither: bool = False,
                 rng: Optional[np.random.Generator] = None) -> PipelineResult:
    """Run the full chain. Pure: `original` is never modified."""
    buf = normalize(to_int_buffer(original), volume_db)
    trimmed, untrimmed_length = trim_samples(buf, trim)
    if dither:
        trimmed = apply_dither(trimmed, rng)
    return PipelineResult(samples=to_int16_buffer(trimmed),
                          untrimmed_length=untrimmed_length)
