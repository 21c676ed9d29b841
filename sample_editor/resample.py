"""Kit Sample Editor — Resampler

Linear-interpolation rate conversion used for half-speed kits and pitch
changes. The hardware plays at a fixed rate, so pitch is changed by
resampling the sample data itself.
"""
import math

import numpy as np

from sample_editor.pcm import round_half_up, to_int16_buffer


def resample(samples: np.ndarray, in_rate: float, out_rate: float) -> np.ndarray:
    """Resample int16 audio from in_rate to out_rate.

    Output length is floor(len / ratio) with ratio = in_rate / out_rate.
    Positions past the last interpolation pair repeat the final sample.
    """
    samples = np.asarray(samples, dtype=np.int16)
    n = len(samples)
    ratio = in_rate / out_rate
    out_len = int(math.floor(n / ratio)) if n else 0
    if out_len <= 0:
        return np.zeros(0, dtype=np.int16)

    pos = np.arange(out_len, dtype=np.float64) * ratio
    idx = np.floor(pos).astype(np.int64)
    frac = pos - idx

    src = samples.astype(np.float64)
    edge = idx >= n - 1
    lo = np.minimum(idx, n - 1)
    hi = np.minimum(idx + 1, n - 1)
    mixed = round_half_up(src[lo] * (1.0 - frac) + src[hi] * frac)
    out = np.where(edge, samples[-1], mixed)
    return to_int16_buffer(out)
