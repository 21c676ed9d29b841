"""Kit Sample Editor — Sample Editor Commands

Pure-function range edits for the sample editor. Each command is a
function:

    (samples: np.ndarray, start: int, end: int) → np.ndarray | None

Input/output are 1D int16 arrays. start/end are inclusive frame indices
and may be given in either order. None means the range was rejected.
"""
from dataclasses import dataclass
from typing import Dict, Callable, Optional, Tuple

import numpy as np

from sample_editor.pcm import round_half_up, to_int16_buffer


# =============================================================================
# EditResult — outcome of an edit on a sample
# =============================================================================

@dataclass
class EditResult:
    """Success, or failure with a reason. Truthy only on success."""
    error: str = ""

    @property
    def success(self) -> bool:
        return self.error == ""

    def __bool__(self) -> bool:
        return self.success

    @classmethod
    def ok(cls) -> 'EditResult':
        return cls()

    @classmethod
    def fail(cls, reason: str) -> 'EditResult':
        return cls(error=reason or "failed")


# =============================================================================
# Range handling
# =============================================================================

def ordered_range(start: int, end: int) -> Tuple[int, int]:
    return min(start, end), max(start, end)


def range_error(samples: Optional[np.ndarray], start: int, end: int) -> str:
    """Return why (start, end) can't be applied to samples, or ''."""
    if samples is None:
        return "No sample data loaded"
    lo, hi = ordered_range(start, end)
    if lo < 0 or hi >= len(samples):
        return f"Frame range {lo}-{hi} outside 0-{len(samples) - 1}"
    return ""


# =============================================================================
# Edit functions
# =============================================================================

def apply_delete(samples, start, end):
    if range_error(samples, start, end):
        return None
    lo, hi = ordered_range(start, end)
    return np.concatenate((samples[:lo], samples[hi + 1:])).astype(np.int16)


def apply_crop(samples, start, end):
    if range_error(samples, start, end):
        return None
    lo, hi = ordered_range(start, end)
    return samples[lo:hi + 1].astype(np.int16)


def _fade_ramp(lo, hi):
    # 0 .. (n-1)/n, never quite reaching 1
    n = hi - lo + 1
    return np.arange(n, dtype=np.float64) / n


def apply_fade_in(samples, start, end):
    if range_error(samples, start, end):
        return None
    lo, hi = ordered_range(start, end)
    out = samples.astype(np.int16).copy()
    ramp = _fade_ramp(lo, hi)
    out[lo:hi + 1] = to_int16_buffer(round_half_up(samples[lo:hi + 1] * ramp))
    return out


def apply_fade_out(samples, start, end):
    if range_error(samples, start, end):
        return None
    lo, hi = ordered_range(start, end)
    out = samples.astype(np.int16).copy()
    ramp = 1.0 - _fade_ramp(lo, hi)
    out[lo:hi + 1] = to_int16_buffer(round_half_up(samples[lo:hi + 1] * ramp))
    return out


# =============================================================================
# Registries
# =============================================================================

COMMAND_APPLY: Dict[str, Callable] = {
    'delete':   apply_delete,
    'crop':     apply_crop,
    'fade_in':  apply_fade_in,
    'fade_out': apply_fade_out,
}

# Commands that change the buffer length (and so the pitch baseline)
DESTRUCTIVE_COMMANDS = ('delete', 'crop')
