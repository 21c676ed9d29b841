"""
Kit Sample Editor - File I/O Module
=======================================

Audio decoding for sample import. This is the only slow, fallible step
in the sample chain: everything after decode_audio() is synchronous
integer processing.

Decoder chain:
    1. soundfile (libsndfile) - WAV, AIFF, FLAC, OGG
    2. scipy.io.wavfile       - WAV variants libsndfile rejects
"""

import os
import logging
from typing import List, Tuple

import numpy as np
import soundfile as sf
from scipy.io import wavfile as scipy_wav

logger = logging.getLogger("kit.file_io")

WAV_EXTENSIONS = ('.wav', '.wave')


class DecodeError(Exception):
    """Audio file could not be decoded into PCM."""


# =============================================================================
# DECODING
# =============================================================================

def get_supported_extensions() -> List[str]:
    """Audio file extensions the decoder chain can read."""
    exts = {'.' + fmt.lower() for fmt in sf.available_formats()}
    exts.update(WAV_EXTENSIONS)
    return sorted(exts)


def decode_audio(path: str) -> Tuple[np.ndarray, int]:
    """Decode an audio file to mono float32 PCM in -1..1.

    Returns:
        (pcm, sample_rate)

    Raises:
        DecodeError: file missing, unsupported, or corrupt
    """
    if not os.path.exists(path):
        raise DecodeError(f"File not found: {path}")

    try:
        data, rate = sf.read(path, dtype='float32', always_2d=False)
    except RuntimeError as e:
        logger.debug(f"soundfile read failed for {path}: {e}")
        if not path.lower().endswith(WAV_EXTENSIONS):
            raise DecodeError(f"Unsupported audio file {os.path.basename(path)}: {e}") from e
        rate, data = _read_wav(path)

    data = _to_mono_float(data)
    if len(data) == 0:
        raise DecodeError(f"No audio frames in {os.path.basename(path)}")

    logger.debug(f"decode_audio: {path}: {len(data)} frames @ {rate} Hz")
    return data, int(rate)


def _read_wav(path: str) -> Tuple[int, np.ndarray]:
    """Read WAV with scipy as a fallback decoder."""
    try:
        rate, data = scipy_wav.read(path)
    except ValueError as e:
        raise DecodeError(f"Failed to read WAV file {os.path.basename(path)}: {e}") from e

    if data.dtype == np.int16:
        data = data.astype(np.float32) / 32768.0
    elif data.dtype == np.int32:
        data = data.astype(np.float32) / 2147483648.0
    elif data.dtype == np.uint8:
        data = (data.astype(np.float32) - 128) / 128.0
    else:
        data = data.astype(np.float32)
    return rate, data


def _to_mono_float(data: np.ndarray) -> np.ndarray:
    if data.ndim > 1:
        data = np.mean(data, axis=1)
    return np.clip(data.astype(np.float32), -1.0, 1.0)
