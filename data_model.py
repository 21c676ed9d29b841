"""Kit Sample Editor - Data Model"""
import math
import os
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

import numpy as np

from constants import (MAX_SAMPLES, MAX_SAMPLE_SPACE, SAMPLE_NAME_LEN,
                       KIT_NAME_LEN, FRAME_SAMPLES, FRAME_BYTES,
                       DEFAULT_KIT_NAME, DEFAULT_SAMPLE_NAME, playback_rate)
from file_io import decode_audio
from kit_config import SampleOptions, get_config
from sample_editor.commands import (EditResult, COMMAND_APPLY, DESTRUCTIVE_COMMANDS,
                                    range_error, ordered_range)
from sample_editor.pcm import float_to_int16
from sample_editor.pipeline import run_pipeline
from sample_editor.resample import resample

Decoder = Callable[[str], Tuple[np.ndarray, int]]


def _empty() -> np.ndarray:
    return np.zeros(0, dtype=np.int16)


def _copy(samples: Optional[np.ndarray]) -> Optional[np.ndarray]:
    return None if samples is None else np.array(samples, dtype=np.int16)


def _pitch_factor(semitones: float) -> float:
    return 2.0 ** (semitones / 12.0)


@dataclass(eq=False)
class Sample:
    """One kit sample with three buffer generations.

    Attributes:
        original_samples: Editable buffer. Changed by range edits and by
                          pitch resampling.
        unedited_samples: Pitch baseline. Never resampled, so every pitch
                          change starts from it instead of compounding
                          interpolation error. Changed only by load and by
                          delete/crop.
        processed_samples: Pipeline output, read by the bank codec. Always
                           recomputed from original_samples + parameters.
        untrimmed_length: Length before the trim stage, -1 = not computed.
        file: Source audio path, None for samples read from a ROM.
        applied_pitch: Semitones original_samples is shifted by relative to
                       unedited_samples. 0 after a load, where both
                       buffers start out identical.
    """
    name: str = DEFAULT_SAMPLE_NAME
    original_samples: Optional[np.ndarray] = None
    unedited_samples: Optional[np.ndarray] = None
    processed_samples: np.ndarray = field(default_factory=_empty)
    untrimmed_length: int = -1
    volume_db: float = 0.0
    pitch_semitones: int = 0
    trim: int = 0
    dither: bool = False
    half_speed: bool = False
    file: Optional[str] = None
    applied_pitch: int = 0
    rng: Optional[np.random.Generator] = field(default=None, repr=False)

    def __post_init__(self):
        self.name = self.name.upper()[:SAMPLE_NAME_LEN]

    # === PROCESSING ===

    def process_samples(self):
        """Recompute processed_samples from original_samples + parameters."""
        if self.original_samples is None:
            return
        result = run_pipeline(self.original_samples, self.volume_db, self.trim,
                              self.dither, self.rng)
        self.processed_samples = result.samples
        self.untrimmed_length = result.untrimmed_length

    # === SIZE / TIMING ===

    def length_in_samples(self) -> int:
        return len(self.processed_samples)

    def length_in_bytes(self) -> int:
        """Packed size in the bank: two samples per byte, whole frames only."""
        length = self.length_in_samples() // 2
        return length - length % FRAME_BYTES

    def untrimmed_length_in_samples(self) -> int:
        return self.length_in_samples() if self.untrimmed_length == -1 else self.untrimmed_length

    def untrimmed_length_in_bytes(self) -> int:
        length = self.untrimmed_length_in_samples() // 2
        return length - length % FRAME_BYTES

    def max_trim(self) -> int:
        """Largest trim that still leaves one frame."""
        return max(0, self.untrimmed_length_in_samples() // FRAME_SAMPLES - 1)

    def duration(self, half_speed: Optional[bool] = None) -> float:
        if half_speed is None:
            half_speed = self.half_speed
        return self.length_in_samples() / playback_rate(half_speed)

    def can_adjust_volume(self) -> bool:
        return self.original_samples is not None

    # === PARAMETERS ===

    def set_name(self, name: str):
        self.name = name.upper()[:SAMPLE_NAME_LEN]

    def set_volume_db(self, value: float):
        self.volume_db = value
        self.process_samples()

    def set_trim(self, value: int) -> EditResult:
        if value < 0:
            return EditResult.fail(f"Trim cannot be negative ({value})")
        self.trim = value
        self.process_samples()
        return EditResult.ok()

    def set_dither(self, value: bool):
        self.dither = value
        self.process_samples()

    def set_pitch_semitones(self, value: int):
        """Store pitch. Takes effect on reload() or apply_pitch_shift()."""
        self.pitch_semitones = value

    def set_half_speed(self, value: bool):
        self.half_speed = value

    # === SOURCE / PITCH ===

    def reload(self, half_speed: bool, decoder: Optional[Decoder] = None) -> EditResult:
        """Re-read the source file at the current pitch.

        Raises:
            DecodeError: from the decoder, unchanged
        """
        if not self.file:
            return EditResult.fail("Sample has no source file")
        decoder = decoder or decode_audio
        pcm, source_rate = decoder(self.file)

        self.half_speed = half_speed
        out_rate = playback_rate(half_speed) / _pitch_factor(self.pitch_semitones)
        samples = resample(float_to_int16(pcm), source_rate, out_rate)

        self.original_samples = samples
        self.unedited_samples = _copy(samples)
        self.applied_pitch = 0
        self.process_samples()
        return EditResult.ok()

    def apply_pitch_shift(self, half_speed: bool) -> EditResult:
        """Resample unedited_samples to the current pitch (no source file needed)."""
        if self.unedited_samples is None:
            return EditResult.fail("No sample data to pitch shift")

        self.half_speed = half_speed
        if self.pitch_semitones == 0:
            self.original_samples = _copy(self.unedited_samples)
        else:
            base_rate = playback_rate(half_speed)
            out_rate = base_rate / _pitch_factor(self.pitch_semitones)
            # Always from the unedited baseline, never from original_samples
            self.original_samples = resample(self.unedited_samples, base_rate, out_rate)
        self.applied_pitch = self.pitch_semitones
        self.process_samples()
        return EditResult.ok()

    def reset_to_unedited(self) -> EditResult:
        if self.unedited_samples is None:
            return EditResult.fail("No unedited sample data")
        self.original_samples = _copy(self.unedited_samples)
        self.applied_pitch = 0
        self.process_samples()
        return EditResult.ok()

    # === RANGE EDITS ===

    def delete_frames(self, start: int, end: int) -> EditResult:
        return self._edit('delete', start, end)

    def crop_frames(self, start: int, end: int) -> EditResult:
        return self._edit('crop', start, end)

    def fade_in_frames(self, start: int, end: int) -> EditResult:
        return self._edit('fade_in', start, end)

    def fade_out_frames(self, start: int, end: int) -> EditResult:
        return self._edit('fade_out', start, end)

    def _edit(self, cmd: str, start: int, end: int) -> EditResult:
        error = range_error(self.original_samples, start, end)
        if error:
            return EditResult.fail(error)

        edited = COMMAND_APPLY[cmd](self.original_samples, start, end)
        if cmd in DESTRUCTIVE_COMMANDS:
            self._rebase_unedited(cmd, start, end, edited)
        self.original_samples = edited
        self.process_samples()
        return EditResult.ok()

    def _rebase_unedited(self, cmd: str, start: int, end: int, edited: np.ndarray):
        """Carry a delete/crop over to the pitch baseline.

        Unshifted, the baseline becomes the edited buffer. Otherwise the
        range is mapped back through the applied pitch ratio and the same
        edit is applied to the baseline.
        """
        if self.applied_pitch == 0 or self.unedited_samples is None:
            self.unedited_samples = _copy(edited)
            return

        ratio = _pitch_factor(self.applied_pitch)
        lo, hi = ordered_range(start, end)
        last = len(self.unedited_samples) - 1
        u_lo = min(last, int(math.floor(lo * ratio)))
        u_hi = max(u_lo, min(last, int(math.ceil((hi + 1) * ratio)) - 1))
        rebased = COMMAND_APPLY[cmd](self.unedited_samples, u_lo, u_hi)
        if rebased is not None:
            self.unedited_samples = rebased

    # === FACTORIES ===

    @classmethod
    def create_from_nibbles(cls, nibbles: bytes, name: str) -> 'Sample':
        """Build a sample from packed 4-bit data (two samples per byte).

        The decoded data is already pipeline output, so it becomes the
        processed buffer as-is until the first edit or parameter change.
        """
        packed = np.frombuffer(bytes(nibbles), dtype=np.uint8).astype(np.int32)
        buf = np.empty(len(packed) * 2, dtype=np.int32)
        buf[0::2] = packed & 0xF0
        buf[1::2] = (packed & 0x0F) << 4
        buf = ((buf - 0x80) * 256).astype(np.int16)

        return cls(name=name,
                   original_samples=_copy(buf),
                   unedited_samples=_copy(buf),
                   processed_samples=buf)

    @classmethod
    def create_from_file(cls, path: str, options: Optional[SampleOptions] = None,
                         decoder: Optional[Decoder] = None) -> 'Sample':
        """Import an audio file. Options default to the configured sample defaults.

        Raises:
            DecodeError: file can't be decoded
        """
        if options is None:
            options = get_config().sample_defaults
        sample = cls(name=os.path.splitext(os.path.basename(path))[0],
                     volume_db=options.volume_db,
                     pitch_semitones=options.pitch_semitones,
                     trim=options.trim,
                     dither=options.dither,
                     half_speed=options.half_speed,
                     file=path)
        sample.reload(options.half_speed, decoder)
        return sample

    def dupe(self) -> 'Sample':
        return Sample(name=self.name,
                      original_samples=_copy(self.original_samples),
                      unedited_samples=_copy(self.unedited_samples),
                      processed_samples=_copy(self.processed_samples),
                      untrimmed_length=self.untrimmed_length_in_samples(),
                      volume_db=self.volume_db,
                      pitch_semitones=self.pitch_semitones,
                      trim=self.trim,
                      dither=self.dither,
                      half_speed=self.half_speed,
                      file=self.file,
                      applied_pitch=self.applied_pitch,
                      rng=None if self.rng is None else self.rng.spawn(1)[0])

    # === SERIALIZATION ===

    def to_dict(self) -> dict:
        """Serialize parameters and processed data (no source file)."""
        return {
            'name': self.name,
            'sample_data': self.processed_samples.tolist(),
            'untrimmed_length': self.untrimmed_length_in_samples(),
            'volume_db': self.volume_db,
            'pitch_semitones': self.pitch_semitones,
            'trim': self.trim,
            'dither': self.dither,
            'half_speed': self.half_speed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> 'Sample':
        data = np.array(d.get('sample_data', []), dtype=np.int16)
        sample = cls(name=d.get('name', DEFAULT_SAMPLE_NAME),
                     original_samples=_copy(data),
                     unedited_samples=_copy(data),
                     processed_samples=data,
                     untrimmed_length=d.get('untrimmed_length', -1),
                     volume_db=d.get('volume_db', 0.0),
                     pitch_semitones=d.get('pitch_semitones', 0),
                     trim=max(0, d.get('trim', 0)),
                     dither=d.get('dither', False),
                     half_speed=d.get('half_speed', False))
        sample.process_samples()
        return sample


@dataclass
class KitInfo:
    name: str
    bank_index: int
    total_sample_size_in_bytes: int
    bytes_free: int

    @property
    def fits(self) -> bool:
        return self.bytes_free >= 0


@dataclass
class Kit:
    """One kit bank: a name and 15 sample slots."""
    name: str = DEFAULT_KIT_NAME
    bank_index: int = 0
    slots: List[Optional[Sample]] = field(default_factory=list)

    def __post_init__(self):
        self.name = self.name[:KIT_NAME_LEN]
        self.slots = list(self.slots)
        while len(self.slots) < MAX_SAMPLES:
            self.slots.append(None)
        self.slots = self.slots[:MAX_SAMPLES]

    def total_size_in_bytes(self) -> int:
        return sum(s.length_in_bytes() for s in self.slots if s is not None)

    def bytes_free(self) -> int:
        return MAX_SAMPLE_SPACE - self.total_size_in_bytes()

    def info(self) -> KitInfo:
        total = self.total_size_in_bytes()
        return KitInfo(name=self.name, bank_index=self.bank_index,
                       total_sample_size_in_bytes=total,
                       bytes_free=MAX_SAMPLE_SPACE - total)

    def first_free_slot(self) -> int:
        for i, s in enumerate(self.slots):
            if s is None:
                return i
        return -1

    def get_sample(self, idx: int) -> Optional[Sample]:
        return self.slots[idx] if 0 <= idx < len(self.slots) else None

    def set_sample(self, idx: int, sample: Optional[Sample]) -> bool:
        if not 0 <= idx < len(self.slots):
            return False
        self.slots[idx] = sample
        return True

    def remove_sample(self, idx: int) -> bool:
        if 0 <= idx < len(self.slots) and self.slots[idx] is not None:
            self.slots[idx] = None
            return True
        return False

    def used_slots(self) -> List[int]:
        return [i for i, s in enumerate(self.slots) if s is not None]
