"""Bank Codec — Packs kit samples into 16KB ROM banks and reads them back.

Kit bank layout (offsets relative to the bank start, mapped at $4000):

    $00-$01  magic $60 $40 (also the start address of the first sample)
    $02-$1F  15 x LE16 end address per sample, 0 = empty slot
    $22-$4E  15 x 3-byte ASCII sample names
    $52-$57  6-byte kit name
    $5C-$5D  forced loop data (cleared on write)
    $5F      kit version, 1 = swizzled sample data
    $60-     packed 4-bit sample data, 16 bytes per 32-sample wave frame

All functions are stateless. Writes go into a caller-owned mutable
buffer (bytearray / writable memoryview) holding the whole ROM.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np

from constants import (BANK_SIZE, BANK_WINDOW, MAX_SAMPLES, KIT_MAGIC,
                       OFFSET_TABLE, NAME_TABLE, SAMPLE_NAME_LEN,
                       KIT_NAME_OFFSET, KIT_NAME_LEN, LOOP_OFFSET,
                       VERSION_OFFSET, DATA_OFFSET, DATA_BASE_ADDR,
                       KIT_VERSION_1, FILL_BYTE, FRAME_SAMPLES, FRAME_BYTES,
                       NIBBLE_MAX)
from data_model import Sample
from sample_editor.pcm import round_half_up

logger = logging.getLogger(__name__)

EMPTY_SLOT_NAME = b"\x00--"


class BankFormatError(ValueError):
    """Bank data is not a valid kit or doesn't fit the layout."""


@dataclass
class CompiledBank:
    """Result of packing samples into a bank image."""
    data: bytearray = field(default_factory=lambda: bytearray([FILL_BYTE]) * BANK_SIZE)
    byte_lengths: List[int] = field(default_factory=list)

    @property
    def total_size(self) -> int:
        return sum(self.byte_lengths)


@dataclass
class ExtractedKit:
    samples: List[Optional[Sample]] = field(default_factory=list)
    kit_name: str = ""


# =============================================================================
# NIBBLE PACKING
# =============================================================================

def quantize(samples: np.ndarray, gba_polarity: bool = False) -> np.ndarray:
    """Map int16 samples to 4-bit values.

    DMG polarity (default) is inverted: $F = -1.0, $0 = +1.0.
    """
    q = round_half_up(np.asarray(samples, dtype=np.float64) / (256 * 16) + 7.5)
    q = np.clip(q, 0, NIBBLE_MAX)
    if not gba_polarity:
        q = NIBBLE_MAX - q
    return q.astype(np.uint8)


def pack_nibbles(nibbles: np.ndarray) -> bytes:
    """Pack whole 32-nibble wave frames, rotated one step right.

    The first nibble of each frame is stored in slot 1 and the last one
    wraps to slot 0, compensating the wave refresh bug (LSDj 9.2.0+).
    A trailing partial frame is dropped.
    """
    n_frames = len(nibbles) // FRAME_SAMPLES
    if n_frames == 0:
        return b""
    frames = nibbles[:n_frames * FRAME_SAMPLES].reshape(n_frames, FRAME_SAMPLES)
    frames = np.roll(frames, 1, axis=1)
    packed = (frames[:, 0::2] << 4) | frames[:, 1::2]
    return packed.astype(np.uint8).tobytes()


def compile_bank(samples: Sequence[Optional[Sample]],
                 gba_polarity: bool = False) -> CompiledBank:
    """Pack samples into a bank image.

    Args:
        samples: Slot list, None for empty slots.
        gba_polarity: Use GBA polarity instead of DMG.

    Returns:
        CompiledBank with a $FF-filled 16KB image (data from $60) and the
        packed size of each slot.

    Raises:
        BankFormatError: packed data doesn't fit in the bank
    """
    result = CompiledBank()
    offset = DATA_OFFSET

    for slot, sample in enumerate(samples):
        if sample is None:
            result.byte_lengths.append(0)
            continue

        packed = pack_nibbles(quantize(sample.processed_samples, gba_polarity))
        if offset + len(packed) > BANK_SIZE:
            raise BankFormatError(
                f"Sample {slot} ({sample.name}) overflows the bank by "
                f"{offset + len(packed) - BANK_SIZE} bytes")
        result.data[offset:offset + len(packed)] = packed
        offset += len(packed)
        result.byte_lengths.append(len(packed))
        logger.debug(f"compile: slot {slot} '{sample.name}' {len(packed)} bytes")

    return result


# =============================================================================
# LEGACY SWIZZLE
# =============================================================================

def unswizzle(packed_nibbles: bytes) -> bytes:
    """Undo the version-1 layout: rotate each wave frame left and invert.

    Raises:
        BankFormatError: length is not a multiple of 16
    """
    src = np.frombuffer(bytes(packed_nibbles), dtype=np.uint8).astype(np.int32)
    n = len(src)
    if n % FRAME_BYTES != 0:
        raise BankFormatError(
            f"Packed nibbles length must be a multiple of {FRAME_BYTES}, got {n}")

    idx = np.arange(n)
    j = idx % FRAME_BYTES
    chunk = idx - j
    tmp = np.zeros(n * 2, dtype=np.int32)
    # High nibble moves one half-byte back (wrapping within its frame)
    tmp[((2 * j + 31) % 32) + chunk * 2] = (0xF0 - (src & 0xF0)) >> 4
    tmp[2 * idx] = (0xF - (src & 0x0F)) << 4

    return (tmp[0::2] | tmp[1::2]).astype(np.uint8).tobytes()


# =============================================================================
# ROM BANK ACCESS
# =============================================================================

def _bank_base(rom, bank_index: int) -> int:
    base = bank_index * BANK_SIZE
    if bank_index < 0 or base + BANK_SIZE > len(rom):
        raise BankFormatError(
            f"Bank {bank_index} is outside the ROM ({len(rom)} bytes)")
    return base


def _is_kit_bank(view, base: int) -> bool:
    return (base + 2 <= len(view)
            and view[base] == KIT_MAGIC[0] and view[base + 1] == KIT_MAGIC[1])


def _read_ascii(view, offset: int, max_len: int) -> str:
    raw = bytes(view[offset:offset + max_len])
    end = raw.find(b"\x00")
    if end != -1:
        raw = raw[:end]
    return raw.decode("ascii", errors="replace")


def _slot_name_bytes(sample: Optional[Sample]) -> bytes:
    if sample is None:
        return EMPTY_SLOT_NAME
    name = sample.name[:SAMPLE_NAME_LEN].ljust(SAMPLE_NAME_LEN, "-")
    return name.encode("ascii", errors="replace")


def write_to_rom_bank(rom, bank_index: int, samples: Sequence[Optional[Sample]],
                      kit_name: str, gba_polarity: bool = False):
    """Compile samples and write them as a kit into rom (in place).

    Bytes of the header not owned by the kit format are left untouched.

    Raises:
        BankFormatError: bank outside the ROM, too many slots, or data overflow
        TypeError: rom is not writable
    """
    view = memoryview(rom)
    if view.readonly:
        raise TypeError("ROM buffer must be writable (bytearray or writable memoryview)")
    base = _bank_base(view, bank_index)

    slots = list(samples)
    if len(slots) > MAX_SAMPLES:
        raise BankFormatError(f"A kit holds at most {MAX_SAMPLES} samples, got {len(slots)}")
    slots += [None] * (MAX_SAMPLES - len(slots))

    compiled = compile_bank(slots, gba_polarity)

    view[base + DATA_OFFSET:base + BANK_SIZE] = compiled.data[DATA_OFFSET:]
    view[base] = KIT_MAGIC[0]
    view[base + 1] = KIT_MAGIC[1]

    end_addr = DATA_BASE_ADDR
    for i, length in enumerate(compiled.byte_lengths):
        end_addr += length
        struct.pack_into("<H", view, base + OFFSET_TABLE + i * 2,
                         end_addr if length else 0)

    view[base + LOOP_OFFSET] = 0
    view[base + LOOP_OFFSET + 1] = 0
    view[base + VERSION_OFFSET] = KIT_VERSION_1

    name = kit_name.upper()[:KIT_NAME_LEN].ljust(KIT_NAME_LEN)
    view[base + KIT_NAME_OFFSET:base + KIT_NAME_OFFSET + KIT_NAME_LEN] = \
        name.encode("ascii", errors="replace")

    for i, sample in enumerate(slots):
        offset = base + NAME_TABLE + i * SAMPLE_NAME_LEN
        view[offset:offset + SAMPLE_NAME_LEN] = _slot_name_bytes(sample)

    logger.info(f"Wrote kit '{name.strip()}' to bank {bank_index}: "
                f"{compiled.total_size} bytes in "
                f"{sum(1 for s in slots if s is not None)} samples")


def extract_from_rom_bank(rom, bank_index: int) -> ExtractedKit:
    """Read all samples of the kit in a bank.

    A slot's data runs from the end of the previous non-empty slot
    ($4060 for the first) to its own table entry.

    Raises:
        BankFormatError: not a kit bank, or offsets outside the bank
    """
    view = memoryview(rom)
    base = _bank_base(view, bank_index)
    if not _is_kit_bank(view, base):
        raise BankFormatError(f"Bank {bank_index} is not a kit bank")

    result = ExtractedKit(samples=[None] * MAX_SAMPLES,
                          kit_name=_read_ascii(view, base + KIT_NAME_OFFSET, KIT_NAME_LEN).strip())
    swizzled = view[base + VERSION_OFFSET] == KIT_VERSION_1

    start = DATA_BASE_ADDR
    for slot in range(MAX_SAMPLES):
        name = _read_ascii(view, base + NAME_TABLE + slot * SAMPLE_NAME_LEN, SAMPLE_NAME_LEN)
        stop, = struct.unpack_from("<H", view, base + OFFSET_TABLE + slot * 2)
        if stop <= start:
            continue
        if stop - BANK_WINDOW > BANK_SIZE:
            raise BankFormatError(
                f"Sample {slot} ends at ${stop:04X}, past the end of the bank")

        nibbles = bytes(view[base + start - BANK_WINDOW:base + stop - BANK_WINDOW])
        if swizzled:
            nibbles = unswizzle(nibbles)
        result.samples[slot] = Sample.create_from_nibbles(nibbles, name)
        logger.debug(f"extract: slot {slot} '{name}' ${start:04X}-${stop:04X}")
        start = stop

    logger.info(f"Read kit '{result.kit_name}' from bank {bank_index}: "
                f"{sum(1 for s in result.samples if s is not None)} samples")
    return result


def extract_kit_name_from_rom_bank(rom, bank_index: int) -> Optional[str]:
    """Kit name of a bank, or None if the bank is not a kit bank."""
    view = memoryview(rom)
    base = bank_index * BANK_SIZE
    if bank_index < 0 or not _is_kit_bank(view, base):
        return None
    return _read_ascii(view, base + KIT_NAME_OFFSET, KIT_NAME_LEN).strip()
