"""Kit Sample Editor - Kit Operations

Add, re-pitch, load and save kit samples.

Every entry point returns (success, message) so the caller can show the
message; failures are logged here and never raised.
"""
import logging
import math
from typing import Optional, Tuple

import bank_codec
from data_model import Kit, Sample, Decoder
from file_io import DecodeError
from kit_config import SampleOptions, get_config

logger = logging.getLogger("kit.ops")


def add_sample_from_file(kit: Kit, path: str, half_speed: Optional[bool] = None,
                         options: Optional[SampleOptions] = None,
                         decoder: Optional[Decoder] = None) -> Tuple[bool, str]:
    """Import an audio file into the kit's first free slot.

    If the kit overflows, the new sample is trimmed from the end until
    everything fits.
    """
    slot = kit.first_free_slot()
    if slot == -1:
        return False, "Kit is full"

    if options is None:
        options = get_config().sample_defaults
    if half_speed is not None and half_speed != options.half_speed:
        options = SampleOptions(volume_db=options.volume_db,
                                pitch_semitones=options.pitch_semitones,
                                trim=options.trim, dither=options.dither,
                                half_speed=half_speed)

    try:
        sample = Sample.create_from_file(path, options, decoder)
    except DecodeError as e:
        logger.error(f"Import failed: {e}")
        return False, f"Import failed: {e}"

    kit.set_sample(slot, sample)

    bytes_free = kit.bytes_free()
    if bytes_free < 0:
        trim = sample.trim + math.ceil(-bytes_free / 16)
        logger.warning(f"Kit overflow by {-bytes_free} bytes, trim of "
                       f"'{sample.name}' set to {trim} frames")
        sample.set_trim(trim)
        over = -kit.bytes_free()
        if over > 0:
            kit.remove_sample(slot)
            return False, f"Sample doesn't fit: {over} bytes over"

    return True, (f"Added '{sample.name}' to slot {slot + 1}: "
                  f"{sample.length_in_bytes()} bytes, {kit.bytes_free()} bytes free")


def update_sample_pitch(sample: Sample, semitones: int, half_speed: bool,
                        decoder: Optional[Decoder] = None) -> Tuple[bool, str]:
    """Change pitch, resampling from the source file when there is one."""
    previous = sample.pitch_semitones
    sample.set_pitch_semitones(semitones)
    try:
        if sample.file:
            result = sample.reload(half_speed, decoder)
        else:
            result = sample.apply_pitch_shift(half_speed)
    except DecodeError as e:
        sample.set_pitch_semitones(previous)
        logger.error(f"Pitch change failed: {e}")
        return False, f"Pitch change failed: {e}"

    if not result:
        sample.set_pitch_semitones(previous)
        return False, result.error
    return True, f"Pitch {semitones:+d} semitones"


def load_kit_from_rom(rom, bank_index: int) -> Tuple[Optional[Kit], str]:
    """Read the kit stored in a bank. Returns (kit or None, message)."""
    try:
        extracted = bank_codec.extract_from_rom_bank(rom, bank_index)
    except bank_codec.BankFormatError as e:
        logger.error(f"Load kit failed: {e}")
        return None, str(e)

    kit = Kit(name=extracted.kit_name, bank_index=bank_index,
              slots=list(extracted.samples))
    info = kit.info()
    return kit, (f"Loaded kit '{kit.name}' from bank {bank_index}: "
                 f"{len(kit.used_slots())} samples, {info.bytes_free} bytes free")


def write_kit_to_rom(rom, kit: Kit,
                     gba_polarity: Optional[bool] = None) -> Tuple[bool, str]:
    """Write a kit into its bank of rom (in place)."""
    if gba_polarity is None:
        gba_polarity = get_config().gba_polarity

    info = kit.info()
    if not info.fits:
        return False, f"Kit too large: {-info.bytes_free} bytes over"

    try:
        bank_codec.write_to_rom_bank(rom, kit.bank_index, kit.slots, kit.name,
                                     gba_polarity)
    except (bank_codec.BankFormatError, TypeError) as e:
        logger.error(f"Write kit failed: {e}")
        return False, str(e)
    return True, f"Wrote kit '{kit.name}' to bank {kit.bank_index}"
