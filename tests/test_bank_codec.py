"""Tests for bank_codec module."""
import unittest
import sys
import os
import struct
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import numpy as np

from constants import (BANK_SIZE, MAX_SAMPLES, MAX_SAMPLE_SPACE, DATA_OFFSET,
                       DATA_BASE_ADDR, OFFSET_TABLE, NAME_TABLE, KIT_NAME_OFFSET,
                       LOOP_OFFSET, VERSION_OFFSET, FILL_BYTE)
from data_model import Sample
from bank_codec import (BankFormatError, quantize, pack_nibbles, compile_bank,
                        unswizzle, write_to_rom_bank, extract_from_rom_bank,
                        extract_kit_name_from_rom_bank)


def make_sample(name, n, seed=0):
    rng = np.random.default_rng(seed)
    data = rng.integers(-32768, 32768, n).astype(np.int16)
    return Sample(name=name, processed_samples=data)


def plain_packed(sample):
    """Un-rotated, non-inverted packing: what unswizzle must give back."""
    q = quantize(sample.processed_samples, gba_polarity=True)
    n = len(q) - len(q) % 32
    return ((q[:n:2] << 4) | q[1:n:2]).astype(np.uint8).tobytes()


class TestQuantize(unittest.TestCase):

    def test_gba_polarity(self):
        q = quantize(np.array([-32768, 0, 32767], dtype=np.int16), gba_polarity=True)
        np.testing.assert_array_equal(q, [0, 8, 15])

    def test_dmg_polarity_inverted(self):
        q = quantize(np.array([-32768, 0, 32767], dtype=np.int16))
        np.testing.assert_array_equal(q, [15, 7, 0])

    def test_clamped(self):
        q = quantize(np.array([-40000, 40000]), gba_polarity=True)
        np.testing.assert_array_equal(q, [0, 15])


class TestPackNibbles(unittest.TestCase):

    def test_frame_rotation(self):
        nibbles = (np.arange(32) % 16).astype(np.uint8)
        packed = pack_nibbles(nibbles)
        self.assertEqual(len(packed), 16)
        # Last nibble wraps to slot 0, first nibble moves to slot 1
        self.assertEqual(packed[0], 0xF0)
        self.assertEqual(packed[1], 0x12)
        self.assertEqual(packed[15], 0xDE)

    def test_partial_frame_dropped(self):
        self.assertEqual(len(pack_nibbles(np.zeros(40, dtype=np.uint8))), 16)
        self.assertEqual(pack_nibbles(np.zeros(31, dtype=np.uint8)), b"")


class TestCompile(unittest.TestCase):

    def test_layout_and_lengths(self):
        result = compile_bank([make_sample("A", 64), None, make_sample("B", 100)])
        self.assertEqual(result.byte_lengths, [32, 0, 48])
        self.assertEqual(result.total_size, 80)
        self.assertEqual(len(result.data), BANK_SIZE)
        self.assertTrue(all(b == FILL_BYTE for b in result.data[:DATA_OFFSET]))
        self.assertEqual(result.data[DATA_OFFSET + 80], FILL_BYTE)

    def test_overflow_raises(self):
        big = Sample(processed_samples=np.zeros(2 * (MAX_SAMPLE_SPACE + 16), dtype=np.int16))
        with self.assertRaises(BankFormatError):
            compile_bank([big])

    def test_exact_fit(self):
        full = Sample(processed_samples=np.zeros(2 * MAX_SAMPLE_SPACE, dtype=np.int16))
        self.assertEqual(compile_bank([full]).total_size, MAX_SAMPLE_SPACE)


class TestUnswizzle(unittest.TestCase):

    def test_bad_length_raises(self):
        with self.assertRaises(BankFormatError):
            unswizzle(bytes(15))

    def test_empty(self):
        self.assertEqual(unswizzle(b""), b"")

    def test_known_chunk(self):
        # byte j = (j << 4) | j
        packed = bytes(range(0x00, 0x100, 0x11))
        expected = bytes([0xFE, 0xED, 0xDC, 0xCB, 0xBA, 0xA9, 0x98, 0x87,
                          0x76, 0x65, 0x54, 0x43, 0x32, 0x21, 0x10, 0x0F])
        self.assertEqual(unswizzle(packed), expected)

    def test_two_chunks_stay_separate(self):
        packed = bytes(range(0x00, 0x100, 0x11)) + bytes([0xF0] * 16)
        expected = bytes([0xFE, 0xED, 0xDC, 0xCB, 0xBA, 0xA9, 0x98, 0x87,
                          0x76, 0x65, 0x54, 0x43, 0x32, 0x21, 0x10, 0x0F]
                         + [0xF0] * 16)
        self.assertEqual(unswizzle(packed), expected)

    def test_inverts_compile(self):
        sample = make_sample("A", 96, seed=4)
        compiled = compile_bank([sample])
        packed = bytes(compiled.data[DATA_OFFSET:DATA_OFFSET + 48])
        self.assertEqual(unswizzle(packed), plain_packed(sample))


class TestRomBank(unittest.TestCase):

    def setUp(self):
        self.rom = bytearray(BANK_SIZE * 3)
        self.slots = [make_sample("kik", 64, 1), None, make_sample("SN", 96, 2)]

    def bank(self, rom, index=1):
        return bytes(rom[index * BANK_SIZE:(index + 1) * BANK_SIZE])

    def test_header(self):
        write_to_rom_bank(self.rom, 1, self.slots, "drums")
        base = BANK_SIZE
        self.assertEqual(self.rom[base:base + 2], b"\x60\x40")
        ends = struct.unpack_from("<15H", self.rom, base + OFFSET_TABLE)
        self.assertEqual(ends[0], DATA_BASE_ADDR + 32)
        self.assertEqual(ends[1], 0)
        self.assertEqual(ends[2], DATA_BASE_ADDR + 32 + 48)
        self.assertEqual(ends[3:], (0,) * 12)
        self.assertEqual(self.rom[base + NAME_TABLE:base + NAME_TABLE + 9],
                         b"KIK\x00--SN-")
        self.assertEqual(self.rom[base + KIT_NAME_OFFSET:base + KIT_NAME_OFFSET + 6],
                         b"DRUMS ")
        self.assertEqual(self.rom[base + LOOP_OFFSET:base + LOOP_OFFSET + 2], b"\x00\x00")
        self.assertEqual(self.rom[base + VERSION_OFFSET], 1)
        self.assertEqual(self.rom[base + DATA_OFFSET + 80], FILL_BYTE)

    def test_other_banks_untouched(self):
        write_to_rom_bank(self.rom, 1, self.slots, "drums")
        self.assertEqual(self.bank(self.rom, 0), bytes(BANK_SIZE))
        self.assertEqual(self.bank(self.rom, 2), bytes(BANK_SIZE))

    def test_roundtrip(self):
        write_to_rom_bank(self.rom, 1, self.slots, "drums")
        kit = extract_from_rom_bank(self.rom, 1)
        self.assertEqual(kit.kit_name, "DRUMS")
        self.assertEqual(len(kit.samples), MAX_SAMPLES)
        self.assertIsNone(kit.samples[1])
        self.assertEqual(kit.samples[0].name, "KIK")
        self.assertEqual(kit.samples[2].name, "SN-")
        self.assertEqual(kit.samples[0].length_in_samples(), 64)
        self.assertEqual(kit.samples[2].length_in_samples(), 96)
        for original, decoded in ((self.slots[0], kit.samples[0]),
                                  (self.slots[2], kit.samples[2])):
            np.testing.assert_array_equal(
                quantize(decoded.processed_samples),
                quantize(original.processed_samples))

    def test_rewrite_is_byte_identical(self):
        write_to_rom_bank(self.rom, 1, self.slots, "drums")
        kit = extract_from_rom_bank(self.rom, 1)
        rom2 = bytearray(len(self.rom))
        write_to_rom_bank(rom2, 1, kit.samples, kit.kit_name)
        self.assertEqual(self.bank(rom2), self.bank(self.rom))

    def test_unswizzled_version(self):
        write_to_rom_bank(self.rom, 0, self.slots, "raw")
        self.rom[VERSION_OFFSET] = 0
        kit = extract_from_rom_bank(self.rom, 0)
        raw = bytes(self.rom[DATA_OFFSET:DATA_OFFSET + 32])
        expected = Sample.create_from_nibbles(raw, "KIK")
        np.testing.assert_array_equal(kit.samples[0].processed_samples,
                                      expected.processed_samples)

    def test_holes_use_previous_end(self):
        slots = [None, None, make_sample("HH", 32, 3), None, make_sample("CY", 64, 5)]
        write_to_rom_bank(self.rom, 0, slots, "x")
        kit = extract_from_rom_bank(self.rom, 0)
        self.assertEqual([i for i, s in enumerate(kit.samples) if s], [2, 4])
        self.assertEqual(kit.samples[4].length_in_samples(), 64)

    def test_missing_magic_raises(self):
        with self.assertRaises(BankFormatError):
            extract_from_rom_bank(self.rom, 0)

    def test_offset_past_bank_raises(self):
        write_to_rom_bank(self.rom, 0, self.slots, "x")
        struct.pack_into("<H", self.rom, OFFSET_TABLE, 0x8010)
        with self.assertRaises(BankFormatError):
            extract_from_rom_bank(self.rom, 0)

    def test_bank_outside_rom_raises(self):
        with self.assertRaises(BankFormatError):
            write_to_rom_bank(self.rom, 3, self.slots, "x")

    def test_too_many_slots_raises(self):
        with self.assertRaises(BankFormatError):
            write_to_rom_bank(self.rom, 0, [None] * (MAX_SAMPLES + 1), "x")

    def test_overflow_leaves_rom_untouched(self):
        big = Sample(processed_samples=np.zeros(2 * (MAX_SAMPLE_SPACE + 16), dtype=np.int16))
        with self.assertRaises(BankFormatError):
            write_to_rom_bank(self.rom, 0, [big], "x")
        self.assertEqual(self.rom, bytearray(BANK_SIZE * 3))

    def test_readonly_buffer_rejected(self):
        with self.assertRaises(TypeError):
            write_to_rom_bank(bytes(BANK_SIZE), 0, self.slots, "x")

    def test_memoryview_target(self):
        view = memoryview(self.rom)[BANK_SIZE:2 * BANK_SIZE]
        write_to_rom_bank(view, 0, self.slots, "mv")
        self.assertEqual(extract_kit_name_from_rom_bank(self.rom, 1), "MV")


class TestKitNameProbe(unittest.TestCase):

    def test_not_a_kit(self):
        self.assertIsNone(extract_kit_name_from_rom_bank(bytes(BANK_SIZE), 0))

    def test_out_of_range(self):
        self.assertIsNone(extract_kit_name_from_rom_bank(bytes(BANK_SIZE), 5))
        self.assertIsNone(extract_kit_name_from_rom_bank(bytes(BANK_SIZE), -1))

    def test_reads_name(self):
        rom = bytearray(BANK_SIZE)
        write_to_rom_bank(rom, 0, [None], "909")
        self.assertEqual(extract_kit_name_from_rom_bank(rom, 0), "909")


if __name__ == '__main__':
    unittest.main()
