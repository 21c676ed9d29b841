"""Tests for file_io.py - audio decoding for sample import."""
import sys
import os
import tempfile
import shutil
import unittest
import wave

import numpy as np
import soundfile as sf

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from file_io import decode_audio, get_supported_extensions, DecodeError


class TestDecodeAudio(unittest.TestCase):

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _create_wav(self, path: str, rate: int = 44100, n_frames: int = None):
        if n_frames is None:
            n_frames = rate // 10
        samples = np.sin(np.linspace(0, 2 * np.pi * 440, n_frames)).astype(np.float32)
        data_int16 = (samples * 32767).astype(np.int16)
        with wave.open(path, 'w') as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(rate)
            wf.writeframes(data_int16.tobytes())

    def test_decode_wav(self):
        path = os.path.join(self.test_dir, "kick.wav")
        self._create_wav(path, 22050)
        pcm, rate = decode_audio(path)
        self.assertEqual(rate, 22050)
        self.assertEqual(len(pcm), 2205)
        self.assertEqual(pcm.ndim, 1)
        self.assertEqual(pcm.dtype, np.float32)
        self.assertLessEqual(float(np.max(np.abs(pcm))), 1.0)

    def test_stereo_mixed_to_mono(self):
        path = os.path.join(self.test_dir, "stereo.wav")
        left = np.full(100, 0.5, dtype=np.float32)
        right = np.full(100, -0.25, dtype=np.float32)
        sf.write(path, np.stack([left, right], axis=1), 11468, subtype='FLOAT')
        pcm, rate = decode_audio(path)
        self.assertEqual(rate, 11468)
        self.assertEqual(pcm.ndim, 1)
        np.testing.assert_allclose(pcm, 0.125, atol=1e-6)

    def test_flac(self):
        path = os.path.join(self.test_dir, "snare.flac")
        sf.write(path, np.zeros(500, dtype=np.float32), 44100)
        pcm, rate = decode_audio(path)
        self.assertEqual(len(pcm), 500)
        self.assertEqual(rate, 44100)

    def test_missing_file(self):
        with self.assertRaises(DecodeError):
            decode_audio(os.path.join(self.test_dir, "missing.wav"))

    def test_garbage_wav(self):
        path = os.path.join(self.test_dir, "bad.wav")
        with open(path, 'wb') as f:
            f.write(b"garbage data that is not audio" * 4)
        with self.assertRaises(DecodeError):
            decode_audio(path)

    def test_garbage_other_format(self):
        path = os.path.join(self.test_dir, "bad.xyz")
        with open(path, 'wb') as f:
            f.write(b"\x01\x02\x03" * 50)
        with self.assertRaises(DecodeError):
            decode_audio(path)

    def test_empty_wav(self):
        path = os.path.join(self.test_dir, "empty.wav")
        self._create_wav(path, n_frames=0)
        with self.assertRaises(DecodeError):
            decode_audio(path)

    def test_supported_extensions(self):
        exts = get_supported_extensions()
        self.assertIn('.wav', exts)
        self.assertIn('.flac', exts)


if __name__ == '__main__':
    unittest.main()
