#!/usr/bin/env python3
"""
Tests for audio level helpers (RMS and per-frame levels)
"""

import unittest

import numpy as np

from voicegate.audio_levels import calculate_rms, frame_levels, normalized_rms


class TestAudioLevels(unittest.TestCase):

    def test_rms_of_empty_signal(self):
        self.assertEqual(calculate_rms(np.array([], dtype=np.int16)), 0.0)

    def test_rms_of_constant_signal(self):
        audio = np.full(100, -1000, dtype=np.int16)
        self.assertAlmostEqual(calculate_rms(audio), 1000.0, places=3)

    def test_normalized_rms_from_bytes(self):
        frame = np.full(160, 8192, dtype=np.int16).tobytes()
        self.assertAlmostEqual(normalized_rms(frame), 0.25, places=6)

    def test_normalized_rms_is_capped(self):
        frame = np.full(10, -32768, dtype=np.int16)
        self.assertEqual(normalized_rms(frame), 1.0)

    def test_frame_levels_count_and_values(self):
        sample_rate = 16000
        audio = np.concatenate([
            np.zeros(8000, dtype=np.int16),
            np.full(8000, 3277, dtype=np.int16),
            np.zeros(100, dtype=np.int16),  # partial trailing frame
        ])

        levels = frame_levels(audio, sample_rate, frame_ms=50)

        self.assertEqual(len(levels), 20)
        self.assertEqual(levels[0], 0.0)
        self.assertAlmostEqual(levels[-1], 3277 / 32768, places=6)

    def test_frame_levels_float_input(self):
        audio = np.full(1600, 0.5, dtype=np.float32)
        levels = frame_levels(audio, 16000, frame_ms=50)

        self.assertEqual(len(levels), 2)
        self.assertAlmostEqual(levels[0], 0.5, places=4)

    def test_frame_levels_uses_first_channel(self):
        stereo = np.zeros((1600, 2), dtype=np.int16)
        stereo[:, 1] = 20000
        self.assertEqual(frame_levels(stereo, 16000), [0.0, 0.0])

    def test_frame_levels_rejects_tiny_frames(self):
        with self.assertRaises(ValueError):
            frame_levels(np.zeros(10, dtype=np.int16), 8, frame_ms=10)


if __name__ == '__main__':
    unittest.main()
