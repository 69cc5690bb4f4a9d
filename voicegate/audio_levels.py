"""
Audio level helpers

Reduces raw int16 PCM to the normalized RMS volume levels (0-1) the
detectors consume. RMS only: no spectral analysis.
"""

from typing import List, Union

import numpy as np

INT16_FULL_SCALE = 32768.0


def calculate_rms(audio: np.ndarray) -> float:
    """
    Calculate RMS (Root Mean Square) energy of an audio signal.

    Args:
        audio: Audio samples as numpy array (int16 or float32)

    Returns:
        RMS energy as float (0.0 for empty input)
    """
    if audio.size == 0:
        return 0.0
    audio_float = audio.astype(np.float32)
    return float(np.sqrt(np.mean(audio_float ** 2)))


def normalized_rms(frame: Union[bytes, np.ndarray]) -> float:
    """RMS of an int16 PCM frame scaled to 0-1 of full scale."""
    if isinstance(frame, (bytes, bytearray, memoryview)):
        frame = np.frombuffer(frame, dtype=np.int16)
    return min(1.0, calculate_rms(frame) / INT16_FULL_SCALE)


def frame_levels(audio: np.ndarray, sample_rate: int, frame_ms: int = 50) -> List[float]:
    """
    Slice a signal into consecutive frames and return one normalized level per frame.

    Float input is assumed to be in [-1, 1] (soundfile default) and is scaled
    to int16 range first. A trailing partial frame is dropped.
    """
    if audio.ndim > 1:
        audio = audio[:, 0]
    if np.issubdtype(audio.dtype, np.floating):
        audio = np.clip(audio * INT16_FULL_SCALE, -INT16_FULL_SCALE, INT16_FULL_SCALE - 1)

    frame_size = int(sample_rate * frame_ms / 1000)
    if frame_size <= 0:
        raise ValueError(f"frame_ms={frame_ms} too short for sample_rate={sample_rate}")

    levels = []
    for start in range(0, len(audio) - frame_size + 1, frame_size):
        levels.append(normalized_rms(audio[start:start + frame_size]))
    return levels
