#!/usr/bin/env python3
"""
VAD Calibration Tool - Analyze a recording and tune the adaptive VAD

Usage: python scripts/calibrate_vad.py recording.wav [--preset noisy]

Record yourself staying SILENT for the first 2s, then talking with pauses.
The tool:
1. Measures the ambient noise floor (calibration window)
2. Measures speech levels
3. Recommends an SNR factor and replays the recording with it
"""

import argparse
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from dataclasses import replace

import numpy as np
import soundfile as sf

import config
from voicegate.adaptive_vad import AdaptiveVADConfig
from voicegate.audio_levels import frame_levels
from voicegate.level_replay import replay_levels
from voicegate.logging_utils import setup_logger, log_info, log_success, log_warning, log_error, percent
from voicegate.vad_config import create_vad_config, VAD_PRESETS

# Setup logger
logger = setup_logger(__name__)


def recommend_snr_factor(snr):
    if snr > 8:
        return 3.0
    if snr > 4:
        return 2.5
    return 2.0


def analyze_recording(path, preset='default'):
    """
    Analyze the levels of a recording.

    Shows:
    - Noise floor (median of the calibration window)
    - Speech levels
    - Recommended SNR factor, and the speech segments it produces
    """
    vad_config = create_vad_config(preset)
    frame_ms = vad_config.analysis_interval_ms
    audio, sample_rate = sf.read(path, dtype='int16', always_2d=False)
    levels = np.array(frame_levels(audio, sample_rate, frame_ms))

    log_info(logger, "=" * 60)
    log_info(logger, "VAD CALIBRATION TOOL")
    log_info(logger, "=" * 60)
    log_info(logger, f"{path}: {len(levels)} frames of {frame_ms}ms")

    calibration_frames = int(config.VAD_CALIBRATION_MS / frame_ms)
    noise_levels = levels[:calibration_frames]
    speech_levels = levels[calibration_frames:]

    if len(noise_levels) == 0 or len(speech_levels) == 0:
        log_warning(logger, f"Recording shorter than the {config.VAD_CALIBRATION_MS}ms calibration window")
        return 1

    noise_floor = float(np.median(noise_levels))
    speech_median = float(np.median(speech_levels))
    log_info(logger, f"📊 Noise Floor (median): {percent(noise_floor)}")
    log_info(logger, f"📊 Noise Max: {percent(noise_levels.max())}")
    log_info(logger, f"🗣️  Speech Median: {percent(speech_median)}")
    log_info(logger, f"🗣️  Speech Max: {percent(speech_levels.max())}")

    log_info(logger, "=" * 60)
    log_info(logger, "RECOMMENDATIONS")
    log_info(logger, "=" * 60)

    snr = speech_median / noise_floor if noise_floor > 0 else float('inf')
    snr_factor = recommend_snr_factor(snr)
    if snr > 4:
        log_success(logger, f"SNR {snr:.2f}x - use VAD_SNR_FACTOR={snr_factor}")
    else:
        log_warning(logger, f"Low SNR {snr:.2f}x (noisy environment) - use VAD_SNR_FACTOR={snr_factor}, preset 'noisy'")

    adaptive = replace(AdaptiveVADConfig.from_config(), snr_factor=snr_factor)
    report = replay_levels(levels.tolist(), replace(vad_config, adaptive=adaptive))
    log_info(logger, f"Replay threshold: {percent(report.threshold)}")
    for i, segment in enumerate(report.segments, 1):
        log_info(logger, f"  Speech {i}: {segment.start_s:.2f}s -> {segment.end_s:.2f}s")
    if not report.segments:
        log_warning(logger, "No speech detected with the recommended factor")

    # Distribution analysis
    log_info(logger, "")
    log_info(logger, "LEVEL DISTRIBUTION:")
    bins = [0, 0.01, 0.02, 0.04, 0.08, 0.15, 0.25, 0.5, 1.0]
    hist, _ = np.histogram(levels, bins=bins)
    for i in range(len(bins) - 1):
        bar = "█" * int(hist[i] / max(hist) * 40) if max(hist) > 0 else ""
        log_info(logger, f"  {bins[i]:>5} - {bins[i+1]:>5}: {bar} ({hist[i]})")
    log_info(logger, "=" * 60)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Analyze a recording and tune the adaptive VAD")
    parser.add_argument("audio")
    parser.add_argument("--preset", default=config.VAD_PRESET, choices=sorted(VAD_PRESETS))
    args = parser.parse_args()
    try:
        sys.exit(analyze_recording(args.audio, args.preset))
    except (RuntimeError, OSError) as e:
        log_error(logger, f"Could not read {args.audio}: {e}")
        sys.exit(1)
