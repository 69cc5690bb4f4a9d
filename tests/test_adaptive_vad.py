"""
Tests for AdaptiveVADProcessor

Calibration, noise floor tracking, threshold clamping and hysteresis.
All timing goes through a fake clock, so no test sleeps.
"""

import random

import pytest

from voicegate.adaptive_vad import (
    AdaptiveVADConfig,
    AdaptiveVADProcessor,
    AdaptiveVADState,
    percentile_value,
)


def calibrated(clock, **overrides):
    """Processor past calibration with the default floor (0.05, threshold 0.125)."""
    processor = AdaptiveVADProcessor(AdaptiveVADConfig(**overrides), clock=clock)
    processor.start_calibration()
    processor.finish_calibration()
    return processor


class TestCalibration:

    def test_never_voice_while_calibrating(self, clock):
        processor = AdaptiveVADProcessor(AdaptiveVADConfig(calibration_duration_ms=2000), clock=clock)
        processor.start_calibration()

        for level in [0.01, 0.9, 1.0, 0.5] * 9:
            result = processor.process_volume(level)
            assert result.is_calibrating is True
            assert result.is_voice is False
            clock.advance(50)
            if clock.ms >= 1950:
                break

    def test_median_of_calibration_samples(self, clock):
        processor = AdaptiveVADProcessor(AdaptiveVADConfig(calibration_duration_ms=2000), clock=clock)
        processor.start_calibration()

        for level in [0.30, 0.02, 0.20, 0.03]:
            processor.process_volume(level)
            clock.advance(100)

        clock.ms = 2000
        result = processor.process_volume(0.05)

        assert result.is_calibrating is True
        state = processor.get_state()
        assert state.is_calibrated is True
        assert state.noise_floor == pytest.approx(0.05)
        assert state.adaptive_threshold == pytest.approx(0.125)

    def test_median_resists_outliers(self, clock):
        processor = AdaptiveVADProcessor(clock=clock)
        processor.start_calibration()
        for level in [0.02, 0.02, 0.02, 0.02, 0.9]:
            processor.process_volume(level)
        processor.finish_calibration()

        assert processor.get_state().noise_floor == pytest.approx(0.02)

    def test_first_steady_sample_after_calibration(self, clock):
        processor = AdaptiveVADProcessor(AdaptiveVADConfig(calibration_duration_ms=100), clock=clock)
        processor.start_calibration()
        processor.process_volume(0.02)
        clock.advance(150)
        processor.process_volume(0.02)

        result = processor.process_volume(0.02)
        assert result.is_calibrating is False
        assert processor.history == [0.02]

    def test_empty_calibration_uses_default_floor(self, clock):
        processor = calibrated(clock)
        state = processor.get_state()

        assert state.is_calibrated is True
        assert state.noise_floor == pytest.approx(0.05)
        assert state.adaptive_threshold == pytest.approx(0.125)

    def test_all_zero_calibration_falls_back(self, clock):
        processor = AdaptiveVADProcessor(clock=clock)
        processor.start_calibration()
        for _ in range(10):
            processor.process_volume(0.0)
        processor.finish_calibration()

        assert processor.get_state().noise_floor == pytest.approx(0.05)

    def test_not_complete_before_start(self, clock):
        processor = AdaptiveVADProcessor(clock=clock)
        clock.advance(10_000)

        assert processor.is_calibration_complete() is False
        assert processor.process_volume(0.5).is_calibrating is True

    def test_samples_before_start_are_not_buffered(self, clock):
        processor = AdaptiveVADProcessor(clock=clock)
        for _ in range(500):
            processor.process_volume(0.4)
            clock.advance(50)

        assert processor._calibration_samples == []

        processor.start_calibration()
        processor.process_volume(0.03)
        processor.finish_calibration()
        assert processor.get_state().noise_floor == pytest.approx(0.03)

    def test_restart_calibration_clears_samples(self, clock):
        processor = AdaptiveVADProcessor(clock=clock)
        processor.start_calibration()
        processor.process_volume(0.4)
        processor.start_calibration()
        processor.process_volume(0.03)
        processor.finish_calibration()

        assert processor.get_state().noise_floor == pytest.approx(0.03)


class TestNoiseFloor:

    def test_fast_down(self, clock):
        processor = calibrated(clock)
        processor.set_noise_floor(0.1)

        result = processor.process_volume(0.06)

        assert result.noise_floor == 0.06

    def test_slow_up(self, clock):
        processor = calibrated(clock)
        processor.set_noise_floor(0.1)
        processor.process_volume(0.06)

        result = processor.process_volume(0.26)

        assert result.noise_floor == pytest.approx(0.95 * 0.06 + 0.05 * 0.26)

    def test_periodic_history_correction(self, clock):
        processor = calibrated(clock, noise_decay_factor=1.0)
        processor.set_noise_floor(0.04)

        for _ in range(19):
            processor.process_volume(0.2)
        assert processor.get_state().noise_floor == pytest.approx(0.04)

        processor.process_volume(0.2)
        assert processor.get_state().noise_floor == pytest.approx(0.04 * 0.7 + 0.2 * 0.3)

    def test_history_is_bounded(self, clock):
        processor = calibrated(clock, history_size=30)
        for i in range(100):
            processor.process_volume(i / 100)

        assert len(processor.history) == 30
        assert processor.history[-1] == pytest.approx(0.99)

    def test_set_noise_floor_clamps(self, clock):
        processor = calibrated(clock)

        processor.set_noise_floor(0.9)
        assert processor.get_state().noise_floor == 0.5
        assert processor.get_state().adaptive_threshold == pytest.approx(0.25)

        processor.set_noise_floor(0.0)
        assert processor.get_state().noise_floor == 0.01
        assert processor.get_state().adaptive_threshold == pytest.approx(0.04)


class TestThresholdAndHysteresis:

    def test_threshold_always_within_bounds(self, clock):
        rng = random.Random(42)
        for snr in (1.0, 2.5, 8.0):
            processor = calibrated(clock, snr_factor=snr)
            for _ in range(500):
                result = processor.process_volume(rng.random())
                assert 0.04 <= result.threshold <= 0.25

    def test_dead_zone(self, clock):
        processor = calibrated(clock, noise_decay_factor=1.0)
        processor.set_noise_floor(0.04)
        assert processor.get_state().adaptive_threshold == pytest.approx(0.1)

        # Not speaking: T + h - eps does not start speech
        assert processor.process_volume(0.11).is_voice is False
        # Above T + h starts it
        assert processor.process_volume(0.2).is_voice is True
        # Speaking: T - h + eps keeps it
        assert processor.process_volume(0.09).is_voice is True
        # Below T - h ends it
        assert processor.process_volume(0.08).is_voice is False

    def test_snr_factor_scales_threshold(self, clock):
        processor = calibrated(clock, noise_decay_factor=1.0)
        processor.set_noise_floor(0.04)
        before = processor.process_volume(0.04).threshold

        processor.update_config(snr_factor=5.0)
        after = processor.process_volume(0.04).threshold

        assert before == pytest.approx(0.1)
        assert after == pytest.approx(before * 5.0 / 2.5)

        processor.update_config(snr_factor=10.0)
        assert processor.process_volume(0.04).threshold == pytest.approx(0.25)


class TestInputAndConfig:

    def test_out_of_range_samples_are_clamped(self, clock):
        processor = calibrated(clock)

        processor.process_volume(1.5)
        assert processor.history[-1] == 1.0

        result = processor.process_volume(-0.2)
        assert processor.history[-1] == 0.0
        assert result.noise_floor == 0.0

    def test_nan_is_silence(self, clock):
        processor = calibrated(clock)
        result = processor.process_volume(float('nan'))

        assert processor.history[-1] == 0.0
        assert result.is_voice is False

    @pytest.mark.parametrize("overrides", [
        {"history_size": 0},
        {"noise_percentile": 1.5},
        {"noise_decay_factor": -0.1},
        {"min_threshold": 0.3, "max_threshold": 0.2},
        {"snr_factor": 0},
        {"hysteresis": -0.01},
        {"calibration_duration_ms": -1},
    ])
    def test_invalid_config_rejected(self, overrides):
        with pytest.raises(ValueError):
            AdaptiveVADConfig(**overrides)

    def test_invalid_update_keeps_config(self, clock):
        processor = calibrated(clock)
        with pytest.raises(ValueError):
            processor.update_config(min_threshold=0.5)
        assert processor.config.min_threshold == 0.04

    def test_update_history_size_keeps_recent_samples(self, clock):
        processor = calibrated(clock)
        for level in (0.1, 0.2, 0.3, 0.4):
            processor.process_volume(level)

        processor.update_config(history_size=2)

        assert processor.history == [0.3, 0.4]

    def test_from_config_reads_environment_constants(self, monkeypatch):
        import config
        monkeypatch.setattr(config, "VAD_SNR_FACTOR", 3.0)
        monkeypatch.setattr(config, "VAD_CALIBRATION_MS", 1000)

        vad_config = AdaptiveVADConfig.from_config()

        assert vad_config.snr_factor == 3.0
        assert vad_config.calibration_duration_ms == 1000


class TestStateAndReset:

    def test_get_state_returns_copy(self, clock):
        processor = calibrated(clock)
        state = processor.get_state()
        state.noise_floor = 0.9

        assert processor.get_state().noise_floor == pytest.approx(0.05)

    def test_reset_is_idempotent(self, clock):
        processor = calibrated(clock)
        for level in (0.3, 0.5, 0.02):
            processor.process_volume(level)

        processor.reset()
        first = processor.get_state()
        processor.reset()

        assert processor.get_state() == first == AdaptiveVADState()
        assert processor.history == []
        assert first.noise_floor == 0.08
        assert first.adaptive_threshold == 0.12

    def test_reset_keeps_config(self, clock):
        processor = calibrated(clock, snr_factor=4.0)
        processor.reset()
        assert processor.config.snr_factor == 4.0


def test_percentile_value():
    values = [0.01, 0.02, 0.03, 0.04, 0.05]
    assert percentile_value(values, 0.5) == 0.03
    assert percentile_value(values, 0.1) == 0.01
    assert percentile_value(values, 1.0) == 0.05
