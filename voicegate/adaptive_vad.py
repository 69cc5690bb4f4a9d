"""
Adaptive Voice Activity Detection

Turns a stream of scalar RMS volume levels (0-1, one per ~50ms frame) into a
debounced speech/non-speech decision without any fixed threshold:

- Calibration: the first calibration_duration_ms of a session only listen.
  The noise floor starts at the median of those samples, so a cough during
  calibration does not inflate it the way a mean would.
- Noise floor tracking: follows quiet levels down immediately, rises slowly,
  and is periodically blended with a low percentile of recent history.
- Threshold: noise_floor * snr_factor, clamped to [min_threshold, max_threshold].
- Hysteresis: speech starts above threshold + hysteresis and ends below
  threshold - hysteresis.

One processor per listening session. Not thread-safe.
"""

import math
import time
from collections import deque
from dataclasses import dataclass, replace, asdict
from typing import Callable, Deque, List, Optional

import config
from .base_module import BaseModule
from .logging_utils import log_debug, log_vad, log_warning, percent

INITIAL_NOISE_FLOOR = 0.08
INITIAL_PEAK_LEVEL = 0.08
INITIAL_THRESHOLD = 0.12
DEFAULT_CALIBRATION_FLOOR = 0.05

# Periodic history correction
HISTORY_MIN_SAMPLES = 20
HISTORY_CORRECTION_EVERY = 10
HISTORY_BLEND = 0.3

PEAK_DECAY = 0.99
MANUAL_FLOOR_MIN = 0.01
MANUAL_FLOOR_MAX = 0.5


@dataclass(frozen=True)
class AdaptiveVADConfig:
    enabled: bool = True
    snr_factor: float = 2.5
    history_size: int = 100  # ~5s at 50ms per sample
    hysteresis: float = 0.015
    calibration_duration_ms: int = 2000
    noise_percentile: float = 0.1
    min_threshold: float = 0.04
    max_threshold: float = 0.25
    noise_decay_factor: float = 0.95

    def __post_init__(self):
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        if not 0.0 <= self.noise_percentile <= 1.0:
            raise ValueError(f"noise_percentile must be in [0, 1], got {self.noise_percentile}")
        if not 0.0 <= self.noise_decay_factor <= 1.0:
            raise ValueError(f"noise_decay_factor must be in [0, 1], got {self.noise_decay_factor}")
        if self.min_threshold > self.max_threshold:
            raise ValueError(
                f"min_threshold ({self.min_threshold}) must not exceed max_threshold ({self.max_threshold})"
            )
        if self.snr_factor <= 0:
            raise ValueError(f"snr_factor must be positive, got {self.snr_factor}")
        if self.hysteresis < 0 or self.calibration_duration_ms < 0:
            raise ValueError("hysteresis and calibration_duration_ms must not be negative")

    @classmethod
    def from_config(cls) -> "AdaptiveVADConfig":
        """Build from config.py (environment overrides)."""
        return cls(
            enabled=getattr(config, "VAD_ADAPTIVE_ENABLED", True),
            snr_factor=getattr(config, "VAD_SNR_FACTOR", 2.5),
            history_size=getattr(config, "VAD_HISTORY_SIZE", 100),
            hysteresis=getattr(config, "VAD_HYSTERESIS", 0.015),
            calibration_duration_ms=getattr(config, "VAD_CALIBRATION_MS", 2000),
            noise_percentile=getattr(config, "VAD_NOISE_PERCENTILE", 0.1),
            min_threshold=getattr(config, "VAD_MIN_THRESHOLD", 0.04),
            max_threshold=getattr(config, "VAD_MAX_THRESHOLD", 0.25),
            noise_decay_factor=getattr(config, "VAD_NOISE_DECAY", 0.95),
        )


DEFAULT_ADAPTIVE_CONFIG = AdaptiveVADConfig()


@dataclass
class AdaptiveVADState:
    noise_floor: float = INITIAL_NOISE_FLOOR
    peak_level: float = INITIAL_PEAK_LEVEL  # Diagnostics only, not used for decisions
    adaptive_threshold: float = INITIAL_THRESHOLD
    is_calibrated: bool = False
    is_speaking: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class VolumeResult:
    """Per-frame output of AdaptiveVADProcessor.process_volume()."""
    threshold: float
    is_voice: bool
    noise_floor: float
    is_calibrating: bool


def percentile_value(sorted_values: List[float], fraction: float) -> float:
    """Element at floor(n * fraction) of an ascending list (last element if out of range)."""
    index = min(int(math.floor(len(sorted_values) * fraction)), len(sorted_values) - 1)
    return sorted_values[index]


class AdaptiveVADProcessor(BaseModule):
    """Adaptive-threshold speech detector over scalar volume levels."""

    def __init__(self, vad_config: Optional[AdaptiveVADConfig] = None,
                 clock: Callable[[], float] = time.monotonic,
                 debug: bool = False, verbose: bool = True, event_bus=None):
        """
        Args:
            vad_config: Tunables (default: DEFAULT_ADAPTIVE_CONFIG)
            clock: Monotonic time source in seconds, used only to time calibration
            debug: Enable debug logging
        """
        super().__init__(__name__, debug=debug, verbose=verbose, event_bus=event_bus)
        self.config = vad_config or DEFAULT_ADAPTIVE_CONFIG
        self._clock = clock
        self._state = AdaptiveVADState()
        self._history: Deque[float] = deque(maxlen=self.config.history_size)
        self._calibration_samples: List[float] = []
        self._calibration_started_at: Optional[float] = None

    def start_calibration(self) -> None:
        """Begin the calibration phase. Call once at the start of every listening session."""
        self._calibration_started_at = self._clock()
        self._calibration_samples = []
        self._state.is_calibrated = False
        log_vad(self.logger, "Calibrating ambient noise...")

    def is_calibration_complete(self) -> bool:
        if self._state.is_calibrated:
            return True
        if self._calibration_started_at is None:
            return False
        elapsed_ms = (self._clock() - self._calibration_started_at) * 1000.0
        return elapsed_ms >= self.config.calibration_duration_ms

    def finish_calibration(self) -> None:
        """Set the initial noise floor from the median calibration sample."""
        sample_count = len(self._calibration_samples)
        if sample_count == 0:
            log_warning(
                self.logger,
                f"No calibration samples received - audio source may be broken, "
                f"using default noise floor {DEFAULT_CALIBRATION_FLOOR:.2f}"
            )
            self._state.noise_floor = DEFAULT_CALIBRATION_FLOOR
        else:
            median = percentile_value(sorted(self._calibration_samples), 0.5)
            self._state.noise_floor = median or DEFAULT_CALIBRATION_FLOOR

        self._state.adaptive_threshold = self._calculate_threshold(self._state.noise_floor)
        self._state.is_calibrated = True

        log_vad(
            self.logger,
            f"Calibration complete: noise floor {percent(self._state.noise_floor)}, "
            f"threshold {percent(self._state.adaptive_threshold)} ({sample_count} samples)"
        )

        self._calibration_samples = []
        self._calibration_started_at = None

    def process_volume(self, volume: float) -> VolumeResult:
        """
        Process one volume sample.

        Args:
            volume: Normalized RMS level of the frame (0-1)

        Returns:
            VolumeResult with the current threshold, speech decision and noise floor.
            is_voice is always False while calibrating.
        """
        volume = self._clamp_sample(volume)

        if not self._state.is_calibrated:
            # Samples before start_calibration() are not part of any window
            if self._calibration_started_at is not None:
                self._calibration_samples.append(volume)
            if self.is_calibration_complete():
                self.finish_calibration()
            return VolumeResult(
                threshold=self._state.adaptive_threshold,
                is_voice=False,
                noise_floor=self._state.noise_floor,
                is_calibrating=True,
            )

        self._history.append(volume)
        self._update_noise_floor(volume)

        if volume > self._state.peak_level:
            self._state.peak_level = volume
        else:
            self._state.peak_level = self._state.peak_level * PEAK_DECAY + volume * (1 - PEAK_DECAY)

        self._state.adaptive_threshold = self._calculate_threshold(self._state.noise_floor)
        is_voice = self._detect_with_hysteresis(volume)

        return VolumeResult(
            threshold=self._state.adaptive_threshold,
            is_voice=is_voice,
            noise_floor=self._state.noise_floor,
            is_calibrating=False,
        )

    def _clamp_sample(self, volume: float) -> float:
        volume = float(volume)
        if math.isnan(volume):
            log_debug(self.logger, "NaN volume sample treated as silence")
            return 0.0
        if volume < 0.0 or volume > 1.0:
            log_debug(self.logger, f"Volume {volume} outside [0, 1], clamping")
            return min(1.0, max(0.0, volume))
        return volume

    def _update_noise_floor(self, volume: float) -> None:
        # Fast down: silence is recognized immediately
        if volume < self._state.noise_floor:
            self._state.noise_floor = volume
        else:
            decay = self.config.noise_decay_factor
            self._state.noise_floor = decay * self._state.noise_floor + (1 - decay) * volume

        history_length = len(self._history)
        if history_length >= HISTORY_MIN_SAMPLES and history_length % HISTORY_CORRECTION_EVERY == 0:
            historical = percentile_value(sorted(self._history), self.config.noise_percentile)
            historical = historical or self._state.noise_floor
            self._state.noise_floor = (
                self._state.noise_floor * (1 - HISTORY_BLEND) + historical * HISTORY_BLEND
            )

    def _calculate_threshold(self, noise_floor: float) -> float:
        threshold = noise_floor * self.config.snr_factor
        return max(self.config.min_threshold, min(self.config.max_threshold, threshold))

    def _detect_with_hysteresis(self, volume: float) -> bool:
        threshold = self._state.adaptive_threshold
        hysteresis = self.config.hysteresis

        if not self._state.is_speaking:
            if volume > threshold + hysteresis:
                self._state.is_speaking = True
        elif volume < threshold - hysteresis:
            self._state.is_speaking = False

        return self._state.is_speaking

    def get_state(self) -> AdaptiveVADState:
        return replace(self._state)

    def update_config(self, **changes) -> None:
        """Merge changes into the config (validated). Applies from the next sample."""
        self.config = replace(self.config, **changes)
        if self._history.maxlen != self.config.history_size:
            self._history = deque(self._history, maxlen=self.config.history_size)
        log_debug(self.logger, f"Adaptive VAD config updated: {changes}")

    def reset(self) -> None:
        """Restore initial state and clear buffers. Config is kept."""
        self._state = AdaptiveVADState()
        self._history.clear()
        self._calibration_samples = []
        self._calibration_started_at = None

    def set_noise_floor(self, value: float) -> None:
        """Force a noise floor (clamped to [0.01, 0.5]) and recompute the threshold."""
        self._state.noise_floor = max(MANUAL_FLOOR_MIN, min(MANUAL_FLOOR_MAX, value))
        self._state.adaptive_threshold = self._calculate_threshold(self._state.noise_floor)

    @property
    def history(self) -> List[float]:
        """Copy of the steady-state history buffer, oldest first."""
        return list(self._history)
