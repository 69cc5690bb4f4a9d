"""
Frame-level Voice Activity Detector

Consumes one volume level per audio frame and emits utterance-level events:

    listening_start -> calibration_start -> calibration_end
    -> speech_start -> speech_end -> ... -> listening_stop

Speech decisions come from AdaptiveVADProcessor (adaptive mode) or a fixed
volume threshold. On top of that decision:
- speech_start fires only after speech_start_delay_ms of continuous voice
- speech_end fires after silence_timeout_ms of continuous silence, and only
  if the utterance lasted min_speech_duration_ms (shorter ones are dropped)

There are no timers: every timing is checked against the clock when a frame
arrives, so the detector runs inside whatever loop delivers audio frames.
"""

import time
from dataclasses import dataclass, asdict, replace
from typing import Callable, Dict, List, Optional, Union

import numpy as np

import config
from .adaptive_vad import AdaptiveVADProcessor
from .audio_levels import normalized_rms
from .base_module import BaseModule
from .control_events import (
    ControlEvent,
    EVENT_CALIBRATION_END,
    EVENT_CALIBRATION_START,
    EVENT_LISTENING_START,
    EVENT_LISTENING_STOP,
    EVENT_SPEECH_END,
    EVENT_SPEECH_START,
    EVENT_THRESHOLD_UPDATE,
    EVENT_VOLUME_CHANGE,
    VAD_EVENTS,
)
from .logging_utils import log_debug, log_vad, log_warning, percent
from .vad_config import VADConfig, get_vad_config

VOLUME_CHANGE_DELTA = 0.005
THRESHOLD_CHANGE_DELTA = 0.005
STATUS_LOG_EVERY = 20  # frames (~1s at 50ms)

VADCallback = Callable[[Dict[str, float]], None]


@dataclass
class VADState:
    is_listening: bool = False
    is_speaking: bool = False
    current_volume: float = 0.0
    speech_start_time: Optional[float] = None
    last_speech_time: Optional[float] = None
    is_calibrating: bool = False
    adaptive_threshold: float = 0.015
    noise_floor: float = 0.05


class VoiceActivityDetector(BaseModule):
    """Debounced speech segmentation over a stream of volume levels."""

    def __init__(self, vad_config: Optional[VADConfig] = None,
                 clock: Callable[[], float] = time.monotonic,
                 debug: bool = False, verbose: bool = True, event_bus=None):
        """
        Args:
            vad_config: Timings and thresholds (default: preset config.VAD_PRESET)
            clock: Monotonic time source in seconds
            debug: Enable debug logging
            event_bus: Optional EventBus; every emitted event is also published there
        """
        super().__init__(__name__, debug=debug, verbose=verbose, event_bus=event_bus)
        if vad_config is None:
            vad_config = get_vad_config(getattr(config, 'VAD_PRESET', 'default'))
        self.config = vad_config
        self._clock = clock
        self._state = VADState(adaptive_threshold=vad_config.volume_threshold)
        self._callbacks: Dict[str, List[VADCallback]] = {}

        self.processor: Optional[AdaptiveVADProcessor] = None
        if self.config.adaptive_enabled:
            self.processor = self._create_processor()

        self._pending_speech_since: Optional[float] = None
        self._silence_since: Optional[float] = None
        self._last_reported_threshold = 0.0
        self._frame_count = 0

    def _create_processor(self) -> AdaptiveVADProcessor:
        return AdaptiveVADProcessor(
            self.config.adaptive,
            clock=self._clock,
            debug=self.debug,
            verbose=self.verbose,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._state.is_listening:
            log_warning(self.logger, "Already listening")
            return

        self._state.is_listening = True
        self._frame_count = 0
        self._emit(EVENT_LISTENING_START)

        if self.processor:
            self.processor.start_calibration()
            self._state.is_calibrating = True
            self._emit(EVENT_CALIBRATION_START)

        mode = "adaptive" if self.processor else "fixed"
        log_vad(self.logger, f"Listening ({mode} threshold {self.config.volume_threshold:.3f})")

    def stop(self) -> None:
        if not self._state.is_listening:
            return

        if self._state.is_speaking:
            self._handle_speech_end(self._clock())

        self._cleanup()
        self._state.is_listening = False
        self._emit(EVENT_LISTENING_STOP)
        log_vad(self.logger, "Stopped listening")

    def dispose(self) -> None:
        self.stop()
        self._callbacks.clear()

    def _cleanup(self) -> None:
        self._pending_speech_since = None
        self._silence_since = None
        if self.processor:
            self.processor.reset()
        self._state.is_calibrating = False

    # ------------------------------------------------------------------
    # Frame processing
    # ------------------------------------------------------------------

    def process_frame(self, frame: Union[bytes, np.ndarray]) -> bool:
        """Process one int16 PCM frame. Returns the current speaking state."""
        return self.process_level(normalized_rms(frame))

    def process_level(self, volume: float) -> bool:
        """
        Process one volume level (0-1).

        Returns:
            True while an utterance is in progress (after speech_start, before speech_end)
        """
        if not self._state.is_listening:
            return False

        now = self._clock()
        previous_volume = self._state.current_volume
        self._state.current_volume = volume

        if self.processor:
            result = self.processor.process_volume(volume)
            self._state.adaptive_threshold = result.threshold
            self._state.noise_floor = result.noise_floor

            if self._state.is_calibrating and self.processor.is_calibration_complete():
                self._state.is_calibrating = False
                self._emit(EVENT_CALIBRATION_END, threshold=result.threshold, noise_floor=result.noise_floor)

            if abs(result.threshold - self._last_reported_threshold) > THRESHOLD_CHANGE_DELTA:
                self._last_reported_threshold = result.threshold
                self._emit(EVENT_THRESHOLD_UPDATE, threshold=result.threshold, noise_floor=result.noise_floor)

            is_voice = result.is_voice and not result.is_calibrating
        else:
            self._state.adaptive_threshold = self.config.volume_threshold
            is_voice = volume > self.config.volume_threshold

        self._frame_count += 1
        if self.debug and self._frame_count % STATUS_LOG_EVERY == 0:
            if self._state.is_speaking:
                status = "SPEAKING"
            elif self._state.is_calibrating:
                status = "CALIBRATING"
            else:
                status = "SILENT"
            log_debug(
                self.logger,
                f"Vol: {percent(volume, 1)} | Thr: {percent(self._state.adaptive_threshold, 1)} | "
                f"Noise: {percent(self._state.noise_floor, 1)} | {status}"
            )

        if abs(volume - previous_volume) > VOLUME_CHANGE_DELTA:
            self._emit(EVENT_VOLUME_CHANGE, volume=volume)

        if self._state.is_calibrating:
            return False

        if is_voice:
            self._handle_voice(now)
        else:
            self._handle_silence(now)
        return self._state.is_speaking

    def _handle_voice(self, now: float) -> None:
        self._state.last_speech_time = now
        self._silence_since = None

        if self._state.is_speaking:
            return

        if self._pending_speech_since is None:
            self._pending_speech_since = now
        if (now - self._pending_speech_since) * 1000.0 >= self.config.speech_start_delay_ms:
            self._pending_speech_since = None
            self._handle_speech_start(now)

    def _handle_silence(self, now: float) -> None:
        self._pending_speech_since = None

        if not self._state.is_speaking:
            return

        if self._silence_since is None:
            self._silence_since = now
        if (now - self._silence_since) * 1000.0 < self.config.silence_timeout_ms:
            return

        self._silence_since = None
        speech_ms = (now - self._state.speech_start_time) * 1000.0
        if speech_ms >= self.config.min_speech_duration_ms:
            self._handle_speech_end(now)
        else:
            log_debug(self.logger, f"Speech ignored - too short: {speech_ms:.0f}ms")
            self._state.is_speaking = False
            self._state.speech_start_time = None

    def _handle_speech_start(self, now: float) -> None:
        if self._state.is_speaking:
            return
        self._state.is_speaking = True
        self._state.speech_start_time = now
        log_vad(self.logger, "Speech started")
        self._emit(EVENT_SPEECH_START)

    def _handle_speech_end(self, now: float) -> None:
        if not self._state.is_speaking:
            return
        duration_ms = 0.0
        if self._state.speech_start_time is not None:
            duration_ms = (now - self._state.speech_start_time) * 1000.0
        self._state.is_speaking = False
        self._state.speech_start_time = None
        log_vad(self.logger, f"Speech ended ({duration_ms:.0f}ms)")
        self._emit(EVENT_SPEECH_END, duration=duration_ms)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def set_threshold(self, threshold: float) -> None:
        """Set the fixed-mode volume threshold (0-1)."""
        if threshold < 0 or threshold > 1:
            log_warning(self.logger, f"Threshold must be between 0 and 1, got {threshold}")
            return
        self.config = replace(self.config, volume_threshold=threshold)
        log_debug(self.logger, f"Threshold set to {threshold}")

    def update_config(self, **changes) -> None:
        """
        Merge changes into the config.

        Passing adaptive=<AdaptiveVADConfig> reconfigures (or enables) adaptive
        mode; adaptive=None or a config with enabled=False switches to the
        fixed threshold.
        """
        self.config = replace(self.config, **changes)
        if 'adaptive' not in changes:
            return

        if self.config.adaptive_enabled:
            if self.processor is None:
                self.processor = self._create_processor()
                log_vad(self.logger, "Adaptive mode enabled")
                if self._state.is_listening:
                    self.recalibrate()
            else:
                self.processor.update_config(**asdict(self.config.adaptive))
        elif self.processor is not None:
            self.processor = None
            self._state.is_calibrating = False
            log_vad(self.logger, "Adaptive mode disabled")

    def recalibrate(self) -> None:
        """Restart noise calibration while listening (adaptive mode only)."""
        if self.processor and self._state.is_listening:
            self.processor.start_calibration()
            self._state.is_calibrating = True
            self._emit(EVENT_CALIBRATION_START)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_calibrating(self) -> bool:
        return self._state.is_calibrating

    def get_current_threshold(self) -> float:
        return self._state.adaptive_threshold

    def get_noise_floor(self) -> float:
        return self._state.noise_floor

    def get_state(self) -> VADState:
        return replace(self._state)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event: str, callback: VADCallback) -> None:
        if event not in VAD_EVENTS:
            raise ValueError(f"Unknown VAD event: {event}")
        self._callbacks.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Optional[VADCallback] = None) -> None:
        """Remove one callback, or every callback for the event when none is given."""
        if event not in self._callbacks:
            return
        if callback is None:
            del self._callbacks[event]
            return
        try:
            self._callbacks[event].remove(callback)
        except ValueError:
            pass

    def _emit(self, event: str, **data) -> None:
        for callback in list(self._callbacks.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                log_warning(self.logger, f"VAD callback error for {event}: {e}")

        if self.event_bus is not None:
            self.publish(ControlEvent.now(event, payload=data, source='vad'))
