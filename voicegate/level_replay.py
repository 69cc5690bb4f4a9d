"""
Level Replay - offline VAD calibration

Runs a recording through the frame-level detector with a simulated clock
(one tick per frame), so thresholds and timings can be tuned without a
microphone:

    voicegate-replay recording.wav --preset noisy
    voicegate-replay recording.wav --transcript "hola, quiero una cita" --language es
"""

import argparse
import sys
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

import soundfile as sf

import config
from .adaptive_vad import AdaptiveVADConfig
from .audio_levels import frame_levels
from .control_events import EVENT_SPEECH_END, EVENT_SPEECH_START
from .logging_utils import setup_logger, log_info, log_success, log_warning, log_error, percent
from .transcription_validator import SuggestedAction, TranscriptionValidator
from .vad_config import VADConfig, create_vad_config, VAD_PRESETS
from .voice_activity_detector import VoiceActivityDetector

logger = setup_logger(__name__)


class FrameClock:
    """Simulated monotonic clock advanced by the replay loop."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


@dataclass
class SpeechSegment:
    start_s: float
    end_s: float
    duration_ms: float


@dataclass
class ReplayReport:
    frames: int
    frame_ms: int
    segments: List[SpeechSegment] = field(default_factory=list)
    noise_floor: float = 0.0
    threshold: float = 0.0
    calibrated: bool = False


def replay_levels(levels: Sequence[float], vad_config: Optional[VADConfig] = None,
                  frame_ms: Optional[int] = None, debug: bool = False) -> ReplayReport:
    """
    Feed precomputed volume levels through a fresh detector.

    The detector is stopped at the end, so an utterance still open at the
    end of the recording is closed and reported.
    """
    vad_config = vad_config or create_vad_config(getattr(config, 'VAD_PRESET', 'default'))
    frame_ms = frame_ms or vad_config.analysis_interval_ms
    clock = FrameClock()
    vad = VoiceActivityDetector(vad_config, clock=clock, debug=debug)

    report = ReplayReport(frames=len(levels), frame_ms=frame_ms)
    open_segment = {}

    def on_start(_data):
        open_segment['start'] = clock()

    def on_end(data):
        start = open_segment.pop('start', clock())
        report.segments.append(SpeechSegment(start_s=start, end_s=clock(), duration_ms=data.get('duration', 0.0)))

    vad.on(EVENT_SPEECH_START, on_start)
    vad.on(EVENT_SPEECH_END, on_end)

    vad.start()
    for level in levels:
        vad.process_level(level)
        clock.advance_ms(frame_ms)

    report.noise_floor = vad.get_noise_floor()
    report.threshold = vad.get_current_threshold()
    report.calibrated = not vad.is_calibrating()
    vad.dispose()
    return report


def replay_file(path: str, vad_config: Optional[VADConfig] = None, debug: bool = False) -> ReplayReport:
    """Read an audio file (any format soundfile supports) and replay its levels."""
    vad_config = vad_config or create_vad_config(getattr(config, 'VAD_PRESET', 'default'))
    audio, sample_rate = sf.read(path, dtype='int16', always_2d=False)
    levels = frame_levels(audio, sample_rate, vad_config.analysis_interval_ms)
    return replay_levels(levels, vad_config, debug=debug)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a recording through the adaptive VAD")
    parser.add_argument("audio", help="Audio file (WAV/FLAC/OGG)")
    parser.add_argument("--preset", default=getattr(config, 'VAD_PRESET', 'default'), choices=sorted(VAD_PRESETS))
    parser.add_argument("--fixed", action="store_true", help="Disable adaptive mode (fixed threshold)")
    parser.add_argument("--snr-factor", type=float, default=None, help="Override the adaptive SNR factor")
    parser.add_argument("--transcript", default=None, help="Also validate this STT transcript")
    parser.add_argument("--language", default=getattr(config, 'TRANSCRIPT_LANGUAGE', 'es'), choices=["es", "en"])
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    adaptive = None
    if not args.fixed:
        adaptive = AdaptiveVADConfig.from_config()
        if args.snr_factor is not None:
            adaptive = replace(adaptive, snr_factor=args.snr_factor)
    vad_config = create_vad_config(args.preset, adaptive=adaptive)

    try:
        report = replay_file(args.audio, vad_config, debug=args.debug)
    except (RuntimeError, OSError) as e:
        log_error(logger, f"Could not read {args.audio}: {e}")
        return 1

    log_info(logger, f"{report.frames} frames of {report.frame_ms}ms")
    if not report.calibrated:
        log_warning(logger, "Recording ended before calibration finished")
    log_info(logger, f"Noise floor: {percent(report.noise_floor)} | Threshold: {percent(report.threshold)}")
    if report.segments:
        for i, segment in enumerate(report.segments, 1):
            log_success(logger, f"Speech {i}: {segment.start_s:.2f}s -> {segment.end_s:.2f}s ({segment.duration_ms:.0f}ms)")
    else:
        log_warning(logger, "No speech detected")

    if args.transcript is not None:
        validator = TranscriptionValidator(language=args.language, debug=args.debug)
        result = validator.validate(args.transcript)
        log_info(logger, f"Transcript: {result.suggested_action.value} (confidence {result.confidence:.2f})")
        if result.reason:
            log_info(logger, f"Reason: {result.reason}")
        if result.suggested_action == SuggestedAction.ASK_REPEAT:
            log_info(logger, f"Prompt: {validator.repeat_message()}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
