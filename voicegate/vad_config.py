"""VAD presets for the frame-level detector (debounce timings + fixed fallback threshold)."""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from .adaptive_vad import AdaptiveVADConfig, DEFAULT_ADAPTIVE_CONFIG


@dataclass(frozen=True)
class VADConfig:
    volume_threshold: float = 0.015  # Fixed threshold when adaptive mode is off
    speech_start_delay_ms: int = 200  # Voice must persist this long before speech_start
    silence_timeout_ms: int = 1500  # Silence this long ends the utterance
    min_speech_duration_ms: int = 500  # Shorter utterances are dropped (clicks, bumps)
    analysis_interval_ms: int = 50  # Expected spacing of volume samples
    adaptive: Optional[AdaptiveVADConfig] = DEFAULT_ADAPTIVE_CONFIG

    @property
    def adaptive_enabled(self) -> bool:
        return self.adaptive is not None and self.adaptive.enabled


DEFAULT_VAD_CONFIG = VADConfig()

NOISY_VAD_CONFIG = VADConfig(
    volume_threshold=0.03,
    speech_start_delay_ms=300,
    silence_timeout_ms=2000,
    min_speech_duration_ms=700,
    analysis_interval_ms=50,
)

QUIET_VAD_CONFIG = VADConfig(
    volume_threshold=0.008,
    speech_start_delay_ms=150,
    silence_timeout_ms=1200,
    min_speech_duration_ms=400,
    analysis_interval_ms=50,
)

# Listening while TTS is playing: higher bar, faster reaction to interruptions
BARGEIN_VAD_CONFIG = VADConfig(
    volume_threshold=0.025,
    speech_start_delay_ms=150,
    silence_timeout_ms=1000,
    min_speech_duration_ms=300,
    analysis_interval_ms=30,
)

VAD_PRESETS: Dict[str, VADConfig] = {
    'default': DEFAULT_VAD_CONFIG,
    'noisy': NOISY_VAD_CONFIG,
    'quiet': QUIET_VAD_CONFIG,
    'bargein': BARGEIN_VAD_CONFIG,
}


def get_vad_config(preset: str = 'default') -> VADConfig:
    if preset not in VAD_PRESETS:
        raise ValueError(f"Unknown VAD preset {preset!r} (expected one of {sorted(VAD_PRESETS)})")
    return replace(VAD_PRESETS[preset])


def create_vad_config(preset: str = 'default', **overrides) -> VADConfig:
    """Preset with field overrides, e.g. create_vad_config('noisy', silence_timeout_ms=2500)."""
    return replace(get_vad_config(preset), **overrides)
