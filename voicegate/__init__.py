"""Voice front-end pipeline: adaptive VAD and STT transcript validation."""

from .adaptive_vad import (
    AdaptiveVADConfig,
    AdaptiveVADProcessor,
    AdaptiveVADState,
    DEFAULT_ADAPTIVE_CONFIG,
    VolumeResult,
)
from .transcription_validator import (
    SuggestedAction,
    TranscriptionValidationResult,
    TranscriptionValidator,
    get_repeat_request_message,
    needs_validation,
    validate_transcription,
)
