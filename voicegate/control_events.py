from dataclasses import dataclass
from typing import Any, Dict, Optional, Set
import time


EVENT_SPEECH_START = "speech_start"
EVENT_SPEECH_END = "speech_end"
EVENT_VOLUME_CHANGE = "volume_change"
EVENT_LISTENING_START = "listening_start"
EVENT_LISTENING_STOP = "listening_stop"
EVENT_CALIBRATION_START = "calibration_start"
EVENT_CALIBRATION_END = "calibration_end"
EVENT_THRESHOLD_UPDATE = "threshold_update"
EVENT_TRANSCRIPT_ACCEPTED = "transcript_accepted"
EVENT_TRANSCRIPT_REJECTED = "transcript_rejected"

# Events emitted by the frame-level voice activity detector
VAD_EVENTS = (
    EVENT_SPEECH_START,
    EVENT_SPEECH_END,
    EVENT_VOLUME_CHANGE,
    EVENT_LISTENING_START,
    EVENT_LISTENING_STOP,
    EVENT_CALIBRATION_START,
    EVENT_CALIBRATION_END,
    EVENT_THRESHOLD_UPDATE,
)

# High-rate telemetry, shed first when the bus queue backs up
LOSSY_EVENTS = frozenset({
    EVENT_VOLUME_CHANGE,
    EVENT_THRESHOLD_UPDATE,
})


@dataclass(frozen=True)
class ControlEvent:
    name: str
    payload: Dict[str, Any]
    timestamp: float
    source: Optional[str] = None
    correlation_id: Optional[str] = None

    @staticmethod
    def now(
        name: str,
        payload: Optional[Dict[str, Any]] = None,
        source: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> "ControlEvent":
        return ControlEvent(
            name=name,
            payload=payload or {},
            timestamp=time.time(),
            source=source,
            correlation_id=correlation_id,
        )


def new_event(
    name: str,
    payload: Optional[Dict[str, Any]] = None,
    source: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> ControlEvent:
    """Helper to create ControlEvent with consistent metadata."""
    return ControlEvent.now(
        name=name,
        payload=payload,
        source=source,
        correlation_id=correlation_id,
    )


ALLOWED_EVENTS: Set[str] = set(VAD_EVENTS) | {
    EVENT_TRANSCRIPT_ACCEPTED,
    EVENT_TRANSCRIPT_REJECTED,
}
