"""
Pause classification for turn-taking.

Decides what a silence after speech means:
- breath: the user keeps talking
- thought: the user might continue, wait a bit
- sentence_end: the user probably finished, process the utterance
- long_silence: the user is done, end the listening session
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

import config


class PauseType(str, Enum):
    NONE = 'none'
    BREATH = 'breath'
    THOUGHT = 'thought'
    SENTENCE_END = 'sentence_end'
    LONG_SILENCE = 'long_silence'


class PauseAction(str, Enum):
    CONTINUE = 'continue'
    WAIT = 'wait'
    PROCESS = 'process'
    END_SESSION = 'end_session'


@dataclass(frozen=True)
class PauseThresholds:
    breath_max_ms: float = 500
    thought_max_ms: float = 1200
    sentence_end_max_ms: float = 2500
    long_silence_min_ms: float = 2500

    @classmethod
    def from_config(cls) -> "PauseThresholds":
        sentence_end = getattr(config, "PAUSE_SENTENCE_END_MAX_MS", 2500)
        return cls(
            breath_max_ms=getattr(config, "PAUSE_BREATH_MAX_MS", 500),
            thought_max_ms=getattr(config, "PAUSE_THOUGHT_MAX_MS", 1200),
            sentence_end_max_ms=sentence_end,
            long_silence_min_ms=sentence_end,
        )


DEFAULT_PAUSE_THRESHOLDS = PauseThresholds()


@dataclass(frozen=True)
class PauseContext:
    just_started_speaking: bool = False
    total_speech_duration_ms: float = 0.0
    previous_pause_count: int = 0
    average_pause_duration_ms: float = 0.0
    question_pending: bool = False  # The assistant just asked something


@dataclass(frozen=True)
class PauseClassification:
    type: PauseType
    action: PauseAction
    duration_ms: float
    confidence: float


_ACTIONS = {
    PauseType.NONE: PauseAction.CONTINUE,
    PauseType.BREATH: PauseAction.CONTINUE,
    PauseType.THOUGHT: PauseAction.WAIT,
    PauseType.SENTENCE_END: PauseAction.PROCESS,
    PauseType.LONG_SILENCE: PauseAction.END_SESSION,
}


def classify_pause_duration(duration_ms: float,
                            thresholds: PauseThresholds = DEFAULT_PAUSE_THRESHOLDS) -> PauseType:
    if duration_ms <= 0:
        return PauseType.NONE
    if duration_ms <= thresholds.breath_max_ms:
        return PauseType.BREATH
    if duration_ms <= thresholds.thought_max_ms:
        return PauseType.THOUGHT
    if duration_ms <= thresholds.sentence_end_max_ms:
        return PauseType.SENTENCE_END
    return PauseType.LONG_SILENCE


def get_action_for_pause_type(pause_type: PauseType) -> PauseAction:
    return _ACTIONS.get(pause_type, PauseAction.CONTINUE)


def classify_pause_with_context(duration_ms: float,
                                context: Optional[PauseContext] = None,
                                thresholds: PauseThresholds = DEFAULT_PAUSE_THRESHOLDS) -> PauseClassification:
    """
    Classify a pause using conversation context on top of its duration.

    Rules, applied in order:
    1. Just started speaking: a thought pause is treated as a breath.
    2. Less than 1s of speech so far: a sentence end is only a thought.
    3. Question pending: a sentence end is only a thought (user is thinking).
    4. Pause well below the user's own average (after 3+ pauses): thought -> breath.
    5. Very long or very short pauses get high confidence.
    """
    ctx = context or PauseContext()
    pause_type = classify_pause_duration(duration_ms, thresholds)
    confidence = 0.7

    if ctx.just_started_speaking and pause_type == PauseType.THOUGHT:
        pause_type = PauseType.BREATH
        confidence = 0.6

    if ctx.total_speech_duration_ms < 1000 and pause_type == PauseType.SENTENCE_END:
        pause_type = PauseType.THOUGHT
        confidence = 0.5

    if ctx.question_pending and pause_type == PauseType.SENTENCE_END:
        pause_type = PauseType.THOUGHT
        confidence = 0.6

    if ctx.average_pause_duration_ms > 0 and ctx.previous_pause_count > 2:
        if duration_ms < ctx.average_pause_duration_ms * 0.8 and pause_type == PauseType.THOUGHT:
            pause_type = PauseType.BREATH
            confidence = 0.65

    if duration_ms > thresholds.long_silence_min_ms * 1.5:
        confidence = 0.95
    elif duration_ms < thresholds.breath_max_ms * 0.5:
        confidence = 0.85

    return PauseClassification(
        type=pause_type,
        action=get_action_for_pause_type(pause_type),
        duration_ms=duration_ms,
        confidence=confidence,
    )


class PauseTracker:
    """Tracks speech/pause timing over one listening session."""

    def __init__(self, thresholds: Optional[PauseThresholds] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.thresholds = thresholds or PauseThresholds.from_config()
        self._clock = clock
        self._pauses_ms: List[float] = []
        self._speech_started_at: Optional[float] = None
        self._pause_started_at: Optional[float] = None
        self._total_speech_ms = 0.0
        self._question_pending = False

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def on_speech_start(self) -> None:
        self._speech_started_at = self._now_ms()
        self._pause_started_at = None

    def on_speech_end(self) -> None:
        now = self._now_ms()
        if self._speech_started_at is not None:
            self._total_speech_ms += now - self._speech_started_at
        self._pause_started_at = now
        self._speech_started_at = None

    def get_current_pause_duration(self) -> float:
        if self._pause_started_at is None:
            return 0.0
        return self._now_ms() - self._pause_started_at

    def classify_current_pause(self) -> PauseClassification:
        context = PauseContext(
            just_started_speaking=self._total_speech_ms < 1000,
            total_speech_duration_ms=self._total_speech_ms,
            previous_pause_count=len(self._pauses_ms),
            average_pause_duration_ms=self.get_average_pause_duration(),
            question_pending=self._question_pending,
        )
        return classify_pause_with_context(self.get_current_pause_duration(), context, self.thresholds)

    def confirm_pause(self) -> None:
        """Record the current pause once it is known to be over."""
        if self._pause_started_at is not None:
            self._pauses_ms.append(self._now_ms() - self._pause_started_at)

    def get_average_pause_duration(self) -> float:
        if not self._pauses_ms:
            return 0.0
        return sum(self._pauses_ms) / len(self._pauses_ms)

    def set_question_pending(self, pending: bool) -> None:
        self._question_pending = pending

    def reset(self) -> None:
        self._pauses_ms = []
        self._speech_started_at = None
        self._pause_started_at = None
        self._total_speech_ms = 0.0
        self._question_pending = False

    def get_stats(self) -> dict:
        return {
            'pause_count': len(self._pauses_ms),
            'average_pause_duration_ms': self.get_average_pause_duration(),
            'total_speech_duration_ms': self._total_speech_ms,
            'longest_pause_ms': max(self._pauses_ms) if self._pauses_ms else 0.0,
        }
