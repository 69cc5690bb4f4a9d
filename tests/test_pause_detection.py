"""
Tests for pause classification and PauseTracker
"""

import pytest

import config
from voicegate.pause_detection import (
    PauseAction,
    PauseContext,
    PauseThresholds,
    PauseTracker,
    PauseType,
    classify_pause_duration,
    classify_pause_with_context,
    get_action_for_pause_type,
)


@pytest.mark.parametrize("duration_ms, expected", [
    (0, PauseType.NONE),
    (-10, PauseType.NONE),
    (300, PauseType.BREATH),
    (500, PauseType.BREATH),
    (900, PauseType.THOUGHT),
    (2000, PauseType.SENTENCE_END),
    (2500, PauseType.SENTENCE_END),
    (4000, PauseType.LONG_SILENCE),
])
def test_classify_pause_duration(duration_ms, expected):
    assert classify_pause_duration(duration_ms) == expected


def test_actions():
    assert get_action_for_pause_type(PauseType.BREATH) == PauseAction.CONTINUE
    assert get_action_for_pause_type(PauseType.THOUGHT) == PauseAction.WAIT
    assert get_action_for_pause_type(PauseType.SENTENCE_END) == PauseAction.PROCESS
    assert get_action_for_pause_type(PauseType.LONG_SILENCE) == PauseAction.END_SESSION


class TestContextRules:

    def test_thought_becomes_breath_right_after_starting(self):
        result = classify_pause_with_context(900, PauseContext(just_started_speaking=True))
        assert result.type == PauseType.BREATH
        assert result.action == PauseAction.CONTINUE
        assert result.confidence == 0.6

    def test_short_speech_sentence_end_is_thought(self):
        result = classify_pause_with_context(2000, PauseContext(total_speech_duration_ms=500))
        assert result.type == PauseType.THOUGHT
        assert result.confidence == 0.5

    def test_question_pending_sentence_end_is_thought(self):
        context = PauseContext(total_speech_duration_ms=3000, question_pending=True)
        result = classify_pause_with_context(2000, context)
        assert result.type == PauseType.THOUGHT
        assert result.action == PauseAction.WAIT

    def test_below_user_average_is_breath(self):
        context = PauseContext(
            total_speech_duration_ms=5000,
            previous_pause_count=3,
            average_pause_duration_ms=1200,
        )
        result = classify_pause_with_context(800, context)
        assert result.type == PauseType.BREATH
        assert result.confidence == 0.65

    def test_sentence_end_after_long_speech(self):
        result = classify_pause_with_context(2000, PauseContext(total_speech_duration_ms=3000))
        assert result.type == PauseType.SENTENCE_END
        assert result.action == PauseAction.PROCESS
        assert result.confidence == 0.7

    def test_confidence_extremes(self):
        assert classify_pause_with_context(5000).confidence == 0.95
        assert classify_pause_with_context(100).confidence == 0.85

    def test_custom_thresholds(self):
        thresholds = PauseThresholds(breath_max_ms=200, thought_max_ms=400,
                                     sentence_end_max_ms=800, long_silence_min_ms=800)
        result = classify_pause_with_context(1000, PauseContext(total_speech_duration_ms=3000), thresholds)
        assert result.type == PauseType.LONG_SILENCE
        assert result.action == PauseAction.END_SESSION


class TestPauseTracker:

    def test_current_pause_duration(self, clock):
        tracker = PauseTracker(clock=clock)
        assert tracker.get_current_pause_duration() == 0.0

        tracker.on_speech_start()
        clock.advance(2000)
        tracker.on_speech_end()
        clock.advance(700)

        assert tracker.get_current_pause_duration() == pytest.approx(700)
        assert tracker.classify_current_pause().type == PauseType.THOUGHT

    def test_confirmed_pauses_feed_stats(self, clock):
        tracker = PauseTracker(clock=clock)
        for pause_ms in (400, 800, 600):
            tracker.on_speech_start()
            clock.advance(1000)
            tracker.on_speech_end()
            clock.advance(pause_ms)
            tracker.confirm_pause()

        stats = tracker.get_stats()
        assert stats['pause_count'] == 3
        assert stats['average_pause_duration_ms'] == pytest.approx(600)
        assert stats['total_speech_duration_ms'] == pytest.approx(3000)
        assert stats['longest_pause_ms'] == pytest.approx(800)

    def test_question_pending_and_reset(self, clock):
        tracker = PauseTracker(clock=clock)
        tracker.on_speech_start()
        clock.advance(3000)
        tracker.on_speech_end()
        clock.advance(2000)

        assert tracker.classify_current_pause().type == PauseType.SENTENCE_END
        tracker.set_question_pending(True)
        assert tracker.classify_current_pause().type == PauseType.THOUGHT

        tracker.reset()
        assert tracker.get_stats() == {
            'pause_count': 0,
            'average_pause_duration_ms': 0.0,
            'total_speech_duration_ms': 0.0,
            'longest_pause_ms': 0.0,
        }
        assert tracker.get_current_pause_duration() == 0.0

    def test_thresholds_from_config(self, monkeypatch):
        monkeypatch.setattr(config, "PAUSE_BREATH_MAX_MS", 300)
        monkeypatch.setattr(config, "PAUSE_SENTENCE_END_MAX_MS", 3000)

        tracker = PauseTracker()

        assert tracker.thresholds.breath_max_ms == 300
        assert tracker.thresholds.long_silence_min_ms == 3000
