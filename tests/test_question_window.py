"""Tests for the countdown and the open-question window."""

from datetime import timedelta

import pytest

from factories import FakeClock, make_question
from zone_app.core.models import QuestionStatus
from zone_app.core.services.question_window import Countdown, QuestionWindow


def test_countdown_fires_exactly_once_on_last_tick():
    """Starting at 15, only the 15th tick reports expiry"""
    countdown = Countdown(15)
    fired = [countdown.tick() for _ in range(20)]
    assert fired.index(True) == 14
    assert fired.count(True) == 1
    assert countdown.remaining_seconds == 0
    assert not countdown.is_running
    assert countdown.has_expired


def test_countdown_at_zero_fires_on_first_tick():
    countdown = Countdown(0)
    assert countdown.tick() is True
    assert countdown.tick() is False


def test_cancelled_countdown_never_fires():
    countdown = Countdown(2)
    countdown.tick()
    countdown.cancel()
    assert countdown.tick() is False
    assert not countdown.has_expired


def test_window_opens_with_remaining_time():
    clock = FakeClock()
    question = make_question(time_limit_seconds=15, activated_at=clock.now - timedelta(seconds=5))
    window = QuestionWindow()
    window.open(question, clock.now)
    assert window.is_open
    assert window.remaining_seconds == 10
    assert window.opened_at == clock.now


def test_window_without_time_limit_has_no_countdown():
    window = QuestionWindow()
    window.open(make_question(time_limit_seconds=None))
    assert window.countdown is None
    assert window.remaining_seconds is None
    assert window.tick() is False


def test_close_reveals_answer_and_stops_countdown():
    clock = FakeClock()
    window = QuestionWindow()
    window.open(make_question(time_limit_seconds=3, activated_at=clock.now), clock.now)
    countdown = window.countdown
    window.close(make_question(status=QuestionStatus.CLOSED, correct_option_index=2))
    assert not countdown.is_running
    assert window.revealed_correct_index == 2
    assert window.tick() is False


def test_close_requires_closed_question():
    window = QuestionWindow()
    window.open(make_question())
    with pytest.raises(ValueError):
        window.close(make_question())
    assert window.is_open


def test_teardown_clears_everything():
    clock = FakeClock()
    window = QuestionWindow()
    window.open(make_question(time_limit_seconds=5, activated_at=clock.now), clock.now)
    countdown = window.countdown
    window.teardown()
    assert window.question is None
    assert not countdown.is_running
