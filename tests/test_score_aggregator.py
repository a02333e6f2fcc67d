"""Tests for optimistic score updates and leaderboard reconciliation."""

from factories import make_response
from zone_app.core.models import CompetitionScore, LeaderboardEntry
from zone_app.core.services.score_aggregator import (
    ScoreAggregator,
    apply_leaderboard_refresh,
    apply_response_result,
)


def _score(**kwargs):
    return CompetitionScore(event_id="e1", user_id="me", **kwargs)


def test_correct_answer_adds_points_and_streak():
    """Correct 100-point answer at streak 2"""
    previous = _score(total_score=200, correct_answers=2, total_answers=2, current_streak=2, best_streak=2, rank=4)
    updated = apply_response_result(make_response(points_earned=100), previous)
    assert updated.total_score == 300
    assert updated.current_streak == 3
    assert updated.best_streak == 3
    assert updated.total_answers == 3
    assert updated.correct_answers == 3
    assert updated.rank == 4


def test_wrong_answer_resets_streak_only():
    previous = _score(total_score=200, current_streak=5, best_streak=5)
    updated = apply_response_result(make_response(is_correct=False, points_earned=0), previous)
    assert updated.total_score == 200
    assert updated.current_streak == 0
    assert updated.best_streak == 5


def test_streak_counts_consecutive_correct_answers():
    score = _score()
    for n in range(1, 6):
        score = apply_response_result(make_response(f"q{n}"), score)
        assert score.current_streak == n
    score = apply_response_result(make_response("q6", is_correct=False, points_earned=0), score)
    assert score.current_streak == 0


def test_refresh_overwrites_rather_than_sums():
    entries = [
        LeaderboardEntry(user_id="A", name="A", rank=1, score=500),
        LeaderboardEntry(user_id="me", name="Me", rank=2, score=300),
    ]
    updated = apply_leaderboard_refresh(entries, "me", _score(total_score=250, rank=5))
    assert updated.rank == 2
    assert updated.total_score == 300


def test_refresh_without_user_unranks():
    entries = [LeaderboardEntry(user_id="A", name="A", rank=1, score=500)]
    updated = apply_leaderboard_refresh(entries, "me", _score(total_score=250, rank=3))
    assert updated.rank == 0
    assert updated.total_score == 250


def test_reapplying_identical_refresh_is_idempotent():
    aggregator = ScoreAggregator("e1", "me")
    aggregator.apply_response(make_response(points_earned=100))
    entries = [LeaderboardEntry(user_id="me", name="Me", rank=1, score=100, correct_answers=1, total_answers=1, streak=1)]
    once = aggregator.apply_refresh(entries)
    twice = aggregator.apply_refresh(entries)
    assert once == twice
    assert twice.total_score == 100


def test_aggregator_tracks_provisional_state():
    aggregator = ScoreAggregator("e1", "me")
    assert not aggregator.is_provisional
    aggregator.apply_response(make_response())
    assert aggregator.is_provisional
    aggregator.apply_refresh([])
    assert not aggregator.is_provisional
    aggregator.restore(_score(total_score=42, rank=7))
    assert aggregator.score.total_score == 42
