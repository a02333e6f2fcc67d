"""Tests for decoding and encoding competition models."""

from datetime import datetime, timedelta, timezone

import pytest

from factories import make_question
from zone_app.core.errors import MalformedPayloadError
from zone_app.core.models import (
    CompetitionBadge,
    CompetitionQuestion,
    CompetitionRound,
    CompetitionScore,
    CompetitionStats,
    LeaderboardEntry,
    QuestionStatus,
    RoundStatus,
)


def _question_payload(**overrides):
    payload = {
        "id": "q1",
        "round_id": "r1",
        "question_number": 2,
        "question": "What is $2^5$?",
        "options": ["16", "32", "64"],
        "points": 100,
        "status": "active",
        "time_limit_seconds": 15,
        "activated_at": "2024-05-01T12:00:00+00:00",
    }
    payload.update(overrides)
    return payload


def test_round_from_payload_defaults():
    """Missing optional round fields fall back to defaults"""
    competition_round = CompetitionRound.from_payload({"id": "r1", "event_id": "e1", "name": "Final"})
    assert competition_round.status is RoundStatus.UPCOMING
    assert competition_round.round_number == 1
    assert competition_round.progress == 0.0


def test_round_progress():
    competition_round = CompetitionRound(
        id="r1", event_id="e1", round_number=1, name="R", question_count=4, completed_questions=1
    )
    assert competition_round.progress == 0.25


def test_question_from_payload():
    question = CompetitionQuestion.from_payload(_question_payload())
    assert question.prompt == "What is $2^5$?"
    assert question.options == ("16", "32", "64")
    assert question.status is QuestionStatus.ACTIVE
    assert question.correct_option_index is None
    assert question.activated_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("options", [["only"], ["a", "b", "c", "d", "e", "f", "g"]])
def test_question_rejects_bad_option_count(options):
    with pytest.raises(MalformedPayloadError):
        CompetitionQuestion.from_payload(_question_payload(options=options))


def test_question_rejects_out_of_range_correct_index():
    with pytest.raises(MalformedPayloadError):
        CompetitionQuestion.from_payload(_question_payload(correct_option_index=3))


def test_question_rejects_unknown_status():
    with pytest.raises(MalformedPayloadError):
        CompetitionQuestion.from_payload(_question_payload(status="paused"))


def test_missing_required_field_is_malformed():
    payload = _question_payload()
    del payload["question"]
    with pytest.raises(MalformedPayloadError):
        CompetitionQuestion.from_payload(payload)


def test_bool_is_not_accepted_as_number():
    with pytest.raises(MalformedPayloadError):
        CompetitionQuestion.from_payload(_question_payload(points=True))


def test_question_payload_hides_answer_until_closed():
    active = make_question(correct_option_index=2)
    assert active.to_payload()["correct_option_index"] is None
    assert active.to_payload(reveal_answer=True)["correct_option_index"] == 2
    closed = make_question(status=QuestionStatus.CLOSED, correct_option_index=2)
    assert closed.to_payload()["correct_option_index"] == 2


def test_remaining_seconds_counts_down_from_activation():
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    question = make_question(time_limit_seconds=15, activated_at=start)
    assert question.remaining_seconds(start) == 15
    assert question.remaining_seconds(start + timedelta(seconds=6)) == 9
    assert question.remaining_seconds(start + timedelta(seconds=40)) == 0


def test_untimed_question_has_no_time_limit():
    question = make_question(time_limit_seconds=None)
    assert not question.has_time_limit
    assert question.remaining_seconds() == 0


def test_leaderboard_entry_marks_current_user():
    data = {"user_id": "me", "user_name": "Ada", "rank": 2, "total_score": 300, "current_streak": 2}
    entry = LeaderboardEntry.from_payload(data, current_user_id="me")
    assert entry.is_current_user
    assert entry.name == "Ada"
    assert entry.score == 300
    assert entry.streak == 2


def test_leaderboard_entry_defaults_to_anonymous():
    entry = LeaderboardEntry.from_payload({"user_id": "x"})
    assert entry.name == "Anonymous"
    assert not entry.is_current_user


def test_score_accuracy():
    score = CompetitionScore(event_id="e1", user_id="me", correct_answers=3, total_answers=4)
    assert score.accuracy == 0.75
    assert score.accuracy_percent == 75
    assert CompetitionScore(event_id="e1", user_id="me").accuracy == 0.0


def test_null_fields_take_defaults():
    competition_round = CompetitionRound.from_payload(
        {"id": "r1", "event_id": "e1", "name": "Final", "round_number": None, "status": None}
    )
    assert competition_round.round_number == 1
    assert competition_round.status is RoundStatus.UPCOMING


def test_non_object_payload_is_malformed():
    with pytest.raises(MalformedPayloadError, match="payload"):
        CompetitionRound.from_payload(["r1", "e1"])


def test_malformed_error_names_the_field():
    with pytest.raises(MalformedPayloadError, match="options"):
        CompetitionQuestion.from_payload(_question_payload(options="16, 32"))


def test_naive_timestamps_are_read_as_utc():
    question = CompetitionQuestion.from_payload(_question_payload(activated_at="2024-05-01T12:00:00"))
    assert question.activated_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def test_stats_from_payload():
    stats = CompetitionStats.from_payload({"event_id": "e1", "participant_count": 4, "average_score": 120})
    assert stats.participant_count == 4
    assert stats.highest_score == 0
    assert stats.to_payload()["average_score"] == 120


def test_badge_earned_status():
    data = {"id": "b1", "name": "Sharpshooter", "icon": "🎯", "badge_type": "accuracy"}
    badge = CompetitionBadge.from_payload(data)
    assert not badge.is_earned
    assert badge.rarity == "COMMON"
    assert badge.points_value == 50

    earned = CompetitionBadge.from_payload({**data, "earned_at": "2024-05-01T12:00:00+00:00"})
    assert earned.is_earned
    assert CompetitionBadge.from_payload(earned.to_payload()) == earned
