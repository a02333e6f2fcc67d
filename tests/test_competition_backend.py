"""Tests for the authoritative in-process competition backend."""

import pytest

from factories import EVENT_ID
from zone_app.core.errors import (
    NotFoundError,
    REASON_DUPLICATE_RESPONSE,
    REASON_INVALID_OPTION,
    REASON_QUESTION_NOT_ACTIVE,
    REASON_TIME_EXPIRED,
    REASON_UNKNOWN_QUESTION,
    SubmissionRejectedError,
)
from zone_app.core.events import LeaderboardChanged, PresenceChanged, QuestionClosed, QuestionOpened, RoundsChanged


def _start(backend, seeded):
    backend.activate_round(seeded.round.id)
    return backend.open_next_question(seeded.round.id)


def test_rounds_are_numbered_and_counted(backend, seeded):
    second = backend.create_round(EVENT_ID, "Final")
    rounds = backend.get_rounds(EVENT_ID)
    assert [r.round_number for r in rounds] == [1, 2]
    assert rounds[0].question_count == 2
    assert second.round_number == 2


def test_add_question_validates_options(backend, seeded):
    with pytest.raises(ValueError):
        backend.add_question(seeded.round.id, "Q", ["only one"], 0)
    with pytest.raises(ValueError):
        backend.add_question(seeded.round.id, "Q", ["a", "b"], 2)
    with pytest.raises(NotFoundError):
        backend.add_question("missing", "Q", ["a", "b"], 0)


def test_active_question_hides_answer(backend, seeded):
    opened = _start(backend, seeded)
    assert opened.correct_option_index == 1
    active = backend.get_active_question(seeded.round.id)
    assert active.id == opened.id
    assert active.correct_option_index is None


def test_open_question_requires_active_round(backend, seeded):
    with pytest.raises(RuntimeError):
        backend.open_question(seeded.questions[0].id)


def test_correct_and_wrong_answers_score(backend, seeded):
    question = _start(backend, seeded)
    right = backend.submit_answer("ada", question.id, 1, 800)
    wrong = backend.submit_answer("bob", question.id, 0, 900)
    assert right.is_correct and right.points_earned == 100
    assert not wrong.is_correct and wrong.points_earned == 0
    assert backend.get_response("ada", question.id) == right


@pytest.mark.parametrize(
    ("option", "reason"),
    [(5, REASON_INVALID_OPTION), (-1, REASON_INVALID_OPTION)],
)
def test_invalid_option_rejected(backend, seeded, option, reason):
    question = _start(backend, seeded)
    with pytest.raises(SubmissionRejectedError) as excinfo:
        backend.submit_answer("ada", question.id, option)
    assert excinfo.value.reason == reason


def test_duplicate_answer_rejected(backend, seeded):
    question = _start(backend, seeded)
    backend.submit_answer("ada", question.id, 1)
    with pytest.raises(SubmissionRejectedError) as excinfo:
        backend.submit_answer("ada", question.id, 2)
    assert excinfo.value.reason == REASON_DUPLICATE_RESPONSE


def test_closed_and_unknown_questions_rejected(backend, seeded):
    question = _start(backend, seeded)
    backend.close_question(question.id)
    with pytest.raises(SubmissionRejectedError) as excinfo:
        backend.submit_answer("ada", question.id, 1)
    assert excinfo.value.reason == REASON_QUESTION_NOT_ACTIVE
    with pytest.raises(SubmissionRejectedError) as excinfo:
        backend.submit_answer("ada", "nope", 1)
    assert excinfo.value.reason == REASON_UNKNOWN_QUESTION


def test_grace_period_after_time_limit(backend, seeded, clock):
    """15s limit plus 2s grace: 16s is accepted, 18s is not"""
    question = _start(backend, seeded)
    clock.advance(16)
    backend.submit_answer("ada", question.id, 1)
    clock.advance(2)
    with pytest.raises(SubmissionRejectedError) as excinfo:
        backend.submit_answer("bob", question.id, 1)
    assert excinfo.value.reason == REASON_TIME_EXPIRED


def test_leaderboard_tie_breaks(backend, seeded, clock):
    """Equal scores rank by correct answers, then by who reached the score first"""
    first = _start(backend, seeded)
    backend.register_participant(EVENT_ID, "ada", "Ada")
    backend.submit_answer("bob", first.id, 1)
    clock.advance(1)
    backend.submit_answer("ada", first.id, 1)
    backend.submit_answer("cyd", first.id, 0)
    entries = backend.get_leaderboard(EVENT_ID, current_user_id="ada")
    assert [e.user_id for e in entries] == ["bob", "ada", "cyd"]
    assert [e.rank for e in entries] == [1, 2, 3]
    assert entries[1].name == "Ada" and entries[1].is_current_user
    assert entries[0].name == "Anonymous"
    assert len(backend.get_leaderboard(EVENT_ID, limit=2)) == 2


def test_score_includes_rank_and_streaks(backend, seeded):
    first = _start(backend, seeded)
    backend.submit_answer("ada", first.id, 1)
    second = backend.open_next_question(seeded.round.id)
    backend.submit_answer("ada", second.id, 1)
    score = backend.get_score(EVENT_ID, "ada")
    assert score.total_score == 100
    assert score.current_streak == 0
    assert score.best_streak == 1
    assert score.total_answers == 2
    assert score.rank == 1
    assert backend.get_score(EVENT_ID, "nobody") is None


def test_open_next_question_closes_previous_and_runs_out(backend, seeded):
    first = _start(backend, seeded)
    second = backend.open_next_question(seeded.round.id)
    assert backend.get_question(first.id).is_closed
    assert backend.get_question(first.id).correct_option_index == 1
    assert second.id == seeded.questions[1].id
    assert backend.open_next_question(seeded.round.id) is None


def test_activating_round_completes_previous(backend, seeded):
    question = _start(backend, seeded)
    final = backend.create_round(EVENT_ID, "Final")
    backend.activate_round(final.id)
    assert backend.get_round(seeded.round.id).is_completed
    assert backend.get_question(question.id).is_closed
    with pytest.raises(RuntimeError):
        backend.activate_round(seeded.round.id)


def test_subscribers_receive_events(backend, seeded):
    questions = backend.subscribe_questions(seeded.round.id)
    rounds = backend.subscribe_rounds(EVENT_ID)
    leaderboard = backend.subscribe_leaderboard(EVENT_ID)
    question = _start(backend, seeded)

    opened = questions.drain()
    assert isinstance(opened[0], QuestionOpened)
    assert opened[0].question.correct_option_index is None
    assert all(isinstance(e, RoundsChanged) for e in rounds.drain())

    backend.submit_answer("ada", question.id, 1)
    backend.close_question(question.id)
    closed = questions.drain()
    assert isinstance(closed[0], QuestionClosed)
    assert closed[0].question.correct_option_index == 1
    updates = leaderboard.drain()
    assert all(isinstance(e, LeaderboardChanged) for e in updates)
    assert updates[-1].entries[0].user_id == "ada"


def test_unsubscribe_removes_subscriber(backend):
    subscription = backend.subscribe_rounds(EVENT_ID)
    assert backend.subscriber_count(f"rounds:{EVENT_ID}") == 1
    subscription.unsubscribe()
    assert backend.subscriber_count() == 0


def test_presence_counts_users_still_answering(backend, seeded):
    question = _start(backend, seeded)
    backend.update_presence(EVENT_ID, "ada", question.id)
    backend.update_presence(EVENT_ID, "bob", question.id)
    backend.update_presence(EVENT_ID, "cyd")
    backend.submit_answer("bob", question.id, 1)
    stats = backend.get_presence(EVENT_ID)
    assert stats.online_count == 3
    assert stats.answering_count == 1
    backend.go_offline(EVENT_ID, "ada")
    assert backend.get_presence(EVENT_ID).answering_count == 0


def test_presence_changes_are_published(backend):
    presence = backend.subscribe_presence(EVENT_ID)
    backend.update_presence(EVENT_ID, "ada")
    backend.go_offline(EVENT_ID, "ada")
    backend.go_offline(EVENT_ID, "ada")
    events = presence.drain()
    assert all(isinstance(e, PresenceChanged) for e in events)
    assert [e.presence.online_count for e in events] == [1, 0]


def test_competition_stats(backend, seeded):
    assert backend.get_competition_stats(EVENT_ID).participant_count == 0
    question = _start(backend, seeded)
    backend.submit_answer("ada", question.id, 1)
    backend.submit_answer("bob", question.id, 0)
    backend.submit_answer("cyd", question.id, 1)
    stats = backend.get_competition_stats(EVENT_ID)
    assert stats.participant_count == 3
    assert stats.average_score == 66
    assert stats.highest_score == 100
    assert stats.total_questions_answered == 3


def test_badges_are_awarded_once(backend, clock):
    rare = backend.add_badge("Perfect round", "💯", "perfect_round", rarity="RARE", points_value=200)
    common = backend.add_badge("First answer", "✋", "participation")
    assert [b.id for b in backend.get_badges()] == [rare.id, common.id]

    first = backend.award_badge(EVENT_ID, "ada", common.id)
    clock.advance(10)
    again = backend.award_badge(EVENT_ID, "ada", common.id)
    assert again.earned_at == first.earned_at
    earned = backend.get_earned_badges(EVENT_ID, "ada")
    assert [b.id for b in earned] == [common.id]
    assert earned[0].is_earned
    assert backend.get_earned_badges("other-event", "ada") == []
    with pytest.raises(NotFoundError):
        backend.award_badge(EVENT_ID, "ada", "missing")
