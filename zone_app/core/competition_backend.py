"""Authoritative in-process competition backend shared by the host API and local clients."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import datetime
import logging
from threading import Lock
from typing import Callable, Iterable
from uuid import uuid4

from zone_app.constants.competition_constants import (
    ANONYMOUS_NAME,
    DEFAULT_BADGE_POINTS,
    DEFAULT_QUESTION_POINTS,
    LEADERBOARD_LIMIT,
    MAX_OPTION_COUNT,
    MIN_OPTION_COUNT,
    SUBMISSION_GRACE_SECONDS,
)
from zone_app.core.errors import (
    NotFoundError,
    REASON_DUPLICATE_RESPONSE,
    REASON_INVALID_OPTION,
    REASON_QUESTION_NOT_ACTIVE,
    REASON_TIME_EXPIRED,
    REASON_UNKNOWN_QUESTION,
    SubmissionRejectedError,
)
from zone_app.core.events import (
    CompetitionEvent,
    LeaderboardChanged,
    PresenceChanged,
    QuestionClosed,
    QuestionOpened,
    RoundsChanged,
)
from zone_app.core.models import (
    CompetitionBadge,
    CompetitionQuestion,
    CompetitionResponse,
    CompetitionRound,
    CompetitionScore,
    CompetitionStats,
    LeaderboardEntry,
    PresenceStats,
    QuestionStatus,
    RoundStatus,
    utc_now,
)
from zone_app.core.services.subscriptions import Subscription

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Participant:
    user_id: str
    name: str = ANONYMOUS_NAME
    avatar_url: str | None = None


@dataclass(slots=True)
class ScoreEntry:
    """Mutable score row used internally."""

    event_id: str
    user_id: str
    total_score: int = 0
    correct_answers: int = 0
    total_answers: int = 0
    current_streak: int = 0
    best_streak: int = 0
    reached_at: datetime = field(default_factory=utc_now)


class CompetitionBackend:
    """Owns rounds, questions, responses and scores for any number of events.

    All state is guarded by one lock. Changes are published to the
    subscriptions of the affected topic after the state has been updated.
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        grace_seconds: int = SUBMISSION_GRACE_SECONDS,
    ) -> None:
        self._lock = Lock()
        self._clock = clock
        self._grace_seconds = grace_seconds

        self._rounds: dict[str, CompetitionRound] = {}
        self._questions: dict[str, CompetitionQuestion] = {}
        self._round_questions: dict[str, list[str]] = defaultdict(list)
        self._participants: dict[str, dict[str, Participant]] = defaultdict(dict)
        self._presence: dict[str, dict[str, str | None]] = defaultdict(dict)
        self._responses: dict[tuple[str, str], CompetitionResponse] = {}
        self._scores: dict[str, dict[str, ScoreEntry]] = defaultdict(dict)
        self._subscribers: dict[str, list[Subscription]] = defaultdict(list)
        self._badges: dict[str, CompetitionBadge] = {}
        self._earned_badges: dict[tuple[str, str], dict[str, datetime]] = defaultdict(dict)

    # --- Host operations ---

    def create_round(
        self,
        event_id: str,
        name: str,
        round_number: int | None = None,
        description: str | None = None,
        start_time: datetime | None = None,
    ) -> CompetitionRound:
        with self._lock:
            if round_number is None:
                existing = [r.round_number for r in self._rounds.values() if r.event_id == event_id]
                round_number = max(existing, default=0) + 1
            competition_round = CompetitionRound(
                id=uuid4().hex,
                event_id=event_id,
                round_number=round_number,
                name=name,
                description=description,
                start_time=start_time,
            )
            self._rounds[competition_round.id] = competition_round
            snapshot = self._snapshot_rounds(event_id)
        self._publish(_rounds_topic(event_id), RoundsChanged(event_id, snapshot))
        return self.get_round(competition_round.id)

    def add_question(
        self,
        round_id: str,
        prompt: str,
        options: Iterable[str],
        correct_option_index: int,
        points: int = DEFAULT_QUESTION_POINTS,
        time_limit_seconds: int | None = None,
    ) -> CompetitionQuestion:
        options = tuple(options)
        if not MIN_OPTION_COUNT <= len(options) <= MAX_OPTION_COUNT:
            raise ValueError(f"A question needs {MIN_OPTION_COUNT}-{MAX_OPTION_COUNT} options.")
        if not 0 <= correct_option_index < len(options):
            raise ValueError("Correct option index is out of range.")
        with self._lock:
            self._require_round(round_id)
            question = CompetitionQuestion(
                id=uuid4().hex,
                round_id=round_id,
                question_number=len(self._round_questions[round_id]) + 1,
                prompt=prompt,
                options=options,
                points=points,
                time_limit_seconds=time_limit_seconds,
                correct_option_index=correct_option_index,
            )
            self._questions[question.id] = question
            self._round_questions[round_id].append(question.id)
        return question

    def register_participant(
        self,
        event_id: str,
        user_id: str,
        name: str | None = None,
        avatar_url: str | None = None,
    ) -> Participant:
        participant = Participant(user_id=user_id, name=(name or "").strip() or ANONYMOUS_NAME, avatar_url=avatar_url)
        with self._lock:
            self._participants[event_id][user_id] = participant
        logger.info("Registered participant %s (%s) for event %s", participant.name, user_id, event_id)
        return participant

    def add_badge(
        self,
        name: str,
        icon: str,
        badge_type: str,
        description: str = "",
        rarity: str = "COMMON",
        points_value: int = DEFAULT_BADGE_POINTS,
    ) -> CompetitionBadge:
        badge = CompetitionBadge(
            id=uuid4().hex,
            name=name,
            icon=icon,
            badge_type=badge_type,
            description=description,
            rarity=rarity,
            points_value=points_value,
        )
        with self._lock:
            self._badges[badge.id] = badge
        return badge

    def award_badge(self, event_id: str, user_id: str, badge_id: str) -> CompetitionBadge:
        """Record that ``user_id`` earned a badge in an event. Awarding twice keeps the first time."""
        with self._lock:
            badge = self._badges.get(badge_id)
            if badge is None:
                raise NotFoundError(f"Badge {badge_id} does not exist.")
            earned_at = self._earned_badges[(event_id, user_id)].setdefault(badge_id, self._clock())
        logger.info("Awarded badge %s to %s in event %s", badge.name, user_id, event_id)
        return replace(badge, earned_at=earned_at)

    def activate_round(self, round_id: str) -> CompetitionRound:
        """Make a round active. Any other active round of the event completes."""
        with self._lock:
            target = self._require_round(round_id)
            if target.is_completed:
                raise RuntimeError(f"Round {round_id} is already completed.")
            closed: list[CompetitionQuestion] = []
            for other in list(self._rounds.values()):
                if other.event_id == target.event_id and other.is_active and other.id != round_id:
                    closed.extend(self._complete_round_locked(other.id))
            self._rounds[round_id] = replace(target, status=RoundStatus.ACTIVE, start_time=target.start_time or self._clock())
            snapshot = self._snapshot_rounds(target.event_id)
        for question in closed:
            self._publish(_questions_topic(question.round_id), QuestionClosed(question))
        self._publish(_rounds_topic(target.event_id), RoundsChanged(target.event_id, snapshot))
        logger.info("Round %s is now active", round_id)
        return self.get_round(round_id)

    def open_question(self, question_id: str) -> CompetitionQuestion:
        """Open a question of the active round, closing the round's current one first."""
        with self._lock:
            question = self._require_question(question_id)
            competition_round = self._require_round(question.round_id)
            if not competition_round.is_active:
                raise RuntimeError(f"Round {competition_round.id} is not active.")
            if question.is_closed:
                raise RuntimeError(f"Question {question_id} is already closed.")
            closed = [
                self._close_question_locked(qid)
                for qid in self._round_questions[question.round_id]
                if qid != question_id and self._questions[qid].is_active
            ]
            if not question.is_active:
                question = replace(question, status=QuestionStatus.ACTIVE, activated_at=self._clock())
                self._questions[question_id] = question
            event_id = competition_round.event_id
            snapshot = self._snapshot_rounds(event_id)
        for previous in closed:
            self._publish(_questions_topic(previous.round_id), QuestionClosed(previous))
        self._publish(_questions_topic(question.round_id), QuestionOpened(_hide_answer(question)))
        self._publish(_rounds_topic(event_id), RoundsChanged(event_id, snapshot))
        logger.info("Question %s opened", question_id)
        return question

    def open_next_question(self, round_id: str) -> CompetitionQuestion | None:
        """Open the first pending question of a round, or return None when none is left."""
        with self._lock:
            self._require_round(round_id)
            next_id = next(
                (qid for qid in self._round_questions[round_id] if self._questions[qid].is_pending),
                None,
            )
        if next_id is None:
            return None
        return self.open_question(next_id)

    def close_question(self, question_id: str) -> CompetitionQuestion:
        with self._lock:
            question = self._require_question(question_id)
            if not question.is_active:
                raise RuntimeError(f"Question {question_id} is not active.")
            question = self._close_question_locked(question_id)
            event_id = self._rounds[question.round_id].event_id
            snapshot = self._snapshot_rounds(event_id)
            entries = self._ranked_entries(event_id, LEADERBOARD_LIMIT)
        self._publish(_questions_topic(question.round_id), QuestionClosed(question))
        self._publish(_rounds_topic(event_id), RoundsChanged(event_id, snapshot))
        self._publish(_leaderboard_topic(event_id), LeaderboardChanged(event_id, entries))
        logger.info("Question %s closed", question_id)
        return question

    def complete_round(self, round_id: str) -> CompetitionRound:
        with self._lock:
            competition_round = self._require_round(round_id)
            closed = self._complete_round_locked(round_id)
            snapshot = self._snapshot_rounds(competition_round.event_id)
        for question in closed:
            self._publish(_questions_topic(round_id), QuestionClosed(question))
        self._publish(_rounds_topic(competition_round.event_id), RoundsChanged(competition_round.event_id, snapshot))
        logger.info("Round %s completed", round_id)
        return self.get_round(round_id)

    # --- Participant operations ---

    def get_rounds(self, event_id: str) -> list[CompetitionRound]:
        with self._lock:
            return list(self._snapshot_rounds(event_id))

    def get_round(self, round_id: str) -> CompetitionRound:
        with self._lock:
            return self._snapshot_round(self._require_round(round_id))

    def get_question(self, question_id: str) -> CompetitionQuestion:
        """Return a question as participants see it: the answer only once closed."""
        with self._lock:
            return _hide_answer(self._require_question(question_id))

    def get_round_questions(self, round_id: str) -> list[CompetitionQuestion]:
        with self._lock:
            self._require_round(round_id)
            return [_hide_answer(self._questions[qid]) for qid in self._round_questions[round_id]]

    def get_active_question(self, round_id: str) -> CompetitionQuestion | None:
        with self._lock:
            self._require_round(round_id)
            for qid in self._round_questions[round_id]:
                if self._questions[qid].is_active:
                    return _hide_answer(self._questions[qid])
            return None

    def submit_answer(
        self,
        user_id: str,
        question_id: str,
        option_index: int,
        response_time_ms: int | None = None,
    ) -> CompetitionResponse:
        with self._lock:
            question = self._questions.get(question_id)
            if question is None:
                raise SubmissionRejectedError(REASON_UNKNOWN_QUESTION, f"Question {question_id} does not exist.")
            if not question.is_active:
                raise SubmissionRejectedError(REASON_QUESTION_NOT_ACTIVE, "Question is not accepting answers.")
            now = self._clock()
            if question.has_time_limit and question.activated_at is not None:
                elapsed = (now - question.activated_at).total_seconds()
                if elapsed > question.time_limit_seconds + self._grace_seconds:
                    raise SubmissionRejectedError(REASON_TIME_EXPIRED, "Time limit has passed.")
            if (user_id, question_id) in self._responses:
                raise SubmissionRejectedError(REASON_DUPLICATE_RESPONSE, "Answer already submitted.")
            if not question.is_valid_option(option_index):
                raise SubmissionRejectedError(REASON_INVALID_OPTION, f"Option {option_index} is out of range.")

            is_correct = option_index == question.correct_option_index
            response = CompetitionResponse(
                id=uuid4().hex,
                question_id=question_id,
                user_id=user_id,
                selected_option=option_index,
                is_correct=is_correct,
                points_earned=question.points if is_correct else 0,
                response_time_ms=response_time_ms,
                created_at=now,
            )
            self._responses[(user_id, question_id)] = response
            event_id = self._rounds[question.round_id].event_id
            self._participants[event_id].setdefault(user_id, Participant(user_id=user_id))
            self._record_score(event_id, response, now)
            entries = self._ranked_entries(event_id, LEADERBOARD_LIMIT)
        self._publish(_leaderboard_topic(event_id), LeaderboardChanged(event_id, entries))
        logger.info(
            "Recorded answer from %s for question %s (correct=%s)", user_id, question_id, is_correct
        )
        return response

    def get_response(self, user_id: str, question_id: str) -> CompetitionResponse | None:
        with self._lock:
            return self._responses.get((user_id, question_id))

    def get_leaderboard(
        self,
        event_id: str,
        limit: int = LEADERBOARD_LIMIT,
        current_user_id: str | None = None,
    ) -> list[LeaderboardEntry]:
        with self._lock:
            entries = self._ranked_entries(event_id, limit)
        if current_user_id is None:
            return list(entries)
        return [replace(e, is_current_user=e.user_id == current_user_id) for e in entries]

    def get_score(self, event_id: str, user_id: str) -> CompetitionScore | None:
        with self._lock:
            entry = self._scores[event_id].get(user_id)
            if entry is None:
                return None
            ranked = self._ranked_rows(event_id)
            rank = next((i for i, row in enumerate(ranked, start=1) if row.user_id == user_id), 0)
            return CompetitionScore(
                event_id=event_id,
                user_id=user_id,
                total_score=entry.total_score,
                correct_answers=entry.correct_answers,
                total_answers=entry.total_answers,
                current_streak=entry.current_streak,
                best_streak=entry.best_streak,
                rank=rank,
            )

    def get_competition_stats(self, event_id: str) -> CompetitionStats:
        """Participant count, average and highest score, and answers given across the event."""
        with self._lock:
            rows = list(self._scores[event_id].values())
        if not rows:
            return CompetitionStats(event_id=event_id)
        total = sum(row.total_score for row in rows)
        return CompetitionStats(
            event_id=event_id,
            participant_count=len(rows),
            average_score=total // len(rows),
            highest_score=max(row.total_score for row in rows),
            total_questions_answered=sum(row.total_answers for row in rows),
        )

    def get_badges(self) -> list[CompetitionBadge]:
        """Every badge, most valuable first."""
        with self._lock:
            badges = list(self._badges.values())
        return sorted(badges, key=lambda badge: badge.points_value, reverse=True)

    def get_earned_badges(self, event_id: str, user_id: str) -> list[CompetitionBadge]:
        with self._lock:
            earned = dict(self._earned_badges.get((event_id, user_id), {}))
            badges = {badge_id: self._badges[badge_id] for badge_id in earned}
        return [replace(badges[badge_id], earned_at=earned_at) for badge_id, earned_at in earned.items()]

    def update_presence(self, event_id: str, user_id: str, current_question_id: str | None = None) -> None:
        with self._lock:
            self._presence[event_id][user_id] = current_question_id
            stats = self._presence_stats_locked(event_id)
        self._publish(_presence_topic(event_id), PresenceChanged(event_id, stats))

    def go_offline(self, event_id: str, user_id: str) -> None:
        with self._lock:
            if user_id not in self._presence[event_id]:
                return
            del self._presence[event_id][user_id]
            stats = self._presence_stats_locked(event_id)
        self._publish(_presence_topic(event_id), PresenceChanged(event_id, stats))

    def get_presence(self, event_id: str) -> PresenceStats:
        with self._lock:
            return self._presence_stats_locked(event_id)

    # --- Subscriptions ---

    def subscribe_rounds(self, event_id: str) -> Subscription:
        return self._subscribe(_rounds_topic(event_id))

    def subscribe_questions(self, round_id: str) -> Subscription:
        return self._subscribe(_questions_topic(round_id))

    def subscribe_leaderboard(self, event_id: str) -> Subscription:
        return self._subscribe(_leaderboard_topic(event_id))

    def subscribe_presence(self, event_id: str) -> Subscription:
        return self._subscribe(_presence_topic(event_id))

    def subscriber_count(self, topic: str | None = None) -> int:
        with self._lock:
            if topic is not None:
                return len(self._subscribers.get(topic, []))
            return sum(len(subs) for subs in self._subscribers.values())

    def _subscribe(self, topic: str) -> Subscription:
        subscription = Subscription(topic, on_release=self._release)
        with self._lock:
            self._subscribers[topic].append(subscription)
        return subscription

    def _release(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscribers.pop(subscription.topic, None)

    def _publish(self, topic: str, event: CompetitionEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers.get(topic, []))
        for subscription in subscribers:
            subscription.publish(event)

    # --- Internal helpers (lock held) ---

    def _require_round(self, round_id: str) -> CompetitionRound:
        competition_round = self._rounds.get(round_id)
        if competition_round is None:
            raise NotFoundError(f"Round {round_id} does not exist.")
        return competition_round

    def _require_question(self, question_id: str) -> CompetitionQuestion:
        question = self._questions.get(question_id)
        if question is None:
            raise NotFoundError(f"Question {question_id} does not exist.")
        return question

    def _presence_stats_locked(self, event_id: str) -> PresenceStats:
        online = self._presence[event_id]
        answering = sum(
            1
            for user_id, question_id in online.items()
            if question_id is not None
            and question_id in self._questions
            and self._questions[question_id].is_active
            and (user_id, question_id) not in self._responses
        )
        return PresenceStats(event_id=event_id, online_count=len(online), answering_count=answering)

    def _snapshot_round(self, competition_round: CompetitionRound) -> CompetitionRound:
        question_ids = self._round_questions.get(competition_round.id, [])
        return replace(
            competition_round,
            question_count=len(question_ids),
            completed_questions=sum(1 for qid in question_ids if self._questions[qid].is_closed),
        )

    def _snapshot_rounds(self, event_id: str) -> tuple[CompetitionRound, ...]:
        rounds = [self._snapshot_round(r) for r in self._rounds.values() if r.event_id == event_id]
        return tuple(sorted(rounds, key=lambda r: r.round_number))

    def _close_question_locked(self, question_id: str) -> CompetitionQuestion:
        question = replace(self._questions[question_id], status=QuestionStatus.CLOSED)
        self._questions[question_id] = question
        return question

    def _complete_round_locked(self, round_id: str) -> list[CompetitionQuestion]:
        closed = [
            self._close_question_locked(qid)
            for qid in self._round_questions[round_id]
            if self._questions[qid].is_active
        ]
        self._rounds[round_id] = replace(self._rounds[round_id], status=RoundStatus.COMPLETED, end_time=self._clock())
        return closed

    def _record_score(self, event_id: str, response: CompetitionResponse, now: datetime) -> None:
        entry = self._scores[event_id].get(response.user_id)
        if entry is None:
            entry = ScoreEntry(event_id=event_id, user_id=response.user_id, reached_at=now)
            self._scores[event_id][response.user_id] = entry
        entry.total_answers += 1
        if response.is_correct:
            entry.correct_answers += 1
            entry.current_streak += 1
            entry.best_streak = max(entry.best_streak, entry.current_streak)
        else:
            entry.current_streak = 0
        if response.points_earned:
            entry.total_score += response.points_earned
            entry.reached_at = now

    def _ranked_rows(self, event_id: str) -> list[ScoreEntry]:
        return sorted(
            self._scores[event_id].values(),
            key=lambda e: (-e.total_score, -e.correct_answers, e.reached_at),
        )

    def _ranked_entries(self, event_id: str, limit: int) -> tuple[LeaderboardEntry, ...]:
        participants = self._participants[event_id]
        entries = []
        for rank, row in enumerate(self._ranked_rows(event_id)[: max(0, limit)], start=1):
            participant = participants.get(row.user_id) or Participant(user_id=row.user_id)
            entries.append(
                LeaderboardEntry(
                    user_id=row.user_id,
                    name=participant.name,
                    avatar_url=participant.avatar_url,
                    rank=rank,
                    score=row.total_score,
                    correct_answers=row.correct_answers,
                    total_answers=row.total_answers,
                    streak=row.current_streak,
                )
            )
        return tuple(entries)


def _hide_answer(question: CompetitionQuestion) -> CompetitionQuestion:
    if question.is_closed or question.correct_option_index is None:
        return question
    return replace(question, correct_option_index=None)


def _rounds_topic(event_id: str) -> str:
    return f"rounds:{event_id}"


def _questions_topic(round_id: str) -> str:
    return f"questions:{round_id}"


def _leaderboard_topic(event_id: str) -> str:
    return f"leaderboard:{event_id}"


def _presence_topic(event_id: str) -> str:
    return f"presence:{event_id}"
