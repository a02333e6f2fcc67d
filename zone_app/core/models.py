"""Domain models for the competition client.

Snapshots coming from the backend (rounds, questions, leaderboard entries)
are frozen: the client never patches them, it replaces them wholesale.
Every model round-trips through the JSON wire shape with ``from_payload``
and ``to_payload``. Decoding validates through the pydantic schemas in
``zone_app.core.schemas`` and raises ``MalformedPayloadError`` on bad input.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping

from zone_app.constants.competition_constants import DEFAULT_BADGE_POINTS, DEFAULT_QUESTION_POINTS
from zone_app.core.schemas import (
    BadgeSchema,
    CompetitionStatsSchema,
    LeaderboardEntrySchema,
    PresenceSchema,
    QuestionSchema,
    ResponseSchema,
    RoundSchema,
    ScoreSchema,
    decode,
)


class RoundStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    COMPLETED = "completed"


class QuestionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    CLOSED = "closed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


@dataclass(slots=True, frozen=True)
class CompetitionRound:
    """A scored phase of a competition containing an ordered set of questions."""

    id: str
    event_id: str
    round_number: int
    name: str
    status: RoundStatus = RoundStatus.UPCOMING
    question_count: int = 0
    completed_questions: int = 0
    description: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is RoundStatus.ACTIVE

    @property
    def is_upcoming(self) -> bool:
        return self.status is RoundStatus.UPCOMING

    @property
    def is_completed(self) -> bool:
        return self.status is RoundStatus.COMPLETED

    @property
    def progress(self) -> float:
        if self.question_count <= 0:
            return 0.0
        return self.completed_questions / self.question_count

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionRound:
        wire = decode(RoundSchema, data)
        return cls(
            id=wire.id,
            event_id=wire.event_id,
            round_number=wire.round_number,
            name=wire.name,
            status=RoundStatus(wire.status),
            question_count=wire.question_count,
            completed_questions=wire.completed_questions,
            description=wire.description,
            start_time=_as_utc(wire.start_time),
            end_time=_as_utc(wire.end_time),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event_id": self.event_id,
            "round_number": self.round_number,
            "name": self.name,
            "status": self.status.value,
            "question_count": self.question_count,
            "completed_questions": self.completed_questions,
            "description": self.description,
            "start_time": _format_datetime(self.start_time),
            "end_time": _format_datetime(self.end_time),
        }


@dataclass(slots=True, frozen=True)
class CompetitionQuestion:
    """Multiple-choice question. ``correct_option_index`` stays hidden until closed."""

    id: str
    round_id: str
    question_number: int
    prompt: str
    options: tuple[str, ...]
    points: int = DEFAULT_QUESTION_POINTS
    status: QuestionStatus = QuestionStatus.PENDING
    time_limit_seconds: int | None = None
    correct_option_index: int | None = None
    activated_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status is QuestionStatus.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.status is QuestionStatus.CLOSED

    @property
    def is_pending(self) -> bool:
        return self.status is QuestionStatus.PENDING

    @property
    def has_time_limit(self) -> bool:
        return self.time_limit_seconds is not None and self.time_limit_seconds > 0

    def remaining_seconds(self, now: datetime | None = None) -> int:
        if not self.has_time_limit or self.activated_at is None:
            return 0
        now = now or utc_now()
        elapsed = int((now - self.activated_at).total_seconds())
        return max(0, self.time_limit_seconds - elapsed)

    def is_valid_option(self, option_index: int) -> bool:
        return 0 <= option_index < len(self.options)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionQuestion:
        wire = decode(QuestionSchema, data)
        return cls(
            id=wire.id,
            round_id=wire.round_id,
            question_number=wire.question_number,
            prompt=wire.question,
            options=tuple(wire.options),
            points=wire.points,
            status=QuestionStatus(wire.status),
            time_limit_seconds=wire.time_limit_seconds,
            correct_option_index=wire.correct_option_index,
            activated_at=_as_utc(wire.activated_at),
        )

    def to_payload(self, *, reveal_answer: bool | None = None) -> dict[str, Any]:
        """Encode the question. By default the answer is only included once closed."""
        if reveal_answer is None:
            reveal_answer = self.is_closed
        return {
            "id": self.id,
            "round_id": self.round_id,
            "question_number": self.question_number,
            "question": self.prompt,
            "options": list(self.options),
            "points": self.points,
            "status": self.status.value,
            "time_limit_seconds": self.time_limit_seconds,
            "correct_option_index": self.correct_option_index if reveal_answer else None,
            "activated_at": _format_datetime(self.activated_at),
        }


@dataclass(slots=True, frozen=True)
class CompetitionResponse:
    """A user's single, create-once answer to a question."""

    id: str
    question_id: str
    user_id: str
    selected_option: int
    is_correct: bool
    points_earned: int
    response_time_ms: int | None = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionResponse:
        wire = decode(ResponseSchema, data)
        return cls(
            id=wire.id,
            question_id=wire.question_id,
            user_id=wire.user_id,
            selected_option=wire.selected_option,
            is_correct=wire.is_correct,
            points_earned=wire.points_earned,
            response_time_ms=wire.response_time_ms,
            created_at=_as_utc(wire.created_at),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "user_id": self.user_id,
            "selected_option": self.selected_option,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
            "response_time_ms": self.response_time_ms,
            "created_at": _format_datetime(self.created_at),
        }


@dataclass(slots=True, frozen=True)
class CompetitionScore:
    """Per-user aggregate for an event. ``rank`` 0 means unranked."""

    event_id: str
    user_id: str
    total_score: int = 0
    correct_answers: int = 0
    total_answers: int = 0
    current_streak: int = 0
    best_streak: int = 0
    rank: int = 0

    @property
    def accuracy(self) -> float:
        return self.correct_answers / self.total_answers if self.total_answers > 0 else 0.0

    @property
    def accuracy_percent(self) -> int:
        return round(self.accuracy * 100)

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionScore:
        return cls(**decode(ScoreSchema, data).model_dump())

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "total_score": self.total_score,
            "correct_answers": self.correct_answers,
            "total_answers": self.total_answers,
            "current_streak": self.current_streak,
            "best_streak": self.best_streak,
            "rank": self.rank,
        }


@dataclass(slots=True, frozen=True)
class LeaderboardEntry:
    """One ranked row of a server-computed leaderboard snapshot."""

    user_id: str
    name: str
    rank: int
    score: int
    correct_answers: int = 0
    total_answers: int = 0
    streak: int = 0
    avatar_url: str | None = None
    is_current_user: bool = False

    @property
    def accuracy(self) -> float:
        return self.correct_answers / self.total_answers if self.total_answers > 0 else 0.0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any], current_user_id: str | None = None) -> LeaderboardEntry:
        wire = decode(LeaderboardEntrySchema, data)
        return cls(
            user_id=wire.user_id,
            name=wire.user_name,
            rank=wire.rank,
            score=wire.total_score,
            correct_answers=wire.correct_answers,
            total_answers=wire.total_answers,
            streak=wire.current_streak,
            avatar_url=wire.user_avatar,
            is_current_user=wire.user_id == current_user_id,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "user_name": self.name,
            "user_avatar": self.avatar_url,
            "rank": self.rank,
            "total_score": self.score,
            "correct_answers": self.correct_answers,
            "total_answers": self.total_answers,
            "current_streak": self.streak,
        }


@dataclass(slots=True, frozen=True)
class PresenceStats:
    """Real-time presence counters for an event."""

    event_id: str
    online_count: int
    answering_count: int = 0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> PresenceStats:
        return cls(**decode(PresenceSchema, data).model_dump())

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "online_count": self.online_count,
            "answering_count": self.answering_count,
        }


@dataclass(slots=True, frozen=True)
class CompetitionStats:
    """Event-wide score summary across every participant with a score."""

    event_id: str
    participant_count: int = 0
    average_score: int = 0
    highest_score: int = 0
    total_questions_answered: int = 0

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionStats:
        return cls(**decode(CompetitionStatsSchema, data).model_dump())

    def to_payload(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "participant_count": self.participant_count,
            "average_score": self.average_score,
            "highest_score": self.highest_score,
            "total_questions_answered": self.total_questions_answered,
        }


@dataclass(slots=True, frozen=True)
class CompetitionBadge:
    """An achievement a participant can earn. ``earned_at`` is set once earned."""

    id: str
    name: str
    icon: str
    badge_type: str
    description: str = ""
    rarity: str = "COMMON"
    points_value: int = DEFAULT_BADGE_POINTS
    earned_at: datetime | None = None

    @property
    def is_earned(self) -> bool:
        return self.earned_at is not None

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> CompetitionBadge:
        wire = decode(BadgeSchema, data)
        return cls(
            id=wire.id,
            name=wire.name,
            icon=wire.icon,
            badge_type=wire.badge_type,
            description=wire.description,
            rarity=wire.rarity,
            points_value=wire.points_value,
            earned_at=_as_utc(wire.earned_at),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "icon": self.icon,
            "badge_type": self.badge_type,
            "description": self.description,
            "rarity": self.rarity,
            "points_value": self.points_value,
            "earned_at": _format_datetime(self.earned_at),
        }
