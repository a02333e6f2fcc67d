"""Typed live-update events delivered through subscriptions."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from zone_app.core.models import CompetitionQuestion, CompetitionRound, LeaderboardEntry, PresenceStats


@dataclass(slots=True, frozen=True)
class RoundsChanged:
    event_id: str
    rounds: tuple[CompetitionRound, ...]


@dataclass(slots=True, frozen=True)
class QuestionOpened:
    question: CompetitionQuestion


@dataclass(slots=True, frozen=True)
class QuestionClosed:
    question: CompetitionQuestion


@dataclass(slots=True, frozen=True)
class LeaderboardChanged:
    """Leaderboard changed. ``entries`` is None when the consumer must re-fetch."""

    event_id: str
    entries: tuple[LeaderboardEntry, ...] | None = None


@dataclass(slots=True, frozen=True)
class PresenceChanged:
    event_id: str
    presence: PresenceStats


CompetitionEvent = Union[RoundsChanged, QuestionOpened, QuestionClosed, LeaderboardChanged, PresenceChanged]
