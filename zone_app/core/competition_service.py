"""Boundary between the client state machine and the competition backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from zone_app.constants.competition_constants import LEADERBOARD_LIMIT
from zone_app.core.models import (
    CompetitionBadge,
    CompetitionQuestion,
    CompetitionResponse,
    CompetitionRound,
    CompetitionScore,
    CompetitionStats,
    LeaderboardEntry,
    PresenceStats,
)
from zone_app.core.services.subscriptions import Subscription

if TYPE_CHECKING:
    from zone_app.core.competition_backend import CompetitionBackend


class CompetitionService(ABC):
    """Operations the client needs from the backend, acting as one user.

    Implementations raise ``TransportError`` for network failures,
    ``SubmissionRejectedError`` when an answer is refused,
    ``NotFoundError`` for unknown ids and ``MalformedPayloadError`` for
    undecodable payloads. Subscriptions must be released by their owner.
    """

    user_id: str

    @abstractmethod
    def get_rounds(self, event_id: str) -> list[CompetitionRound]:
        """Return the event's rounds ordered by round number."""

    @abstractmethod
    def get_active_question(self, round_id: str) -> CompetitionQuestion | None:
        """Return the open question of a round, without its answer."""

    @abstractmethod
    def get_question(self, question_id: str) -> CompetitionQuestion:
        """Return one question. The answer is included once it is closed."""

    @abstractmethod
    def submit_answer(self, question_id: str, option_index: int, response_time_ms: int) -> CompetitionResponse:
        """Create this user's only response to a question."""

    @abstractmethod
    def get_leaderboard(self, event_id: str, limit: int = LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        """Return the top ``limit`` entries in server rank order."""

    @abstractmethod
    def get_my_response(self, question_id: str) -> CompetitionResponse | None:
        """Return this user's response to a question, if any."""

    @abstractmethod
    def get_my_score(self, event_id: str) -> CompetitionScore | None:
        """Return this user's score, or None before the first answer."""

    @abstractmethod
    def update_presence(self, event_id: str, current_question_id: str | None = None) -> None:
        """Mark this user online, optionally answering ``current_question_id``."""

    @abstractmethod
    def go_offline(self, event_id: str) -> None:
        """Remove this user from the event's presence."""

    @abstractmethod
    def get_presence(self, event_id: str) -> PresenceStats:
        """Return online and answering counts for the event."""

    @abstractmethod
    def get_competition_stats(self, event_id: str) -> CompetitionStats:
        """Return the event-wide score summary."""

    @abstractmethod
    def get_all_badges(self) -> list[CompetitionBadge]:
        """Return every badge, most valuable first."""

    @abstractmethod
    def get_earned_badges(self, event_id: str) -> list[CompetitionBadge]:
        """Return the badges this user earned in the event."""

    def get_badges_with_status(self, event_id: str) -> list[CompetitionBadge]:
        """Return every badge, with ``earned_at`` filled in for the ones this user earned."""
        earned = {badge.id: badge for badge in self.get_earned_badges(event_id)}
        return [earned.get(badge.id, badge) for badge in self.get_all_badges()]

    @abstractmethod
    def subscribe_to_rounds(self, event_id: str) -> Subscription:
        """Receive ``RoundsChanged`` for the event."""

    @abstractmethod
    def subscribe_to_questions(self, round_id: str) -> Subscription:
        """Receive ``QuestionOpened`` and ``QuestionClosed`` for a round."""

    @abstractmethod
    def subscribe_to_leaderboard(self, event_id: str) -> Subscription:
        """Receive ``LeaderboardChanged`` for the event."""

    @abstractmethod
    def subscribe_to_presence(self, event_id: str) -> Subscription:
        """Receive ``PresenceChanged`` for the event."""


class LocalCompetitionService(CompetitionService):
    """In-process service bound to a ``CompetitionBackend`` and one user."""

    def __init__(self, backend: CompetitionBackend, user_id: str) -> None:
        self._backend = backend
        self.user_id = user_id

    def get_rounds(self, event_id: str) -> list[CompetitionRound]:
        return self._backend.get_rounds(event_id)

    def get_active_question(self, round_id: str) -> CompetitionQuestion | None:
        return self._backend.get_active_question(round_id)

    def get_question(self, question_id: str) -> CompetitionQuestion:
        return self._backend.get_question(question_id)

    def submit_answer(self, question_id: str, option_index: int, response_time_ms: int) -> CompetitionResponse:
        return self._backend.submit_answer(self.user_id, question_id, option_index, response_time_ms)

    def get_leaderboard(self, event_id: str, limit: int = LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        return self._backend.get_leaderboard(event_id, limit=limit, current_user_id=self.user_id)

    def get_my_response(self, question_id: str) -> CompetitionResponse | None:
        return self._backend.get_response(self.user_id, question_id)

    def get_my_score(self, event_id: str) -> CompetitionScore | None:
        return self._backend.get_score(event_id, self.user_id)

    def update_presence(self, event_id: str, current_question_id: str | None = None) -> None:
        self._backend.update_presence(event_id, self.user_id, current_question_id)

    def go_offline(self, event_id: str) -> None:
        self._backend.go_offline(event_id, self.user_id)

    def get_presence(self, event_id: str) -> PresenceStats:
        return self._backend.get_presence(event_id)

    def get_competition_stats(self, event_id: str) -> CompetitionStats:
        return self._backend.get_competition_stats(event_id)

    def get_all_badges(self) -> list[CompetitionBadge]:
        return self._backend.get_badges()

    def get_earned_badges(self, event_id: str) -> list[CompetitionBadge]:
        return self._backend.get_earned_badges(event_id, self.user_id)

    def subscribe_to_rounds(self, event_id: str) -> Subscription:
        return self._backend.subscribe_rounds(event_id)

    def subscribe_to_questions(self, round_id: str) -> Subscription:
        return self._backend.subscribe_questions(round_id)

    def subscribe_to_leaderboard(self, event_id: str) -> Subscription:
        return self._backend.subscribe_leaderboard(event_id)

    def subscribe_to_presence(self, event_id: str) -> Subscription:
        return self._backend.subscribe_presence(event_id)
