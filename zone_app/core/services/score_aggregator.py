"""Service maintaining the local user's score between leaderboard refreshes."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from zone_app.core.models import CompetitionResponse, CompetitionScore, LeaderboardEntry


def apply_response_result(response: CompetitionResponse, previous: CompetitionScore) -> CompetitionScore:
    """Fold one accepted response into a score. Rank is left untouched."""
    streak = previous.current_streak + 1 if response.is_correct else 0
    return replace(
        previous,
        total_score=previous.total_score + response.points_earned,
        total_answers=previous.total_answers + 1,
        correct_answers=previous.correct_answers + (1 if response.is_correct else 0),
        current_streak=streak,
        best_streak=max(previous.best_streak, streak),
    )


def apply_leaderboard_refresh(
    entries: Iterable[LeaderboardEntry],
    user_id: str,
    previous: CompetitionScore,
) -> CompetitionScore:
    """Overwrite the score with the user's leaderboard row; unranked when absent."""
    entry = next((e for e in entries if e.user_id == user_id), None)
    if entry is None:
        return replace(previous, rank=0)
    return replace(
        previous,
        total_score=entry.score,
        correct_answers=entry.correct_answers,
        total_answers=entry.total_answers,
        current_streak=entry.streak,
        best_streak=max(previous.best_streak, entry.streak),
        rank=entry.rank,
    )


class ScoreAggregator:
    """Holds the current score and whether it is an optimistic placeholder."""

    def __init__(self, event_id: str, user_id: str) -> None:
        self._score = CompetitionScore(event_id=event_id, user_id=user_id)
        self._provisional = False

    @property
    def score(self) -> CompetitionScore:
        """The current score."""
        return self._score

    @property
    def is_provisional(self) -> bool:
        """True while the score holds local additions the backend has not confirmed."""
        return self._provisional

    def apply_response(self, response: CompetitionResponse) -> CompetitionScore:
        """Add an accepted response locally until the next refresh."""
        self._score = apply_response_result(response, self._score)
        self._provisional = True
        return self._score

    def apply_refresh(self, entries: Iterable[LeaderboardEntry]) -> CompetitionScore:
        """Adopt the user's row from a fresh leaderboard."""
        self._score = apply_leaderboard_refresh(entries, self._score.user_id, self._score)
        self._provisional = False
        return self._score

    def restore(self, score: CompetitionScore) -> None:
        """Adopt an authoritative score fetched from the backend."""
        self._score = score
        self._provisional = False
