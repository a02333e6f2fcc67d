"""Service presenting server-ranked leaderboard snapshots."""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, Sequence

from zone_app.constants.competition_constants import PODIUM_SIZE
from zone_app.core.models import LeaderboardEntry


def rank_entries(entries: Iterable[LeaderboardEntry]) -> list[LeaderboardEntry]:
    """Keep the server's order. Entries without a rank get their 1-based position.

    Tie-breaks are decided by the backend, so the client never re-sorts.
    """
    ranked: list[LeaderboardEntry] = []
    for position, entry in enumerate(entries, start=1):
        ranked.append(entry if entry.rank > 0 else replace(entry, rank=position))
    return ranked


def top_n(entries: Sequence[LeaderboardEntry], n: int) -> list[LeaderboardEntry]:
    """Return the first ``n`` entries; empty for a non-positive ``n``."""
    if n <= 0:
        return []
    return list(entries[:n])


class LeaderboardView:
    """Latest leaderboard snapshot with the current user highlighted."""

    def __init__(self) -> None:
        self._entries: list[LeaderboardEntry] = []

    def refresh(self, entries: Iterable[LeaderboardEntry], current_user_id: str) -> list[LeaderboardEntry]:
        """Replace the snapshot and mark the row belonging to ``current_user_id``."""
        self._entries = [
            replace(entry, is_current_user=entry.user_id == current_user_id)
            for entry in rank_entries(entries)
        ]
        return self.entries

    @property
    def entries(self) -> list[LeaderboardEntry]:
        """Copy of the latest snapshot in rank order."""
        return list(self._entries)

    def top(self, n: int) -> list[LeaderboardEntry]:
        """Return the first ``n`` entries."""
        return top_n(self._entries, n)

    def podium(self) -> list[LeaderboardEntry]:
        """Return the medal positions."""
        return top_n(self._entries, PODIUM_SIZE)

    def current_user_entry(self) -> LeaderboardEntry | None:
        """Return the current user's row, if it is on the board."""
        return next((e for e in self._entries if e.is_current_user), None)

    def clear(self) -> None:
        """Forget the snapshot."""
        self._entries = []
