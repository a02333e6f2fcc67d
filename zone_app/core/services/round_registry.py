"""Service holding the rounds of an event and exposing the active one."""

from __future__ import annotations

import logging
from typing import Iterable

from zone_app.core.models import CompetitionRound

logger = logging.getLogger(__name__)


def select_active_round(rounds: Iterable[CompetitionRound]) -> CompetitionRound | None:
    """Return the first round whose status is active, or None."""
    return next((r for r in rounds if r.is_active), None)


class RoundRegistry:
    """Read-only snapshot of an event's rounds, replaced wholesale on refresh."""

    def __init__(self) -> None:
        self._rounds: list[CompetitionRound] = []
        self._active: CompetitionRound | None = None
        self._last_active_id: str | None = None

    def replace(self, rounds: Iterable[CompetitionRound]) -> CompetitionRound | None:
        """Store a new snapshot and return the active round it contains."""
        self._rounds = sorted(rounds, key=lambda r: r.round_number)
        active_count = sum(1 for r in self._rounds if r.is_active)
        if active_count > 1:
            logger.warning("Received %d active rounds; using the first by round number", active_count)
        self._active = select_active_round(self._rounds)
        if self._active is not None:
            self._last_active_id = self._active.id
        return self._active

    @property
    def rounds(self) -> list[CompetitionRound]:
        """Copy of the latest snapshot."""
        return list(self._rounds)

    @property
    def active_round(self) -> CompetitionRound | None:
        """The active round of the latest snapshot."""
        return self._active

    def get(self, round_id: str) -> CompetitionRound | None:
        """Return one round by id."""
        return next((r for r in self._rounds if r.id == round_id), None)

    def last_round_completed(self) -> bool:
        """True when no round is active and the most recently active one has completed."""
        if self._active is not None or self._last_active_id is None:
            return False
        last = self.get(self._last_active_id)
        return last is not None and last.is_completed

    def clear(self) -> None:
        """Forget every round."""
        self._rounds = []
        self._active = None
        self._last_active_id = None
