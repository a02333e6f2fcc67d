"""Shared fixtures for the competition test suite."""

from __future__ import annotations

from dataclasses import dataclass

import pytest

from factories import EVENT_ID, FakeClock
from zone_app.core.competition_backend import CompetitionBackend
from zone_app.core.models import CompetitionQuestion, CompetitionRound


@dataclass
class SeededRound:
    round: CompetitionRound
    questions: list[CompetitionQuestion]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend(clock: FakeClock) -> CompetitionBackend:
    return CompetitionBackend(clock=clock)


@pytest.fixture
def seeded(backend: CompetitionBackend) -> SeededRound:
    """One upcoming round with a timed 100-point question and an untimed 50-point one."""
    competition_round = backend.create_round(EVENT_ID, "Warm-up")
    first = backend.add_question(
        competition_round.id, "What is $2^5$?", ["16", "32", "64"], 1, points=100, time_limit_seconds=15
    )
    second = backend.add_question(competition_round.id, "Capital of Norway?", ["Oslo", "Bergen"], 0, points=50)
    return SeededRound(round=competition_round, questions=[first, second])
