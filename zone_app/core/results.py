"""Tagged results returned by the session state machine instead of exceptions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto

from zone_app.core.models import CompetitionResponse


class SubmissionStatus(Enum):
    """Outcome of an answer submission attempt."""

    ACCEPTED = auto()
    DUPLICATE = auto()
    NO_ACTIVE_QUESTION = auto()
    QUESTION_MISMATCH = auto()
    QUESTION_CLOSED = auto()
    INVALID_OPTION = auto()
    REJECTED = auto()
    TRANSPORT_ERROR = auto()
    MALFORMED_RESPONSE = auto()


_RETRYABLE = frozenset({SubmissionStatus.REJECTED, SubmissionStatus.TRANSPORT_ERROR, SubmissionStatus.MALFORMED_RESPONSE})


@dataclass(slots=True, frozen=True)
class CelebrationOutcome:
    """What the presentation layer needs to celebrate (or console) an answer."""

    is_correct: bool
    points_earned: int
    new_streak: int


@dataclass(slots=True, frozen=True)
class SubmissionResult:
    status: SubmissionStatus
    response: CompetitionResponse | None = None
    celebration: CelebrationOutcome | None = None
    message: str = ""

    @property
    def accepted(self) -> bool:
        return self.status is SubmissionStatus.ACCEPTED

    @property
    def retryable(self) -> bool:
        """True when nothing was recorded and the same answer may be sent again."""
        return self.status in _RETRYABLE
