"""Service tracking the currently open question and its countdown."""

from __future__ import annotations

from datetime import datetime
import logging

from zone_app.core.models import CompetitionQuestion, QuestionStatus, utc_now

logger = logging.getLogger(__name__)


class Countdown:
    """Whole-second countdown driven by external ticks.

    ``tick`` returns True exactly once: on the tick that reaches zero. After
    that, or after ``cancel``, further ticks do nothing. A countdown created
    at zero expires on its first tick.
    """

    def __init__(self, remaining_seconds: int) -> None:
        self._remaining = max(0, int(remaining_seconds))
        self._running = True
        self._expired = False

    @property
    def remaining_seconds(self) -> int:
        """Seconds left on the countdown."""
        return self._remaining

    @property
    def is_running(self) -> bool:
        """True until expired or cancelled."""
        return self._running

    @property
    def has_expired(self) -> bool:
        """True once the countdown reached zero."""
        return self._expired

    def tick(self) -> bool:
        """Advance one second. True when time expired on this tick."""
        if not self._running:
            return False
        if self._remaining > 0:
            self._remaining -= 1
        if self._remaining == 0:
            self._running = False
            self._expired = True
            return True
        return False

    def cancel(self) -> None:
        """Stop ticking without expiring."""
        self._running = False


class QuestionWindow:
    """Shows at most one question and owns the countdown for it."""

    def __init__(self) -> None:
        self._question: CompetitionQuestion | None = None
        self._countdown: Countdown | None = None
        self._opened_at: datetime | None = None

    @property
    def question(self) -> CompetitionQuestion | None:
        """The question being shown."""
        return self._question

    @property
    def countdown(self) -> Countdown | None:
        """Countdown of the shown question, if it has a time limit."""
        return self._countdown

    @property
    def opened_at(self) -> datetime | None:
        """Local time the window opened the current question."""
        return self._opened_at

    @property
    def is_open(self) -> bool:
        """True while the shown question accepts answers."""
        return self._question is not None and self._question.is_active

    @property
    def remaining_seconds(self) -> int | None:
        """Seconds left, or None without a countdown."""
        return self._countdown.remaining_seconds if self._countdown else None

    @property
    def time_expired(self) -> bool:
        """True when the countdown ran out."""
        return self._countdown is not None and self._countdown.has_expired

    @property
    def revealed_correct_index(self) -> int | None:
        """Index of the correct option, only once the question is closed."""
        if self._question is None or not self._question.is_closed:
            return None
        return self._question.correct_option_index

    def open(self, question: CompetitionQuestion, now: datetime | None = None) -> None:
        """Show ``question`` as open and start its countdown when it has a time limit."""
        now = now or utc_now()
        self._cancel_countdown()
        self._question = question
        self._opened_at = now
        if question.has_time_limit:
            self._countdown = Countdown(question.remaining_seconds(now))
            logger.info(
                "Question %s opened with %ss remaining", question.id, self._countdown.remaining_seconds
            )
        else:
            logger.info("Question %s opened without a time limit", question.id)

    def close(self, question: CompetitionQuestion) -> None:
        """Show ``question`` as closed. Its answer becomes visible."""
        if question.status is not QuestionStatus.CLOSED:
            raise ValueError(f"Question {question.id} is not closed")
        self._cancel_countdown()
        if self._question is None or self._question.id != question.id:
            self._opened_at = None
        self._question = question

    def tick(self) -> bool:
        """Advance the countdown one second. True when time expired on this tick."""
        if self._countdown is None or not self.is_open:
            return False
        return self._countdown.tick()

    def clear(self) -> None:
        """Forget the current question and stop its countdown."""
        self._cancel_countdown()
        self._question = None
        self._opened_at = None

    def teardown(self) -> None:
        """Release the window when the session closes."""
        self.clear()

    def _cancel_countdown(self) -> None:
        if self._countdown is not None:
            self._countdown.cancel()
        self._countdown = None
