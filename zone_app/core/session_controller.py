"""Per-event controller that owns the competition session state.

Every mutation of rounds, the open question, responses, score and the
leaderboard goes through this controller, in reaction to one of three
triggers: a countdown tick, a live-update event, or a user submission.
Renderers read the ``state`` snapshot and never mutate it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto
import logging
from typing import Any, Callable

from zone_app.constants.competition_constants import LEADERBOARD_LIMIT, STALE_THRESHOLD_SECONDS
from zone_app.core.competition_service import CompetitionService
from zone_app.core.errors import CompetitionError
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
    utc_now,
)
from zone_app.core.results import CelebrationOutcome, SubmissionResult, SubmissionStatus
from zone_app.core.services.leaderboard_view import LeaderboardView
from zone_app.core.services.question_window import QuestionWindow
from zone_app.core.services.response_tracker import ResponseTracker
from zone_app.core.services.round_registry import RoundRegistry
from zone_app.core.services.score_aggregator import ScoreAggregator
from zone_app.core.services.subscriptions import Subscription

logger = logging.getLogger(__name__)

# Live channels whose silence makes the session stale.
ROUNDS_CHANNEL = "rounds"
QUESTIONS_CHANNEL = "questions"


class SessionPhase(Enum):
    NO_ACTIVE_ROUND = auto()
    ROUND_ACTIVE = auto()
    QUESTION_OPEN = auto()
    AWAITING_CLOSE = auto()
    RESULTS_SHOWN = auto()
    ROUND_COMPLETED = auto()
    CLOSED = auto()


@dataclass(slots=True)
class SessionSettings:
    leaderboard_limit: int = LEADERBOARD_LIMIT
    stale_threshold_seconds: float = STALE_THRESHOLD_SECONDS
    # Ask the backend whether the question is still open right before submitting.
    recheck_before_submit: bool = True
    report_presence: bool = True


@dataclass(slots=True, frozen=True)
class SessionState:
    """Immutable snapshot handed to renderers."""

    event_id: str
    user_id: str
    phase: SessionPhase
    rounds: tuple[CompetitionRound, ...]
    active_round: CompetitionRound | None
    question: CompetitionQuestion | None
    remaining_seconds: int | None
    time_expired: bool
    response: CompetitionResponse | None
    revealed_correct_index: int | None
    score: CompetitionScore
    score_is_provisional: bool
    leaderboard: tuple[LeaderboardEntry, ...]
    presence: PresenceStats | None
    stats: CompetitionStats | None
    badges: tuple[CompetitionBadge, ...]
    last_celebration: CelebrationOutcome | None
    last_error: str | None
    last_synced_at: datetime | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "user_id": self.user_id,
            "phase": self.phase.name,
            "rounds": [r.to_payload() for r in self.rounds],
            "active_round_id": self.active_round.id if self.active_round else None,
            "question": self.question.to_payload() if self.question else None,
            "remaining_seconds": self.remaining_seconds,
            "time_expired": self.time_expired,
            "response": self.response.to_payload() if self.response else None,
            "revealed_correct_index": self.revealed_correct_index,
            "score": self.score.to_payload(),
            "score_is_provisional": self.score_is_provisional,
            "leaderboard": [e.to_payload() for e in self.leaderboard],
            "presence": self.presence.to_payload() if self.presence else None,
            "stats": self.stats.to_payload() if self.stats else None,
            "badges": [b.to_payload() for b in self.badges],
            "last_celebration": (
                {
                    "is_correct": self.last_celebration.is_correct,
                    "points_earned": self.last_celebration.points_earned,
                    "new_streak": self.last_celebration.new_streak,
                }
                if self.last_celebration
                else None
            ),
            "last_error": self.last_error,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }


class CompetitionSessionController:
    """Reconciles rounds, questions, submissions and leaderboard for one event."""

    def __init__(
        self,
        service: CompetitionService,
        event_id: str,
        settings: SessionSettings | None = None,
        *,
        clock: Callable[[], datetime] = utc_now,
        on_time_expired: Callable[[CompetitionQuestion], None] | None = None,
    ) -> None:
        self._service = service
        self._event_id = event_id
        self._user_id = service.user_id
        self._settings = settings or SessionSettings()
        self._clock = clock
        self._on_time_expired = on_time_expired

        self._registry = RoundRegistry()
        self._window = QuestionWindow()
        self._tracker = ResponseTracker(service)
        self._scores = ScoreAggregator(event_id, self._user_id)
        self._leaderboard = LeaderboardView()

        self._rounds_subscription: Subscription | None = None
        self._questions_subscription: Subscription | None = None
        self._leaderboard_subscription: Subscription | None = None
        self._presence_subscription: Subscription | None = None
        self._subscribed_round_id: str | None = None

        self._presence: PresenceStats | None = None
        self._stats: CompetitionStats | None = None
        self._badges: tuple[CompetitionBadge, ...] = ()
        self._last_celebration: CelebrationOutcome | None = None
        self._last_error: str | None = None
        self._synced_at: dict[str, datetime] = {}
        self._started = False
        self._closed = False

    # --- Lifecycle ---

    def start(self) -> bool:
        """Subscribe to live updates and load the initial snapshot."""
        if self._closed:
            raise RuntimeError("Session controller has been closed.")
        if self._started:
            return True
        self._started = True
        self._rounds_subscription = self._service.subscribe_to_rounds(self._event_id)
        self._leaderboard_subscription = self._service.subscribe_to_leaderboard(self._event_id)
        self._presence_subscription = self._service.subscribe_to_presence(self._event_id)
        logger.info("Competition session started for event %s as %s", self._event_id, self._user_id)
        return self.resync()

    def close(self) -> None:
        """Release every subscription and timer. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        for subscription in self._subscriptions():
            if subscription is not None:
                subscription.unsubscribe()
        self._rounds_subscription = None
        self._questions_subscription = None
        self._leaderboard_subscription = None
        self._presence_subscription = None
        self._subscribed_round_id = None
        self._window.teardown()
        if self._started and self._settings.report_presence:
            try:
                self._service.go_offline(self._event_id)
            except CompetitionError as exc:
                logger.warning("Could not report offline presence: %s", exc)
        logger.info("Competition session for event %s closed", self._event_id)

    def __enter__(self) -> CompetitionSessionController:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_closed(self) -> bool:
        return self._closed

    # --- Triggers ---

    def pump(self) -> int:
        """Drain every subscription and apply the events. Returns how many were applied."""
        if self._closed:
            return 0
        applied = 0
        for subscription in self._subscriptions():
            if subscription is None or not subscription.is_active:
                continue
            try:
                events = subscription.drain()
            except CompetitionError as exc:
                self._record_error("Live update failed", exc)
                continue
            for event in events:
                if self._closed:
                    return applied
                try:
                    self.handle_event(event)
                except CompetitionError as exc:
                    self._record_error("Applying live update failed", exc)
                    continue
                applied += 1
        return applied

    def handle_event(self, event: CompetitionEvent) -> None:
        """Apply one live update. Service errors propagate to the caller."""
        if self._closed:
            return
        if isinstance(event, RoundsChanged):
            if event.event_id == self._event_id:
                self._apply_rounds(list(event.rounds))
                self._mark_synced(ROUNDS_CHANNEL)
        elif isinstance(event, QuestionOpened):
            self._on_question_opened(event.question)
            self._mark_synced(QUESTIONS_CHANNEL)
        elif isinstance(event, QuestionClosed):
            self._on_question_closed(event.question)
            self._mark_synced(QUESTIONS_CHANNEL)
        elif isinstance(event, LeaderboardChanged):
            if event.event_id != self._event_id:
                return
            if event.entries is None:
                entries = self._service.get_leaderboard(self._event_id, limit=self._settings.leaderboard_limit)
            else:
                entries = list(event.entries)
            self._apply_leaderboard(entries)
        elif isinstance(event, PresenceChanged):
            if event.event_id == self._event_id:
                self._presence = event.presence
        else:
            raise TypeError(f"Unsupported event {event!r}")

    def tick(self) -> bool:
        """Advance the countdown by one second. True on the tick where time runs out."""
        if self._closed:
            return False
        expired = self._window.tick()
        if expired:
            question = self._window.question
            logger.info("Time expired for question %s", question.id)
            if self._on_time_expired is not None and not self._tracker.has_response(question.id):
                self._on_time_expired(question)
        return expired

    def submit_answer(
        self,
        option_index: int,
        response_time_ms: int | None = None,
        question_id: str | None = None,
    ) -> SubmissionResult:
        if self._closed:
            return SubmissionResult(SubmissionStatus.NO_ACTIVE_QUESTION, message="Session is closed.")
        question = self._window.question
        if question is None:
            return self._tracker.submit(None, question_id or "", option_index, 0)
        question_id = question_id or question.id
        if response_time_ms is None:
            response_time_ms = self._elapsed_ms()

        if (
            self._settings.recheck_before_submit
            and question_id == question.id
            and self._window.is_open
            and not self._tracker.has_response(question.id)
            and not self._tracker.is_locked(question.id)
        ):
            try:
                still_open = self._service.get_active_question(question.round_id)
                if still_open is None or still_open.id != question.id:
                    self._resolve_stale_question(question)
                    return SubmissionResult(SubmissionStatus.QUESTION_CLOSED, message="This question is closed.")
            except CompetitionError as exc:
                self._record_error("Could not confirm the question is open", exc)
                return SubmissionResult(SubmissionStatus.TRANSPORT_ERROR, message=str(exc))

        result = self._tracker.submit(
            self._window.question,
            question_id,
            option_index,
            response_time_ms,
            previous_streak=self._scores.score.current_streak,
        )
        if result.accepted:
            self._scores.apply_response(result.response)
            self._last_celebration = result.celebration
            self._last_error = None
            self._report_presence(None)
        elif result.retryable:
            self._last_error = result.message
        return result

    def refresh_leaderboard(self) -> bool:
        """Poll the leaderboard and event stats.

        This does not count as hearing from the round or question channels,
        so it never postpones a staleness resync.
        """
        if self._closed:
            return False
        try:
            entries = self._service.get_leaderboard(self._event_id, limit=self._settings.leaderboard_limit)
            stats = self._service.get_competition_stats(self._event_id)
        except CompetitionError as exc:
            self._record_error("Leaderboard refresh failed", exc)
            return False
        self._apply_leaderboard(entries)
        self._stats = stats
        return True

    def refresh_badges(self) -> bool:
        """Fetch the badges this user has earned in the event."""
        if self._closed:
            return False
        try:
            self._badges = tuple(self._service.get_earned_badges(self._event_id))
        except CompetitionError as exc:
            self._record_error("Badge refresh failed", exc)
            return False
        return True

    def resync(self) -> bool:
        """Re-fetch rounds, the open question, leaderboard, score, presence and badges from the backend."""
        if self._closed:
            return False
        try:
            self._apply_rounds(self._service.get_rounds(self._event_id))
            active = self._registry.active_round
            if active is not None:
                self._apply_active_question(self._service.get_active_question(active.id), restore=True)
            entries = self._service.get_leaderboard(self._event_id, limit=self._settings.leaderboard_limit)
            score = self._service.get_my_score(self._event_id)
            stats = self._service.get_competition_stats(self._event_id)
            presence = self._service.get_presence(self._event_id)
            badges = self._service.get_earned_badges(self._event_id)
        except CompetitionError as exc:
            self._record_error("Resync failed", exc)
            return False
        if score is not None:
            self._scores.restore(score)
        self._apply_leaderboard(entries)
        self._stats = stats
        self._presence = presence
        self._badges = tuple(badges)
        self._last_error = None
        self._mark_synced(ROUNDS_CHANNEL, QUESTIONS_CHANNEL)
        return True

    def is_stale(self, now: datetime | None = None) -> bool:
        """True when a live channel the session depends on has been silent past the threshold.

        The rounds channel always counts. The question channel counts while a
        round is active, and an active round without a working question
        subscription is stale straight away.
        """
        now = now or self._clock()
        channels = [ROUNDS_CHANNEL]
        active = self._registry.active_round
        if active is not None:
            if self._subscribed_round_id != active.id:
                return True
            channels.append(QUESTIONS_CHANNEL)
        threshold = self._settings.stale_threshold_seconds
        for channel in channels:
            synced_at = self._synced_at.get(channel)
            if synced_at is None or (now - synced_at).total_seconds() >= threshold:
                return True
        return False

    def check_staleness(self) -> bool:
        """Resync when a live channel has been silent past the threshold. True if a resync ran."""
        if self._closed or not self.is_stale():
            return False
        logger.info("Session for event %s is stale; resyncing", self._event_id)
        self.resync()
        return True

    # --- Read access ---

    @property
    def phase(self) -> SessionPhase:
        if self._closed:
            return SessionPhase.CLOSED
        if self._registry.active_round is None:
            if self._registry.last_round_completed():
                return SessionPhase.ROUND_COMPLETED
            return SessionPhase.NO_ACTIVE_ROUND
        question = self._window.question
        if question is None:
            return SessionPhase.ROUND_ACTIVE
        if question.is_closed:
            return SessionPhase.RESULTS_SHOWN
        if self._tracker.has_response(question.id) or self._window.time_expired:
            return SessionPhase.AWAITING_CLOSE
        return SessionPhase.QUESTION_OPEN

    @property
    def state(self) -> SessionState:
        question = self._window.question
        return SessionState(
            event_id=self._event_id,
            user_id=self._user_id,
            phase=self.phase,
            rounds=tuple(self._registry.rounds),
            active_round=self._registry.active_round,
            question=question,
            remaining_seconds=self._window.remaining_seconds,
            time_expired=self._window.time_expired,
            response=self._tracker.get_response(question.id) if question else None,
            revealed_correct_index=self._window.revealed_correct_index,
            score=self._scores.score,
            score_is_provisional=self._scores.is_provisional,
            leaderboard=tuple(self._leaderboard.entries),
            presence=self._presence,
            stats=self._stats,
            badges=self._badges,
            last_celebration=self._last_celebration,
            last_error=self._last_error,
            last_synced_at=min(self._synced_at.values(), default=None),
        )

    @property
    def leaderboard(self) -> LeaderboardView:
        return self._leaderboard

    # --- Transitions ---

    def _apply_rounds(self, rounds: list[CompetitionRound]) -> None:
        previous = self._registry.active_round
        active = self._registry.replace(rounds)
        previous_id = previous.id if previous else None
        active_id = active.id if active else None
        if active_id == previous_id and active_id == self._subscribed_round_id:
            return

        if previous_id != active_id:
            logger.info("Active round changed from %s to %s", previous_id, active_id)
            self._window.clear()
            self._last_celebration = None
        if self._questions_subscription is not None:
            self._questions_subscription.unsubscribe()
            self._questions_subscription = None
        self._subscribed_round_id = None
        if active is None:
            return
        self._questions_subscription = self._service.subscribe_to_questions(active.id)
        # Anything opened before the subscription existed is only visible by fetching.
        # Until that fetch succeeds the round counts as unsubscribed, so the next
        # rounds update or resync tries again.
        self._apply_active_question(self._service.get_active_question(active.id), restore=True)
        self._subscribed_round_id = active.id
        self._mark_synced(QUESTIONS_CHANNEL)

    def _apply_active_question(self, question: CompetitionQuestion | None, *, restore: bool) -> None:
        current = self._window.question
        if question is None:
            if current is not None and current.is_active:
                self._resolve_stale_question(current)
            return
        if current is not None and current.id == question.id and self._window.is_open:
            return
        self._open_question(question, restore=restore)

    def _on_question_opened(self, question: CompetitionQuestion) -> None:
        active = self._registry.active_round
        if active is None or question.round_id != active.id:
            logger.debug("Ignoring question %s outside the active round", question.id)
            return
        current = self._window.question
        if current is not None and current.id == question.id and (self._window.is_open or current.is_closed):
            return
        self._open_question(question, restore=False)

    def _on_question_closed(self, question: CompetitionQuestion) -> None:
        self._tracker.lock(question.id)
        current = self._window.question
        if current is not None and current.id != question.id and self._window.is_open:
            # A newer question is already showing.
            return
        active = self._registry.active_round
        if active is None or question.round_id != active.id:
            return
        self._window.close(question)
        logger.info("Question %s closed; correct option %s", question.id, question.correct_option_index)
        # Badges are awarded as results come in.
        self.refresh_badges()

    def _open_question(self, question: CompetitionQuestion, *, restore: bool) -> None:
        self._window.open(question, self._clock())
        self._tracker.reset(question.id)
        self._last_celebration = None
        if restore:
            existing = self._service.get_my_response(question.id)
            if existing is not None:
                self._tracker.restore(existing)
        self._report_presence(None if self._tracker.has_response(question.id) else question.id)

    def _resolve_stale_question(self, question: CompetitionQuestion) -> None:
        """The backend no longer reports ``question`` as open: show it closed."""
        self._tracker.lock(question.id)
        latest = self._service.get_question(question.id)
        if latest.is_closed:
            self._window.close(latest)
        else:
            self._window.clear()

    def _apply_leaderboard(self, entries: list[LeaderboardEntry]) -> None:
        self._leaderboard.refresh(entries, self._user_id)
        self._scores.apply_refresh(self._leaderboard.entries)

    def _elapsed_ms(self) -> int:
        opened_at = self._window.opened_at
        if opened_at is None:
            return 0
        return max(0, int((self._clock() - opened_at).total_seconds() * 1000))

    def _report_presence(self, question_id: str | None) -> None:
        if not self._settings.report_presence:
            return
        try:
            self._service.update_presence(self._event_id, question_id)
        except CompetitionError as exc:
            logger.warning("Could not report presence: %s", exc)

    def _subscriptions(self) -> tuple[Subscription | None, ...]:
        return (
            self._questions_subscription,
            self._rounds_subscription,
            self._leaderboard_subscription,
            self._presence_subscription,
        )

    def _mark_synced(self, *channels: str) -> None:
        now = self._clock()
        for channel in channels:
            self._synced_at[channel] = now

    def _record_error(self, context: str, exc: CompetitionError) -> None:
        logger.warning("%s: %s", context, exc)
        self._last_error = f"{context}: {exc}"
