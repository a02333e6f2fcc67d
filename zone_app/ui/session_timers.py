"""Qt timers that drive a competition session controller."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject, QTimer, Signal

from zone_app.constants.competition_constants import COUNTDOWN_TICK_INTERVAL_MS, LEADERBOARD_POLL_INTERVAL_MS
from zone_app.core.session_controller import CompetitionSessionController

logger = logging.getLogger(__name__)


class SessionTimers(QObject):
    """Owns the countdown and refresh timers for one controller.

    The countdown timer ticks the open question once per second and pumps
    live updates. The refresh timer resyncs a stale session or polls the
    leaderboard. Both stop for good on ``stop``.
    """

    state_changed = Signal()
    time_expired = Signal()

    def __init__(
        self,
        controller: CompetitionSessionController,
        parent: QObject | None = None,
        *,
        tick_interval_ms: int = COUNTDOWN_TICK_INTERVAL_MS,
        refresh_interval_ms: int = LEADERBOARD_POLL_INTERVAL_MS,
    ) -> None:
        super().__init__(parent)
        self._controller = controller
        self._stopped = False

        self.countdown_timer = QTimer(self)
        self.countdown_timer.setInterval(tick_interval_ms)
        self.countdown_timer.timeout.connect(self._handle_tick)

        self.refresh_timer = QTimer(self)
        self.refresh_timer.setInterval(refresh_interval_ms)
        self.refresh_timer.timeout.connect(self._handle_refresh)

    @property
    def is_running(self) -> bool:
        return not self._stopped and self.countdown_timer.isActive()

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("Session timers have been stopped.")
        self.countdown_timer.start()
        self.refresh_timer.start()

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        self.countdown_timer.stop()
        self.refresh_timer.stop()
        logger.debug("Session timers stopped")

    def _handle_tick(self) -> None:
        if self._stopped or self._controller.is_closed:
            return
        expired = self._controller.tick()
        self._controller.pump()
        if expired:
            self.time_expired.emit()
        self.state_changed.emit()

    def _handle_refresh(self) -> None:
        if self._stopped or self._controller.is_closed:
            return
        if not self._controller.check_staleness():
            self._controller.refresh_leaderboard()
        self.state_changed.emit()
