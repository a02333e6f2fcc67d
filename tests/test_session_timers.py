"""Tests for the Qt timers driving a session controller."""

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from factories import EVENT_ID  # noqa: E402
from zone_app.core.competition_service import LocalCompetitionService  # noqa: E402
from zone_app.core.session_controller import CompetitionSessionController  # noqa: E402
from zone_app.ui.session_timers import SessionTimers  # noqa: E402


@pytest.fixture(scope="module")
def qt_app():
    app = QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])
    yield app


@pytest.fixture
def controller(backend, clock):
    controller = CompetitionSessionController(LocalCompetitionService(backend, "me"), EVENT_ID, clock=clock)
    controller.start()
    yield controller
    controller.close()


def test_tick_advances_countdown_and_pumps(qt_app, backend, seeded, controller):
    timers = SessionTimers(controller)
    changes = []
    expirations = []
    timers.state_changed.connect(lambda: changes.append(1))
    timers.time_expired.connect(lambda: expirations.append(1))

    backend.activate_round(seeded.round.id)
    backend.open_next_question(seeded.round.id)
    timers._handle_tick()
    assert controller.state.question is not None
    assert controller.state.remaining_seconds == 15

    for _ in range(15):
        timers._handle_tick()
    assert len(expirations) == 1
    assert len(changes) == 16
    assert controller.state.time_expired
    timers.stop()


def test_stop_is_final(qt_app, controller):
    timers = SessionTimers(controller, tick_interval_ms=10, refresh_interval_ms=10)
    timers.start()
    assert timers.is_running
    timers.stop()
    timers.stop()
    assert not timers.countdown_timer.isActive()
    assert not timers.refresh_timer.isActive()
    with pytest.raises(RuntimeError):
        timers.start()


def test_refresh_resyncs_when_stale(qt_app, controller, clock):
    timers = SessionTimers(controller)
    clock.advance(60)
    assert controller.is_stale()
    timers._handle_refresh()
    assert not controller.is_stale()


def test_closed_controller_is_ignored(qt_app, controller):
    timers = SessionTimers(controller)
    changes = []
    timers.state_changed.connect(lambda: changes.append(1))
    controller.close()
    timers._handle_tick()
    timers._handle_refresh()
    assert changes == []
