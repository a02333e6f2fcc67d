"""Tests for the HTTP service and its polling subscriptions."""

import httpx
import pytest
from fastapi.testclient import TestClient

from factories import EVENT_ID
from zone_app.core.errors import MalformedPayloadError, NotFoundError, SubmissionRejectedError, TransportError
from zone_app.core.events import LeaderboardChanged, PresenceChanged, QuestionClosed, QuestionOpened, RoundsChanged
from zone_app.core.http_competition_service import HttpCompetitionService
from zone_app.core.results import SubmissionStatus
from zone_app.core.session_controller import CompetitionSessionController, SessionPhase
from zone_app.server.api_server import create_api_app


@pytest.fixture
def service(backend):
    return HttpCompetitionService("me", client=TestClient(create_api_app(backend)))


def _open_first(backend, seeded):
    backend.activate_round(seeded.round.id)
    return backend.open_next_question(seeded.round.id)


def test_queries_decode_models(backend, seeded, service):
    question = _open_first(backend, seeded)
    rounds = service.get_rounds(EVENT_ID)
    assert rounds[0].is_active
    active = service.get_active_question(seeded.round.id)
    assert active.id == question.id
    assert active.correct_option_index is None
    assert service.get_my_response(question.id) is None
    assert service.get_my_score(EVENT_ID) is None


def test_submit_and_rejection(backend, seeded, service):
    question = _open_first(backend, seeded)
    service.register(EVENT_ID, "Me")
    response = service.submit_answer(question.id, 1, 700)
    assert response.is_correct
    assert response.response_time_ms == 700
    with pytest.raises(SubmissionRejectedError) as excinfo:
        service.submit_answer(question.id, 1, 700)
    assert excinfo.value.reason == "duplicate_response"

    entries = service.get_leaderboard(EVENT_ID)
    assert entries[0].name == "Me"
    assert entries[0].is_current_user
    assert service.get_my_score(EVENT_ID).total_score == 100


def test_unknown_question_is_not_found(service):
    with pytest.raises(NotFoundError):
        service.get_question("missing")


def test_presence_round_trip(backend, service):
    service.update_presence(EVENT_ID)
    assert service.get_presence(EVENT_ID).online_count == 1
    service.go_offline(EVENT_ID)
    assert service.get_presence(EVENT_ID).online_count == 0


def test_transport_and_payload_errors():
    def handler(request):
        if request.url.path.endswith("/rounds"):
            return httpx.Response(200, content=b"not json")
        if request.url.path.endswith("/presence"):
            return httpx.Response(503)
        raise httpx.ConnectError("refused", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://test")
    with HttpCompetitionService("me", client=client) as service:
        with pytest.raises(MalformedPayloadError):
            service.get_rounds(EVENT_ID)
        with pytest.raises(TransportError):
            service.get_presence(EVENT_ID)
        with pytest.raises(TransportError):
            service.get_leaderboard(EVENT_ID)


def test_pollers_emit_changes_only(backend, seeded, service):
    rounds = service.subscribe_to_rounds(EVENT_ID)
    questions = service.subscribe_to_questions(seeded.round.id)
    leaderboard = service.subscribe_to_leaderboard(EVENT_ID)

    assert isinstance(rounds.drain()[0], RoundsChanged)
    assert rounds.drain() == []
    assert questions.drain() == []

    first = _open_first(backend, seeded)
    assert [type(e) for e in questions.drain()] == [QuestionOpened]
    assert questions.drain() == []

    service.submit_answer(first.id, 1, 500)
    assert isinstance(leaderboard.drain()[0], LeaderboardChanged)
    assert leaderboard.drain() == []

    second = backend.open_next_question(seeded.round.id)
    events = questions.drain()
    assert [type(e) for e in events] == [QuestionClosed, QuestionOpened]
    assert events[0].question.correct_option_index == 1
    assert events[1].question.id == second.id

    backend.close_question(second.id)
    assert [type(e) for e in questions.drain()] == [QuestionClosed]


def test_controller_over_http(backend, seeded, service, clock):
    with CompetitionSessionController(service, EVENT_ID, clock=clock) as controller:
        question = _open_first(backend, seeded)
        controller.pump()
        assert controller.phase is SessionPhase.QUESTION_OPEN
        assert controller.submit_answer(1).accepted

        backend.close_question(question.id)
        controller.pump()
        state = controller.state
        assert state.phase is SessionPhase.RESULTS_SHOWN
        assert state.revealed_correct_index == 1
        assert state.score.rank == 1
        assert controller.submit_answer(0).status is SubmissionStatus.DUPLICATE
    assert backend.get_presence(EVENT_ID).online_count == 0


def test_badges_with_status(backend, service):
    kept = backend.add_badge("Sharpshooter", "🎯", "accuracy", points_value=100)
    other = backend.add_badge("Early bird", "🐦", "speed")
    backend.award_badge(EVENT_ID, "me", kept.id)

    badges = {b.id: b for b in service.get_badges_with_status(EVENT_ID)}
    assert badges[kept.id].is_earned
    assert not badges[other.id].is_earned
    assert service.get_competition_stats(EVENT_ID).participant_count == 0


def test_presence_poller_emits_changes_only(backend, service):
    presence = service.subscribe_to_presence(EVENT_ID)
    assert isinstance(presence.drain()[0], PresenceChanged)
    assert presence.drain() == []
    backend.update_presence(EVENT_ID, "ada")
    events = presence.drain()
    assert events[0].presence.online_count == 1
    presence.unsubscribe()
