"""FastAPI server exposing the competition backend to participants and the host."""

from __future__ import annotations

import logging
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
import uvicorn

from zone_app.constants.about import APP_NAME, APP_VERSION
from zone_app.constants.competition_constants import DEFAULT_BADGE_POINTS, DEFAULT_QUESTION_POINTS, LEADERBOARD_LIMIT
from zone_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from zone_app.core.competition_backend import CompetitionBackend
from zone_app.core.errors import NotFoundError, SubmissionRejectedError
from zone_app.core.markdown_math_renderer import renderer
from zone_app.core.models import CompetitionQuestion

logger = logging.getLogger(__name__)


class AnswerPayload(BaseModel):
    """Payload schema for answer submissions."""

    user_id: str
    selected_option: int
    response_time_ms: int | None = Field(default=None, ge=0)


class ParticipantPayload(BaseModel):
    user_id: str
    name: str | None = None
    avatar_url: str | None = None


class PresencePayload(BaseModel):
    current_question_id: str | None = None


class RoundPayload(BaseModel):
    name: str
    round_number: int | None = None
    description: str | None = None


class QuestionPayload(BaseModel):
    question: str
    options: list[str]
    correct_option_index: int
    points: int = DEFAULT_QUESTION_POINTS
    time_limit_seconds: int | None = Field(default=None, ge=0)


class BadgePayload(BaseModel):
    name: str
    icon: str
    badge_type: str
    description: str = ""
    rarity: str = "COMMON"
    points_value: int = Field(default=DEFAULT_BADGE_POINTS, ge=0)


class AwardPayload(BaseModel):
    badge_id: str


def _question_payload(question: CompetitionQuestion, *, reveal_answer: bool | None = None) -> dict[str, object]:
    payload = question.to_payload(reveal_answer=reveal_answer)
    payload["question_html"] = renderer.render_fragment(question.prompt)
    return payload


def _get_backend_dependency(backend: CompetitionBackend):
    def dependency() -> CompetitionBackend:
        return backend

    return dependency


def create_api_app(backend: CompetitionBackend) -> FastAPI:
    """Create a FastAPI application wired to the provided backend."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    backend_dep = _get_backend_dependency(backend)

    # --- Participant endpoints ---

    @app.get("/events/{event_id}/rounds")
    def list_rounds(event_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return {"rounds": [r.to_payload() for r in manager.get_rounds(event_id)]}

    @app.get("/rounds/{round_id}/active-question")
    def get_active_question(round_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        try:
            question = manager.get_active_question(round_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"question": _question_payload(question) if question else None}

    @app.get("/rounds/{round_id}/questions")
    def list_round_questions(round_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        try:
            questions = manager.get_round_questions(round_id)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        return {"questions": [_question_payload(q) for q in questions]}

    @app.get("/questions/{question_id}")
    def get_question(question_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        try:
            return _question_payload(manager.get_question(question_id))
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

    @app.post("/questions/{question_id}/responses", status_code=201)
    def submit_answer(
        question_id: str,
        payload: AnswerPayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        try:
            response = manager.submit_answer(
                payload.user_id,
                question_id,
                payload.selected_option,
                payload.response_time_ms,
            )
        except SubmissionRejectedError as exc:
            raise HTTPException(status_code=409, detail={"reason": exc.reason, "message": str(exc)}) from exc
        return response.to_payload()

    @app.get("/questions/{question_id}/responses/{user_id}")
    def get_response(
        question_id: str,
        user_id: str,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        response = manager.get_response(user_id, question_id)
        if response is None:
            raise HTTPException(status_code=404, detail="No response recorded.")
        return response.to_payload()

    @app.get("/events/{event_id}/leaderboard")
    def get_leaderboard(
        event_id: str,
        limit: int = LEADERBOARD_LIMIT,
        user_id: str | None = None,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        entries = manager.get_leaderboard(event_id, limit=limit, current_user_id=user_id)
        return {"event_id": event_id, "entries": [e.to_payload() for e in entries]}

    @app.get("/events/{event_id}/scores/{user_id}")
    def get_score(event_id: str, user_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        score = manager.get_score(event_id, user_id)
        if score is None:
            raise HTTPException(status_code=404, detail="No score recorded.")
        return score.to_payload()

    @app.post("/events/{event_id}/participants", status_code=201)
    def register_participant(
        event_id: str,
        payload: ParticipantPayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        participant = manager.register_participant(event_id, payload.user_id, payload.name, payload.avatar_url)
        return {"user_id": participant.user_id, "user_name": participant.name, "user_avatar": participant.avatar_url}

    @app.put("/events/{event_id}/presence/{user_id}", status_code=204)
    def update_presence(
        event_id: str,
        user_id: str,
        payload: PresencePayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> Response:
        manager.update_presence(event_id, user_id, payload.current_question_id)
        return Response(status_code=204)

    @app.delete("/events/{event_id}/presence/{user_id}", status_code=204)
    def go_offline(event_id: str, user_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> Response:
        manager.go_offline(event_id, user_id)
        return Response(status_code=204)

    @app.get("/events/{event_id}/presence")
    def get_presence(event_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return manager.get_presence(event_id).to_payload()

    @app.get("/events/{event_id}/stats")
    def get_competition_stats(event_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return manager.get_competition_stats(event_id).to_payload()

    @app.get("/badges")
    def list_badges(manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return {"badges": [b.to_payload() for b in manager.get_badges()]}

    @app.get("/events/{event_id}/badges/{user_id}")
    def list_earned_badges(
        event_id: str,
        user_id: str,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        return {"badges": [b.to_payload() for b in manager.get_earned_badges(event_id, user_id)]}

    # --- Host endpoints ---

    @app.post("/admin/events/{event_id}/rounds", status_code=201)
    def create_round(
        event_id: str,
        payload: RoundPayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        created = manager.create_round(event_id, payload.name, payload.round_number, payload.description)
        return created.to_payload()

    @app.post("/admin/rounds/{round_id}/questions", status_code=201)
    def add_question(
        round_id: str,
        payload: QuestionPayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        try:
            question = manager.add_question(
                round_id,
                payload.question,
                payload.options,
                payload.correct_option_index,
                points=payload.points,
                time_limit_seconds=payload.time_limit_seconds,
            )
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _question_payload(question, reveal_answer=True)

    @app.post("/admin/rounds/{round_id}/activate")
    def activate_round(round_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return _run_host_action(lambda: manager.activate_round(round_id).to_payload())

    @app.post("/admin/rounds/{round_id}/complete")
    def complete_round(round_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return _run_host_action(lambda: manager.complete_round(round_id).to_payload())

    @app.post("/admin/rounds/{round_id}/next-question")
    def open_next_question(round_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        def action() -> dict[str, object]:
            question = manager.open_next_question(round_id)
            return {"question": _question_payload(question, reveal_answer=True) if question else None}

        return _run_host_action(action)

    @app.post("/admin/questions/{question_id}/open")
    def open_question(question_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return _run_host_action(lambda: _question_payload(manager.open_question(question_id), reveal_answer=True))

    @app.post("/admin/questions/{question_id}/close")
    def close_question(question_id: str, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return _run_host_action(lambda: _question_payload(manager.close_question(question_id)))

    @app.post("/admin/badges", status_code=201)
    def add_badge(payload: BadgePayload, manager: CompetitionBackend = Depends(backend_dep)) -> dict[str, object]:
        return manager.add_badge(**payload.model_dump()).to_payload()

    @app.post("/admin/events/{event_id}/badges/{user_id}", status_code=201)
    def award_badge(
        event_id: str,
        user_id: str,
        payload: AwardPayload,
        manager: CompetitionBackend = Depends(backend_dep),
    ) -> dict[str, object]:
        return _run_host_action(lambda: manager.award_badge(event_id, user_id, payload.badge_id).to_payload())

    return app


def _run_host_action(action):
    try:
        return action()
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RuntimeError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc


def start_api_server(
    backend: CompetitionBackend,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(backend)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="CompetitionApiServer", daemon=True)
    thread.start()
    logger.info("Competition API listening on %s:%s", host, port)
    return thread
