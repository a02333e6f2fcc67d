"""CompetitionService implementation talking to the competition API over HTTP."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from zone_app.constants.competition_constants import LEADERBOARD_LIMIT
from zone_app.constants.network_constants import DEFAULT_BASE_URL, REQUEST_TIMEOUT_SECONDS
from zone_app.core.competition_service import CompetitionService
from zone_app.core.errors import (
    CompetitionError,
    MalformedPayloadError,
    NotFoundError,
    SubmissionRejectedError,
    TransportError,
)
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
)
from zone_app.core.services.subscriptions import Subscription

logger = logging.getLogger(__name__)


class HttpCompetitionService(CompetitionService):
    """Acts as one user against the API. Subscriptions poll on each drain.

    Pass ``client`` to reuse an existing ``httpx.Client`` (for example
    FastAPI's ``TestClient``); otherwise one is created and owned here.
    """

    def __init__(
        self,
        user_id: str,
        base_url: str = DEFAULT_BASE_URL,
        *,
        client: httpx.Client | None = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.user_id = user_id
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpCompetitionService:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # --- Queries ---

    def get_rounds(self, event_id: str) -> list[CompetitionRound]:
        data = self._request("GET", f"/events/{event_id}/rounds")
        return [CompetitionRound.from_payload(item) for item in _list_field(data, "rounds")]

    def get_active_question(self, round_id: str) -> CompetitionQuestion | None:
        data = self._request("GET", f"/rounds/{round_id}/active-question")
        question = _object(data).get("question")
        return CompetitionQuestion.from_payload(question) if question is not None else None

    def get_question(self, question_id: str) -> CompetitionQuestion:
        return CompetitionQuestion.from_payload(self._request("GET", f"/questions/{question_id}"))

    def submit_answer(self, question_id: str, option_index: int, response_time_ms: int) -> CompetitionResponse:
        data = self._request(
            "POST",
            f"/questions/{question_id}/responses",
            json={
                "user_id": self.user_id,
                "selected_option": option_index,
                "response_time_ms": response_time_ms,
            },
        )
        return CompetitionResponse.from_payload(data)

    def get_leaderboard(self, event_id: str, limit: int = LEADERBOARD_LIMIT) -> list[LeaderboardEntry]:
        data = self._request(
            "GET",
            f"/events/{event_id}/leaderboard",
            params={"limit": limit, "user_id": self.user_id},
        )
        return [LeaderboardEntry.from_payload(item, self.user_id) for item in _list_field(data, "entries")]

    def get_my_response(self, question_id: str) -> CompetitionResponse | None:
        try:
            data = self._request("GET", f"/questions/{question_id}/responses/{self.user_id}")
        except NotFoundError:
            return None
        return CompetitionResponse.from_payload(data)

    def get_my_score(self, event_id: str) -> CompetitionScore | None:
        try:
            data = self._request("GET", f"/events/{event_id}/scores/{self.user_id}")
        except NotFoundError:
            return None
        return CompetitionScore.from_payload(data)

    def register(self, event_id: str, name: str | None = None, avatar_url: str | None = None) -> None:
        self._request(
            "POST",
            f"/events/{event_id}/participants",
            json={"user_id": self.user_id, "name": name, "avatar_url": avatar_url},
        )

    def update_presence(self, event_id: str, current_question_id: str | None = None) -> None:
        self._request(
            "PUT",
            f"/events/{event_id}/presence/{self.user_id}",
            json={"current_question_id": current_question_id},
        )

    def go_offline(self, event_id: str) -> None:
        self._request("DELETE", f"/events/{event_id}/presence/{self.user_id}")

    def get_presence(self, event_id: str) -> PresenceStats:
        return PresenceStats.from_payload(self._request("GET", f"/events/{event_id}/presence"))

    def get_competition_stats(self, event_id: str) -> CompetitionStats:
        return CompetitionStats.from_payload(self._request("GET", f"/events/{event_id}/stats"))

    def get_all_badges(self) -> list[CompetitionBadge]:
        data = self._request("GET", "/badges")
        return [CompetitionBadge.from_payload(item) for item in _list_field(data, "badges")]

    def get_earned_badges(self, event_id: str) -> list[CompetitionBadge]:
        data = self._request("GET", f"/events/{event_id}/badges/{self.user_id}")
        return [CompetitionBadge.from_payload(item) for item in _list_field(data, "badges")]

    # --- Polling subscriptions ---

    def subscribe_to_rounds(self, event_id: str) -> Subscription:
        return Subscription(f"rounds:{event_id}", poller=_RoundsPoller(self, event_id))

    def subscribe_to_questions(self, round_id: str) -> Subscription:
        poller = _QuestionPoller(self, round_id)
        poller.prime()
        return Subscription(f"questions:{round_id}", poller=poller)

    def subscribe_to_leaderboard(self, event_id: str) -> Subscription:
        return Subscription(f"leaderboard:{event_id}", poller=_LeaderboardPoller(self, event_id))

    def subscribe_to_presence(self, event_id: str) -> Subscription:
        return Subscription(f"presence:{event_id}", poller=_PresencePoller(self, event_id))

    # --- Transport ---

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        if response.status_code == 404:
            raise NotFoundError(_detail_message(response))
        if response.status_code in (409, 422) and method == "POST" and path.endswith("/responses"):
            detail = _detail(response)
            if isinstance(detail, dict):
                raise SubmissionRejectedError(str(detail.get("reason", "rejected")), str(detail.get("message", "")))
            raise SubmissionRejectedError("rejected", str(detail))
        if response.status_code >= 500:
            raise TransportError(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            raise CompetitionError(f"{method} {path} returned {response.status_code}: {_detail_message(response)}")
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedPayloadError(f"{method} {path} returned invalid JSON") from exc


class _RoundsPoller:
    def __init__(self, service: HttpCompetitionService, event_id: str) -> None:
        self._service = service
        self._event_id = event_id
        self._last: tuple[CompetitionRound, ...] | None = None

    def __call__(self) -> list[CompetitionEvent]:
        rounds = tuple(self._service.get_rounds(self._event_id))
        if rounds == self._last:
            return []
        self._last = rounds
        return [RoundsChanged(self._event_id, rounds)]


class _QuestionPoller:
    """Turns successive active-question snapshots into open/close events."""

    def __init__(self, service: HttpCompetitionService, round_id: str) -> None:
        self._service = service
        self._round_id = round_id
        self._current: CompetitionQuestion | None = None

    def prime(self) -> None:
        """Start from the question open right now; only later changes become events."""
        self._current = self._service.get_active_question(self._round_id)

    def __call__(self) -> list[CompetitionEvent]:
        events: list[CompetitionEvent] = []
        active = self._service.get_active_question(self._round_id)
        current = self._current
        if current is not None and current.is_active and (active is None or active.id != current.id):
            closed = self._service.get_question(current.id)
            if closed.is_closed:
                events.append(QuestionClosed(closed))
            self._current = closed
        if active is not None and (current is None or active.id != current.id):
            events.append(QuestionOpened(active))
            self._current = active
        return events


class _LeaderboardPoller:
    def __init__(self, service: HttpCompetitionService, event_id: str) -> None:
        self._service = service
        self._event_id = event_id
        self._last: tuple[LeaderboardEntry, ...] | None = None

    def __call__(self) -> list[CompetitionEvent]:
        entries = tuple(self._service.get_leaderboard(self._event_id))
        if entries == self._last:
            return []
        self._last = entries
        return [LeaderboardChanged(self._event_id, entries)]


class _PresencePoller:
    def __init__(self, service: HttpCompetitionService, event_id: str) -> None:
        self._service = service
        self._event_id = event_id
        self._last: PresenceStats | None = None

    def __call__(self) -> list[CompetitionEvent]:
        presence = self._service.get_presence(self._event_id)
        if presence == self._last:
            return []
        self._last = presence
        return [PresenceChanged(self._event_id, presence)]


def _object(data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedPayloadError("Expected a JSON object")
    return data


def _list_field(data: Any, key: str) -> list[Any]:
    value = _object(data).get(key)
    if not isinstance(value, list):
        raise MalformedPayloadError(f"Expected '{key}' to be a list")
    return value


def _detail(response: httpx.Response) -> Any:
    try:
        return response.json().get("detail")
    except (ValueError, AttributeError):
        return response.text


def _detail_message(response: httpx.Response) -> str:
    detail = _detail(response)
    if isinstance(detail, dict):
        return str(detail.get("message", detail))
    return str(detail)
