"""Tests for the FastAPI competition server."""

import pytest
from fastapi.testclient import TestClient

from factories import EVENT_ID
from zone_app.server.api_server import create_api_app


@pytest.fixture
def client(backend):
    return TestClient(create_api_app(backend))


def _setup_round(client):
    created = client.post(f"/admin/events/{EVENT_ID}/rounds", json={"name": "Warm-up"})
    assert created.status_code == 201
    round_id = created.json()["id"]
    question = client.post(
        f"/admin/rounds/{round_id}/questions",
        json={"question": "What is **2+2**?", "options": ["3", "4"], "correct_option_index": 1, "points": 100},
    )
    assert question.status_code == 201
    assert question.json()["correct_option_index"] == 1
    return round_id, question.json()["id"]


def test_round_lifecycle_over_http(client):
    round_id, question_id = _setup_round(client)
    assert client.post(f"/admin/rounds/{round_id}/activate").json()["status"] == "active"
    opened = client.post(f"/admin/rounds/{round_id}/next-question").json()["question"]
    assert opened["id"] == question_id

    active = client.get(f"/rounds/{round_id}/active-question").json()["question"]
    assert active["status"] == "active"
    assert active["correct_option_index"] is None
    assert "<strong>2+2</strong>" in active["question_html"]

    rounds = client.get(f"/events/{EVENT_ID}/rounds").json()["rounds"]
    assert rounds[0]["question_count"] == 1

    closed = client.post(f"/admin/questions/{question_id}/close").json()
    assert closed["correct_option_index"] == 1
    assert client.get(f"/rounds/{round_id}/active-question").json() == {"question": None}
    assert client.post(f"/admin/rounds/{round_id}/complete").json()["status"] == "completed"


def test_submit_and_query_scores(client):
    round_id, question_id = _setup_round(client)
    client.post(f"/admin/rounds/{round_id}/activate")
    client.post(f"/admin/questions/{question_id}/open")
    client.post(f"/events/{EVENT_ID}/participants", json={"user_id": "ada", "name": "Ada"})

    response = client.post(f"/questions/{question_id}/responses", json={"user_id": "ada", "selected_option": 1})
    assert response.status_code == 201
    assert response.json()["points_earned"] == 100

    duplicate = client.post(f"/questions/{question_id}/responses", json={"user_id": "ada", "selected_option": 0})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["reason"] == "duplicate_response"

    assert client.get(f"/questions/{question_id}/responses/ada").json()["selected_option"] == 1
    assert client.get(f"/questions/{question_id}/responses/bob").status_code == 404

    board = client.get(f"/events/{EVENT_ID}/leaderboard", params={"user_id": "ada"}).json()
    assert board["entries"][0]["user_name"] == "Ada"
    assert board["entries"][0]["total_score"] == 100
    assert client.get(f"/events/{EVENT_ID}/scores/ada").json()["rank"] == 1
    assert client.get(f"/events/{EVENT_ID}/scores/bob").status_code == 404


def test_presence_endpoints(client):
    assert client.put(f"/events/{EVENT_ID}/presence/ada", json={}).status_code == 204
    assert client.get(f"/events/{EVENT_ID}/presence").json()["online_count"] == 1
    assert client.delete(f"/events/{EVENT_ID}/presence/ada").status_code == 204
    assert client.get(f"/events/{EVENT_ID}/presence").json()["online_count"] == 0


def test_host_errors_map_to_status_codes(client):
    round_id, question_id = _setup_round(client)
    assert client.post(f"/admin/questions/{question_id}/open").status_code == 409
    assert client.post("/admin/rounds/missing/activate").status_code == 404
    assert client.get("/questions/missing").status_code == 404
    bad = client.post(
        f"/admin/rounds/{round_id}/questions",
        json={"question": "Q", "options": ["a", "b"], "correct_option_index": 5},
    )
    assert bad.status_code == 422


def test_stats_and_badge_endpoints(client):
    assert client.get(f"/events/{EVENT_ID}/stats").json()["participant_count"] == 0

    created = client.post("/admin/badges", json={"name": "Streaker", "icon": "🔥", "badge_type": "streak"})
    assert created.status_code == 201
    badge_id = created.json()["id"]
    assert created.json()["earned_at"] is None
    assert [b["id"] for b in client.get("/badges").json()["badges"]] == [badge_id]

    awarded = client.post(f"/admin/events/{EVENT_ID}/badges/ada", json={"badge_id": badge_id})
    assert awarded.status_code == 201
    assert awarded.json()["earned_at"] is not None
    earned = client.get(f"/events/{EVENT_ID}/badges/ada").json()["badges"]
    assert [b["name"] for b in earned] == ["Streaker"]
    assert client.post(f"/admin/events/{EVENT_ID}/badges/ada", json={"badge_id": "missing"}).status_code == 404
