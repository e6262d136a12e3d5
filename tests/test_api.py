"""Tests for the FastAPI HTTP layer."""

import pytest
from fastapi.testclient import TestClient

from pubquiz.api import app, get_engine
from pubquiz.quiz_engine import QuizEngine
from pubquiz.storage import QuizStore


@pytest.fixture
def client(tmp_path):
    store = QuizStore(directory=tmp_path)
    store.ensure_directories()
    engine = QuizEngine(store)
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


QUIZ_DATA = {
    "title": "API Quiz",
    "questions": [
        {"text": "Sky color?", "correct": "Blue"},
        {"text": "Pick a prime", "correct": "7", "options": ["4", "7", "9"]},
    ],
}


@pytest.fixture
def quiz(client):
    resp = client.post("/api/quiz/create", json=QUIZ_DATA)
    assert resp.status_code == 201
    return resp.json()["quiz"]


@pytest.fixture
def active_quiz(client, quiz):
    resp = client.patch(f"/api/quiz/{quiz['code']}/status", json={"status": "active"})
    assert resp.status_code == 200
    return quiz


def join(client, code, name):
    resp = client.post("/api/team/join", json={"quiz_code": code, "team_name": name})
    assert resp.status_code == 201
    return resp.json()["team"]


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}


class TestQuizAPI:
    def test_create(self, quiz):
        assert quiz["status"] == "draft"
        assert quiz["master_token"]
        assert quiz["questions"][0]["id"] == 0
        assert quiz["questions"][0]["correct"] == "Blue"
        assert quiz["questions"][1]["options"] == ["4", "7", "9"]

    def test_create_invalid(self, client):
        resp = client.post("/api/quiz/create", json={"title": "X", "questions": []})
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "validation_error",
            "message": "At least one question is required",
        }

    def test_team_view_hides_answers(self, client, quiz):
        resp = client.get(f"/api/quiz/{quiz['code']}")
        assert resp.status_code == 200
        data = resp.json()["quiz"]
        assert "master_token" not in data
        assert all("correct" not in q for q in data["questions"])

    def test_bad_code(self, client):
        resp = client.get("/api/quiz/abc")
        assert resp.status_code == 400

    def test_missing_quiz(self, client):
        resp = client.get("/api/quiz/ZZZ999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_list(self, client, quiz):
        resp = client.get("/api/quiz")
        assert resp.status_code == 200
        [summary] = resp.json()["quizzes"]
        assert summary["code"] == quiz["code"]
        assert summary["question_count"] == 2

    def test_question_index(self, client, quiz):
        resp = client.patch(f"/api/quiz/{quiz['code']}/question", json={"questionIndex": 1})
        assert resp.status_code == 200
        assert resp.json()["questionIndex"] == 1
        resp = client.patch(f"/api/quiz/{quiz['code']}/question", json={"questionIndex": 2})
        assert resp.status_code == 400

    def test_invalid_status(self, client, quiz):
        resp = client.patch(f"/api/quiz/{quiz['code']}/status", json={"status": "paused"})
        assert resp.status_code == 400

    def test_statistics(self, client, quiz):
        resp = client.get(f"/api/quiz/{quiz['code']}/statistics")
        assert resp.status_code == 200
        assert resp.json()["total_teams"] == 0
        assert client.get("/api/quiz/ZZZ999/statistics").status_code == 404


class TestMasterTokenAPI:
    def test_master_flow(self, client, quiz):
        token = quiz["master_token"]
        resp = client.patch(f"/api/quiz/master/{token}/status", json={"status": "active"})
        assert resp.json()["status"] == "active"

        team = join(client, quiz["code"], "Alpha")
        resp = client.get(f"/api/quiz/master/{token}")
        assert resp.status_code == 200
        assert resp.json()["teams"] == [
            {"id": team["id"], "name": "Alpha", "has_answered": False}
        ]

        resp = client.patch(f"/api/quiz/master/{token}/question", json={"questionIndex": 1})
        assert resp.status_code == 200

        resp = client.get(f"/api/quiz/master/{token}/results")
        assert resp.status_code == 200
        assert resp.json()["teams"][0]["name"] == "Alpha"

    def test_unknown_token(self, client):
        assert client.get("/api/quiz/master/not-a-token").status_code == 404


class TestTeamAPI:
    def test_join_inactive(self, client, quiz):
        resp = client.post(
            "/api/team/join", json={"quiz_code": quiz["code"], "team_name": "Alpha"}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_state"

    def test_duplicate_name(self, client, active_quiz):
        join(client, active_quiz["code"], "X")
        resp = client.post(
            "/api/team/join", json={"quiz_code": active_quiz["code"], "team_name": "x"}
        )
        assert resp.status_code == 409

    def test_answer_and_score(self, client, active_quiz):
        code = active_quiz["code"]
        team = join(client, code, "Alpha")

        resp = client.post(
            f"/api/team/{team['id']}/answer",
            json={"quiz_code": code, "question_id": 0, "answer": "blue"},
        )
        assert resp.status_code == 200
        assert resp.json()["answer"]["is_correct"] is True
        assert resp.json()["total_score"] == 1.0

        resp = client.patch(
            f"/api/team/{team['id']}/score",
            json={"quiz_code": code, "question_id": 0, "score": 0.5},
        )
        assert resp.status_code == 200
        assert resp.json()["team"]["total_score"] == 0.5

        resp = client.get(f"/api/team/{team['id']}", params={"quiz_code": code})
        assert resp.json()["team"]["answers"][0]["score"] == 0.5

    def test_answer_requires_quiz_code(self, client, active_quiz):
        team = join(client, active_quiz["code"], "Alpha")
        resp = client.post(
            f"/api/team/{team['id']}/answer", json={"question_id": 0, "answer": "Blue"}
        )
        assert resp.status_code == 400

    def test_bad_score(self, client, active_quiz):
        code = active_quiz["code"]
        team = join(client, code, "Alpha")
        resp = client.patch(
            f"/api/team/{team['id']}/score",
            json={"quiz_code": code, "question_id": 0, "score": 0.3},
        )
        assert resp.status_code == 400

    def test_session_flow(self, client, active_quiz):
        team = join(client, active_quiz["code"], "Alpha")
        token = team["session_token"]

        resp = client.post(
            f"/api/team/session/{token}/answer",
            json={"question_id": 1, "selected_option": 1},
        )
        assert resp.status_code == 200
        assert resp.json()["answer"]["answer"] == "7"

        resp = client.get(f"/api/team/session/{token}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["team"]["total_score"] == 1.0
        assert all("correct" not in q for q in data["quiz"]["questions"])

    def test_unknown_session(self, client):
        assert client.get("/api/team/session/nope").status_code == 404
