"""Tests for the quiz/team file store."""

import json

import pytest

from pubquiz.errors import StorageError
from pubquiz.models import Answer, Question, Quiz, QuizStatus, Team
from pubquiz.storage import QuizStore


@pytest.fixture
def tmp_store(tmp_path):
    store = QuizStore(directory=tmp_path)
    store.ensure_directories()
    return store


def make_quiz(code="ABC123", created_at="2026-10-19T12:00:00.000Z", **kwargs):
    return Quiz(
        code=code,
        title=kwargs.pop("title", "Test Quiz"),
        questions=[
            Question(id=0, text="Q1", correct="A1"),
            Question(id=1, text="Q2", correct="A2"),
        ],
        created_at=created_at,
        master_token=kwargs.pop("master_token", f"master-{code}"),
        **kwargs,
    )


def make_team(team_id="team1", quiz_code="ABC123", joined_at="2026-10-19T12:00:00.000Z", **kwargs):
    return Team(
        id=team_id,
        quiz_code=quiz_code,
        name=kwargs.pop("name", team_id),
        joined_at=joined_at,
        session_token=kwargs.pop("session_token", f"session-{team_id}"),
        **kwargs,
    )


# --- Quizzes ---


class TestQuizFiles:
    def test_save_and_load(self, tmp_store):
        quiz = make_quiz()
        tmp_store.save_quiz(quiz)
        loaded = tmp_store.load_quiz("ABC123")
        assert loaded == quiz
        assert loaded is not quiz

    def test_file_layout_and_keys(self, tmp_store, tmp_path):
        tmp_store.save_quiz(make_quiz(status=QuizStatus.active))
        data = json.loads((tmp_path / "quizzes" / "ABC123.json").read_text())
        assert data["status"] == "active"
        assert data["current_question_index"] == 0
        assert data["master_token"] == "master-ABC123"
        assert data["questions"][1] == {"id": 1, "text": "Q2", "correct": "A2"}

    def test_load_missing_returns_none(self, tmp_store):
        assert tmp_store.load_quiz("ZZZ999") is None
        assert not tmp_store.quiz_exists("ZZZ999")

    def test_corrupt_file_raises_storage_error(self, tmp_store, tmp_path):
        (tmp_path / "quizzes" / "BAD000.json").write_text("{broken")
        with pytest.raises(StorageError):
            tmp_store.load_quiz("BAD000")

    def test_invalid_index_is_storage_error(self, tmp_store, tmp_path):
        data = make_quiz().model_dump(mode="json")
        data["current_question_index"] = 5
        (tmp_path / "quizzes" / "ABC123.json").write_text(json.dumps(data))
        with pytest.raises(StorageError):
            tmp_store.load_quiz("ABC123")

    def test_list_newest_first(self, tmp_store):
        tmp_store.save_quiz(make_quiz("AAAAAA", "2026-10-19T10:00:00.000Z"))
        tmp_store.save_quiz(make_quiz("BBBBBB", "2026-10-19T12:00:00.000Z"))
        tmp_store.save_quiz(make_quiz("CCCCCC", "2026-10-19T11:00:00.000Z"))
        codes = [q.code for q in tmp_store.list_quizzes()]
        assert codes == ["BBBBBB", "CCCCCC", "AAAAAA"]

    def test_list_ignores_non_json(self, tmp_store, tmp_path):
        tmp_store.save_quiz(make_quiz())
        (tmp_path / "quizzes" / "notes.txt").write_text("hello")
        assert len(tmp_store.list_quizzes()) == 1

    def test_list_surfaces_corrupt_file(self, tmp_store, tmp_path):
        tmp_store.save_quiz(make_quiz())
        (tmp_path / "quizzes" / "BAD000.json").write_text("[")
        with pytest.raises(StorageError):
            tmp_store.list_quizzes()

    def test_insert_refuses_taken_code(self, tmp_store):
        assert tmp_store.insert_quiz(make_quiz(title="First")) is True
        assert tmp_store.insert_quiz(make_quiz(title="Second")) is False
        assert tmp_store.load_quiz("ABC123").title == "First"


# --- Teams ---


class TestTeamFiles:
    def test_save_creates_quiz_directory(self, tmp_store, tmp_path):
        tmp_store.save_team(make_team())
        assert (tmp_path / "teams" / "ABC123" / "team1.json").exists()
        assert tmp_store.team_exists("team1", "ABC123")

    def test_load_missing_returns_none(self, tmp_store):
        assert tmp_store.load_team("nobody", "ABC123") is None
        assert not tmp_store.team_exists("nobody", "ABC123")

    def test_list_in_join_order(self, tmp_store):
        tmp_store.save_team(make_team("t1", joined_at="2026-10-19T12:00:02.000Z"))
        tmp_store.save_team(make_team("t2", joined_at="2026-10-19T12:00:01.000Z"))
        tmp_store.save_team(make_team("t3", joined_at="2026-10-19T12:00:03.000Z"))
        assert [t.id for t in tmp_store.list_teams("ABC123")] == ["t2", "t1", "t3"]

    def test_list_for_quiz_without_teams(self, tmp_store):
        assert tmp_store.list_teams("ABC123") == []

    def test_total_score_recomputed_on_load(self, tmp_store, tmp_path):
        team = make_team(
            answers=[
                Answer(question_id=0, answer="a", is_correct=True, score=1.0),
                Answer(question_id=1, answer="b", is_correct=False, score=0.5),
            ]
        )
        data = team.model_dump(mode="json")
        data["total_score"] = 42
        path = tmp_path / "teams" / "ABC123" / "team1.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(data))
        assert tmp_store.load_team("team1", "ABC123").total_score == 1.5

    def test_legacy_answer_without_score(self, tmp_store, tmp_path):
        data = make_team().model_dump(mode="json")
        data["answers"] = [
            {"question_id": 0, "answer": "a", "is_correct": True},
            {"question_id": 1, "answer": "b", "is_correct": False},
        ]
        path = tmp_path / "teams" / "ABC123" / "team1.json"
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps(data))
        team = tmp_store.load_team("team1", "ABC123")
        assert [a.score for a in team.answers] == [1.0, 0.0]
        assert team.total_score == 1.0
