"""MCP tools for the quiz master. Everything after creation is keyed by the
master token returned from create_quiz."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from pubquiz.errors import NotFoundError
from pubquiz.quiz_engine import QuizEngine


def register(mcp: FastMCP, engine: QuizEngine) -> None:
    @mcp.tool()
    def create_quiz(title: str, questions: list[dict]) -> dict:
        """Create a new quiz in draft status.

        Each question is {"text": ..., "correct": ...}; add "options": [...]
        for a multiple-choice question, in which case "correct" must be one
        of the options.

        Returns the quiz including its code (share with teams) and its
        master_token (keep secret; it controls the quiz).

        Args:
            title: Quiz title (1-200 characters)
            questions: 1-100 questions in play order
        """
        return engine.create_quiz(title, questions).model_dump(mode="json")

    @mcp.tool()
    def set_quiz_status(master_token: str, status: str) -> dict:
        """Set the quiz status: "draft", "active" (teams may join and answer)
        or "finished"."""
        quiz = engine.update_quiz_status(status=status, master_token=master_token)
        return {"code": quiz.code, "status": quiz.status.value}

    @mcp.tool()
    def advance_question(master_token: str, question_index: int) -> dict:
        """Release the question at question_index (0-based) to the teams."""
        quiz = engine.advance_question(index=question_index, master_token=master_token)
        return {"code": quiz.code, "current_question_index": quiz.current_question_index}

    @mcp.tool()
    def get_master_view(master_token: str) -> dict:
        """The full quiz plus, per team, whether it answered the current question."""
        return engine.get_quiz_for_master(master_token=master_token).model_dump(
            mode="json"
        )

    @mcp.tool()
    def get_results(master_token: str) -> dict:
        """Teams ranked by total score, best first."""
        return engine.compute_results(master_token=master_token).model_dump(mode="json")

    @mcp.tool()
    def correct_score(
        master_token: str, team_id: str, question_id: int, score: float
    ) -> dict:
        """Override the grade of a submitted answer with 0, 0.5 or 1."""
        quiz = engine.find_quiz_by_master_token(master_token)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        team = engine.update_answer_score(team_id, quiz.code, question_id, score)
        return team.model_dump(mode="json")
