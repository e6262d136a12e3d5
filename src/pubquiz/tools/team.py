"""MCP tools for teams, keyed by the session token returned from join_quiz."""

from __future__ import annotations

from mcp.server.fastmcp import FastMCP

from pubquiz.quiz_engine import QuizEngine


def register(mcp: FastMCP, engine: QuizEngine) -> None:
    @mcp.tool()
    def join_quiz(quiz_code: str, team_name: str) -> dict:
        """Join an active quiz. Returns the team including its session_token."""
        return engine.join_team(quiz_code, team_name).model_dump(mode="json")

    @mcp.tool()
    def get_team_view(session_token: str) -> dict:
        """The team's answers and score plus the quiz without correct answers."""
        return engine.get_team_session(session_token).model_dump(mode="json")

    @mcp.tool()
    def submit_answer(
        session_token: str,
        question_id: int,
        answer: str | None = None,
        selected_option: int | None = None,
    ) -> dict:
        """Answer a question; resubmitting replaces the earlier answer.

        Args:
            session_token: Token returned by join_quiz
            question_id: Question id (0-based)
            answer: Free-text answer
            selected_option: Option index (0-based) for multiple-choice questions
        """
        result = engine.submit_answer(
            None,
            question_id,
            answer,
            session_token=session_token,
            selected_option=selected_option,
        )
        return result.model_dump(mode="json")
