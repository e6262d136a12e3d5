"""Quiz engine: state transitions for quizzes and teams on top of QuizStore.

Every operation is a fresh load-mutate-save cycle. Locking covers each single
read and each single write, not the pair, so two concurrent updates of the
same team file resolve as last write wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pubquiz.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from pubquiz.models import (
    Answer,
    Question,
    Quiz,
    QuizMasterView,
    QuizResults,
    QuizStatistics,
    QuizStatus,
    QuizSummary,
    QuizView,
    SubmitResult,
    Team,
    TeamAnswerStatus,
    TeamResult,
    TeamSession,
    utc_now,
)
from pubquiz.storage import QuizStore
from pubquiz.validation import (
    answers_match,
    generate_quiz_code,
    generate_team_id,
    generate_token,
    parse_status,
    validate_answer_text,
    validate_question_index,
    validate_questions,
    validate_quiz_code,
    validate_quiz_title,
    validate_score,
    validate_team_id,
    validate_team_name,
)

logger = logging.getLogger(__name__)


class QuizEngine:
    """Quiz and team operations against one data directory.

    Quiz-master operations accept either the quiz ``code`` or the quiz's
    ``master_token``; team operations accept either the team id (with the
    quiz code) or the team's ``session_token``.
    """

    def __init__(
        self,
        store: QuizStore,
        clock: Callable[[], str] = utc_now,
        code_factory: Callable[[], str] = generate_quiz_code,
    ) -> None:
        self.store = store
        self.clock = clock
        self.code_factory = code_factory

    # --- Token resolution ---

    def find_quiz_by_master_token(self, token: str) -> Quiz | None:
        """Linear scan over all quizzes."""
        if not token:
            return None
        for quiz in self.store.list_quizzes():
            if quiz.master_token == token:
                return quiz
        return None

    def find_team_by_session_token(self, token: str) -> Team | None:
        """Linear scan over every team of every quiz."""
        if not token:
            return None
        for quiz in self.store.list_quizzes():
            for team in self.store.list_teams(quiz.code):
                if team.session_token == token:
                    return team
        return None

    # --- Loading helpers ---

    def _load_quiz(self, code: str) -> Quiz:
        validate_quiz_code(code)
        quiz = self.store.load_quiz(code)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return quiz

    def _master_quiz(self, code: str | None, master_token: str | None) -> Quiz:
        if master_token is not None:
            quiz = self.find_quiz_by_master_token(master_token)
            if quiz is None:
                raise NotFoundError("Quiz not found")
            return quiz
        if code is None:
            raise ValidationError("Quiz code or master token is required")
        return self._load_quiz(code)

    def _load_team(
        self,
        team_id: str | None,
        quiz_code: str | None,
        session_token: str | None = None,
    ) -> Team:
        if session_token is not None:
            if quiz_code is not None:
                validate_quiz_code(quiz_code)
            team = self.find_team_by_session_token(session_token)
            if team is None or (quiz_code is not None and team.quiz_code != quiz_code):
                raise NotFoundError("Team not found")
            return team
        if not team_id or quiz_code is None:
            raise ValidationError("Team id and quiz_code are required")
        validate_team_id(team_id)
        validate_quiz_code(quiz_code)
        team = self.store.load_team(team_id, quiz_code)
        if team is None or team.id != team_id or team.quiz_code != quiz_code:
            raise NotFoundError("Team not found")
        return team

    # --- Quizzes ---

    def create_quiz(self, title: str, questions: list[dict[str, Any]]) -> Quiz:
        """Create a draft quiz with a fresh unique code and master token.

        The returned quiz includes the correct answers; only the creator
        should see it.
        """
        title = validate_quiz_title(title)
        validate_questions(questions)

        numbered = [
            Question(
                id=i,
                text=q["text"].strip(),
                correct=q["correct"].strip(),
                options=[o.strip() for o in q["options"]]
                if q.get("options") is not None
                else None,
            )
            for i, q in enumerate(questions)
        ]

        while True:
            code = self.code_factory()
            if self.store.quiz_exists(code):
                logger.warning("Quiz code collision on %s, drawing again", code)
                continue
            quiz = Quiz(
                code=code,
                title=title,
                questions=numbered,
                status=QuizStatus.draft,
                current_question_index=0,
                created_at=self.clock(),
                master_token=generate_token(),
            )
            if self.store.insert_quiz(quiz):
                break
            logger.warning("Quiz code %s taken concurrently, drawing again", code)

        logger.info("Created quiz %s with %d questions", quiz.code, len(numbered))
        return quiz

    def list_quizzes(self) -> list[QuizSummary]:
        return [
            QuizSummary(
                code=q.code,
                title=q.title,
                status=q.status,
                created_at=q.created_at,
                question_count=len(q.questions),
            )
            for q in self.store.list_quizzes()
        ]

    def get_quiz_for_team_view(self, code: str) -> QuizView:
        return self._load_quiz(code).team_view()

    def get_quiz_for_master(
        self, code: str | None = None, *, master_token: str | None = None
    ) -> QuizMasterView:
        quiz = self._master_quiz(code, master_token)
        current = quiz.current_question_index
        teams = [
            TeamAnswerStatus(id=t.id, name=t.name, has_answered=t.has_answered(current))
            for t in self.store.list_teams(quiz.code)
        ]
        return QuizMasterView(quiz=quiz, teams=teams)

    def update_quiz_status(
        self,
        code: str | None = None,
        status: QuizStatus | str | None = None,
        *,
        master_token: str | None = None,
    ) -> Quiz:
        """Set the quiz status. Any status may follow any other."""
        new_status = parse_status(status)
        quiz = self._master_quiz(code, master_token)
        previous = quiz.status
        quiz.status = new_status
        self.store.save_quiz(quiz)
        logger.info(
            "Quiz %s status %s -> %s", quiz.code, previous.value, new_status.value
        )
        return quiz

    def advance_question(
        self,
        code: str | None = None,
        index: int | None = None,
        *,
        master_token: str | None = None,
    ) -> Quiz:
        quiz = self._master_quiz(code, master_token)
        quiz.current_question_index = validate_question_index(index, len(quiz.questions))
        self.store.save_quiz(quiz)
        logger.info("Quiz %s advanced to question %d", quiz.code, index)
        return quiz

    def compute_results(
        self, code: str | None = None, *, master_token: str | None = None
    ) -> QuizResults:
        """Teams ranked by total score; ties keep join order."""
        quiz = self._master_quiz(code, master_token)
        teams = sorted(
            self.store.list_teams(quiz.code), key=lambda t: t.total_score, reverse=True
        )
        return QuizResults(
            quiz=quiz,
            teams=[
                TeamResult(
                    id=t.id, name=t.name, total_score=t.total_score, answers=t.answers
                )
                for t in teams
            ],
        )

    def get_quiz_statistics(self, code: str) -> QuizStatistics | None:
        validate_quiz_code(code)
        quiz = self.store.load_quiz(code)
        if quiz is None:
            return None
        scores = [t.total_score for t in self.store.list_teams(code)]
        stats = QuizStatistics(
            quiz_code=quiz.code,
            title=quiz.title,
            status=quiz.status,
            total_questions=len(quiz.questions),
            total_teams=len(scores),
            current_question_index=quiz.current_question_index,
        )
        if scores:
            stats.average_score = sum(scores) / len(scores)
            stats.highest_score = max(scores)
            stats.lowest_score = min(scores)
        return stats

    # --- Teams ---

    def join_team(self, quiz_code: str, team_name: str) -> Team:
        name = validate_team_name(team_name)
        quiz = self._load_quiz(quiz_code)
        if quiz.status != QuizStatus.active:
            raise InvalidStateError("Quiz is not active")

        folded = name.casefold()
        for existing in self.store.list_teams(quiz.code):
            if existing.name.strip().casefold() == folded:
                raise ConflictError("Team name already exists in this quiz")

        team = Team(
            id=generate_team_id(),
            quiz_code=quiz.code,
            name=name,
            answers=[],
            joined_at=self.clock(),
            session_token=generate_token(),
        )
        self.store.save_team(team)
        logger.info("Team %s joined quiz %s", team.id, quiz.code)
        return team

    def get_team(self, team_id: str, quiz_code: str) -> Team:
        return self._load_team(team_id, quiz_code)

    def get_team_session(self, session_token: str) -> TeamSession:
        team = self._load_team(None, None, session_token=session_token)
        quiz = self.store.load_quiz(team.quiz_code)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return TeamSession(team=team, quiz=quiz.team_view())

    def submit_answer(
        self,
        quiz_code: str | None,
        question_id: int,
        answer: str | None = None,
        *,
        team_id: str | None = None,
        session_token: str | None = None,
        selected_option: int | None = None,
    ) -> SubmitResult:
        """Grade and store a team's answer, replacing any earlier answer to
        the same question.

        Free-text questions take ``answer``; multiple-choice questions take
        either ``selected_option`` (0-based) or the option text as ``answer``.
        """
        if (answer is None) == (selected_option is None):
            raise ValidationError("Provide either an answer or a selected option")
        if answer is not None:
            answer = validate_answer_text(answer)

        team = self._load_team(team_id, quiz_code, session_token=session_token)
        quiz = self.store.load_quiz(team.quiz_code)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        if quiz.status != QuizStatus.active:
            raise InvalidStateError("Quiz is not active")

        question = quiz.question(question_id)
        if question is None:
            raise NotFoundError("Question not found")

        graded = self._grade(question, answer, selected_option)
        team.upsert_answer(graded)
        self.store.save_team(team)
        logger.debug(
            "Team %s answered question %d of %s: correct=%s",
            team.id,
            question.id,
            quiz.code,
            graded.is_correct,
        )
        return SubmitResult(answer=graded, total_score=team.total_score)

    @staticmethod
    def _grade(question: Question, answer: str | None, selected_option: int | None) -> Answer:
        if selected_option is not None:
            if not question.is_multiple_choice:
                raise ValidationError("Question does not have options")
            if (
                isinstance(selected_option, bool)
                or not isinstance(selected_option, int)
                or not 0 <= selected_option < len(question.options)
            ):
                raise ValidationError("Selected option out of range")
            answer = question.options[selected_option]
        is_correct = answers_match(answer, question.correct)
        return Answer(
            question_id=question.id,
            answer=answer,
            selected_option=selected_option,
            is_correct=is_correct,
            score=1.0 if is_correct else 0.0,
        )

    def update_answer_score(
        self, team_id: str, quiz_code: str, question_id: int, score: float
    ) -> Team:
        """Quiz-master correction of an already submitted answer."""
        score = validate_score(score)
        team = self._load_team(team_id, quiz_code)
        if team.set_score(question_id, score) is None:
            raise NotFoundError(f"Answer for question {question_id} not found")
        self.store.save_team(team)
        logger.info(
            "Score for team %s question %d set to %s", team.id, question_id, score
        )
        return team
