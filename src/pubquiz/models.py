"""Quiz data models: quizzes and teams as persisted in JSON."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

QUIZ_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6}$")


def utc_now() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2026-10-19T18:04:05.123Z.

    Fixed width, so timestamps sort correctly as plain strings.
    """
    now = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    return now.replace("+00:00", "Z")


class QuizStatus(str, Enum):
    """Lifecycle of a quiz. Business flow is draft -> active -> finished."""

    draft = "draft"
    active = "active"
    finished = "finished"


class QuestionView(BaseModel):
    """A question as teams see it: never carries the correct answer."""

    id: int
    text: str
    options: list[str] | None = None


class Question(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int = Field(ge=0)
    text: str
    correct: str
    options: list[str] | None = None  # None = free-text question

    @property
    def is_multiple_choice(self) -> bool:
        return self.options is not None

    def team_view(self) -> QuestionView:
        return QuestionView(id=self.id, text=self.text, options=self.options)


class QuizView(BaseModel):
    """Team-facing projection of a quiz."""

    code: str
    title: str
    questions: list[QuestionView]
    status: QuizStatus
    current_question_index: int
    created_at: str


class Quiz(BaseModel):
    """A complete quiz as stored in quizzes/<CODE>.json."""

    model_config = ConfigDict(extra="ignore")

    code: str
    title: str
    questions: list[Question]
    status: QuizStatus = QuizStatus.draft
    current_question_index: int = Field(default=0, ge=0)
    created_at: str = Field(default_factory=utc_now)
    master_token: str

    @model_validator(mode="after")
    def _check_invariants(self) -> Quiz:
        if not QUIZ_CODE_PATTERN.match(self.code):
            raise ValueError(f"Invalid quiz code: {self.code!r}")
        if self.questions and self.current_question_index >= len(self.questions):
            raise ValueError(
                f"current_question_index {self.current_question_index} out of range "
                f"for {len(self.questions)} questions"
            )
        return self

    def question(self, question_id: int) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None

    def team_view(self) -> QuizView:
        return QuizView(
            code=self.code,
            title=self.title,
            questions=[q.team_view() for q in self.questions],
            status=self.status,
            current_question_index=self.current_question_index,
            created_at=self.created_at,
        )


class Answer(BaseModel):
    """One graded answer. Free-text answers leave selected_option unset;
    multiple-choice answers record the option index and its text."""

    model_config = ConfigDict(extra="ignore")

    question_id: int
    answer: str
    selected_option: int | None = None
    is_correct: bool = False
    score: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _default_score(cls, data: Any) -> Any:
        # Files written before partial scores existed only carry is_correct
        if isinstance(data, dict) and data.get("score") is None:
            data = {**data, "score": 1.0 if data.get("is_correct") else 0.0}
        return data


class Team(BaseModel):
    """A team in one quiz, stored in teams/<CODE>/<team id>.json.

    total_score is derived: it is recomputed from the answers on construction
    and after every answer mutation, whatever value the file carried.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    quiz_code: str
    name: str
    answers: list[Answer] = Field(default_factory=list)
    total_score: float = 0.0
    joined_at: str = Field(default_factory=utc_now)
    session_token: str

    @model_validator(mode="after")
    def _derive_total(self) -> Team:
        self._recompute_total()
        return self

    def _recompute_total(self) -> None:
        self.total_score = float(sum(a.score for a in self.answers))

    def answer_for(self, question_id: int) -> Answer | None:
        for a in self.answers:
            if a.question_id == question_id:
                return a
        return None

    def has_answered(self, question_id: int) -> bool:
        return self.answer_for(question_id) is not None

    def upsert_answer(self, answer: Answer) -> None:
        """Replace the answer for the same question in place, or append it."""
        for i, existing in enumerate(self.answers):
            if existing.question_id == answer.question_id:
                self.answers[i] = answer
                break
        else:
            self.answers.append(answer)
        self._recompute_total()

    def set_score(self, question_id: int, score: float) -> Answer | None:
        """Overwrite the score of an existing answer. Returns None if the
        team never answered that question."""
        for i, existing in enumerate(self.answers):
            if existing.question_id == question_id:
                updated = existing.model_copy(
                    update={"score": score, "is_correct": score == 1.0}
                )
                self.answers[i] = updated
                self._recompute_total()
                return updated
        return None


# --- Engine results ---


class QuizSummary(BaseModel):
    code: str
    title: str
    status: QuizStatus
    created_at: str
    question_count: int


class TeamAnswerStatus(BaseModel):
    id: str
    name: str
    has_answered: bool


class QuizMasterView(BaseModel):
    quiz: Quiz
    teams: list[TeamAnswerStatus]


class TeamResult(BaseModel):
    id: str
    name: str
    total_score: float
    answers: list[Answer]


class QuizResults(BaseModel):
    quiz: Quiz
    teams: list[TeamResult]  # ranked, best first


class SubmitResult(BaseModel):
    answer: Answer
    total_score: float


class TeamSession(BaseModel):
    team: Team
    quiz: QuizView


class QuizStatistics(BaseModel):
    quiz_code: str
    title: str
    status: QuizStatus
    total_questions: int
    total_teams: int
    current_question_index: int
    average_score: float = 0.0
    highest_score: float = 0.0
    lowest_score: float = 0.0
