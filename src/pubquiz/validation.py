"""Input rules for quizzes, teams and answers, plus code/token generation."""

from __future__ import annotations

import re
import secrets
import uuid
from typing import Any

from pubquiz.errors import ValidationError
from pubquiz.models import QUIZ_CODE_PATTERN, QuizStatus

QUIZ_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
QUIZ_CODE_LENGTH = 6

TEAM_NAME_MAX_LENGTH = 50
QUIZ_TITLE_MAX_LENGTH = 200
MIN_QUESTIONS = 1
MAX_QUESTIONS = 100
MIN_OPTIONS = 2

ALLOWED_SCORES = (0.0, 0.5, 1.0)

# Team ids double as file names, so only plain identifiers are accepted
TEAM_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def generate_quiz_code() -> str:
    return "".join(secrets.choice(QUIZ_CODE_ALPHABET) for _ in range(QUIZ_CODE_LENGTH))


def generate_token() -> str:
    """Unguessable bearer secret (256 bits), independent of any quiz data."""
    return secrets.token_urlsafe(32)


def generate_team_id() -> str:
    return str(uuid.uuid4())


def is_valid_quiz_code(code: Any) -> bool:
    return isinstance(code, str) and QUIZ_CODE_PATTERN.match(code) is not None


def validate_quiz_code(code: Any) -> str:
    if not is_valid_quiz_code(code):
        raise ValidationError("Invalid quiz code format")
    return code


def validate_team_id(team_id: Any) -> str:
    if not isinstance(team_id, str) or not TEAM_ID_PATTERN.match(team_id):
        raise ValidationError("Invalid team id")
    return team_id


def _required_text(value: Any, label: str, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{label} is required")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{label} cannot be empty")
    if max_length is not None and len(trimmed) > max_length:
        raise ValidationError(f"{label} cannot exceed {max_length} characters")
    return trimmed


def validate_team_name(name: Any) -> str:
    """Return the trimmed team name."""
    return _required_text(name, "Team name", TEAM_NAME_MAX_LENGTH)


def validate_quiz_title(title: Any) -> str:
    """Return the trimmed quiz title."""
    return _required_text(title, "Quiz title", QUIZ_TITLE_MAX_LENGTH)


def _validate_options(position: int, options: Any, correct: str) -> list[str]:
    if not isinstance(options, list) or len(options) < MIN_OPTIONS:
        raise ValidationError(
            f"Question {position}: Options must be a list of at least {MIN_OPTIONS} choices"
        )
    for j, option in enumerate(options, start=1):
        if not isinstance(option, str) or not option.strip():
            raise ValidationError(f"Question {position}: Option {j} cannot be empty")
    if not any(answers_match(option, correct) for option in options):
        raise ValidationError(
            f"Question {position}: Correct answer must be one of the options"
        )
    return list(options)


def validate_questions(questions: Any) -> None:
    """Check the question list, reporting the first problem in question order.

    Each question is a mapping with ``text`` and ``correct`` and, for
    multiple-choice questions, ``options``.
    """
    if not isinstance(questions, list):
        raise ValidationError("Questions must be a list")
    if len(questions) < MIN_QUESTIONS:
        raise ValidationError("At least one question is required")
    if len(questions) > MAX_QUESTIONS:
        raise ValidationError(f"Cannot exceed {MAX_QUESTIONS} questions")

    for position, question in enumerate(questions, start=1):
        if not isinstance(question, dict):
            raise ValidationError(f"Question {position}: Invalid question")
        text = question.get("text")
        if not isinstance(text, str) or not text:
            raise ValidationError(f"Question {position}: Text is required")
        if not text.strip():
            raise ValidationError(f"Question {position}: Text cannot be empty")
        correct = question.get("correct")
        if not isinstance(correct, str) or not correct:
            raise ValidationError(f"Question {position}: Correct answer is required")
        if not correct.strip():
            raise ValidationError(
                f"Question {position}: Correct answer cannot be empty"
            )
        if question.get("options") is not None:
            _validate_options(position, question["options"], correct)


def validate_answer_text(answer: Any) -> str:
    if not isinstance(answer, str) or not answer.strip():
        raise ValidationError("Answer cannot be empty")
    return answer.strip()


def validate_question_index(index: Any, total_questions: int) -> int:
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValidationError("Invalid question index")
    if index >= total_questions:
        raise ValidationError("Question index out of range")
    return index


def validate_score(score: Any) -> float:
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ValidationError("Score must be 0, 0.5, or 1")
    if float(score) not in ALLOWED_SCORES:
        raise ValidationError("Score must be 0, 0.5, or 1")
    return float(score)


def parse_status(status: Any) -> QuizStatus:
    if isinstance(status, QuizStatus):
        return status
    if isinstance(status, str):
        try:
            return QuizStatus(status.strip().lower())
        except ValueError:
            pass
    raise ValidationError("Invalid status value")


def answers_match(submitted: str, correct: str) -> bool:
    """Grading rule: trimmed, case-insensitive equality."""
    return submitted.strip().lower() == correct.strip().lower()
