"""Error taxonomy shared by the store, the engine and the adapters."""

from __future__ import annotations


class QuizError(Exception):
    """Base class for every failure the core reports to its callers."""

    kind = "quiz_error"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": self.kind, "message": self.message}


class ValidationError(QuizError):
    """Bad input shape or range."""

    kind = "validation_error"
    status_code = 400


class InvalidStateError(QuizError):
    """Operation not permitted in the quiz's current status."""

    kind = "invalid_state"
    status_code = 400


class NotFoundError(QuizError):
    kind = "not_found"
    status_code = 404


class ConflictError(QuizError):
    kind = "conflict"
    status_code = 409


class StorageError(QuizError):
    """I/O or parse failure on persisted state."""

    kind = "storage_error"
    status_code = 500
