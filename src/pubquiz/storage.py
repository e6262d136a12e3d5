"""JSON file-based storage for quizzes and teams.

Layout under the data directory::

    quizzes/<CODE>.json
    teams/<CODE>/<team id>.json
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import TypeVar

import pydantic

from pubquiz.atomic import create_atomic, read_with_lock, write_atomic
from pubquiz.errors import StorageError
from pubquiz.models import Quiz, Team

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=pydantic.BaseModel)

# Default data directory (override with PUBQUIZ_DATA_DIR env var)
DATA_DIR = Path(
    os.environ.get("PUBQUIZ_DATA_DIR", Path(__file__).parent.parent.parent / "data")
)


def dumps(model: pydantic.BaseModel) -> str:
    return json.dumps(
        model.model_dump(mode="json", exclude_none=True), indent=2, ensure_ascii=False
    )


class QuizStore:
    """Quiz and team files, one JSON document per entity.

    Loads return None for a missing file and raise StorageError for a file
    that cannot be read or parsed.
    """

    def __init__(self, directory: Path = DATA_DIR) -> None:
        self.directory = Path(directory)
        self.quizzes_dir = self.directory / "quizzes"
        self.teams_dir = self.directory / "teams"

    def ensure_directories(self) -> None:
        self.quizzes_dir.mkdir(parents=True, exist_ok=True)
        self.teams_dir.mkdir(parents=True, exist_ok=True)

    def _quiz_path(self, code: str) -> Path:
        return self.quizzes_dir / f"{code}.json"

    def _team_path(self, team_id: str, quiz_code: str) -> Path:
        return self.teams_dir / quiz_code / f"{team_id}.json"

    def _read(self, path: Path, model: type[M]) -> M | None:
        def parse(content: str) -> M:
            return model.model_validate(json.loads(content))

        try:
            return read_with_lock(path, parse)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError and pydantic.ValidationError are ValueErrors
            logger.error("Failed to load %s: %s", path, e)
            raise StorageError(f"Failed to load {path.name}") from e

    def _write(self, path: Path, model: pydantic.BaseModel) -> None:
        try:
            write_atomic(path, dumps(model))
        except OSError as e:
            logger.error("Failed to save %s: %s", path, e)
            raise StorageError(f"Failed to save {path.name}") from e

    def _scan(self, directory: Path, model: type[M]) -> list[M]:
        if not directory.is_dir():
            return []
        items = []
        for p in sorted(directory.glob("*.json")):
            item = self._read(p, model)
            if item is not None:  # removed between listing and reading
                items.append(item)
        return items

    # --- Quizzes ---

    def save_quiz(self, quiz: Quiz) -> Quiz:
        self._write(self._quiz_path(quiz.code), quiz)
        return quiz

    def insert_quiz(self, quiz: Quiz) -> bool:
        """Persist a new quiz; False if its code is already taken."""
        path = self._quiz_path(quiz.code)
        try:
            return create_atomic(path, dumps(quiz))
        except OSError as e:
            logger.error("Failed to create %s: %s", path, e)
            raise StorageError(f"Failed to save {path.name}") from e

    def load_quiz(self, code: str) -> Quiz | None:
        return self._read(self._quiz_path(code), Quiz)

    def quiz_exists(self, code: str) -> bool:
        return self._quiz_path(code).exists()

    def list_quizzes(self) -> list[Quiz]:
        """All quizzes, newest first."""
        quizzes = self._scan(self.quizzes_dir, Quiz)
        return sorted(quizzes, key=lambda q: q.created_at, reverse=True)

    # --- Teams ---

    def save_team(self, team: Team) -> Team:
        self._write(self._team_path(team.id, team.quiz_code), team)
        return team

    def load_team(self, team_id: str, quiz_code: str) -> Team | None:
        return self._read(self._team_path(team_id, quiz_code), Team)

    def team_exists(self, team_id: str, quiz_code: str) -> bool:
        return self._team_path(team_id, quiz_code).exists()

    def list_teams(self, quiz_code: str) -> list[Team]:
        """All teams of a quiz in join order."""
        teams = self._scan(self.teams_dir / quiz_code, Team)
        return sorted(teams, key=lambda t: t.joined_at)

    def list_team_codes(self) -> list[str]:
        """Quiz codes that have a team directory."""
        if not self.teams_dir.is_dir():
            return []
        return sorted(p.name for p in self.teams_dir.iterdir() if p.is_dir())

    def raw_documents(self, directory: Path) -> list[tuple[Path, dict]]:
        """Untyped JSON documents in *directory*, for migrations."""
        docs = []
        if not directory.is_dir():
            return docs
        for p in sorted(directory.glob("*.json")):
            try:
                data = read_with_lock(p, json.loads)
            except (OSError, ValueError) as e:
                raise StorageError(f"Failed to load {p.name}") from e
            if isinstance(data, dict):
                docs.append((p, data))
        return docs

    def write_document(self, path: Path, data: dict) -> None:
        try:
            write_atomic(path, json.dumps(data, indent=2, ensure_ascii=False))
        except OSError as e:
            raise StorageError(f"Failed to save {path.name}") from e
