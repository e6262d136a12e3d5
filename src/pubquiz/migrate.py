"""Bring an existing data directory up to the current file format.

Quizzes gain ``current_question_index`` and ``master_token`` when missing;
teams gain ``session_token``. Files already up to date are not rewritten.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from pubquiz.storage import DATA_DIR, QuizStore
from pubquiz.validation import generate_token

logger = logging.getLogger(__name__)


def migrate_quizzes(store: QuizStore, dry_run: bool = False) -> int:
    migrated = 0
    for path, data in store.raw_documents(store.quizzes_dir):
        changed = False
        if not isinstance(data.get("current_question_index"), int):
            data["current_question_index"] = 0
            changed = True
        if not data.get("master_token"):
            data["master_token"] = generate_token()
            changed = True
        if not changed:
            logger.debug("%s already up to date", path.name)
            continue
        if not dry_run:
            store.write_document(path, data)
        logger.info("Migrated quiz %s", path.name)
        migrated += 1
    return migrated


def migrate_teams(store: QuizStore, dry_run: bool = False) -> int:
    migrated = 0
    for code in store.list_team_codes():
        for path, data in store.raw_documents(store.teams_dir / code):
            if data.get("session_token"):
                continue
            data["session_token"] = generate_token()
            if not dry_run:
                store.write_document(path, data)
            logger.info("Migrated team %s/%s", code, path.name)
            migrated += 1
    return migrated


def migrate(store: QuizStore, dry_run: bool = False) -> tuple[int, int]:
    """Returns (quizzes migrated, teams migrated)."""
    return migrate_quizzes(store, dry_run), migrate_teams(store, dry_run)


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Migrate a pub quiz data directory")
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=DATA_DIR,
        help="Data directory (default: PUBQUIZ_DATA_DIR or ./data)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would change without writing",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    store = QuizStore(args.data_dir)
    quizzes, teams = migrate(store, dry_run=args.dry_run)
    prefix = "Would migrate" if args.dry_run else "Migrated"
    print(f"{prefix} {quizzes} quizzes and {teams} teams in {store.directory}")


if __name__ == "__main__":
    main()
