"""Atomic file replacement guarded by advisory locks.

Writers stage content in a sibling temp file, then rename it over the target
while holding an exclusive flock on ``<target>.lock``. Readers parse under a
shared flock on the same lock file, so they see either the old or the new
content, never a torn write. Whoever last holds the lock exclusively
removes the lock file on the way out.
"""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

LOCK_SUFFIX = ".lock"
TEMP_SUFFIX = ".tmp"


def lock_path(path: Path) -> Path:
    return path.with_name(path.name + LOCK_SUFFIX)


@contextmanager
def file_lock(
    path: Path, shared: bool = False, remove: bool = False
) -> Iterator[Path]:
    """Hold an advisory lock keyed on *path* for the duration of the block.

    With *remove*, the lock file is unlinked on exit, but only while holding
    it exclusively: a shared holder tries a non-blocking upgrade and leaves
    the file for the last one out. Since lock files can vanish, after
    acquiring we check the path still names the inode we locked; if not,
    start over.
    """
    target = lock_path(path)
    operation = fcntl.LOCK_SH if shared else fcntl.LOCK_EX
    while True:
        fd = os.open(target, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, operation)
            locked = _same_inode(fd, target)
        except BaseException:
            os.close(fd)
            raise
        if locked:
            break
        os.close(fd)
    try:
        yield target
    finally:
        try:
            if remove and _owns_lock_file(fd, target, shared):
                _remove_quietly(target)
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)


def _same_inode(fd: int, target: Path) -> bool:
    held = os.fstat(fd)
    try:
        current = os.stat(target)
    except FileNotFoundError:
        return False
    return (current.st_dev, current.st_ino) == (held.st_dev, held.st_ino)


def _owns_lock_file(fd: int, target: Path, shared: bool) -> bool:
    """True if we hold *target* exclusively and it is still the live lock file.

    Upgrading a shared flock is not atomic, so another writer may have
    replaced the lock file in between.
    """
    if shared:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
    return _same_inode(fd, target)


def _write_temp(path: Path, content: str) -> Path:
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=TEMP_SUFFIX, dir=path.parent
    )
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
    except BaseException:
        _remove_quietly(tmp)
        raise
    return tmp


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Could not remove %s: %s", path, e)


def write_atomic(path: Path, content: str) -> None:
    """Replace *path* with *content*. I/O errors propagate to the caller."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = _write_temp(path, content)
    try:
        with file_lock(path, remove=True):
            os.replace(tmp, path)
    finally:
        _remove_quietly(tmp)


def create_atomic(path: Path, content: str) -> bool:
    """Write *path* only if it does not exist yet.

    Returns False (and writes nothing) when the target already exists, even
    if another writer created it a moment ago.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = _write_temp(path, content)
    try:
        with file_lock(path, remove=True):
            try:
                os.link(tmp, path)
                created = True
            except FileExistsError:
                created = False
        return created
    finally:
        _remove_quietly(tmp)


def read_with_lock(path: Path, parse: Callable[[str], T]) -> T | None:
    """Read and parse *path* under a shared lock; None if it does not exist.

    Parse and I/O errors propagate unchanged.
    """
    if not path.exists():
        return None
    with file_lock(path, shared=True, remove=True):
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        return parse(content)
