"""On-disk layout discovery and cleanup.

The target tree has a fixed depth::

    <target_dir>/<room>/<day>/<session>/<resource files>

``find_existing_sessions`` scans the session level once per event and
groups session directories by the talk code at the end of their name.
``cleanup`` prunes room and day directories left empty after sessions were
moved away.  Neither function descends below the session level.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Collection, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from room_assets.errors import CleanupError, ScanError

logger = logging.getLogger(__name__)

_CODE_SUFFIX = re.compile(r"([A-Z0-9]{6})\Z")


@dataclass
class ExistingSession:
    """Session directories found on disk for one talk code.

    ``directories`` is a queue owned by the running sync: a directory that
    has been reused for a talk is taken off the front and cannot be handed
    out again in the same run.
    """

    code: str
    directories: deque[Path] = field(default_factory=deque)

    def take(self) -> Path | None:
        """Pop the first queued directory, or ``None`` when exhausted."""
        return self.directories.popleft() if self.directories else None

    def discard(self, directory: Path) -> None:
        """Drop *directory* from the queue; it is already in place."""
        self.directories = deque(d for d in self.directories if d != directory)


def session_code(name: str) -> str | None:
    """Return the trailing six character talk code of *name*, if any."""
    match = _CODE_SUFFIX.search(name)
    return match.group(1) if match else None


def _subdirectories(directory: Path) -> list[Path]:
    try:
        return sorted(p for p in directory.iterdir() if p.is_dir())
    except OSError as exc:
        raise ScanError(directory, exc) from exc


def find_existing_sessions(target_dir: Path) -> dict[str, ExistingSession]:
    """Map talk code to the session directories currently on disk.

    Looks exactly two levels below *target_dir* (rooms, then days) and
    treats every directory found there as a candidate session.  Candidates
    whose name does not end in a talk code are ignored, as are files at
    any level.  Directories are resolved to absolute paths and ordered by
    full path so duplicates are handed out deterministically.

    Raises:
        ScanError: If a room or day directory cannot be listed.
    """
    sessions: dict[str, ExistingSession] = {}
    if not target_dir.is_dir():
        return sessions

    root = target_dir.resolve()
    for room in _subdirectories(root):
        for day in _subdirectories(room):
            for session in _subdirectories(day):
                code = session_code(session.name)
                if code is None:
                    continue
                sessions.setdefault(code, ExistingSession(code=code))
                sessions[code].directories.append(session.resolve())

    for existing in sessions.values():
        existing.directories = deque(sorted(existing.directories, key=str))

    logger.debug(
        "Found %d existing session codes below %s", len(sessions), root
    )
    return sessions


# ---------------------------------------------------------------------------
# Cleanup
# ---------------------------------------------------------------------------


def _is_hidden(path: Path) -> bool:
    return path.name.startswith(".")


def _visible_subdirectories(
    directory: Path, keep: Collection[str] = ()
) -> list[Path]:
    """Non-hidden child directories; empty if *directory* is unreadable.

    Hidden children named in *keep* are included.
    """
    try:
        children = list(directory.iterdir())
    except OSError as exc:
        logger.debug("Skipping %s during cleanup: %s", directory, exc)
        return []
    return sorted(
        p
        for p in children
        if p.is_dir() and (p.name in keep or not _is_hidden(p))
    )


def remove_if_empty(directory: Path) -> bool:
    """Remove *directory* if it has no children at all.

    Returns ``True`` if the directory was removed.  A directory that cannot
    be listed is left alone.

    Raises:
        CleanupError: If an empty directory cannot be removed.
    """
    try:
        has_children = any(directory.iterdir())
    except OSError as exc:
        logger.debug("Skipping %s during cleanup: %s", directory, exc)
        return False
    if has_children:
        return False
    try:
        directory.rmdir()
    except OSError as exc:
        raise CleanupError(directory, exc) from exc
    logger.info("Removed empty directory %s", directory)
    return True


def cleanup(target_dir: Path, rooms: Iterable[str] = ()) -> None:
    """Remove empty day directories, then rooms that became empty.

    Only the room and day levels are examined and *target_dir* itself is
    never removed.  Files and hidden entries are skipped, except for the
    room directories named in *rooms*: a room called ".NET" sanitizes to a
    dot-prefixed directory that still belongs to the tree.
    """
    known = set(rooms)
    for room in _visible_subdirectories(target_dir, keep=known):
        for day in _visible_subdirectories(room):
            remove_if_empty(day)
        remove_if_empty(room)
