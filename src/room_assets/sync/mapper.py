"""Config-driven mapping from schedule talks to session directories.

A talk's session directory is a pure function of the remote data and the
configured patterns::

    <target_dir>/<room>/<day>/<session prefix>_-_<title>_-_<code>

- ``room`` is the room's display name in the configured language.
- ``day`` is the talk start formatted with the day strftime pattern.
- ``session prefix`` is the talk start formatted with the session pattern.
- ``room``, ``title`` and ``code`` are passed through
  ``sanitize_file_name``; the formatted dates are used verbatim.

Running the mapper twice on unchanged input yields identical paths, which is
what lets the engine recognise sessions that are already in place.
"""

from __future__ import annotations

import locale
import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from room_assets.config import DEFAULT_DAY_PATTERN, SESSION_PATTERN_SUFFIX
from room_assets.core.models import Room, Talk
from room_assets.errors import (
    AmbiguousRoomName,
    ConfigurationError,
    MissingLanguage,
    NoMatchingRooms,
)
from room_assets.sync.sanitize import sanitize_file_name

logger = logging.getLogger(__name__)

SEPARATOR = "_-_"


def _locale_candidates(name: str) -> list[str]:
    """Spellings to try for *name*, e.g. ``de-DE`` -> ``de_DE.UTF-8``."""
    language, dot, encoding = name.partition(".")
    base = language.replace("-", "_") + dot + encoding
    candidates = [name, base]
    if not dot:
        candidates += [f"{base}.UTF-8", f"{base}.utf8"]
    return list(dict.fromkeys(candidates))


@contextmanager
def time_locale(name: str | None) -> Iterator[None]:
    """Temporarily switch ``LC_TIME`` to *name* (no-op for ``None``).

    Raises:
        ConfigurationError: If no spelling of *name* is installed.
    """
    if not name:
        yield
        return
    previous = locale.setlocale(locale.LC_TIME)
    for candidate in _locale_candidates(name):
        try:
            locale.setlocale(locale.LC_TIME, candidate)
            break
        except locale.Error:
            continue
    else:
        raise ConfigurationError(f"Locale {name!r} is not available")
    try:
        yield
    finally:
        locale.setlocale(locale.LC_TIME, previous)


class PathMapper:
    """Resolve room names and compute session directories.

    Args:
        target_dir: Root of the synced tree.  Resolved to an absolute path.
        day_pattern: strftime pattern for day directories.
        session_pattern: strftime pattern for the session prefix; defaults
            to *day_pattern* followed by ``_%H%M``.
        language: Language to pick room names in.
        locale_name: Locale used when formatting dates.
        rooms: Room names to restrict the sync to, or ``None`` for all.
    """

    def __init__(
        self,
        target_dir: Path,
        day_pattern: str = DEFAULT_DAY_PATTERN,
        session_pattern: str | None = None,
        language: str | None = None,
        locale_name: str | None = None,
        rooms: Iterable[str] | None = None,
    ) -> None:
        self.target_dir = Path(target_dir).resolve()
        self.day_pattern = day_pattern
        self.session_pattern = session_pattern or (
            day_pattern + SESSION_PATTERN_SUFFIX
        )
        self.language = language
        self.locale_name = locale_name
        self.rooms = list(rooms) if rooms is not None else None

        # Fail on an unknown locale before anything touches the disk.
        with time_locale(self.locale_name):
            pass

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    def room_name(self, room: Room) -> str:
        """Return the display name of *room*.

        Raises:
            MissingLanguage: A language is configured but *room* has no
                name in it.
            AmbiguousRoomName: No language is configured and *room* does
                not have exactly one name.
        """
        if self.language is not None:
            name = room.name.get(self.language)
            if name is None:
                raise MissingLanguage(self.language, _describe(room))
            return name
        if len(room.name) == 1:
            return next(iter(room.name.values()))
        raise AmbiguousRoomName(_describe(room))

    def select_rooms(
        self, rooms: Iterable[Room], event: str
    ) -> dict[int | str, str]:
        """Map room id to display name for all rooms passing the filter.

        Raises:
            NoMatchingRooms: If no room is left after filtering.
        """
        selected: dict[int | str, str] = {}
        for room in rooms:
            name = self.room_name(room)
            if self.rooms is not None and name not in self.rooms:
                logger.debug("Skipping room %s (not selected)", name)
                continue
            selected[room.id] = name
        if not selected:
            raise NoMatchingRooms(event)
        return selected

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def format_start(self, start: datetime, pattern: str) -> str:
        with time_locale(self.locale_name):
            return start.strftime(pattern)

    def session_name(self, talk: Talk) -> str:
        return SEPARATOR.join(
            [
                self.format_start(talk.start, self.session_pattern),
                sanitize_file_name(talk.title),
                sanitize_file_name(talk.code or ""),
            ]
        )

    def session_path(self, talk: Talk, room_name: str) -> Path:
        """Canonical session directory of *talk* in room *room_name*."""
        return (
            self.target_dir
            / sanitize_file_name(room_name)
            / self.format_start(talk.start, self.day_pattern)
            / self.session_name(talk)
        )


def _describe(room: Room) -> str:
    names = ", ".join(
        f"{lang}={name!r}" for lang, name in sorted(room.name.items())
    )
    return f"{{id={room.id!r}, name={{{names}}}}}"
