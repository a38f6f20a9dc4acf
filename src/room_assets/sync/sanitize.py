"""File name sanitizing for room, day, session and resource names.

Names end up on a Nextcloud share and on Windows machines, so characters
that ``nextcloudcmd`` rejects or that are awkward in paths are replaced by
``_``.  The cleanup steps are applied until the name no longer changes,
which makes ``sanitize_file_name`` idempotent even for inputs such as
``"_-talk"`` where stripping ``_`` exposes a leading ``-``.
"""

from __future__ import annotations

import re

_DISALLOWED = re.compile(r"""[/\s:,?*'"|<>()\\!&]+""")
_LEADING_DASHES = re.compile(r"\A-+(?=.)", re.DOTALL)
_UNDERSCORE_RUNS = re.compile(r"_+")
_TRAILING_UNDERSCORES = re.compile(r"(?<=.)_+\Z", re.DOTALL)
_LEADING_UNDERSCORES = re.compile(r"\A_+(?=.)", re.DOTALL)

PLACEHOLDER = "_"


def _sanitize_once(name: str) -> str:
    name = _DISALLOWED.sub("_", name)
    name = _LEADING_DASHES.sub("", name)
    if name == "-":
        name = PLACEHOLDER
    name = _UNDERSCORE_RUNS.sub("_", name)
    name = _TRAILING_UNDERSCORES.sub("", name)
    name = _LEADING_UNDERSCORES.sub("", name)
    # . and .. are not usable as names
    if name in (".", ".."):
        name = PLACEHOLDER
    return name


def sanitize_file_name(name: str) -> str:
    """Turn arbitrary text into a safe, non-empty path segment.

    >>> sanitize_file_name("_My__talk (subject)_")
    'My_talk_subject'
    >>> sanitize_file_name("..")
    '_'
    """
    if not name:
        return PLACEHOLDER
    while True:
        cleaned = _sanitize_once(name)
        if cleaned == name:
            return cleaned
        name = cleaned


def sanitize_file_name_bytes(name: str) -> bytes:
    """``sanitize_file_name`` encoded as UTF-8."""
    return sanitize_file_name(name).encode("utf-8")
