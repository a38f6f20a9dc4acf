"""Exception hierarchy for room-assets.

Every fatal condition of a sync run is a ``RoomAssetsError`` subclass so the
CLI can tell a failed run apart from one that merely changed nothing.
Per-resource download problems are not exceptions; they are counted in
``failed_resources_count`` and logged.

Categories:

- ``ConfigurationError`` -- raised before any filesystem mutation.
- ``DataIntegrityError`` -- inconsistent remote data, aborts mid-run.
- ``FilesystemError``    -- the target tree could not be read or changed;
  ``__cause__`` holds the original ``OSError``.
- ``RemoteError``        -- Pretalx fetches and the Nextcloud step.
"""

from __future__ import annotations


class RoomAssetsError(Exception):
    """Base class for all fatal sync errors."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(RoomAssetsError):
    """Invalid or incomplete configuration."""


class TargetDirectoryMissing(ConfigurationError):
    def __init__(self, target_dir: object) -> None:
        super().__init__(f"Target directory {target_dir} does not exist")
        self.target_dir = target_dir


class AmbiguousRoomName(ConfigurationError):
    def __init__(self, room: object) -> None:
        super().__init__(
            f"More than one room name for room {room} found, "
            "must pass --language parameter"
        )
        self.room = room


class MissingLanguage(ConfigurationError):
    def __init__(self, language: str, room: object) -> None:
        super().__init__(
            f'No room name in language "{language}" for room {room} found'
        )
        self.language = language
        self.room = room


# ---------------------------------------------------------------------------
# Data integrity
# ---------------------------------------------------------------------------


class DataIntegrityError(RoomAssetsError):
    """Remote schedule and submissions disagree."""


class MissingSubmission(DataIntegrityError):
    def __init__(self, code: str) -> None:
        super().__init__(f"No submission for {code} found")
        self.code = code


class NoMatchingRooms(DataIntegrityError):
    def __init__(self, event: str) -> None:
        super().__init__(f"No (matching) rooms found for event {event}")
        self.event = event


# ---------------------------------------------------------------------------
# Filesystem mutation
# ---------------------------------------------------------------------------


class FilesystemError(RoomAssetsError):
    """Reading or changing the target tree failed."""


class ScanError(FilesystemError):
    def __init__(self, directory: object, reason: object) -> None:
        super().__init__(f"Failed to scan {directory}: {reason}")
        self.directory = directory


class SessionCreateError(FilesystemError):
    def __init__(self, directory: object, reason: object) -> None:
        super().__init__(f"Failed to create {directory}: {reason}")
        self.directory = directory


class SessionMoveError(FilesystemError):
    def __init__(self, source: object, target: object, reason: object) -> None:
        super().__init__(f"Failed to rename {source} to {target}: {reason}")
        self.source = source
        self.target = target


class CleanupError(FilesystemError):
    def __init__(self, directory: object, reason: object) -> None:
        super().__init__(f"Failed to remove {directory}: {reason}")
        self.directory = directory


# ---------------------------------------------------------------------------
# Remote collaborators
# ---------------------------------------------------------------------------


class RemoteError(RoomAssetsError):
    """A remote collaborator failed."""


class FetchError(RemoteError):
    """Fetching the schedule or submissions from Pretalx failed."""


class NextcloudSyncError(RemoteError):
    """The ``nextcloudcmd`` invocation failed."""
