"""Core sync engine that reconciles the target tree with Pretalx.

The ``SyncEngine`` ties together the mapper, layout scanner, resource
synchronizer and cleanup pass into a complete sync run.  It:

1. Checks the target directory exists.
2. Runs the optional Nextcloud sync so the tree starts from the shared state.
3. For every event: fetches submissions and schedule, scans the existing
   sessions, and reconciles each scheduled talk in a selected room.
4. Prunes room and day directories left empty.
5. Runs the optional Nextcloud sync again to publish the result.
6. Builds and returns a ``SyncReport``.

Reconciling a talk reuses an existing session directory with the same talk
code when the canonical path does not exist yet, so renamed talks, moved
slots and renamed rooms keep their already downloaded resources.

Error handling: resource download failures are counted per talk; every
other failure raises a ``RoomAssetsError`` and aborts the run, leaving the
tree as it was after the last completed step.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

from room_assets.config import Config
from room_assets.core.client import PretalxClient
from room_assets.core.models import Submission, Talk
from room_assets.core.nextcloud import NextcloudSync
from room_assets.errors import (
    MissingSubmission,
    SessionCreateError,
    SessionMoveError,
    TargetDirectoryMissing,
)
from room_assets.sync.layout import ExistingSession, cleanup, find_existing_sessions
from room_assets.sync.mapper import PathMapper
from room_assets.sync.models import SessionAction, SyncReport, SyncStatus
from room_assets.sync.resources import ResourceSynchronizer
from room_assets.sync.sanitize import sanitize_file_name

logger = logging.getLogger(__name__)


class SyncEngine:
    """Orchestrate a full sync run over all configured events.

    Args:
        client: PretalxClient used for API calls and downloads.
        config: Run configuration.
        nextcloud: Optional Nextcloud step run before and after the sync.
    """

    def __init__(
        self,
        client: PretalxClient,
        config: Config,
        nextcloud: NextcloudSync | None = None,
    ) -> None:
        self.client = client
        self.config = config
        self.nextcloud = nextcloud
        self.target_dir = Path(config.target_dir)

        self.mapper = PathMapper(
            target_dir=self.target_dir,
            day_pattern=config.day_strftime_pattern,
            session_pattern=config.effective_session_pattern,
            language=config.language,
            locale_name=config.locale,
            rooms=config.rooms,
        )
        self.resources = ResourceSynchronizer(client, config.pretalx_url)
        # directory names of every room selected so far in this run
        self.room_dirs: set[str] = set()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self) -> SyncReport:
        """Execute a full sync run.

        Returns:
            A ``SyncReport`` with the counters of every event.

        Raises:
            RoomAssetsError: On any fatal error.
        """
        if not self.target_dir.is_dir():
            raise TargetDirectoryMissing(self.target_dir)

        started_at = datetime.now(timezone.utc).isoformat()

        if self.nextcloud is not None:
            self.nextcloud.run()

        events: dict[str, SyncStatus] = {}
        for event in self.config.events:
            status = self.sync_event(event)
            events[event] = events.get(event, SyncStatus()).merge(status)

        cleanup(self.mapper.target_dir, self.room_dirs)

        if self.nextcloud is not None:
            self.nextcloud.run()

        return SyncReport(
            events=events,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc).isoformat(),
        )

    # ------------------------------------------------------------------
    # Per-event sync
    # ------------------------------------------------------------------

    def sync_event(self, event: str) -> SyncStatus:
        """Sync all scheduled talks of *event* in the selected rooms."""
        logger.info("Syncing event %s", event)
        submissions = self.client.fetch_submissions(event)
        schedule = self.client.fetch_schedule(event)
        existing = find_existing_sessions(self.mapper.target_dir)
        rooms = self.mapper.select_rooms(schedule.rooms, event)
        self.room_dirs.update(sanitize_file_name(name) for name in rooms.values())

        talks = [
            (talk, rooms[talk.room])
            for talk in schedule.talks
            if talk.code and talk.room is not None and talk.room in rooms
        ]
        self.reserve_in_place(talks, existing)

        status = SyncStatus()
        for talk, room_name in talks:
            status = status.merge(
                self.sync_talk(room_name, submissions, talk, existing)
            )
        return status

    def reserve_in_place(
        self,
        talks: list[tuple[Talk, str]],
        existing: dict[str, ExistingSession],
    ) -> None:
        """Drop directories that already sit at a talk's canonical path.

        A talk scheduled twice has two session directories with the same
        code.  Without this, a missing slot processed first would take the
        other slot's directory off the queue and move it away.
        """
        for talk, room_name in talks:
            candidates = existing.get(sanitize_file_name(talk.code or ""))
            if candidates is None:
                continue
            target = self.mapper.session_path(talk, room_name)
            if target.is_dir():
                candidates.discard(target.resolve())

    def sync_talk(
        self,
        room_name: str,
        submissions: dict[str, Submission],
        talk: Talk,
        existing: dict[str, ExistingSession],
    ) -> SyncStatus:
        """Reconcile one talk's session directory and its resources.

        Raises:
            MissingSubmission: If *submissions* has no entry for the talk.
        """
        submission = submissions.get(talk.code or "")
        if submission is None:
            raise MissingSubmission(talk.code or "")

        session_dir, action = self.reconcile_session(talk, room_name, existing)
        status = SyncStatus.for_action(action)
        return status.merge(
            self.resources.sync_resources(session_dir, submission)
        )

    # ------------------------------------------------------------------
    # Session reconciliation
    # ------------------------------------------------------------------

    def reconcile_session(
        self,
        talk: Talk,
        room_name: str,
        existing: dict[str, ExistingSession],
    ) -> tuple[Path, SessionAction]:
        """Make sure the canonical session directory of *talk* exists.

        - target exists: UNCHANGED; the target is dropped from the code's
          queue if it was queued.
        - target missing, directories queued for the code: MOVED; the first
          queued directory is renamed to the target.
        - target missing, nothing queued: CREATED.

        Raises:
            SessionCreateError: If the target or its parents cannot be
                created.
            SessionMoveError: If renaming an existing directory fails.
        """
        target = self.mapper.session_path(talk, room_name)
        candidates = existing.get(sanitize_file_name(talk.code or ""))

        if target.is_dir():
            if candidates is not None:
                candidates.discard(target.resolve())
            return target, SessionAction.UNCHANGED

        source = candidates.take() if candidates is not None else None
        if source is not None:
            _make_directory(target.parent)
            try:
                os.rename(source, target)
            except OSError as exc:
                raise SessionMoveError(source, target, exc) from exc
            logger.info("Moved session %s to %s", source, target)
            return target, SessionAction.MOVED

        _make_directory(target)
        logger.info("Created session %s", target)
        return target, SessionAction.CREATED


def _make_directory(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SessionCreateError(directory, exc) from exc
