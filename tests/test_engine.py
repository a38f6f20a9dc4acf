"""Tests for the core sync engine."""

from __future__ import annotations

import os
import shutil
from collections import deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from conftest import EVENT, LAST_MODIFIED, PRETALX_URL, FakePretalx
from room_assets.core.models import Talk
from room_assets.core.nextcloud import NextcloudSync
from room_assets.errors import (
    MissingSubmission,
    NoMatchingRooms,
    SessionCreateError,
    SessionMoveError,
    TargetDirectoryMissing,
)
from room_assets.sync.engine import SyncEngine
from room_assets.sync.layout import ExistingSession
from room_assets.sync.models import SessionAction

OPENING = "2025-06-06_1000_-_Opening_Session_-_ABC123"

ZERO = {
    "new_talks_count": 0,
    "moved_talks_count": 0,
    "new_resources_count": 0,
    "updated_resources_count": 0,
    "failed_resources_count": 0,
}


def _counts(**overrides: int) -> dict[str, int]:
    counts = dict(ZERO)
    counts.update(overrides)
    return counts


def _opening(pretalx: FakePretalx, **overrides) -> None:
    values = {
        "code": "ABC123",
        "title": "Opening Session",
        "room": 1,
        "start": "2025-06-06T10:00:00+02:00",
    }
    values.update(overrides)
    pretalx.add_talk(**values)


def _session(target_dir: Path, name: str = OPENING, room: str = "Main_Hall") -> Path:
    return target_dir / room / "2025-06-06" / name


# ---------------------------------------------------------------------------
# Full runs
# ---------------------------------------------------------------------------


class TestFirstRun:
    def test_creates_session_and_downloads(self, pretalx, client, config, target_dir):
        _opening(pretalx)

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(
            new_talks_count=1, new_resources_count=1
        )
        assert report.changed is True
        slides = _session(target_dir) / "slides.pdf"
        assert slides.read_bytes() == b"ABC123:slides.pdf"
        assert slides.stat().st_mtime == LAST_MODIFIED

    def test_report_keyed_by_event(self, pretalx, client, config):
        _opening(pretalx)
        report = SyncEngine(client, config).run()
        assert list(report.events) == [EVENT]
        assert report.started_at
        assert report.completed_at

    def test_breaks_and_other_rooms_skipped(
        self, pretalx, client, make_config, target_dir
    ):
        pretalx.add_room(2, "Workshop Room")
        _opening(pretalx)
        pretalx.add_talk("XYZ789", "Hands-on", 2, "2025-06-06T11:00:00+02:00")
        pretalx.add_break(1, "2025-06-06T12:00:00+02:00")

        report = SyncEngine(client, make_config(rooms=["Main Hall"])).run()

        assert report.total.new_talks_count == 1
        assert [p.name for p in target_dir.iterdir()] == ["Main_Hall"]

    def test_multiple_events(self, pretalx, client, make_config, target_dir):
        _opening(pretalx)
        pretalx.add_room(5, "Aula", event="fossgis2025")
        pretalx.add_talk(
            "FOS001", "Keynote", 5, "2025-03-26T09:00:00+01:00", event="fossgis2025"
        )

        report = SyncEngine(
            client, make_config(events=[EVENT, "fossgis2025"])
        ).run()

        assert list(report.events) == [EVENT, "fossgis2025"]
        assert report.total.new_talks_count == 2
        assert (target_dir / "Aula" / "2025-03-26").is_dir()

    def test_failed_resource_is_counted(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        pretalx.session.fail(
            PRETALX_URL + pretalx.resource_path("ABC123", "slides.pdf"), 404
        )

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(
            new_talks_count=1, failed_resources_count=1
        )
        assert _session(target_dir).is_dir()
        assert list(_session(target_dir).iterdir()) == []


class TestRerun:
    def test_second_run_is_noop(self, pretalx, client, config):
        _opening(pretalx)
        SyncEngine(client, config).run()

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == ZERO
        assert report.changed is False

    def test_failures_alone_are_not_a_change(self, pretalx, client, config):
        _opening(pretalx)
        SyncEngine(client, config).run()
        pretalx.session.fail(
            PRETALX_URL + pretalx.resource_path("ABC123", "slides.pdf"), 500
        )

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(failed_resources_count=1)
        assert report.changed is False

    def test_stale_file_is_updated(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        SyncEngine(client, config).run()
        slides = _session(target_dir) / "slides.pdf"
        slides.write_bytes(b"local edit")
        stale = LAST_MODIFIED - 86400
        os.utime(slides, (stale, stale))

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(updated_resources_count=1)
        assert slides.read_bytes() == b"ABC123:slides.pdf"

    def test_new_resource_on_existing_talk(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        SyncEngine(client, config).run()
        _opening(pretalx, resources=("slides.pdf", "paper.pdf"))
        # the talk now appears twice in the schedule; keep one slot
        pretalx.talks[EVENT] = pretalx.talks[EVENT][:1]
        pretalx.publish()

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(new_resources_count=1)
        assert (_session(target_dir) / "paper.pdf").is_file()


class TestMoves:
    def test_retitled_talk_is_moved(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        SyncEngine(client, config).run()
        pretalx.talks[EVENT][0]["title"] = "Welcome"
        pretalx.publish()

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(moved_talks_count=1)
        assert report.changed is True
        moved = _session(target_dir, "2025-06-06_1000_-_Welcome_-_ABC123")
        assert (moved / "slides.pdf").read_bytes() == b"ABC123:slides.pdf"
        assert not _session(target_dir).exists()

    def test_rescheduled_talk_keeps_files(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        SyncEngine(client, config).run()
        marker = _session(target_dir) / "local-notes.txt"
        marker.write_text("keep me")
        pretalx.talks[EVENT][0]["start"] = "2025-06-07T15:30:00+02:00"
        pretalx.publish()

        SyncEngine(client, config).run()

        moved = (
            target_dir
            / "Main_Hall"
            / "2025-06-07"
            / "2025-06-07_1530_-_Opening_Session_-_ABC123"
        )
        assert (moved / "local-notes.txt").read_text() == "keep me"
        # the emptied day directory is pruned
        assert not (target_dir / "Main_Hall" / "2025-06-06").exists()

    def test_renamed_room_is_pruned(self, pretalx, client, config, target_dir):
        _opening(pretalx)
        SyncEngine(client, config).run()
        pretalx.rooms[EVENT][0]["name"] = {"en": "Great Hall"}
        pretalx.publish()

        report = SyncEngine(client, config).run()

        assert report.total.moved_talks_count == 1
        assert _session(target_dir, room="Great_Hall").is_dir()
        assert not (target_dir / "Main_Hall").exists()

    def test_dot_prefixed_room_is_pruned(self, pretalx, client, config, target_dir):
        pretalx.add_room(2, ".NET Room")
        _opening(pretalx, room=2)
        SyncEngine(client, config).run()
        pretalx.talks[EVENT][0]["start"] = "2025-06-07T10:00:00+02:00"
        pretalx.publish()

        SyncEngine(client, config).run()

        room = target_dir / ".NET_Room"
        assert [p.name for p in room.iterdir()] == ["2025-06-07"]

    def test_first_stale_duplicate_is_reused(self, pretalx, client, config, target_dir):
        first = target_dir / "A_Room" / "2025-06-01" / "old_-_ABC123"
        second = target_dir / "B_Room" / "2025-06-01" / "older_-_ABC123"
        first.mkdir(parents=True)
        second.mkdir(parents=True)
        _opening(pretalx)

        report = SyncEngine(client, config).run()

        assert report.total.moved_talks_count == 1
        assert report.total.new_talks_count == 0
        assert not first.exists()
        assert second.is_dir()

    def test_rename_failure_aborts(self, pretalx, client, config):
        _opening(pretalx)
        SyncEngine(client, config).run()
        pretalx.talks[EVENT][0]["title"] = "Welcome"
        pretalx.publish()

        with patch(
            "room_assets.sync.engine.os.rename", side_effect=OSError("read-only")
        ):
            with pytest.raises(SessionMoveError, match="read-only") as exc_info:
                SyncEngine(client, config).run()
        assert isinstance(exc_info.value.__cause__, OSError)


class TestSplitTalk:
    """The same talk code scheduled in two slots."""

    def _schedule_twice(self, pretalx):
        _opening(pretalx)
        _opening(pretalx, start="2025-06-06T14:00:00+02:00")

    def test_two_directories(self, pretalx, client, config, target_dir):
        self._schedule_twice(pretalx)

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(
            new_talks_count=2, new_resources_count=2
        )
        day = target_dir / "Main_Hall" / "2025-06-06"
        assert sorted(p.name for p in day.iterdir()) == [
            OPENING,
            "2025-06-06_1400_-_Opening_Session_-_ABC123",
        ]

    def test_removed_slot_is_recreated_alone(self, pretalx, client, config, target_dir):
        self._schedule_twice(pretalx)
        SyncEngine(client, config).run()
        afternoon = _session(target_dir, "2025-06-06_1400_-_Opening_Session_-_ABC123")
        shutil.rmtree(_session(target_dir))

        report = SyncEngine(client, config).run()

        assert report.total.model_dump() == _counts(
            new_talks_count=1, new_resources_count=1
        )
        assert _session(target_dir).is_dir()
        assert (afternoon / "slides.pdf").is_file()


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_missing_target_dir(self, pretalx, client, make_config, tmp_path):
        config = make_config(target_dir=str(tmp_path / "missing"))
        with pytest.raises(TargetDirectoryMissing, match="does not exist"):
            SyncEngine(client, config).run()
        assert pretalx.session.calls == []

    def test_missing_submission_aborts_before_mkdir(
        self, pretalx, client, config, target_dir
    ):
        _opening(pretalx, submission=False)
        with pytest.raises(MissingSubmission, match="No submission for ABC123 found"):
            SyncEngine(client, config).run()
        assert list(target_dir.iterdir()) == []

    def test_no_matching_rooms(self, pretalx, client, make_config):
        _opening(pretalx)
        with pytest.raises(NoMatchingRooms):
            SyncEngine(client, make_config(rooms=["Basement"])).run()

    def test_file_in_place_of_room_directory(self, pretalx, client, config, target_dir):
        (target_dir / "Main_Hall").write_text("not a directory")
        _opening(pretalx)

        with pytest.raises(SessionCreateError, match="Failed to create") as exc_info:
            SyncEngine(client, config).run()
        assert isinstance(exc_info.value.__cause__, OSError)


# ---------------------------------------------------------------------------
# Nextcloud
# ---------------------------------------------------------------------------


class TestNextcloud:
    def test_runs_before_and_after(self, pretalx, client, config):
        _opening(pretalx)
        requests_seen: list[int] = []
        nextcloud = MagicMock(spec=NextcloudSync)
        nextcloud.run.side_effect = lambda: requests_seen.append(
            len(pretalx.session.calls)
        )

        SyncEngine(client, config, nextcloud=nextcloud).run()

        assert nextcloud.run.call_count == 2
        assert requests_seen[0] == 0
        assert requests_seen[1] == len(pretalx.session.calls)

    def test_not_run_when_target_missing(self, client, make_config, tmp_path):
        nextcloud = MagicMock(spec=NextcloudSync)
        config = make_config(target_dir=str(tmp_path / "missing"))
        with pytest.raises(TargetDirectoryMissing):
            SyncEngine(client, config, nextcloud=nextcloud).run()
        nextcloud.run.assert_not_called()


# ---------------------------------------------------------------------------
# reconcile_session
# ---------------------------------------------------------------------------


CEST = timezone(timedelta(hours=2))


class TestReconcileSession:
    def _talk(self) -> Talk:
        return Talk(
            code="ABC123",
            title="Opening Session",
            room=1,
            start=datetime(2025, 6, 6, 10, 0, tzinfo=CEST),
        )

    def test_created(self, client, config, target_dir):
        engine = SyncEngine(client, config)
        path, action = engine.reconcile_session(self._talk(), "Main Hall", {})
        assert action == SessionAction.CREATED
        assert path == _session(target_dir.resolve())
        assert path.is_dir()

    def test_unchanged_drops_target_from_queue(self, client, config, target_dir):
        engine = SyncEngine(client, config)
        target = _session(target_dir.resolve())
        target.mkdir(parents=True)
        other = target_dir.resolve() / "X" / "2025-01-01" / "x_-_ABC123"
        existing = {"ABC123": ExistingSession("ABC123", deque([other, target]))}

        path, action = engine.reconcile_session(self._talk(), "Main Hall", existing)

        assert action == SessionAction.UNCHANGED
        assert path == target
        assert list(existing["ABC123"].directories) == [other]

    def test_moved_pops_first(self, client, config, target_dir):
        engine = SyncEngine(client, config)
        source = target_dir.resolve() / "Old" / "2025-01-01" / "x_-_ABC123"
        source.mkdir(parents=True)
        existing = {"ABC123": ExistingSession("ABC123", deque([source]))}

        path, action = engine.reconcile_session(self._talk(), "Main Hall", existing)

        assert action == SessionAction.MOVED
        assert path.is_dir()
        assert not source.exists()
        assert existing["ABC123"].take() is None
