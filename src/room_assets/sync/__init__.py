"""Reconciliation engine for the room assets tree.

Public API for mirroring a Pretalx schedule into
``<target_dir>/<room>/<day>/<session>/<resources>`` and keeping it in sync
across runs.

Modules:

- ``engine``    -- ``SyncEngine``: orchestrates a full sync run.
- ``mapper``    -- ``PathMapper``: room names and canonical session paths.
- ``layout``    -- existing-session scanner and empty-directory cleanup.
- ``resources`` -- ``ResourceSynchronizer``: conditional resource downloads.
- ``sanitize``  -- ``sanitize_file_name``.
- ``models``    -- ``SessionAction``, ``SyncStatus``, ``SyncReport``.
- ``reporter``  -- human-readable and JSON report formatting.

Usage example
-------------
::

    from room_assets.config import load_config
    from room_assets.core.client import PretalxClient
    from room_assets.sync import SyncEngine, format_sync_report

    config = load_config(cli={"events": ["sotm2025"], "target_dir": "assets"})
    with PretalxClient(config.pretalx_url) as client:
        report = SyncEngine(client, config).run()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .layout import ExistingSession, cleanup, find_existing_sessions
from .mapper import PathMapper
from .models import SessionAction, SyncReport, SyncStatus, aggregate_statuses
from .reporter import format_sync_report, statistics_json
from .resources import ResourceSynchronizer, resolve_resource_url
from .sanitize import sanitize_file_name

__all__ = [
    "ExistingSession",
    "PathMapper",
    "ResourceSynchronizer",
    "SessionAction",
    "SyncEngine",
    "SyncReport",
    "SyncStatus",
    "aggregate_statuses",
    "cleanup",
    "find_existing_sessions",
    "format_sync_report",
    "resolve_resource_url",
    "sanitize_file_name",
    "statistics_json",
]
