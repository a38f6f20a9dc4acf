"""Sync report formatting functions.

- ``format_sync_report`` -- human-readable post-sync summary.
- ``statistics_json`` -- the aggregated counters as canonical JSON, as
  printed by ``--print-statistics``.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncReport, SyncStatus

_LABELS = (
    ("new_talks_count", "New talks"),
    ("moved_talks_count", "Moved talks"),
    ("new_resources_count", "New resources"),
    ("updated_resources_count", "Updated resources"),
    ("failed_resources_count", "Failed resources"),
)


def _status_lines(status: SyncStatus, indent: str = "  ") -> list[str]:
    counts = status.model_dump()
    width = max(len(label) for _, label in _LABELS) + 1
    return [
        f"{indent}{(label + ':').ljust(width)} {counts[key]}"
        for key, label in _LABELS
    ]


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Per-event sections are only shown when more than one event was synced;
    the totals are always shown.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["Sync report"]
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    if len(report.events) > 1:
        for event, status in report.events.items():
            lines.append(f"Event {event}:")
            lines.extend(_status_lines(status))
            lines.append("")

    lines.append("Total:")
    lines.extend(_status_lines(report.total))
    lines.append("")
    lines.append("Changes detected." if report.changed else "No changes.")

    return "\n".join(lines)


def statistics_json(status: SyncStatus) -> str:
    """Pretty, key-sorted JSON of the counters in *status*."""
    return json.dumps(status.model_dump(), indent=2, sort_keys=True)

