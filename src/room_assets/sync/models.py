"""Data contracts for the reconciliation engine.

- ``SessionAction``: what happened to a talk's session directory.
- ``SyncStatus``: outcome counters for a talk, an event or a whole run.
- ``aggregate_statuses``: sum the ``*_count`` keys of two status dicts.
- ``SyncReport``: per-event statuses of a full run.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum

from pydantic import BaseModel

COUNT_SUFFIX = "_count"

# Counters that mean the target tree differs from the previous run.
# failed_resources_count alone does not.
CHANGE_INDICATORS = (
    "new_talks_count",
    "new_resources_count",
    "updated_resources_count",
    "moved_talks_count",
)


class SessionAction(str, Enum):
    """Outcome of reconciling one talk's session directory."""

    CREATED = "created"
    MOVED = "moved"
    UNCHANGED = "unchanged"


def aggregate_statuses(
    aggregate: Mapping[str, object], new: Mapping[str, object]
) -> dict[str, int]:
    """Sum the ``*_count`` values of *aggregate* and *new*.

    Keys not ending in ``_count`` are dropped from both sides, so the result
    does not depend on argument order.  Neither argument is modified.
    """
    result = {
        key: value
        for key, value in aggregate.items()
        if key.endswith(COUNT_SUFFIX)
    }
    for key, value in new.items():
        if key.endswith(COUNT_SUFFIX):
            result[key] = int(result.get(key, 0)) + int(value)  # type: ignore[arg-type]
    return result  # type: ignore[return-value]


class SyncStatus(BaseModel):
    """Counters for one unit of work.  Counters only ever go up."""

    new_talks_count: int = 0
    moved_talks_count: int = 0
    new_resources_count: int = 0
    updated_resources_count: int = 0
    failed_resources_count: int = 0

    def merge(self, other: SyncStatus) -> SyncStatus:
        """Return a new status holding the sum of both."""
        return SyncStatus.model_validate(
            aggregate_statuses(self.model_dump(), other.model_dump())
        )

    @property
    def changed(self) -> bool:
        counts = self.model_dump()
        return any(counts[key] > 0 for key in CHANGE_INDICATORS)

    @classmethod
    def for_action(cls, action: SessionAction) -> SyncStatus:
        """Status with the talk counter matching *action* set."""
        if action == SessionAction.CREATED:
            return cls(new_talks_count=1)
        if action == SessionAction.MOVED:
            return cls(moved_talks_count=1)
        return cls()


class SyncReport(BaseModel):
    """Aggregate report for a full sync run.

    Attributes:
        events: Status per event slug, in processing order.
        started_at: ISO 8601 timestamp when the run started.
        completed_at: ISO 8601 timestamp when the run completed.
    """

    events: dict[str, SyncStatus] = {}
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def total(self) -> SyncStatus:
        total = SyncStatus()
        for status in self.events.values():
            total = total.merge(status)
        return total

    @property
    def changed(self) -> bool:
        return self.total.changed
