"""Pydantic models for the Pretalx data the sync consumes.

Only the fields the sync needs are declared; everything else in the
Pretalx payloads is ignored.  All models are frozen: a fetched schedule is
a point-in-time snapshot for the whole run.

- ``Room``: schedule room with its localized names.
- ``Talk``: schedule slot.  Breaks have no ``code`` and are skipped.
- ``Resource`` / ``Submission``: submission with its attached resources.
- ``Schedule``: rooms and talks of one event.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator


class Room(BaseModel):
    """A schedule room.

    Attributes:
        id: Pretalx room id, referenced by ``Talk.room``.
        name: Mapping of language tag to localized display name.
    """

    id: int | str
    name: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @field_validator("name", mode="before")
    @classmethod
    def _plain_name(cls, value: object) -> object:
        # Single-language instances may send a plain string.
        if isinstance(value, str):
            return {"": value}
        return value


class Talk(BaseModel):
    """A scheduled slot.

    The same submission ``code`` can appear in several slots (a talk given
    twice); each slot gets its own session directory.
    """

    code: str | None = None
    title: str = ""
    room: int | str | None = None
    start: datetime

    model_config = {"frozen": True}

    @field_validator("title", mode="before")
    @classmethod
    def _plain_title(cls, value: object) -> object:
        # Breaks carry localized titles; use the first translation.
        if isinstance(value, dict):
            return next(iter(value.values()), "")
        if value is None:
            return ""
        return value


class Resource(BaseModel):
    resource: str
    description: str | None = None

    model_config = {"frozen": True}


class Submission(BaseModel):
    code: str
    title: str = ""
    resources: list[Resource] = Field(default_factory=list)

    model_config = {"frozen": True}


class Schedule(BaseModel):
    rooms: list[Room] = Field(default_factory=list)
    talks: list[Talk] = Field(default_factory=list)

    model_config = {"frozen": True}
