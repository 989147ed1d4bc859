"""Tracking-plan models aggregating match records by event name."""

from __future__ import annotations

from pydantic import BaseModel, Field

from artifacts.models.artifacts.tracking import PropertySchema
from contract.artifacts import ARTIFACT_SCHEMA_VERSION


class Implementation(BaseModel):
    """One call site implementing an event."""

    path: str
    line: int
    function: str
    destination: str


class EventEntry(BaseModel):
    """All implementations of one event and the union of their properties."""

    implementations: list[Implementation] = Field(default_factory=list)
    properties: dict[str, PropertySchema] = Field(default_factory=dict)


class EventsSummary(BaseModel):
    """Schema for events.json."""

    schema_version: int = Field(default=ARTIFACT_SCHEMA_VERSION)
    events: dict[str, EventEntry] = Field(default_factory=dict)
    unresolved_call_sites: int = 0


__all__ = ["EventEntry", "EventsSummary", "Implementation"]
