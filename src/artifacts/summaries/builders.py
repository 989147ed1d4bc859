"""Summary builders for artifact generation."""

from __future__ import annotations

from typing import TYPE_CHECKING

from artifacts.models.artifacts.events import (
    EventEntry,
    EventsSummary,
    Implementation,
)
from parse.go_values import schema_of

if TYPE_CHECKING:
    from collections.abc import Iterable

    from artifacts.models.artifacts.tracking import PropertySchema, TrackingRecord


def record_property_schemas(record: TrackingRecord) -> dict[str, PropertySchema]:
    """Property name to schema for one record, in entry order."""
    return {entry.key: schema_of(entry.value) for entry in record.properties}


def build_events_summary(records: Iterable[TrackingRecord]) -> EventsSummary:
    """Aggregate match records into a tracking plan keyed by event name.

    Records are expected in artifact order. Properties of later
    implementations override earlier ones with the same name. Records
    without a resolved string event name are only counted.
    """
    summary = EventsSummary()

    for record in records:
        event_name = record.event_name
        if event_name is None or event_name.kind != "string":
            summary.unresolved_call_sites += 1
            continue

        entry = summary.events.setdefault(str(event_name.value), EventEntry())
        entry.implementations.append(
            Implementation(
                path=record.src_span.path,
                line=record.src_span.start_line,
                function=record.enclosing_function,
                destination=record.source,
            )
        )
        entry.properties.update(record_property_schemas(record))

    return summary


__all__ = ["build_events_summary", "record_property_schemas"]
