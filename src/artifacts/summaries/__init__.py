"""Summary helpers for trackscan artifacts."""

from artifacts.summaries.builders import (
    build_events_summary,
    record_property_schemas,
)

__all__ = ["build_events_summary", "record_property_schemas"]
