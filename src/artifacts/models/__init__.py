"""Model namespace for trackscan artifact schemas."""

from artifacts.models.artifacts.diagnostics import DiagnosticRecord
from artifacts.models.artifacts.events import (
    EventEntry,
    EventsSummary,
    Implementation,
)
from artifacts.models.artifacts.tracking import (
    IncidentalArg,
    MatchEvidence,
    PropertyEntry,
    PropertySchema,
    SourceSpan,
    TrackingRecord,
    Value,
)

__all__ = [
    "DiagnosticRecord",
    "EventEntry",
    "EventsSummary",
    "Implementation",
    "IncidentalArg",
    "MatchEvidence",
    "PropertyEntry",
    "PropertySchema",
    "SourceSpan",
    "TrackingRecord",
    "Value",
]
