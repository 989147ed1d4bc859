"""Artifact models exposed at the contract boundary."""

from artifacts.models.artifacts.diagnostics import DiagnosticRecord
from artifacts.models.artifacts.events import EventsSummary
from artifacts.models.artifacts.tracking import TrackingRecord

__all__ = ["DiagnosticRecord", "EventsSummary", "TrackingRecord"]
