"""Artifact contract definitions.

This module defines the stable boundary between trackscan and whatever
reporting layer consumes its output: filenames, formats and record ids.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

# Artifact schema version for trackscan artifacts.
ARTIFACT_SCHEMA_VERSION = 1

# Artifact filename constants (stable contract identifiers).
TRACKING_CALLS_JSONL = "tracking_calls.jsonl"
DIAGNOSTICS_JSONL = "diagnostics.jsonl"
EVENTS_JSON = "events.json"


@dataclass(frozen=True)
class ArtifactSpec:
    """Specification for a contract artifact."""

    filename: str
    format: str
    required_fields_note: str


# ---------------------------------------------------------------------------
# Deterministic record_id + expr normalization
# ---------------------------------------------------------------------------
# Canonical record_id format: track:{path}@L{line}:C{col}:{source}:{index}
# - path: POSIX relative path (forward slashes, no ./ prefix)
# - line/col: 1-based integers
# - source: provider id or "custom"
# - index: position of the event inside a batch call (0 for single events)

_WHITESPACE_RUN = re.compile(r"\s+")


def normalize_expr(raw_expr: str) -> str:
    """Normalize an expression string for embedding in records.

    Rules:
    - Strip leading/trailing whitespace.
    - Collapse internal whitespace runs (including newlines) to a single space.
    """
    return _WHITESPACE_RUN.sub(" ", raw_expr.strip())


def build_record_id(
    path: str,
    start_line: int,
    start_col: int,
    source: str,
    event_index: int = 0,
) -> str:
    """Build a deterministic record_id following the contract format."""
    return f"track:{path}@L{start_line}:C{start_col}:{source}:{event_index}"


ARTIFACT_SPECS: dict[str, ArtifactSpec] = {
    "tracking_calls": ArtifactSpec(
        filename=TRACKING_CALLS_JSONL,
        format="jsonl",
        required_fields_note="TrackingRecord fields required by contract.",
    ),
    "diagnostics": ArtifactSpec(
        filename=DIAGNOSTICS_JSONL,
        format="jsonl",
        required_fields_note="DiagnosticRecord fields required by contract.",
    ),
    "events": ArtifactSpec(
        filename=EVENTS_JSON,
        format="json",
        required_fields_note="EventsSummary fields required by contract.",
    ),
}
