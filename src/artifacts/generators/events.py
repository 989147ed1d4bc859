"""Tracking plan generator projecting tracking_calls.jsonl into events.json."""

from __future__ import annotations

from pathlib import Path  # noqa: TC003
from typing import Any

from artifacts.models.artifacts.tracking import TrackingRecord
from artifacts.summaries.builders import build_events_summary
from artifacts.utils import _load_jsonl, _write_json
from contract.artifacts import EVENTS_JSON, TRACKING_CALLS_JSONL


class EventsGenerator:
    """Generator for the per-event tracking plan."""

    @property
    def name(self) -> str:
        """Generator name for logging and identification."""
        return "events"

    def generate(
        self,
        root: Path,
        out_dir: Path,
        **kwargs: Any,
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Generate events.json from an existing tracking_calls.jsonl."""
        tracking_calls_path = out_dir / TRACKING_CALLS_JSONL
        if not tracking_calls_path.exists():
            msg = f"{TRACKING_CALLS_JSONL} not found in {out_dir}"
            raise FileNotFoundError(msg)

        records = [
            TrackingRecord.model_validate(record)
            for record in _load_jsonl(tracking_calls_path)
        ]
        # Property schemas list only the keys they carry.
        summary = build_events_summary(records).model_dump(exclude_none=True)

        _write_json(out_dir / EVENTS_JSON, summary)

        return [], summary


__all__ = ["EVENTS_JSON", "EventsGenerator"]
