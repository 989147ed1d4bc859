"""Tracking call-site artifact generator."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from artifacts.utils import _get_output_dir_name, _write_jsonl
from contract.artifacts import DIAGNOSTICS_JSONL, TRACKING_CALLS_JSONL
from scan.runner import scan_repository

if TYPE_CHECKING:
    from pathlib import Path

    from rules.config import TrackScanConfig


class TrackingCallsGenerator:
    """Generates tracking_calls.jsonl and diagnostics.jsonl from Go sources."""

    @property
    def name(self) -> str:
        """Generator name for logging and identification."""
        return "tracking_calls"

    def generate(
        self,
        root: Path,
        out_dir: Path,
        config: TrackScanConfig | None = None,
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Generate tracking call and diagnostics artifacts."""
        out_dir.mkdir(parents=True, exist_ok=True)

        result = scan_repository(
            root,
            config,
            output_dir_name=_get_output_dir_name(out_dir, root),
        )

        _write_jsonl(out_dir / TRACKING_CALLS_JSONL, result.records)
        _write_jsonl(out_dir / DIAGNOSTICS_JSONL, result.diagnostics)

        record_dicts = [record.model_dump() for record in result.records]
        return record_dicts, {
            "files_scanned": result.files_scanned,
            "diagnostic_count": len(result.diagnostics),
        }


__all__ = ["DIAGNOSTICS_JSONL", "TRACKING_CALLS_JSONL", "TrackingCallsGenerator"]
