from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from artifacts.generators import EventsGenerator, TrackingCallsGenerator
from contract.artifacts import DIAGNOSTICS_JSONL, EVENTS_JSON, TRACKING_CALLS_JSONL
from rules.config import load_config, resolve_output_dir

if TYPE_CHECKING:
    from pathlib import Path

    from rules.config import TrackScanConfig

logger = logging.getLogger(__name__)


def generate_all_artifacts(
    *,
    root: Path,
    out_dir: Path | None = None,
    config: TrackScanConfig | None = None,
) -> dict[str, object]:
    """Generate deterministic tracking artifacts for a repository.

    Args:
        root: Root directory of the repository to analyze
        out_dir: Optional output directory for generated artifacts
        config: Optional configuration for custom functions and file filters

    Returns:
        Dictionary with counts, the events summary, and the list of
        generated artifact paths.
    """
    if config is None:
        config = load_config(root)

    if out_dir is None:
        out_dir = resolve_output_dir(root, config.output_dir)

    tracking_gen = TrackingCallsGenerator()
    record_dicts, scan_stats = tracking_gen.generate(
        root=root,
        out_dir=out_dir,
        config=config,
    )
    logger.info("Wrote %d records to %s", len(record_dicts), out_dir)

    events_gen = EventsGenerator()
    _, events_summary = events_gen.generate(root=root, out_dir=out_dir)

    artifacts_list = [
        TRACKING_CALLS_JSONL,
        DIAGNOSTICS_JSONL,
        EVENTS_JSON,
    ]

    return {
        "record_count": len(record_dicts),
        "event_count": len(events_summary["events"]),
        "unresolved_call_sites": events_summary["unresolved_call_sites"],
        "diagnostic_count": scan_stats["diagnostic_count"],
        "files_scanned": scan_stats["files_scanned"],
        "events_summary": events_summary,
        "artifacts": [str(out_dir / name) for name in artifacts_list],
    }
