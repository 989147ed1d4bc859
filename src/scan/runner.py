"""Repository-wide tracking scan: parallel per-file extraction plus merge."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from artifacts.models.artifacts.diagnostics import DiagnosticRecord
from parse.role_inference import assign_custom_roles
from parse.treesitter_tracking import FileScan, extract_tracking_calls
from rules.config import TrackScanConfig
from scan.files import find_source_files

if TYPE_CHECKING:
    from pathlib import Path

    from artifacts.models.artifacts.tracking import TrackingRecord
    from rules.custom_signatures import CustomFunctionRegistry

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    records: list[TrackingRecord] = field(default_factory=list)
    diagnostics: list[DiagnosticRecord] = field(default_factory=list)
    files_scanned: int = 0


def record_sort_key(record: TrackingRecord) -> tuple[str, int, int, int, str]:
    span = record.src_span
    return (span.path, span.start_line, span.start_col, record.event_index, record.source)


def diagnostic_sort_key(diagnostic: DiagnosticRecord) -> tuple[str, int, int, str]:
    return (
        diagnostic.path,
        diagnostic.line or 0,
        diagnostic.col or 0,
        diagnostic.kind,
    )


def _scan_file(
    file_path: Path,
    root: Path,
    registry: CustomFunctionRegistry,
) -> FileScan:
    relative_path = file_path.relative_to(root).as_posix()
    try:
        return extract_tracking_calls(file_path, relative_path, registry=registry)
    except Exception as exc:
        logger.exception("Failed to analyse %s", relative_path)
        return FileScan(
            path=relative_path,
            diagnostics=[
                DiagnosticRecord(
                    kind="parse_error",
                    path=relative_path,
                    message=f"Analysis failed: {exc}",
                )
            ],
        )


def scan_repository(
    root: Path,
    config: TrackScanConfig | None = None,
    *,
    output_dir_name: str | None = None,
) -> ScanResult:
    """Scan every Go file under ``root`` for analytics tracking calls.

    Files are analysed concurrently (bounded by ``config.max_workers``), each
    worker with its own parser. Results are merged in path order, custom call
    sites get their roles in (path, source) order, and the final record list
    is sorted by (path, line, col, event_index, source) so that output is
    independent of scheduling.
    """
    if config is None:
        config = TrackScanConfig()
    if output_dir_name is None:
        output_dir_name = config.output_dir.split("/")[0]

    files = list(
        find_source_files(
            root,
            output_dir=output_dir_name,
            include_patterns=config.include,
            exclude_patterns=config.exclude,
            nested_gitignore=config.nested_gitignore,
        )
    )
    registry = config.custom_registry()
    logger.info("Scanning %d Go files under %s", len(files), root)

    max_workers = max(1, min(config.max_workers, len(files)))
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        scans = list(
            executor.map(lambda path: _scan_file(path, root, registry), files)
        )

    result = ScanResult(files_scanned=len(scans))
    for scan in scans:
        result.records.extend(scan.records)
        result.diagnostics.extend(scan.diagnostics)

    custom_records, custom_diagnostics = assign_custom_roles(scans)
    result.records.extend(custom_records)
    result.diagnostics.extend(custom_diagnostics)

    result.records.sort(key=record_sort_key)
    result.diagnostics.sort(key=diagnostic_sort_key)
    logger.info(
        "Found %d tracking call records and %d diagnostics",
        len(result.records),
        len(result.diagnostics),
    )
    return result


__all__ = [
    "ScanResult",
    "diagnostic_sort_key",
    "record_sort_key",
    "scan_repository",
]
