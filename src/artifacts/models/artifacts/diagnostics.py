"""Diagnostic models for per-file problems surfaced during a scan."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from contract.artifacts import ARTIFACT_SCHEMA_VERSION

DiagnosticKind = Literal["read_error", "parse_error", "ambiguous_signature"]


class DiagnosticRecord(BaseModel):
    """Schema for diagnostics.jsonl records.

    Diagnostics never abort a scan; they sit beside the match records so the
    caller can see which files or call sites were only partially analysed.
    """

    schema_version: int = Field(default=ARTIFACT_SCHEMA_VERSION)
    kind: DiagnosticKind
    path: str
    line: int | None = None
    col: int | None = None
    function: str | None = None
    message: str


__all__ = ["DiagnosticKind", "DiagnosticRecord"]
