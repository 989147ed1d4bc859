"""Stable contract surface for trackscan artifacts.

Treat these exports as the authoritative boundary for consumers of the
generated artifacts.
"""

from contract.artifacts import (
    ARTIFACT_SCHEMA_VERSION,
    ARTIFACT_SPECS,
    DIAGNOSTICS_JSONL,
    EVENTS_JSON,
    TRACKING_CALLS_JSONL,
    ArtifactSpec,
)


def __getattr__(name: str) -> object:
    if name in {"DiagnosticRecord", "EventsSummary", "TrackingRecord"}:
        from contract.models import DiagnosticRecord, EventsSummary, TrackingRecord

        return {
            "DiagnosticRecord": DiagnosticRecord,
            "EventsSummary": EventsSummary,
            "TrackingRecord": TrackingRecord,
        }[name]

    if name in {"ValidationMessage", "ValidationResult", "validate_artifacts"}:
        from contract.validation import (
            ValidationMessage,
            ValidationResult,
            validate_artifacts,
        )

        return {
            "ValidationMessage": ValidationMessage,
            "ValidationResult": ValidationResult,
            "validate_artifacts": validate_artifacts,
        }[name]

    msg = f"module 'contract' has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "ARTIFACT_SCHEMA_VERSION",
    "ARTIFACT_SPECS",
    "DIAGNOSTICS_JSONL",
    "EVENTS_JSON",
    "TRACKING_CALLS_JSONL",
    "ArtifactSpec",
    "DiagnosticRecord",
    "EventsSummary",
    "TrackingRecord",
    "ValidationMessage",
    "ValidationResult",
    "validate_artifacts",
]
