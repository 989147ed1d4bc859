from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from contract.artifacts import (
    ARTIFACT_SCHEMA_VERSION,
    ARTIFACT_SPECS,
    DIAGNOSTICS_JSONL,
    EVENTS_JSON,
    TRACKING_CALLS_JSONL,
    build_record_id,
)
from contract.validation import (
    ValidationMessage,
    ValidationResult,
    _jsonl_model_for_artifact,
    validate_artifacts,
)


def _tracking_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "schema_version": ARTIFACT_SCHEMA_VERSION,
        "record_id": build_record_id("main.go", 29, 2, "segment"),
        "source": "segment",
        "callee_expr": "client.Enqueue",
        "enclosing_function": "segmentTrack",
        "src_span": {
            "path": "main.go",
            "start_line": 29,
            "start_col": 2,
            "end_line": 35,
            "end_col": 4,
        },
        "event_name": {"kind": "string", "value": "Signed Up"},
        "properties": [
            {"key": "plan", "value": {"kind": "string", "value": "Enterprise"}}
        ],
        "status": "resolved",
        "evidence": {"strategy": "client_binding"},
    }
    record.update(overrides)
    return record


def _write_valid_artifacts(d: Path) -> None:
    """Write minimal valid tracking artifacts to directory d."""
    d.mkdir(parents=True, exist_ok=True)

    (d / TRACKING_CALLS_JSONL).write_text(
        json.dumps(_tracking_record()) + "\n", encoding="utf-8"
    )

    diagnostic = {
        "schema_version": ARTIFACT_SCHEMA_VERSION,
        "kind": "parse_error",
        "path": "broken.go",
        "line": 3,
        "col": 1,
        "message": "Syntax error",
    }
    (d / DIAGNOSTICS_JSONL).write_text(json.dumps(diagnostic) + "\n", encoding="utf-8")

    events = {
        "schema_version": ARTIFACT_SCHEMA_VERSION,
        "events": {
            "Signed Up": {
                "implementations": [
                    {
                        "path": "main.go",
                        "line": 29,
                        "function": "segmentTrack",
                        "destination": "segment",
                    }
                ],
                "properties": {"plan": {"type": "string"}},
            }
        },
        "unresolved_call_sites": 0,
    }
    (d / EVENTS_JSON).write_text(json.dumps(events), encoding="utf-8")


def _messages_contain(messages: list[ValidationMessage], needle: str) -> bool:
    """Return True when any validation message contains the given substring."""
    return any(needle in message.message for message in messages)


# Group 1: Data class tests


def test_validation_message_location_with_line() -> None:
    """ValidationMessage.location returns path:line when line is present."""
    msg = ValidationMessage("tracking_calls", Path("x.jsonl"), "bad", line=7)
    assert msg.location() == "x.jsonl:7"


def test_validation_message_to_dict() -> None:
    """ValidationMessage.to_dict returns the expected payload."""
    msg = ValidationMessage("tracking_calls", Path("x.jsonl"), "bad", line=3)
    assert msg.to_dict() == {
        "artifact": "tracking_calls",
        "path": "x.jsonl",
        "line": 3,
        "message": "bad",
    }


def test_validation_result_not_ok_when_errors() -> None:
    """ValidationResult.ok is false when at least one error exists."""
    assert ValidationResult().ok is True
    result = ValidationResult(errors=[ValidationMessage("x", Path("a"), "boom")])
    assert result.ok is False


def test_record_id_format() -> None:
    assert (
        build_record_id("pkg/a.go", 41, 2, "mixpanel", 1)
        == "track:pkg/a.go@L41:C2:mixpanel:1"
    )


# Group 2: Directory handling


def test_missing_directory() -> None:
    """validate_artifacts reports a missing artifacts directory."""
    result = validate_artifacts(Path("/nonexistent"))
    assert result.ok is False
    assert _messages_contain(result.errors, "Artifacts directory does not exist")


def test_missing_artifact_files(tmp_path: Path) -> None:
    """validate_artifacts reports each required artifact when directory is empty."""
    artifacts_dir = tmp_path / "artifacts"
    artifacts_dir.mkdir()

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert len(result.errors) == len(ARTIFACT_SPECS)
    assert all("Required artifact file is missing" in m.message for m in result.errors)


def test_valid_artifacts_pass(tmp_path: Path) -> None:
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)

    result = validate_artifacts(artifacts_dir)

    assert result.ok is True
    assert result.errors == []
    assert result.warnings == []


def test_jsonl_model_for_unknown_artifact() -> None:
    with pytest.raises(ValueError, match="Unknown jsonl artifact"):
        _jsonl_model_for_artifact("events")


# Group 3: JSONL validation


def test_jsonl_invalid_json(tmp_path: Path) -> None:
    """Invalid JSON in JSONL produces a line-level JSON error."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / TRACKING_CALLS_JSONL).write_text("{not-json}\n", encoding="utf-8")

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Invalid JSON")
    assert result.errors[0].line == 1


def test_jsonl_unknown_status_fails_schema(tmp_path: Path) -> None:
    """Records outside the closed status set are rejected."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / TRACKING_CALLS_JSONL).write_text(
        json.dumps(_tracking_record(status="guessed")) + "\n", encoding="utf-8"
    )

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Schema validation failed")


def test_jsonl_missing_schema_version_lenient_then_strict(tmp_path: Path) -> None:
    """Missing schema_version is a warning, or an error in strict mode."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    record = _tracking_record()
    del record["schema_version"]
    payload = "\n".join([json.dumps(record), json.dumps(record)])
    (artifacts_dir / TRACKING_CALLS_JSONL).write_text(payload + "\n", encoding="utf-8")

    lenient = validate_artifacts(artifacts_dir)
    assert lenient.ok is True
    warnings = [m for m in lenient.warnings if m.artifact == "tracking_calls"]
    assert len(warnings) == 1
    assert "Missing schema_version" in warnings[0].message

    strict = validate_artifacts(artifacts_dir, strict_schema_version=True)
    assert strict.ok is False
    assert _messages_contain(strict.errors, "Missing schema_version")


def test_jsonl_wrong_schema_version(tmp_path: Path) -> None:
    """Wrong schema_version produces a schema mismatch error."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / DIAGNOSTICS_JSONL).write_text(
        json.dumps(
            {"schema_version": 999, "kind": "read_error", "path": "a.go", "message": "x"}
        )
        + "\n",
        encoding="utf-8",
    )

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Schema version mismatch")


def test_jsonl_os_error(tmp_path: Path) -> None:
    """JSONL file open OSError is surfaced as a validation error."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    target = artifacts_dir / TRACKING_CALLS_JSONL
    original_open = Path.open

    def _patched_open(self: Path, *args: Any, **kwargs: Any) -> Any:
        if self == target and args and args[0] == "rb":
            raise OSError("boom")
        return original_open(self, *args, **kwargs)

    with patch.object(Path, "open", _patched_open):
        result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Failed to read file")


def test_empty_jsonl_is_valid(tmp_path: Path) -> None:
    """A scan with no findings writes empty JSONL files, which validate."""
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / TRACKING_CALLS_JSONL).write_text("", encoding="utf-8")
    (artifacts_dir / DIAGNOSTICS_JSONL).write_text("\n\n", encoding="utf-8")

    result = validate_artifacts(artifacts_dir)

    assert result.ok is True


# Group 4: events.json


def test_events_invalid_json(tmp_path: Path) -> None:
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / EVENTS_JSON).write_text("{", encoding="utf-8")

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Invalid JSON")


def test_events_non_dict(tmp_path: Path) -> None:
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    (artifacts_dir / EVENTS_JSON).write_text("[]", encoding="utf-8")

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Expected JSON object")


def test_events_bad_property_schema(tmp_path: Path) -> None:
    artifacts_dir = tmp_path / "artifacts"
    _write_valid_artifacts(artifacts_dir)
    bad = {
        "schema_version": ARTIFACT_SCHEMA_VERSION,
        "events": {"x": {"properties": {"p": {"type": "decimal"}}}},
    }
    (artifacts_dir / EVENTS_JSON).write_text(json.dumps(bad), encoding="utf-8")

    result = validate_artifacts(artifacts_dir)

    assert result.ok is False
    assert _messages_contain(result.errors, "Schema validation failed")
