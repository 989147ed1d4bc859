from __future__ import annotations

import json
import shutil
from pathlib import Path

import pytest

from cli import main
from contract.artifacts import DIAGNOSTICS_JSONL, EVENTS_JSON, TRACKING_CALLS_JSONL
from rules.config import load_config


def _write_minimal_repo(root: Path) -> None:
    (root / "cmd").mkdir(parents=True, exist_ok=True)
    (root / "go.mod").write_text("module example.com/minimal\n", encoding="utf-8")
    (root / "cmd" / "main.go").write_text(
        """package main

import "github.com/posthog/posthog-go"

func main() {
	client := posthog.New("key")
	client.Enqueue(posthog.Capture{
		DistinctId: "user-1",
		Event:      "App Opened",
		Properties: posthog.NewProperties().Set("build", 12),
	})
}
""",
        encoding="utf-8",
    )


def _copy_go_repo_fixture(root: Path) -> None:
    fixture_repo = Path(__file__).parent / "fixtures" / "go_repo"
    shutil.copytree(fixture_repo, root)


def test_cli_generate_smoke(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)

    out_dir = tmp_path / "artifacts"
    exit_code = main(["generate", str(repo_root), "--out-dir", str(out_dir)])

    assert exit_code == 0
    assert sorted(p.name for p in out_dir.iterdir()) == sorted(
        [TRACKING_CALLS_JSONL, DIAGNOSTICS_JSONL, EVENTS_JSON]
    )
    events = json.loads((out_dir / EVENTS_JSON).read_text(encoding="utf-8"))
    assert events["events"]["App Opened"]["properties"] == {
        "build": {"type": "number"}
    }


def test_generate_default_output_dir_from_fixture(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    _copy_go_repo_fixture(repo_root)

    assert not (repo_root / ".trackscan").exists(), "output dir must not pre-exist"
    exit_code = main(["generate", str(repo_root)])

    default_out_dir = repo_root / ".trackscan"
    assert exit_code == 0
    assert (default_out_dir / TRACKING_CALLS_JSONL).exists()
    assert main(["validate", str(repo_root)]) == 0
    assert main(["verify", str(repo_root)]) == 0


def test_generate_stdout_prints_events_summary(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    _copy_go_repo_fixture(repo_root)

    exit_code = main(
        ["generate", str(repo_root), "--out-dir", str(tmp_path / "out"), "--stdout"]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["unresolved_call_sites"] == 0
    assert "Signed Up" in summary["events"]
    assert "custom_event0" in summary["events"]


def test_generate_custom_function_flag(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "main.go").write_text(
        """package main

func main() {
	emit("acct-9", "Invoice Paid", map[string]any{"amount": 12.5})
}
""",
        encoding="utf-8",
    )

    exit_code = main(
        [
            "generate",
            str(repo_root),
            "--out-dir",
            str(tmp_path / "out"),
            "--stdout",
            "--custom-function",
            "emit(userId, EVENT_NAME, PROPERTIES)",
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["events"]["Invoice Paid"]["implementations"] == [
        {"path": "main.go", "line": 4, "function": "main", "destination": "custom"}
    ]


def test_generate_invalid_custom_function_is_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)

    exit_code = main(
        ["generate", str(repo_root), "--custom-function", "emit(userId)"]
    )

    assert exit_code == 2
    assert "config error:" in capsys.readouterr().err


def test_generate_invalid_config_file_is_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)
    (repo_root / "trackscan.toml").write_text("unknown = 1\n", encoding="utf-8")

    exit_code = main(["generate", str(repo_root)])

    assert exit_code == 2
    assert "config error:" in capsys.readouterr().err


def test_cli_validate_default_artifacts_dir_reports_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)
    default_artifacts_dir = (repo_root / load_config(repo_root).output_dir).resolve()

    monkeypatch.chdir(repo_root)
    exit_code = main(["validate"])

    assert exit_code == 1
    captured = capsys.readouterr()
    assert f"{default_artifacts_dir}:" in captured.err
    assert "Artifacts directory does not exist." in captured.err


def test_cli_validate_includes_path_and_message(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    artifacts_dir = tmp_path / "missing-artifacts"

    exit_code = main(["validate", str(tmp_path), "--artifacts-dir", str(artifacts_dir)])

    assert exit_code == 1
    captured = capsys.readouterr()
    assert f"{artifacts_dir}:" in captured.err
    assert "Artifacts directory does not exist." in captured.err


def test_cli_verify_missing_artifacts_dir_reports_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)

    artifacts_dir = tmp_path / "missing-artifacts"
    exit_code = main(["verify", str(repo_root), "--artifacts-dir", str(artifacts_dir)])

    assert exit_code == 2
    captured = capsys.readouterr()
    assert f"artifacts-dir: {artifacts_dir}" in captured.err
    assert "Artifacts directory does not exist" in captured.err


def test_cli_verify_reports_mismatch(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    _write_minimal_repo(repo_root)
    out_dir = tmp_path / "out"
    assert main(["generate", str(repo_root), "--out-dir", str(out_dir)]) == 0

    (out_dir / EVENTS_JSON).write_text("{}", encoding="utf-8")
    exit_code = main(["verify", str(repo_root), "--artifacts-dir", str(out_dir)])

    assert exit_code == 1
    assert f"mismatches: {EVENTS_JSON}" in capsys.readouterr().err


def test_generate_survives_integers_beyond_64_bits(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "main.go").write_text(
        """package main

import "github.com/posthog/posthog-go"

func main() {
	client := posthog.New("key")
	client.Enqueue(posthog.Capture{
		DistinctId: "user-1",
		Event:      "Big Number",
		Properties: posthog.NewProperties().
			Set("n", float64(123456789012345678901234567890)),
	})
}
""",
        encoding="utf-8",
    )
    out_dir = tmp_path / "out"

    exit_code = main(["generate", str(repo_root), "--out-dir", str(out_dir)])

    assert exit_code == 0
    [line] = (out_dir / TRACKING_CALLS_JSONL).read_text(encoding="utf-8").splitlines()
    record = json.loads(line)
    assert record["status"] == "partial"
    assert record["properties"][0]["value"]["kind"] == "unresolved"
    events = json.loads((out_dir / EVENTS_JSON).read_text(encoding="utf-8"))
    assert events["events"]["Big Number"]["properties"] == {"n": {"type": "number"}}
