from __future__ import annotations

from pathlib import Path

import pytest

from rules.config import (
    ConfigError,
    TrackScanConfig,
    load_config,
    resolve_output_dir,
    with_custom_functions,
)


def _write_config(repo_root: Path, toml_content: str) -> None:
    (repo_root / "trackscan.toml").write_text(toml_content, encoding="utf-8")


def test_unknown_top_level_key_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "bogus_key = true")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_invalid_toml_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "exclude = [")

    with pytest.raises(ConfigError, match="Invalid TOML"):
        load_config(tmp_path)


def test_valid_config_accepted(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
exclude = ["internal/generated/**"]
custom_functions = ["trackUser(userId, EVENT_NAME, PROPERTIES)", "track"]
custom_function_patterns = ["^Track[A-Z]"]
max_workers = 2
""".strip(),
    )

    config = load_config(tmp_path)

    assert config.exclude == ["internal/generated/**"]
    assert config.max_workers == 2
    registry = config.custom_registry()
    assert registry.lookup("trackUser") is not None
    assert registry.lookup("TrackSignup") is not None


def test_invalid_custom_function_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, 'custom_functions = ["track(userId, PROPERTIES)"]')

    with pytest.raises(ConfigError, match="EVENT_NAME is required"):
        load_config(tmp_path)


def test_invalid_pattern_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, 'custom_function_patterns = ["("]')

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_non_positive_max_workers_rejected(tmp_path: Path) -> None:
    _write_config(tmp_path, "max_workers = 0")

    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_empty_config_accepted(tmp_path: Path) -> None:
    _write_config(tmp_path, "")

    config = load_config(tmp_path)

    assert config.output_dir == ".trackscan"
    assert config.include == []
    assert config.exclude == []
    assert config.custom_functions == []
    assert config.max_workers == 8


def test_with_custom_functions_appends_and_validates() -> None:
    base = TrackScanConfig(custom_functions=["track"])

    merged = with_custom_functions(base, ["send(EVENT_NAME)"])

    assert merged.custom_functions == ["track", "send(EVENT_NAME)"]
    assert base.custom_functions == ["track"]
    assert with_custom_functions(base, None) is base
    with pytest.raises(ConfigError):
        with_custom_functions(base, ["send(userId)"])


def test_resolve_output_dir_rejects_escape(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="escapes the repository root"):
        resolve_output_dir(tmp_path, "../outside")
