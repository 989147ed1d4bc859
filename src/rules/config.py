from __future__ import annotations

import re
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from rules.custom_signatures import (
    CustomFunctionRegistry,
    SignatureError,
    parse_custom_signature,
)

CONFIG_FILENAME = "trackscan.toml"


class TrackScanConfig(BaseModel):
    """Configuration for trackscan artifact generation."""

    model_config = ConfigDict(extra="forbid")

    output_dir: str = Field(
        default=".trackscan",
        description="Output directory for generated artifacts",
    )
    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to include (empty = all Go files)",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to exclude",
    )
    nested_gitignore: bool = Field(
        default=False,
        description=(
            "Enable nested .gitignore composition (default: false for root-only)"
        ),
    )
    custom_functions: list[str] = Field(
        default_factory=list,
        description=(
            "Custom tracking function signatures, e.g. "
            "'trackUser(userId, EVENT_NAME, PROPERTIES)' or a bare name"
        ),
    )
    custom_function_patterns: list[str] = Field(
        default_factory=list,
        description="Regular expressions matching custom tracking callee names",
    )
    max_workers: int = Field(
        default=8,
        ge=1,
        description="Maximum number of files analysed concurrently",
    )

    @field_validator("custom_functions", mode="before")
    @classmethod
    def validate_custom_functions(cls, v: Any) -> Any:
        """Reject signatures that cannot be parsed.

        Runs in `mode="before"` so the error names the raw TOML value.
        """
        if v is None:
            return []
        if not isinstance(v, list):
            msg = "custom_functions must be a list of signature strings"
            raise TypeError(msg)
        for signature in v:
            try:
                parse_custom_signature(signature)
            except SignatureError as exc:
                raise ValueError(str(exc)) from exc
        return v

    @field_validator("custom_function_patterns")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            try:
                re.compile(pattern)
            except re.error as exc:
                msg = f"Invalid custom_function_patterns entry {pattern!r}: {exc}"
                raise ValueError(msg) from exc
        return v

    def custom_registry(self) -> CustomFunctionRegistry:
        return CustomFunctionRegistry.from_strings(
            self.custom_functions,
            self.custom_function_patterns,
        )


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_output_dir(root: Path, output_dir: str) -> Path:
    """Resolve a config-provided output_dir safely within the repo root.

    The config output_dir must be a non-empty relative path that remains
    within the repository root after resolution. Absolute paths and paths
    that escape the root are rejected.
    """
    if not output_dir:
        msg = "output_dir must be a non-empty relative path"
        raise ConfigError(msg)

    if output_dir.startswith("~"):
        msg = "output_dir must be a relative path within the repo root"
        raise ConfigError(msg)

    output_path = Path(output_dir)
    if output_path.is_absolute():
        msg = "output_dir must be a relative path within the repo root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_output = (resolved_root / output_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve output_dir '{output_dir}': {exc}"
        raise ConfigError(msg) from exc

    try:
        resolved_output.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"output_dir '{output_dir}' escapes the repository root"
        raise ConfigError(msg) from exc

    return resolved_output


def load_config(root: Path) -> TrackScanConfig:
    """Load configuration from trackscan.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return TrackScanConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return TrackScanConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e


def with_custom_functions(
    config: TrackScanConfig, signatures: list[str] | None
) -> TrackScanConfig:
    """Return a copy of ``config`` with extra custom signatures appended."""
    if not signatures:
        return config
    merged = [*config.custom_functions, *signatures]
    try:
        return TrackScanConfig.model_validate(
            {**config.model_dump(), "custom_functions": merged}
        )
    except Exception as e:
        msg = f"Invalid custom function signature: {e}"
        raise ConfigError(msg) from e
