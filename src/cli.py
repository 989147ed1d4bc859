"""Command-line interface for trackscan."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from artifacts.utils import _dumps_json
from artifacts.write import generate_all_artifacts
from contract.validation import validate_artifacts
from rules.config import ConfigError, load_config, with_custom_functions
from verify.verify import verify_determinism

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging to stderr."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _add_common_paths(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Repository root (default: .)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log scan progress",
    )


def _add_custom_functions(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--custom-function",
        dest="custom_functions",
        action="append",
        default=None,
        metavar="SIGNATURE",
        help=(
            "Custom tracking function, e.g. 'trackUser(userId, EVENT_NAME, "
            "PROPERTIES)' or a bare name for role inference (repeatable)"
        ),
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="trackscan")
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate_parser = subparsers.add_parser(
        "generate", help="Scan Go sources and generate tracking artifacts"
    )
    _add_common_paths(generate_parser)
    _add_custom_functions(generate_parser)
    generate_parser.add_argument(
        "--out-dir",
        default=None,
        help="Output directory for generated artifacts (default: config output dir)",
    )
    generate_parser.add_argument(
        "--stdout",
        action="store_true",
        help="Also print the events summary as JSON",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate artifacts")
    _add_common_paths(validate_parser)
    validate_parser.add_argument(
        "--artifacts-dir",
        default=None,
        help="Artifacts directory (default: config output dir)",
    )

    verify_parser = subparsers.add_parser(
        "verify", help="Verify determinism of artifacts"
    )
    _add_common_paths(verify_parser)
    _add_custom_functions(verify_parser)
    verify_parser.add_argument(
        "--artifacts-dir",
        default=None,
        help="Artifacts directory (default: config output dir)",
    )

    return parser


def _resolve_output_dir(root: Path, out_dir: str | None) -> Path | None:
    if out_dir is None:
        return None
    return Path(out_dir).expanduser().resolve()


def _resolve_artifacts_dir(root: Path, artifacts_dir: str | None) -> Path:
    if artifacts_dir is None:
        config = load_config(root)
        return (root / config.output_dir).resolve()
    return Path(artifacts_dir).expanduser().resolve()


def _handle_generate(
    root: Path,
    out_dir: str | None,
    custom_functions: list[str] | None,
    *,
    to_stdout: bool,
) -> int:
    config = with_custom_functions(load_config(root), custom_functions)
    resolved_out_dir = _resolve_output_dir(root, out_dir)
    result = generate_all_artifacts(root=root, out_dir=resolved_out_dir, config=config)
    logger.info(
        "%d records, %d events, %d diagnostics",
        result["record_count"],
        result["event_count"],
        result["diagnostic_count"],
    )
    if to_stdout:
        sys.stdout.write(_dumps_json(result["events_summary"]).decode("utf-8"))
        sys.stdout.write("\n")
    return 0


def _handle_validate(root: Path, artifacts_dir: str | None) -> int:
    resolved_artifacts_dir = _resolve_artifacts_dir(root, artifacts_dir)
    result = validate_artifacts(resolved_artifacts_dir)
    for warning in result.warnings:
        logger.warning("%s: %s", warning.location(), warning.message)
    if result.errors:
        for error in result.errors:
            sys.stderr.write(f"{error.location()}: {error.message}\n")
        return 1
    return 0


def _handle_verify(
    root: Path, artifacts_dir: str | None, custom_functions: list[str] | None
) -> int:
    resolved_artifacts_dir = _resolve_artifacts_dir(root, artifacts_dir)
    config = with_custom_functions(load_config(root), custom_functions)
    try:
        result = verify_determinism(
            root=root, artifacts_dir=resolved_artifacts_dir, config=config
        )
    except (FileNotFoundError, NotADirectoryError) as exc:
        sys.stderr.write(f"artifacts-dir: {resolved_artifacts_dir}\n")
        sys.stderr.write(f"error: {exc}\n")
        return 2
    if not result.ok:
        for label, paths in (
            ("missing", result.missing),
            ("extra", result.extra),
            ("mismatches", result.mismatches),
        ):
            for path in paths:
                sys.stderr.write(f"{label}: {path}\n")
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    root = Path(args.root).expanduser().resolve()

    try:
        if args.command == "generate":
            return _handle_generate(
                root, args.out_dir, args.custom_functions, to_stdout=args.stdout
            )

        if args.command == "validate":
            return _handle_validate(root, args.artifacts_dir)

        if args.command == "verify":
            return _handle_verify(root, args.artifacts_dir, args.custom_functions)
    except ConfigError as exc:
        sys.stderr.write(f"config error: {exc}\n")
        return 2

    raise AssertionError


if __name__ == "__main__":
    raise SystemExit(main())
