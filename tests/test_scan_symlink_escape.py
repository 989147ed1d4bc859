from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from scan.files import _build_gitignore_matcher, find_source_files

if TYPE_CHECKING:
    from pathlib import Path


def _relative(
    repo_root: Path,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
) -> list[str]:
    return [
        path.relative_to(repo_root).as_posix()
        for path in find_source_files(
            repo_root,
            include_patterns=include_patterns,
            exclude_patterns=exclude_patterns,
        )
    ]


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_find_source_files_skips_symlinked_dirs(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "pkg").mkdir()
    (repo_root / "pkg" / "module.go").write_text("package pkg\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "leak.go").write_text("package leak\n", encoding="utf-8")

    symlink_dir = repo_root / "linked"
    symlink_dir.symlink_to(external_root, target_is_directory=True)

    results = _relative(repo_root)

    assert "pkg/module.go" in results
    assert "linked/leak.go" not in results


@pytest.mark.skipif(
    os.name == "nt",
    reason="Symlink semantics vary on Windows test runners.",
)
def test_nested_gitignore_skips_symlinked_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    repo_root.mkdir()
    (repo_root / "pkg").mkdir()
    (repo_root / "pkg" / "module.go").write_text("package pkg\n", encoding="utf-8")
    (repo_root / ".gitignore").write_text("*.bin\n", encoding="utf-8")

    external_root = tmp_path / "external"
    external_root.mkdir()
    (external_root / "outside.gitignore").write_text(
        "pkg/module.go\n", encoding="utf-8"
    )

    symlink_gitignore = repo_root / "linked.gitignore"
    symlink_gitignore.symlink_to(external_root / "outside.gitignore")

    matcher = _build_gitignore_matcher(repo_root, nested_gitignore=True)
    assert matcher is not None
    assert matcher(str(repo_root / "pkg" / "module.go")) is False


def test_vendor_and_hidden_dirs_are_skipped(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    for rel_path in (
        "main.go",
        "vendor/github.com/x/y/y.go",
        ".git/hooks/hook.go",
        ".trackscan/stale.go",
        "internal/vendorized/ok.go",
        "README.md",
    ):
        path = repo_root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("package x\n", encoding="utf-8")

    assert _relative(repo_root) == ["internal/vendorized/ok.go", "main.go"]


def test_include_exclude_and_gitignore(tmp_path: Path) -> None:
    repo_root = tmp_path / "repo"
    for rel_path in (
        "api/handler.go",
        "api/handler_gen.go",
        "tools/tools.go",
        "build/out.go",
    ):
        path = repo_root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("package x\n", encoding="utf-8")
    (repo_root / ".gitignore").write_text("build/\n", encoding="utf-8")

    assert _relative(repo_root) == [
        "api/handler.go",
        "api/handler_gen.go",
        "tools/tools.go",
    ]
    assert _relative(
        repo_root, include_patterns=["api/*"], exclude_patterns=["*_gen.go"]
    ) == ["api/handler.go"]
