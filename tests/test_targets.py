from __future__ import annotations

from pathlib import Path

import pytest

from nit.targets import (
    Target,
    TargetDiscoveryError,
    discover_targets,
    format_target_label,
    truncate_name,
)


def _make_repo(root: Path, name: str, *, git_file: bool = False) -> Path:
    repo = root / name
    repo.mkdir()
    if git_file:
        (repo / ".git").write_text("gitdir: /elsewhere/.git/worktrees/x\n", encoding="utf-8")
    else:
        (repo / ".git").mkdir()
    return repo


def test_discover_targets_returns_sorted_depth_one_repos(tmp_path: Path) -> None:
    _make_repo(tmp_path, "zeta")
    _make_repo(tmp_path, "alpha")
    _make_repo(tmp_path, "mid", git_file=True)
    (tmp_path / "plain-dir").mkdir()
    (tmp_path / "file.txt").write_text("x\n", encoding="utf-8")
    nested = tmp_path / "plain-dir" / "nested"
    nested.mkdir()
    (nested / ".git").mkdir()

    targets = discover_targets(tmp_path)

    assert [t.name for t in targets] == ["alpha", "mid", "zeta"]
    assert all(t.path.is_absolute() for t in targets)


def test_discover_targets_empty_directory(tmp_path: Path) -> None:
    assert discover_targets(tmp_path) == ()


def test_discover_targets_missing_root_raises(tmp_path: Path) -> None:
    with pytest.raises(TargetDiscoveryError) as excinfo:
        discover_targets(tmp_path / "missing")
    assert "not found" in str(excinfo.value)


def test_target_name_is_basename() -> None:
    assert Target(path=Path("/work/src/my-repo")).name == "my-repo"


def test_format_target_label_pads_short_names() -> None:
    label = format_target_label("my-repo")
    assert label == "[my-repo                 ]"
    assert len(label) == 26


def test_format_target_label_keeps_exact_width_names() -> None:
    name = "x" * 24
    assert format_target_label(name) == f"[{name}]"


def test_format_target_label_truncates_long_names() -> None:
    label = format_target_label("this-is-a-very-long-repository-name")
    assert label == "[this-is-a-very-long--...]"
    assert len(label) == 26


def test_truncate_name_custom_suffix() -> None:
    assert truncate_name("feature/very-long-branch", width=10, suffix="...") == "feature..."
