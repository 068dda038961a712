from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

LABEL_WIDTH = 24
_TRUNCATION_SUFFIX = "-..."


class TargetDiscoveryError(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class Target:
    path: Path

    @property
    def name(self) -> str:
        return self.path.name or "unknown"


def _is_repo_dir(path: Path) -> bool:
    if not path.is_dir():
        return False
    # .git is a file for worktrees and submodules.
    return (path / ".git").exists()


def discover_targets(root: Path) -> tuple[Target, ...]:
    root = root.expanduser().resolve()
    try:
        children = list(root.iterdir())
    except FileNotFoundError as e:
        raise TargetDiscoveryError(f"Directory not found: {root}") from e
    except NotADirectoryError as e:
        raise TargetDiscoveryError(f"Not a directory: {root}") from e
    except OSError as e:
        raise TargetDiscoveryError(f"Failed to list {root}: {e}") from e

    found = [Target(path=child) for child in children if _is_repo_dir(child)]
    return tuple(sorted(found, key=lambda t: t.path))


def truncate_name(name: str, *, width: int, suffix: str = _TRUNCATION_SUFFIX) -> str:
    if len(name) <= width:
        return name
    return name[: width - len(suffix)] + suffix


def format_target_label(name: str, *, width: int = LABEL_WIDTH) -> str:
    return "[" + truncate_name(name, width=width).ljust(width) + "]"
