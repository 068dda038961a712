from __future__ import annotations

import os
import platform
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from nit import __version__
from nit.config import ExecutionContext

_ADDONS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("gh", ("gh", "--version")),
    ("git-lfs", ("git", "lfs", "version")),
    ("delta", ("delta", "--version")),
    ("git-absorb", ("git", "absorb", "--version")),
    ("lazygit", ("lazygit", "--version")),
)


@dataclass(frozen=True, slots=True)
class ToolInfo:
    name: str
    installed: bool
    version: str | None = None
    path: str | None = None


@dataclass(frozen=True, slots=True)
class DoctorReport:
    nit: ToolInfo
    git: ToolInfo
    default_branch: str | None
    addons: tuple[ToolInfo, ...]
    os_name: str
    os_release: str
    shell: str
    cpu_count: int
    workers: int


def _run_command(args: tuple[str, ...], *, timeout_seconds: float = 10.0) -> str | None:
    try:
        completed = subprocess.run(
            list(args),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if completed.returncode != 0:
        return None
    output = (completed.stdout or "").strip()
    return output.splitlines()[0].strip() if output else ""


def git_version(git: str = "git") -> str | None:
    output = _run_command((git, "--version"))
    if not output:
        return None
    return output.removeprefix("git version ").strip()


def git_info(git: str = "git") -> ToolInfo:
    version = git_version(git)
    if version is None:
        return ToolInfo(name="git", installed=False)
    return ToolInfo(name="git", installed=True, version=version, path=shutil.which(git))


def git_default_branch(git: str = "git") -> str | None:
    return _run_command((git, "config", "--global", "init.defaultBranch")) or None


def addon_info(git: str = "git") -> tuple[ToolInfo, ...]:
    out: list[ToolInfo] = []
    for name, args in _ADDONS:
        # git subcommand add-ons run through the configured executable.
        if args[0] == "git":
            args = (git, *args[1:])
        version = _run_command(args)
        out.append(ToolInfo(name=name, installed=version is not None, version=version or None))
    return tuple(out)


def collect_report(context: ExecutionContext) -> DoctorReport:
    nit_path = shutil.which("nit") or str(Path(sys.argv[0]).resolve())
    return DoctorReport(
        nit=ToolInfo(name="nit", installed=True, version=__version__, path=nit_path),
        git=git_info(context.git),
        default_branch=git_default_branch(context.git),
        addons=addon_info(context.git),
        os_name=platform.system() or "unknown",
        os_release=platform.release() or "unknown",
        shell=os.environ.get("SHELL", "unknown"),
        cpu_count=os.cpu_count() or 1,
        workers=context.workers,
    )


def format_report(report: DoctorReport) -> str:
    workers = "unlimited" if report.workers == 0 else str(report.workers)
    lines = [
        "nit doctor",
        "=" * 50,
        "",
        "NIT",
        f"  Version:        {report.nit.version}",
        f"  Path:           {report.nit.path}",
        f"  Python:         {platform.python_version()}",
        "",
        "GIT",
    ]
    if report.git.installed:
        lines.extend(
            [
                f"  Version:        {report.git.version}",
                f"  Path:           {report.git.path or 'unknown'}",
                f"  Default branch: {report.default_branch or '(not configured)'}",
            ]
        )
    else:
        lines.append("  Status:         NOT FOUND")
    lines.extend(["", "GIT ADD-ONS"])
    for addon in sorted(report.addons, key=lambda a: not a.installed):
        if addon.installed:
            suffix = f" ({addon.version})" if addon.version else ""
            lines.append(f"  [x] {addon.name}{suffix}")
        else:
            lines.append(f"  [ ] {addon.name}")
    lines.extend(
        [
            "",
            "WORKSTATION",
            f"  OS:        {report.os_name} {report.os_release}",
            f"  Shell:     {report.shell}",
            f"  CPU cores: {report.cpu_count}",
            f"  Workers:   {workers}",
        ]
    )
    return "\n".join(lines)
