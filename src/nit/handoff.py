from __future__ import annotations

import logging
import os
import signal
import subprocess
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class HandoffError(RuntimeError):
    pass


def inside_work_tree(*, cwd: Path, git: str = "git") -> bool:
    try:
        completed = subprocess.run(
            [git, "rev-parse", "--git-dir"],
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            check=False,
            timeout=10.0,
        )
    except (OSError, subprocess.TimeoutExpired):
        return False
    return completed.returncode == 0


def exit_status_for(returncode: int) -> int:
    if returncode < 0:
        return 128 + (-returncode)
    return returncode


def spawn_and_wait(argv: Sequence[str]) -> int:
    try:
        completed = subprocess.run(list(argv), check=False)
    except OSError as e:
        raise HandoffError(f"failed to run {argv[0]}: {e}") from e
    return exit_status_for(completed.returncode)


def hand_off(args: Sequence[str], *, git: str = "git") -> int:
    argv = [git, *args]
    logger.debug("Handing off to %s", argv)
    if os.name != "posix":
        return spawn_and_wait(argv)

    # SIGPIPE is ignored by the interpreter; restore the default before exec.
    signal.signal(signal.SIGPIPE, signal.SIG_DFL)
    try:
        os.execvp(git, argv)
    except OSError as e:
        raise HandoffError(f"failed to exec {git}: {e}") from e
