from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass

from nit.formatters import format_result
from nit.git_command import GitCommand
from nit.results import Completion, DryRun, Executed, ExecutionResult, SpawnError
from nit.targets import Target

logger = logging.getLogger(__name__)

ProcessRunner = Callable[[int, GitCommand], ExecutionResult]

_PROMPT_ENV = {"GIT_TERMINAL_PROMPT": "0"}


class SchedulerError(RuntimeError):
    pass


@dataclass(slots=True)
class WindowState:
    total: int
    limit: int
    spawned: int = 0
    completed: int = 0
    peak_active: int = 0

    @property
    def active(self) -> int:
        return self.spawned - self.completed

    def can_spawn(self) -> bool:
        return self.spawned < self.total and self.active < self.limit

    def mark_spawned(self) -> int:
        index = self.spawned
        self.spawned += 1
        self.peak_active = max(self.peak_active, self.active)
        return index

    def mark_completed(self) -> None:
        if self.active <= 0:
            raise SchedulerError("Completion reported with no active unit of work.")
        self.completed += 1

    @property
    def finished(self) -> bool:
        return self.completed == self.total


def window_size(limit: int, total: int) -> int:
    if limit < 0:
        raise SchedulerError(f"limit must be >= 0 (0 = unlimited), got {limit}")
    if limit == 0 or limit >= total:
        return max(total, 1)
    return limit


def run_git_process(index: int, command: GitCommand) -> ExecutionResult:
    env = {**os.environ, **_PROMPT_ENV}
    try:
        proc = subprocess.Popen(
            list(command.argv),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=env,
        )
    except OSError as e:
        logger.warning("Failed to spawn %s: %s", command.display, e)
        return SpawnError(index=index, target=command.target, message=str(e))

    # communicate() drains stdout and stderr concurrently.
    stdout, stderr = proc.communicate()
    return Executed(
        index=index,
        target=command.target,
        stdout=stdout or b"",
        stderr=stderr or b"",
        exit_code=int(proc.returncode),
    )


def _unit_of_work(index: int, command: GitCommand, *, runner: ProcessRunner) -> Completion:
    result: ExecutionResult
    if command.context.dry_run:
        result = DryRun(index=index, target=command.target, display=command.display)
    else:
        result = runner(index, command)
    line = format_result(result, operation=command.operation, oneline=command.context.oneline)
    return Completion(result=result, line=line)


def run_targets(
    targets: Sequence[Target],
    command_for: Callable[[Target], GitCommand],
    *,
    limit: int,
    on_complete: Callable[[Completion], None] | None = None,
    runner: ProcessRunner = run_git_process,
) -> tuple[ExecutionResult, ...]:
    target_list = list(targets)
    state = WindowState(total=len(target_list), limit=window_size(limit, len(target_list)))
    if not target_list:
        return ()

    commands = [command_for(target) for target in target_list]
    results: list[ExecutionResult | None] = [None] * state.total
    logger.debug("Running %d targets with a window of %d", state.total, state.limit)

    with ThreadPoolExecutor(max_workers=state.limit, thread_name_prefix="nit-worker") as pool:
        active: dict[Future[Completion], int] = {}

        def spawn_available() -> None:
            while state.can_spawn():
                index = state.mark_spawned()
                logger.debug("spawn [%d] %s", index, commands[index].display)
                active[pool.submit(_unit_of_work, index, commands[index], runner=runner)] = index

        spawn_available()
        while active:
            done, _ = wait(active, return_when=FIRST_COMPLETED)
            completions: list[Completion] = []
            for fut in sorted(done, key=active.__getitem__):
                index = active.pop(fut)
                completion = fut.result()
                state.mark_completed()
                results[index] = completion.result
                completions.append(completion)
                logger.debug("done  [%d] %s", index, type(completion.result).__name__)
            # Window is refilled before completions reach the sequencer.
            spawn_available()
            if on_complete is not None:
                for completion in completions:
                    on_complete(completion)

    if not state.finished:
        raise SchedulerError(f"Only {state.completed} of {state.total} targets completed.")
    return tuple(r for r in results if r is not None)
