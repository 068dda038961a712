from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from typing import BinaryIO, TextIO

from nit import __version__
from nit.config import ExecutionContext
from nit.git_command import GitCommand, build_command
from nit.results import ExecutionResult, result_failed
from nit.scheduler import ProcessRunner, run_git_process, run_targets
from nit.sequencer import OutputSink, Sequencer
from nit.targets import Target

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_TARGET_FAILED = 1

DRY_RUN_BANNER = (
    "[nit v{version}] Running in **dry-run mode**, no git commands will be executed. "
    "Planned git commands below."
)


@dataclass(frozen=True, slots=True)
class RunReport:
    results: tuple[ExecutionResult, ...]

    @property
    def failed(self) -> tuple[ExecutionResult, ...]:
        return tuple(r for r in self.results if result_failed(r))

    @property
    def exit_code(self) -> int:
        return EXIT_TARGET_FAILED if self.failed else EXIT_OK


def run(
    targets: Sequence[Target],
    *,
    command: str,
    args: Sequence[str] = (),
    context: ExecutionContext,
    sink: OutputSink,
    runner: ProcessRunner = run_git_process,
) -> RunReport:
    target_list = list(targets)
    if not target_list:
        return RunReport(results=())

    if context.dry_run:
        sink.write_line(DRY_RUN_BANNER.format(version=__version__))

    def command_for(target: Target) -> GitCommand:
        return build_command(target, command=command, args=args, context=context)

    sequencer = Sequencer(sink=sink, total=len(target_list))
    results = run_targets(
        target_list,
        command_for,
        limit=context.workers,
        on_complete=sequencer.accept,
        runner=runner,
    )
    if not sequencer.finished:
        logger.error("Released %d of %d lines", sequencer.released, sequencer.total)
    return RunReport(results=results)


def execute(
    targets: Sequence[Target],
    *,
    command: str,
    args: Sequence[str] = (),
    context: ExecutionContext,
    out: BinaryIO | None = None,
    err: TextIO | None = None,
    runner: ProcessRunner = run_git_process,
) -> int:
    sink = OutputSink(stream=out if out is not None else sys.stdout.buffer)
    report = run(targets, command=command, args=args, context=context, sink=sink, runner=runner)

    failed = report.failed
    if failed:
        err_stream = err if err is not None else sys.stderr
        print(f"{len(failed)} of {len(report.results)} repositories failed", file=err_stream)
    return report.exit_code
