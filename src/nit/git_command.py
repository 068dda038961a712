from __future__ import annotations

import shlex
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from nit.config import ExecutionContext
from nit.targets import Target

Operation = Literal["status", "pull", "fetch", "passthrough"]

CONDENSED_OPERATIONS: tuple[Operation, ...] = ("status", "pull", "fetch")

_IMPLICIT_ARGS: dict[Operation, tuple[str, ...]] = {
    "status": ("--porcelain", "-b"),
}


class CommandBuildError(ValueError):
    pass


def operation_for(command: str) -> Operation:
    if command in CONDENSED_OPERATIONS:
        return command  # type: ignore[return-value]
    return "passthrough"


@dataclass(frozen=True, slots=True)
class GitCommand:
    target: Target
    operation: Operation
    argv: tuple[str, ...]
    context: ExecutionContext

    @property
    def display(self) -> str:
        return shlex.join(self.argv)


def build_command(
    target: Target,
    *,
    command: str,
    args: Sequence[str] = (),
    context: ExecutionContext,
) -> GitCommand:
    if not command.strip():
        raise CommandBuildError("No git command specified")
    operation = operation_for(command)
    argv = (
        context.git,
        *context.url_rewrite_args(),
        "-C",
        str(target.path),
        command,
        *_IMPLICIT_ARGS.get(operation, ()),
        *args,
    )
    return GitCommand(target=target, operation=operation, argv=argv, context=context)
