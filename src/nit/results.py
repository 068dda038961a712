from __future__ import annotations

from dataclasses import dataclass
from typing import TypeAlias

from nit.targets import Target


@dataclass(frozen=True, slots=True)
class DryRun:
    index: int
    target: Target
    display: str


@dataclass(frozen=True, slots=True)
class Executed:
    index: int
    target: Target
    stdout: bytes
    stderr: bytes
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True, slots=True)
class SpawnError:
    index: int
    target: Target
    message: str


ExecutionResult: TypeAlias = DryRun | Executed | SpawnError


def result_failed(result: ExecutionResult) -> bool:
    if isinstance(result, SpawnError):
        return True
    if isinstance(result, Executed):
        return not result.success
    return False


@dataclass(frozen=True, slots=True)
class FormattedLine:
    target_name: str
    display: str


@dataclass(frozen=True, slots=True)
class Completion:
    result: ExecutionResult
    line: FormattedLine

    @property
    def index(self) -> int:
        return self.result.index
