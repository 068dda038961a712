from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from nit.git_command import Operation
from nit.results import DryRun, Executed, ExecutionResult, FormattedLine, SpawnError
from nit.targets import format_target_label, truncate_name

UNKNOWN_ERROR = "unknown error"
ERROR_MARKER = "ERROR: "
DETACHED_LABEL = "HEAD (detached)"
BRANCH_WIDTH = 16

_UP_TO_DATE_MARKERS = ("Already up to date", "Already up-to-date")
_UP_TO_DATE = "Already up to date"


@dataclass(frozen=True, slots=True)
class Summary:
    message: str
    ok: bool = True
    branch: str | None = None


@dataclass(frozen=True, slots=True)
class BranchInfo:
    name: str
    ahead: int = 0
    behind: int = 0


Summarizer = Callable[[bytes, bytes, bool], Summary]


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def _first_non_empty_line(*texts: str) -> str | None:
    for text in texts:
        for line in text.splitlines():
            stripped = line.strip()
            if stripped:
                return stripped
    return None


def failure_summary(stderr: bytes) -> Summary:
    return Summary(message=_first_non_empty_line(_decode(stderr)) or UNKNOWN_ERROR, ok=False)


def _parse_count(raw: str) -> int:
    raw = raw.strip()
    return int(raw) if raw.isdigit() else 0


def parse_branch_header(line: str) -> BranchInfo | None:
    if not line.startswith("## "):
        return None
    content = line[3:].strip()

    if content.startswith("HEAD (no branch)"):
        return BranchInfo(name=DETACHED_LABEL)
    for prefix in ("No commits yet on ", "Initial commit on "):
        if content.startswith(prefix):
            return BranchInfo(name=content[len(prefix) :].strip())

    branch, sep, tracking = content.partition("...")
    if not sep:
        return BranchInfo(name=branch.strip())

    ahead = behind = 0
    start = tracking.find("[")
    end = tracking.find("]", start + 1)
    if start != -1 and end != -1:
        for part in tracking[start + 1 : end].split(","):
            part = part.strip()
            if part.startswith("ahead "):
                ahead = _parse_count(part[len("ahead ") :])
            elif part.startswith("behind "):
                behind = _parse_count(part[len("behind ") :])
    return BranchInfo(name=branch.strip(), ahead=ahead, behind=behind)


def summarize_status(stdout: bytes, stderr: bytes, success: bool) -> Summary:
    if not success:
        return failure_summary(stderr)

    counts = {"modified": 0, "added": 0, "deleted": 0, "renamed": 0, "untracked": 0}
    branch: BranchInfo | None = None

    for line in _decode(stdout).splitlines():
        if line.startswith("## "):
            branch = parse_branch_header(line)
            continue
        if len(line) < 2:
            continue

        staged, unstaged = line[0], line[1]
        if staged == "?":
            counts["untracked"] += 1
            continue

        if staged == "M":
            counts["modified"] += 1
        elif staged == "A":
            counts["added"] += 1
        elif staged == "D":
            counts["deleted"] += 1
        elif staged == "R":
            counts["renamed"] += 1
        elif staged == " ":
            if unstaged == "M":
                counts["modified"] += 1
            elif unstaged == "D":
                counts["deleted"] += 1

    parts = [f"{n} {label}" for label, n in counts.items() if n > 0]
    has_file_changes = bool(parts)
    if branch is not None:
        if branch.ahead > 0:
            parts.append(f"{branch.ahead} ahead")
        if branch.behind > 0:
            parts.append(f"{branch.behind} behind")

    if not parts:
        message = "clean"
    elif not has_file_changes:
        message = "clean, " + ", ".join(parts)
    else:
        message = ", ".join(parts)
    return Summary(message=message, branch=branch.name if branch is not None else None)


def summarize_pull(stdout: bytes, stderr: bytes, success: bool) -> Summary:
    if not success:
        return failure_summary(stderr)

    out = _decode(stdout)
    if any(marker in out for marker in _UP_TO_DATE_MARKERS):
        return Summary(message=_UP_TO_DATE)

    lines = out.splitlines()
    for line in lines:
        if "file changed" in line or "files changed" in line:
            return Summary(message=line.strip())
    for line in lines:
        if ".." in line or "Updating" in line:
            return Summary(message=line.strip())

    return Summary(message=_first_non_empty_line(out, _decode(stderr)) or "completed")


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def _is_ref_update(line: str) -> bool:
    return "->" in line or "[new" in line


def summarize_fetch(stdout: bytes, stderr: bytes, success: bool) -> Summary:
    if not success:
        return failure_summary(stderr)

    out_lines = [line for line in _decode(stdout).splitlines() if line.strip()]
    err_lines = [
        line
        for line in _decode(stderr).splitlines()
        if line.strip() and not line.strip().startswith("From")
    ]
    if not out_lines and not err_lines:
        return Summary(message="no new commits")

    updates = [line for line in out_lines if _is_ref_update(line)]

    tags = sum(1 for line in updates if "[new tag]" in line)
    branches = len(updates) - tags
    parts: list[str] = []
    if branches > 0:
        parts.append(_plural(branches, "branch", "branches"))
    if tags > 0:
        parts.append(_plural(tags, "tag", "tags"))
    if not parts:
        return Summary(message="fetched")
    return Summary(message=", ".join(parts) + " updated")


def summarize_passthrough(stdout: bytes, stderr: bytes, success: bool) -> Summary:
    if not success:
        return failure_summary(stderr)
    return Summary(message=_first_non_empty_line(_decode(stdout), _decode(stderr)) or "ok")


SUMMARIZERS: dict[Operation, Summarizer] = {
    "status": summarize_status,
    "pull": summarize_pull,
    "fetch": summarize_fetch,
    "passthrough": summarize_passthrough,
}


def render_summary(target_name: str, summary: Summary) -> str:
    parts = [format_target_label(target_name)]
    if summary.branch is not None:
        parts.append(truncate_name(summary.branch, width=BRANCH_WIDTH, suffix="...").ljust(BRANCH_WIDTH))
    parts.append(summary.message if summary.ok else ERROR_MARKER + summary.message)
    return " ".join(parts)


def render_verbatim(target_name: str, stdout: bytes, stderr: bytes, success: bool) -> str:
    label = format_target_label(target_name)
    captured = stdout + stderr
    if not captured and not success:
        return f"{label}\n{ERROR_MARKER}{UNKNOWN_ERROR}"
    # surrogateescape keeps undecodable bytes intact when the sink re-encodes.
    return label + "\n" + captured.decode("utf-8", errors="surrogateescape")


def format_result(result: ExecutionResult, *, operation: Operation, oneline: bool = False) -> FormattedLine:
    name = result.target.name
    if isinstance(result, DryRun):
        display = format_target_label(name) + " " + result.display
    elif isinstance(result, SpawnError):
        display = render_summary(name, Summary(message=result.message, ok=False))
    elif isinstance(result, Executed):
        if operation == "passthrough" and not oneline:
            display = render_verbatim(name, result.stdout, result.stderr, result.success)
        else:
            summary = SUMMARIZERS[operation](result.stdout, result.stderr, result.success)
            display = render_summary(name, summary)
    else:
        raise TypeError(f"Unexpected execution result: {type(result).__name__}")
    return FormattedLine(target_name=name, display=display)
