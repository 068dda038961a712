from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from nit import __version__
from nit.config import ConfigError, ExecutionContext, build_context, resolve_settings
from nit.doctor import collect_report, format_report, git_version
from nit.engine import execute
from nit.git_command import CommandBuildError
from nit.handoff import HandoffError, hand_off, inside_work_tree
from nit.targets import TargetDiscoveryError, discover_targets

logger = logging.getLogger(__name__)

EXIT_USAGE = 2
EXIT_NO_TARGETS = 9

_LOG_FORMAT = "nit: %(levelname)s %(name)s: %(message)s"
_NO_HANDOFF_COMMANDS = frozenset({"meta", "doctor"})


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"expected an integer, got {raw!r}") from e
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0 (0 = unlimited), got {value}")
    return value


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nit",
        description="Run one git command across every repository in the current directory.",
        epilog=(
            "commands: status, pull and fetch print one condensed line per repository; "
            "any other git command is passed through verbatim. "
            "'nit doctor' (or 'nit meta doctor') diagnoses the environment."
        ),
    )
    p.add_argument(
        "-n",
        "--workers",
        type=_non_negative_int,
        default=None,
        help="Number of parallel workers (default: 8, 0 = unlimited).",
    )
    p.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the exact git commands without executing them.",
    )
    scheme = p.add_mutually_exclusive_group()
    scheme.add_argument(
        "--ssh",
        dest="url_scheme",
        action="store_const",
        const="ssh",
        help="Force SSH URLs (git@github.com:) for all remotes.",
    )
    scheme.add_argument(
        "--https",
        dest="url_scheme",
        action="store_const",
        const="https",
        help="Force HTTPS URLs (https://github.com/) for all remotes.",
    )
    p.add_argument(
        "--oneline",
        action="store_true",
        default=None,
        help="Condense pass-through commands to one line per repository.",
    )
    p.add_argument("--config", default=None, help="Path to a config TOML (defaults to $NIT_CONFIG).")
    p.add_argument(
        "--no-handoff",
        action="store_true",
        help="Do not hand the command to git when run inside a repository.",
    )
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log to stderr (-v info, -vv debug).",
    )
    p.add_argument("-V", "--version", action="version", version=f"nit v{__version__}")
    p.add_argument("command", nargs="?", help="git command (status, pull, fetch, or any other).")
    p.add_argument("git_args", nargs=argparse.REMAINDER, help="Arguments passed to git unmodified.")
    return p


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr)


def _cmd_meta(parser: argparse.ArgumentParser, args: argparse.Namespace, context: ExecutionContext) -> int:
    subcommand = args.git_args[0] if args.git_args else "help"
    if subcommand == "help":
        print(f"nit v{__version__} (git {git_version(context.git) or 'unknown'})")
        print()
        parser.print_help()
        return 0
    if subcommand == "doctor":
        return _cmd_doctor(context)
    print(f"Unknown meta subcommand: {subcommand}", file=sys.stderr)
    print("Available: help, doctor", file=sys.stderr)
    return EXIT_USAGE


def _cmd_doctor(context: ExecutionContext) -> int:
    print(format_report(collect_report(context)))
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(int(args.verbose))

    if args.command is None:
        parser.print_help()
        return 0
    if not args.command.strip():
        parser.error("git command must not be blank")

    try:
        settings = resolve_settings(Path(args.config).expanduser() if args.config else None)
        context = build_context(
            settings,
            workers=args.workers,
            dry_run=bool(args.dry_run),
            url_scheme=args.url_scheme,
            oneline=args.oneline,
        )
    except ConfigError as e:
        parser.exit(EXIT_USAGE, f"nit: {e}\n")

    if args.command == "meta":
        return _cmd_meta(parser, args, context)
    if args.command == "doctor":
        return _cmd_doctor(context)

    cwd = Path.cwd()
    git_args = list(args.git_args)
    if (
        not args.no_handoff
        and not context.dry_run
        and args.command not in _NO_HANDOFF_COMMANDS
        and inside_work_tree(cwd=cwd, git=context.git)
    ):
        try:
            return hand_off([*context.url_rewrite_args(), args.command, *git_args], git=context.git)
        except HandoffError as e:
            raise SystemExit(f"nit: {e}") from e

    try:
        targets = discover_targets(cwd)
    except TargetDiscoveryError as e:
        raise SystemExit(f"nit: {e}") from e
    if not targets:
        print(f"No git repositories found in {cwd}")
        return EXIT_NO_TARGETS

    logger.info("Found %d repositories under %s", len(targets), cwd)
    sys.stdout.flush()
    try:
        return execute(targets, command=args.command, args=git_args, context=context)
    except CommandBuildError as e:
        raise SystemExit(f"nit: {e}") from e


if __name__ == "__main__":
    raise SystemExit(main())
