"""Command-line test runner.

Usage::

    flintmc tests/ --server localhost:25565 --client mybot.session:connect -r

The network client is not part of this package. ``--client`` names a
factory as ``module:attribute``; it is called with the server address and
must return a connected :class:`~flintmc.session.GameSession`.
"""

from __future__ import annotations

import argparse
import dataclasses
import importlib
import logging
import sys
from typing import Callable

from flintmc.config import TimingConfig
from flintmc.errors import FlintError, RunCancelled
from flintmc.executor import TestExecutor
from flintmc.reporting import ConsoleReporter
from flintmc.runner import collect_test_files, run_test_files
from flintmc.session import GameSession
from flintmc.timeline import Position

logger = logging.getLogger(__name__)

SessionFactory = Callable[[str], GameSession]


def parse_offset(text: str) -> Position:
    """Parse ``X,Y,Z`` into a position (argparse ``type=``)."""
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 3:
        msg = f"offset must be X,Y,Z (got {text!r})"
        raise argparse.ArgumentTypeError(msg)
    try:
        return (int(parts[0]), int(parts[1]), int(parts[2]))
    except ValueError:
        msg = f"offset must be three integers (got {text!r})"
        raise argparse.ArgumentTypeError(msg) from None


def load_client_factory(target: str) -> SessionFactory:
    """Import a session factory given as ``module:attribute``.

    Raises:
        ValueError: If ``target`` is malformed or does not resolve to a callable.
    """
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        msg = f"client must be given as module:factory (got {target!r})"
        raise ValueError(msg)
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        msg = f"cannot import client module {module_name!r}: {exc}"
        raise ValueError(msg) from exc
    factory = getattr(module, attr, None)
    if not callable(factory):
        msg = f"{target!r} is not a callable session factory"
        raise ValueError(msg)
    return factory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flintmc",
        description="Minecraft server testing framework",
    )
    parser.add_argument("path", help="test file or directory")
    parser.add_argument("-s", "--server", required=True, help="server address, e.g. localhost:25565")
    parser.add_argument(
        "-c", "--client", required=True,
        help="session factory as module:callable, called with the server address",
    )
    parser.add_argument(
        "-r", "--recursive", action="store_true",
        help="search directories recursively for test files",
    )
    parser.add_argument(
        "--offset", type=parse_offset, default=(0, 0, 0),
        help="X,Y,Z added to every position (default 0,0,0)",
    )
    parser.add_argument("--timing", help="JSON file overriding timing defaults")
    parser.add_argument(
        "--sprint-idle", action="store_true",
        help="skip runs of empty ticks with a single sprint",
    )
    parser.add_argument("--report", help="write a JSON summary to this file")
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="show tick advances and log at INFO (-vv for DEBUG)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the CLI; return the process exit code."""
    args = build_parser().parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")

    print("FlintMC - Minecraft Testing Framework\n")

    files = collect_test_files(args.path, args.recursive)
    if not files:
        print(f"Error: No test files found at: {args.path}", file=sys.stderr)
        return 1
    print(f"Found {len(files)} test file(s)\n")

    try:
        config = TimingConfig.load(args.timing) if args.timing else TimingConfig()
        factory = load_client_factory(args.client)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    if args.sprint_idle:
        config = dataclasses.replace(config, sprint_idle_ticks=True)

    print(f"-> Connecting to {args.server}...")
    try:
        session = factory(args.server)
    except (FlintError, OSError) as exc:
        print(f"Error: could not connect to {args.server}: {exc}", file=sys.stderr)
        return 1
    print("Connected successfully")

    executor = TestExecutor(
        session,
        config=config,
        observer=ConsoleReporter(show_ticks=args.verbose > 0),
    )
    try:
        summary = run_test_files(executor, files, args.offset)
    except RunCancelled as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        close = getattr(session, "close", None)
        if callable(close):
            close()

    print("\n" + summary.summary() + "\n")
    if args.report:
        summary.save(args.report)
        print(f"JSON report: {args.report}")

    return 0 if summary.all_passed else 1


if __name__ == "__main__":
    sys.exit(main())
