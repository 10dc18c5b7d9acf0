"""Command-line interface: debounce lines of stdin.

Groups rapid lines of stdin, and produces stdout or executes a command after
each group.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import threading
from collections.abc import Iterable, Sequence
from typing import TextIO

from lull import __version__
from lull.config import CommandConfig, DebounceConfig, OutputMode
from lull.core import Debouncer, Handler
from lull.errors import CommandError
from lull.handlers import CommandHandler, PrintHandler

logger = logging.getLogger(__name__)

DEFAULT_LATENCY_MS = 1500


def _milliseconds(value: str) -> int:
    try:
        ms = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid latency: {value!r}") from None
    if ms < 0:
        raise argparse.ArgumentTypeError(f"latency must be non-negative, got {ms}")
    return ms


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lull",
        description="Groups rapid lines of stdin, and produces stdout or executes a command after each group.",
    )
    parser.add_argument(
        "-l",
        "--latency",
        type=_milliseconds,
        default=DEFAULT_LATENCY_MS,
        metavar="MS",
        help=f"how many milliseconds to debounce before emitting output or executing command (default: {DEFAULT_LATENCY_MS})",
    )
    parser.add_argument("-b", "--bootstrap", action="store_true", help="trigger an event immediately")
    parser.add_argument(
        "-t",
        "--timestamp",
        action="store_true",
        help="print timestamps instead of the debounced event count",
    )
    parser.add_argument(
        "-e",
        "--exec",
        dest="command",
        metavar="CMD",
        help="execute a command after every group of events. Events arriving while the command runs are considered a single group.",
    )
    parser.add_argument(
        "-i",
        "--ignore-errors",
        action="store_true",
        help="when the exec option is specified, continue debouncing and do not exit even if the command exits with an error code",
    )
    parser.add_argument(
        "-p",
        "--pipe",
        action="store_true",
        help="when the exec option is specified, pipe my stdout into the command",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log state transitions to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _pump(source: Iterable[bytes], loop: asyncio.AbstractEventLoop, debouncer: Debouncer, eof: asyncio.Future[None]) -> None:
    """Read lines on a worker thread and hand them to the loop."""

    def submit(line: bytes) -> None:
        if not debouncer.closed:
            debouncer.trigger(line)

    def finish() -> None:
        if not eof.done():
            eof.set_result(None)

    try:
        for line in source:
            if loop.is_closed():
                return
            loop.call_soon_threadsafe(submit, line.rstrip(b"\r\n"))
    finally:
        if not loop.is_closed():
            loop.call_soon_threadsafe(finish)


def command_config(args: argparse.Namespace) -> CommandConfig | None:
    if args.command is None:
        return None
    return CommandConfig(args.command, pipe=args.pipe, ignore_errors=args.ignore_errors)


async def run(
    args: argparse.Namespace,
    stdin: Iterable[bytes] | None = None,
    stdout: TextIO | None = None,
) -> int:
    """Debounce *stdin* lines until end of input or a fatal command error.

    Returns:
        The process exit code.
    """
    loop = asyncio.get_running_loop()
    failure: asyncio.Future[Exception] = loop.create_future()
    eof: asyncio.Future[None] = loop.create_future()

    def on_error(exc: Exception) -> None:
        if not failure.done():
            failure.set_result(exc)

    mode = OutputMode.TIMESTAMP if args.timestamp else OutputMode.COUNT
    handler: Handler
    command = command_config(args)
    if command is not None:
        handler = CommandHandler(command, mode, on_error=on_error)
    else:
        handler = PrintHandler(mode, stdout)

    config = DebounceConfig(latency=args.latency / 1000, bootstrap=args.bootstrap)
    async with Debouncer(handler, config=config) as debouncer:
        logger.debug("started %r with %r", debouncer, handler)
        reader = threading.Thread(
            target=_pump,
            args=(stdin if stdin is not None else sys.stdin.buffer, loop, debouncer, eof),
            name="lull-stdin",
            daemon=True,
        )
        reader.start()
        await asyncio.wait({eof, failure}, return_when=asyncio.FIRST_COMPLETED)
        # end of input or a fatal error: exit without running the pending burst
        await debouncer.close(flush=False)

    if failure.done():
        exc = failure.result()
        print(f"Error: {exc}", file=sys.stderr)
        return exc.exit_code if isinstance(exc, CommandError) else 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        command_config(args)
    except ValueError as exc:
        parser.error(f"invalid --exec command: {exc}")
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
