"""Ready-made burst handlers and adapters for the ``(events, done)`` shape."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from functools import partial, wraps
from typing import Any, TextIO

from lull.config import CommandConfig, OutputMode
from lull.core import DoneCallback, Handler
from lull.errors import CommandFailedError, CommandPipeError
from lull.pubsub import Event

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[Exception], None]


def from_async(fn: Callable[[list[Event]], Awaitable[Any]]) -> Handler:
    """Adapt ``async def fn(events)`` to a debouncer handler.

    The coroutine runs as a task on the running loop and ``done()`` is called
    once it finishes. A coroutine that raises is logged and still counts as
    finished, so the debouncer keeps going.

    Example::

        @from_async
        async def notify(events: list[Event]) -> None:
            await client.post("/burst", json={"count": len(events)})

        debouncer = Debouncer(notify, config=DebounceConfig(latency=0.5))
    """
    if not inspect.iscoroutinefunction(fn):
        raise TypeError("from_async only supports async functions.")

    tasks: set[asyncio.Task[Any]] = set()

    def finished(done: DoneCallback, task: asyncio.Task[Any]) -> None:
        tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("burst handler %s failed", fn.__qualname__, exc_info=task.exception())
        done()

    @wraps(fn)
    def handler(events: list[Event], done: DoneCallback) -> None:
        task = asyncio.get_running_loop().create_task(fn(events))
        tasks.add(task)
        task.add_done_callback(partial(finished, done))

    return handler


def utc_timestamp(now: datetime | None = None) -> str:
    """ISO-8601 UTC time with millisecond precision, e.g. ``2024-05-01T12:00:00.000Z``."""
    now = now or datetime.now(UTC)
    return now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def summarize(events: list[Event], mode: OutputMode = OutputMode.COUNT) -> str:
    if mode is OutputMode.TIMESTAMP:
        return utc_timestamp()
    return str(len(events))


class PrintHandler:
    """Write one summary line per burst to *stream* (stdout by default)."""

    __slots__ = ("mode", "stream")

    def __init__(self, mode: OutputMode = OutputMode.COUNT, stream: TextIO | None = None) -> None:
        self.mode = mode
        self.stream = stream

    def __call__(self, events: list[Event], done: DoneCallback) -> None:
        print(summarize(events, self.mode), file=self.stream or sys.stdout, flush=True)
        done()


class CommandHandler:
    """Run a command after every burst.

    The command inherits stdout and stderr. With ``pipe`` set, the burst
    summary line is written to its stdin, which is then closed; otherwise it
    gets no stdin at all.

    ``done()`` is called once the command exits with code 0, or with any code
    when ``ignore_errors`` is set. Otherwise the :class:`CommandError` is
    passed to *on_error* and ``done()`` is never called, leaving the caller
    to decide how to stop. Without *on_error* the error is logged and the
    burst counts as handled.

    Args:
        config: Command line and error policy.
        mode: What the summary line reports.
        on_error: Called with fatal command errors.
    """

    __slots__ = ("_tasks", "config", "mode", "on_error")

    def __init__(
        self,
        config: CommandConfig,
        mode: OutputMode = OutputMode.COUNT,
        *,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self.config = config
        self.mode = mode
        self.on_error = on_error
        self._tasks: set[asyncio.Task[None]] = set()

    def __call__(self, events: list[Event], done: DoneCallback) -> None:
        output = summarize(events, self.mode)
        task = asyncio.get_running_loop().create_task(self.run(output))
        self._tasks.add(task)
        task.add_done_callback(partial(self._finished, done))

    async def run(self, output: str) -> None:
        """Run the command once, raising :class:`CommandError` on failure."""
        cfg = self.config
        try:
            proc = await asyncio.create_subprocess_exec(
                *cfg.argv,
                stdin=asyncio.subprocess.PIPE if cfg.pipe else asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            if cfg.ignore_errors:
                logger.warning("could not start command %s: %s", json.dumps(cfg.command), exc)
                return
            raise CommandFailedError(
                f"could not start command {json.dumps(cfg.command)}: {exc}",
                command=cfg.command,
                exit_code=127,
            ) from exc

        if cfg.pipe:
            assert proc.stdin is not None
            try:
                proc.stdin.write(f"{output}\n".encode())
                await proc.stdin.drain()
                proc.stdin.close()
            except (BrokenPipeError, ConnectionResetError) as exc:
                if not cfg.ignore_errors:
                    await proc.wait()
                    raise CommandPipeError(
                        f"could not write {json.dumps(output)} into stdin of command "
                        f"{json.dumps(cfg.command)}\n{exc}",
                        command=cfg.command,
                        exit_code=1,
                    ) from exc

        code = await proc.wait()
        if code == 0 or cfg.ignore_errors:
            return

        msg = f"command {json.dumps(cfg.command)} exited with a code of {code}"
        if cfg.pipe:
            msg += f" after passing {json.dumps(output)} into stdin"
        raise CommandFailedError(msg, command=cfg.command, exit_code=code)

    def _finished(self, done: DoneCallback, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            done()
            return
        if self.on_error is not None and isinstance(exc, Exception):
            self.on_error(exc)
            return
        logger.error("burst command failed", exc_info=exc)
        done()

    def __repr__(self) -> str:
        return f"CommandHandler(command={self.config.command!r}, mode={self.mode.value})"
