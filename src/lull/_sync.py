"""Synchronous facade over the debouncer.

Hosts debouncers on a background event loop thread so thread-based code can
trigger them without running asyncio itself.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import Any

from lull.config import DebounceConfig
from lull.core import Debouncer, Handler, State


class _EventLoopThread:
    """Manages a background event loop for sync-to-async bridging."""

    __slots__ = ("_loop", "_started", "_thread")

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._started = threading.Event()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self.start()
        assert self._loop is not None
        return self._loop

    def start(self) -> None:
        """Start the background event loop thread (idempotent)."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="lull-loop", daemon=True)
        self._thread.start()
        self._started.wait()

    def _run(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._started.set()
        self._loop.run_forever()

    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule *callback* on the background loop from any thread."""
        self.loop.call_soon_threadsafe(callback, *args)

    def run_coroutine(self, coro: Any, timeout: float | None = None) -> Any:
        """Submit a coroutine to the background loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout)

    def shutdown(self) -> None:
        """Stop the background event loop and join the thread."""
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
            self._loop = None
            self._started.clear()


# Module-level shared event loop thread for sync operations
_shared_loop = _EventLoopThread()


def get_shared_loop() -> _EventLoopThread:
    """Return the shared background event loop thread, starting it if needed."""
    _shared_loop.start()
    return _shared_loop


class SyncDebouncer:
    """Thread-friendly :class:`~lull.core.Debouncer`.

    The handler is called on the background loop thread; it may hand the
    work to another thread and call ``done()`` from there.

    Example::

        def handler(events, done):
            print(len(events))
            done()

        debouncer = SyncDebouncer(handler, config=DebounceConfig(latency=0.2))
        for line in sys.stdin:
            debouncer.trigger(line)
        debouncer.close()
    """

    __slots__ = ("_debouncer", "_runner")

    def __init__(
        self,
        handler: Handler,
        *,
        config: DebounceConfig | None = None,
        runner: _EventLoopThread | None = None,
    ) -> None:
        self._runner = runner or get_shared_loop()

        async def create() -> Debouncer:
            return Debouncer(handler, config=config)

        self._debouncer: Debouncer = self._runner.run_coroutine(create())

    @property
    def state(self) -> State:
        return self._debouncer.state

    @property
    def closed(self) -> bool:
        return self._debouncer.closed

    def trigger(self, payload: Any = None) -> None:
        """Submit one event from any thread."""
        if self._debouncer.closed:
            raise RuntimeError("Debouncer is closed")
        self._runner.call_soon(self._debouncer.trigger, payload)

    def wait_idle(self, timeout: float | None = None) -> None:
        """Block until the debouncer is idle.

        Raises:
            TimeoutError: If it is still busy after *timeout* seconds.
        """
        self._runner.run_coroutine(asyncio.wait_for(self._debouncer.wait_idle(), timeout))

    def close(self, *, flush: bool = True) -> None:
        self._runner.run_coroutine(self._debouncer.close(flush=flush))

    def __enter__(self) -> SyncDebouncer:
        return self

    def __exit__(self, *_: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Sync{self._debouncer!r}"
