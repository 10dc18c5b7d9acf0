"""Debounce state machine: the main entry point of the library."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from lull.config import DebounceConfig
from lull.pubsub import Event, PubSub
from lull.timer import Timer

logger = logging.getLogger(__name__)

DoneCallback = Callable[[], None]
Handler = Callable[[list[Event], DoneCallback], None]

BOOTSTRAP = "bootstrap"
TRIGGER = "trigger"
TIMER_DONE = "timer done"
HANDLER_DONE = "handler done"
CLOSE = "close"


class State(StrEnum):
    """Debouncer FSM states."""

    IDLE = "idle"  # waiting for a trigger
    TIMING = "timing"  # trigger received, not handling yet
    HANDLING = "handling"  # handler running, no triggers since it started
    QUEUEING = "queueing"  # handler running, got a trigger before it finished


_AFTER_TRIGGER: dict[State, State] = {
    State.IDLE: State.TIMING,
    State.TIMING: State.TIMING,
    State.HANDLING: State.QUEUEING,
    State.QUEUEING: State.QUEUEING,
}


class Debouncer:
    """Waits for a quiet period after a burst of triggers, then runs a handler.

    How it works:
        - Every :meth:`trigger` restarts the quiet-period timer and appends
          an event to the pending buffer.
        - When the timer elapses, the handler is called with the buffer.
        - The handler runs for as long as it likes and reports completion by
          calling ``done()`` exactly once. Triggers arriving meanwhile are
          kept and handed to the next invocation, which starts as soon as
          the current one finishes if their quiet period has already passed.

    Example::

        latency=0.1

        t=0.00 trigger(a)   -> IDLE -> TIMING
        t=0.05 trigger(b)   -> timer restarted
        t=0.15 timer fires  -> handler([a, b], done), TIMING -> HANDLING
        t=0.20 trigger(c)   -> HANDLING -> QUEUEING
        t=0.40 done()       -> timer elapsed at 0.30, handler([c], done)

    Each reaction (trigger, timer fire, handler completion) runs as its own
    callback on the event loop, so state transitions never interleave.
    ``done`` may be called from any thread.

    Args:
        handler: Callable taking the buffered events and a ``done`` callback.
            It is never invoked while a previous invocation is in flight.
        config: Latency and bootstrap settings.
        loop: Event loop to run on; defaults to the running loop.
    """

    __slots__ = (
        "_closed",
        "_config",
        "_discard",
        "_handler",
        "_idle",
        "_in_flight",
        "_loop",
        "_pending",
        "_pubsub",
        "_state",
        "_timer",
    )

    def __init__(
        self,
        handler: Handler,
        *,
        config: DebounceConfig | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._config = config or DebounceConfig()
        self._loop = loop or asyncio.get_running_loop()
        self._handler = handler
        self._pending: list[Event] = []
        self._in_flight = 0
        self._state = State.IDLE
        self._closed = False
        self._discard = False
        self._idle = asyncio.Event()
        self._idle.set()

        self._pubsub = PubSub()
        self._pubsub.subscribe(TRIGGER, self._triggered)
        self._pubsub.subscribe(BOOTSTRAP, self._bootstrapped)
        self._pubsub.subscribe(TIMER_DONE, self._timer_finished)
        self._pubsub.subscribe(HANDLER_DONE, self._handler_finished)
        self._pubsub.subscribe(CLOSE, self._closing)
        self._timer = Timer(self._config.latency, self._timer_elapsed, loop=self._loop)

        if self._config.bootstrap:
            self._pubsub.publish(BOOTSTRAP)

    @property
    def config(self) -> DebounceConfig:
        return self._config

    @property
    def latency(self) -> float:
        return self._config.latency

    @property
    def state(self) -> State:
        return self._state

    @property
    def pending(self) -> int:
        """Number of events buffered since the last drain."""
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    def trigger(self, payload: Any = None) -> None:
        """Submit one event. The reaction runs on the next loop iteration."""
        self._ensure_open()
        self._loop.call_soon(self._pubsub.publish, TRIGGER, {"payload": payload})

    async def wait_idle(self) -> None:
        """Wait until no timer is counting down and no handler is running.

        Triggers submitted before the call are taken into account.
        """
        await asyncio.sleep(0)
        await self._idle.wait()

    async def close(self, *, flush: bool = True) -> None:
        """Stop the quiet-period timer and refuse further triggers.

        With *flush*, events already accepted are still handed to the handler
        without waiting for the quiet period: a burst that is counting down
        starts the handler at once, and triggers submitted before the close
        but not yet processed are buffered as usual. Without *flush* those
        events are discarded. A handler invocation already in flight runs to
        completion either way.
        """
        if self._closed:
            return
        self._closed = True
        self._discard = not flush
        self._pubsub.publish(CLOSE)

    async def __aenter__(self) -> Debouncer:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.close()

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("Debouncer is closed")

    def _set_state(self, state: State) -> None:
        if state is not self._state:
            logger.debug("%s -> %s", self._state, state)
        self._state = state
        if state is State.IDLE:
            self._idle.set()
        else:
            self._idle.clear()

    def _timer_elapsed(self) -> None:
        self._pubsub.publish(TIMER_DONE)

    def _handle(self) -> None:
        batch = list(self._pending)
        self._in_flight = len(batch)
        self._loop.call_soon(self._invoke, batch)

    def _invoke(self, batch: list[Event]) -> None:
        finished = False

        def done() -> None:
            nonlocal finished
            if finished:
                raise RuntimeError("done() already called for this handler invocation")
            finished = True
            self._loop.call_soon_threadsafe(self._pubsub.publish, HANDLER_DONE)

        logger.debug("invoking handler with %d event(s)", len(batch))
        self._handler(batch, done)

    # received bootstrap event
    def _bootstrapped(self, event: Event) -> None:
        self._pending.append(event)
        self._handle()
        self._set_state(State.HANDLING)

    # received input to debounce
    def _triggered(self, event: Event) -> None:
        if self._discard:
            logger.debug("discarding trigger processed after close")
            return
        self._pending.append(event)
        if not self._closed:
            self._timer.restart()
            self._set_state(_AFTER_TRIGGER[self._state])
        elif self._state in (State.IDLE, State.TIMING):
            self._handle()
            self._set_state(State.HANDLING)
        elif self._state is State.HANDLING:
            self._set_state(State.QUEUEING)

    # no more triggers; settle what is already buffered
    def _closing(self, _event: Event) -> None:
        self._timer.cancel()
        if self._discard:
            del self._pending[self._in_flight :]
            if self._state is State.TIMING:
                self._set_state(State.IDLE)
            elif self._state is State.QUEUEING:
                self._set_state(State.HANDLING)
        elif self._state is State.TIMING:
            self._handle()
            self._set_state(State.HANDLING)

    # invoke handler if ready
    def _timer_finished(self, _event: Event) -> None:
        if self._state is not State.TIMING:
            return
        self._handle()
        self._set_state(State.HANDLING)

    # handler is ready to be invoked again
    def _handler_finished(self, _event: Event) -> None:
        del self._pending[: self._in_flight]
        self._in_flight = 0

        if self._state is State.HANDLING:
            self._set_state(State.IDLE)
        elif self._state is State.QUEUEING:
            if self._timer.is_running:
                self._set_state(State.TIMING)
            else:
                self._handle()
                self._set_state(State.HANDLING)

    def __repr__(self) -> str:
        return (
            f"Debouncer(latency={self._config.latency}, "
            f"state={self._state.value}, "
            f"closed={self._closed})"
        )
