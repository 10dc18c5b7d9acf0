"""Restartable one-shot timer on top of the asyncio event loop."""

from __future__ import annotations

import logging
from asyncio import AbstractEventLoop, TimerHandle, get_running_loop
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Timer:
    """Fire *action* once, *delay* seconds after the last (re)start.

    Every :meth:`start` opens a new epoch. A scheduled fire only runs the
    action if its epoch is still current, so a fire superseded by
    :meth:`cancel` or :meth:`restart` never reaches the action even if the
    loop already dequeued it.

    Args:
        delay: Seconds between start and fire. Must be non-negative.
        action: Zero-argument callable invoked on fire.
        loop: Event loop to schedule on; defaults to the running loop.
    """

    __slots__ = ("_action", "_epoch", "_handle", "_loop", "delay")

    def __init__(
        self,
        delay: float,
        action: Callable[[], None] | None = None,
        *,
        loop: AbstractEventLoop | None = None,
    ) -> None:
        if delay < 0:
            raise ValueError(f"delay must be non-negative, got {delay}")
        self.delay = delay
        self._action = action
        self._loop = loop
        self._handle: TimerHandle | None = None
        self._epoch = 0

    def _get_loop(self) -> AbstractEventLoop:
        if self._loop is None:
            self._loop = get_running_loop()
        return self._loop

    @property
    def is_running(self) -> bool:
        """True while a fire is scheduled and not yet run or canceled."""
        return self._handle is not None

    def start(self) -> None:
        """Schedule the action; any previously scheduled fire is dropped."""
        self.cancel()
        self._epoch += 1
        self._handle = self._get_loop().call_later(self.delay, self._fire, self._epoch)

    def cancel(self) -> None:
        """Drop the scheduled fire, if any. Safe to call repeatedly."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def restart(self) -> None:
        self.cancel()
        self.start()

    def _fire(self, epoch: int) -> None:
        if epoch != self._epoch or self._handle is None:
            logger.debug("discarding stale timer fire (epoch %d)", epoch)
            return
        self._handle = None
        if self._action is not None:
            self._action()

    def __repr__(self) -> str:
        return f"Timer(delay={self.delay}, running={self.is_running})"
