"""Shared fixtures for lull tests."""

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from lull.config import DebounceConfig
from lull.core import Debouncer
from lull.pubsub import Event


class Recorder:
    """Handler that records each invocation.

    With ``auto_done`` the invocation completes immediately; otherwise the
    ``done`` callbacks queue up until the test calls :meth:`finish`.
    """

    def __init__(self, auto_done: bool = True) -> None:
        self.auto_done = auto_done
        self.calls: list[list[Any]] = []
        self.events: list[list[Event]] = []
        self.times: list[float] = []
        self._done: list[Callable[[], None]] = []

    def __call__(self, events: list[Event], done: Callable[[], None]) -> None:
        self.events.append(list(events))
        self.calls.append([e.payload for e in events])
        self.times.append(asyncio.get_running_loop().time())
        if self.auto_done:
            done()
        else:
            self._done.append(done)

    @property
    def waiting(self) -> int:
        return len(self._done)

    def finish(self) -> None:
        self._done.pop(0)()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def slow_recorder():
    return Recorder(auto_done=False)


@pytest.fixture
def fast_config():
    return DebounceConfig(latency=0.05)


@pytest.fixture
async def debouncer(recorder, fast_config):
    async with Debouncer(recorder, config=fast_config) as d:
        yield d
