"""Configuration types for the lull debouncer."""

import shlex
from dataclasses import dataclass
from enum import StrEnum


class OutputMode(StrEnum):
    """What a settled burst reports.

    COUNT:     Number of events debounced into the burst.
    TIMESTAMP: Current UTC time, ISO-8601 with millisecond precision.
    """

    COUNT = "count"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True, slots=True)
class DebounceConfig:
    """Configuration for a Debouncer instance.

    Attributes:
        latency: Quiet period in seconds. The handler runs once this long
                 has passed since the most recent trigger.
        bootstrap: Run the handler once at startup, before any trigger.
    """

    latency: float = 1.5
    bootstrap: bool = False

    def __post_init__(self) -> None:
        if self.latency < 0:
            raise ValueError(f"latency must be non-negative, got {self.latency}")


@dataclass(frozen=True, slots=True)
class CommandConfig:
    """Command to run after every burst.

    Attributes:
        command: Command line, tokenized with shell quoting rules.
        pipe: Write the burst summary into the command's stdin.
        ignore_errors: Keep debouncing when the command fails.
    """

    command: str
    pipe: bool = False
    ignore_errors: bool = False

    def __post_init__(self) -> None:
        if not shlex.split(self.command):
            raise ValueError("command must not be empty")

    @property
    def argv(self) -> list[str]:
        return shlex.split(self.command)
