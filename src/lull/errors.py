"""Exception types raised around the debouncer core."""


class LullError(Exception):
    """Base class for lull errors."""


class CommandError(LullError):
    """A burst command could not complete successfully."""

    def __init__(self, message: str, *, command: str, exit_code: int) -> None:
        super().__init__(message)
        self.command = command
        self.exit_code = exit_code


class CommandFailedError(CommandError):
    """The burst command exited with a non-zero code."""


class CommandPipeError(CommandError):
    """The burst summary could not be written into the command's stdin."""
