"""
Error taxonomy for command and pipeline execution.

Errors are returned as values by the runners (``Command.run``,
``run_pipeline``, ``run_or``, ``run_and``); nothing here is raised by the
core unless the caller asks for it.
"""

from __future__ import annotations

import signal
from enum import Enum
from typing import Optional


class ErrorCategory(Enum):
    """Categories of execution errors."""
    LAUNCH = "launch"
    RUNTIME = "runtime"
    AGGREGATE = "aggregate"


class CommandError(Exception):
    """Base class for every error produced while running external programs."""

    category = ErrorCategory.RUNTIME

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(message)
        self.command = command


class LaunchError(CommandError):
    """The executable could not be started (missing, not executable, ...)."""

    category = ErrorCategory.LAUNCH

    def __init__(self, command: str, cause: OSError):
        reason = cause.strerror or str(cause)
        super().__init__(f"{command}: {reason}", command=command)
        self.cause = cause


class ExitError(CommandError):
    """The process ran but exited nonzero or was killed by a signal."""

    def __init__(self, command: str, returncode: int):
        self.returncode = returncode
        if returncode < 0:
            message = f"{command}: signal: {self.signal}"
        else:
            message = f"{command}: exit status {returncode}"
        super().__init__(message, command=command)

    @property
    def signal(self) -> Optional[str]:
        if self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode).name
        except ValueError:
            return f"signal {-self.returncode}"


class StreamCopyError(CommandError):
    """Copying data between a caller stream and the process failed."""

    def __init__(self, command: str, cause: BaseException):
        super().__init__(f"{command}: copying stream: {cause}", command=command)
        self.cause = cause


class NoneSucceededError(CommandError):
    """Returned by ``run_or`` when no alternative succeeded."""

    category = ErrorCategory.AGGREGATE

    def __init__(self, message: str = "none succeeded"):
        super().__init__(message)
