"""Protocol definitions for Stitch.

The resolver's only ambient inputs are wall-clock time (`currentdate`) and
external processes (`exec`). Both are injected through these protocols so
tests can supply a fixed clock and a fake command runner.
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Outcome of running an external command.

    Attributes:
        returncode: Process exit status.
        stdout: Raw standard output.
        stderr: Raw standard error.
    """

    returncode: int
    stdout: bytes
    stderr: bytes


@runtime_checkable
class CommandRunner(Protocol):
    """Protocol for running external commands for `exec` directives."""

    @abstractmethod
    def run(self, command: str, args: list[str]) -> CommandResult:
        """Run a command synchronously and capture its output.

        Args:
            command: Program name or path.
            args: Arguments passed to the program, in order.

        Returns:
            The captured result.

        Raises:
            OSError: If the program can not be started.
        """
        ...


@runtime_checkable
class Clock(Protocol):
    """Protocol for the current local time used by `currentdate`."""

    @abstractmethod
    def __call__(self) -> datetime:
        ...
