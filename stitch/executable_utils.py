"""Process execution utilities for Stitch.

Functions and classes:
    find_executable: Locate an executable in PATH.
    SubprocessRunner: CommandRunner implementation backed by subprocess.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from .protocols import CommandResult

logger = logging.getLogger(__name__)


def find_executable(name: str) -> str | None:
    """Find an executable in PATH.

    Names containing a path separator are returned unchanged when they exist.

    Args:
        name: Name of the executable to find (e.g., 'git', 'date').

    Returns:
        Full path to the executable if found, None otherwise.

    Examples:
        >>> find_executable('date')
        '/usr/bin/date'
    """
    if "/" in name or "\\" in name:
        return name if Path(name).exists() else None
    return shutil.which(name)


class SubprocessRunner:
    """Runs `exec` directive commands as child processes.

    Attributes:
        cwd: Working directory for the child process, or None to inherit.
    """

    def __init__(self, cwd: Path | None = None):
        self.cwd = cwd

    def run(self, command: str, args: list[str]) -> CommandResult:
        executable = find_executable(command) or command
        logger.debug("Running %s %s", executable, " ".join(args))
        completed = subprocess.run(
            [executable, *args],
            cwd=self.cwd,
            capture_output=True,
        )
        return CommandResult(
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )
