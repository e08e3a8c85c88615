"""
Shell command runner — the single place subprocess is invoked.

The npm and pm2 adapters build argv lists and hand them here. Output is
captured, timing is recorded, and a timeout or missing executable comes
back as a CommandResult instead of an exception.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from dataclasses import dataclass
from typing import Mapping, Sequence

logger = logging.getLogger(__name__)

# Return code reported when the command never produced one
NO_RETURN_CODE = -1


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def error_text(self) -> str:
        """Best short description of a failure."""
        if self.timed_out:
            return f"Command timed out: {format_argv(self.argv)}"
        return self.stderr.strip() or f"Command exited with code {self.returncode}"


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_command(
    argv: Sequence[str],
    *,
    timeout: float | None = 300,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
) -> CommandResult:
    """Run a command and capture its output.

    Args:
        argv: Command and arguments (never passed through a shell).
        timeout: Seconds before the command is killed. None = no limit.
        env: Extra environment variables layered over os.environ.
        cwd: Working directory.

    Returns:
        CommandResult. Never raises for command failures.
    """
    argv_list = list(argv)
    logger.debug("CMD %s", format_argv(argv_list))
    start = time.monotonic()

    try:
        proc = subprocess.run(
            argv_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
        )
    except subprocess.TimeoutExpired:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.warning("Timed out after %ss: %s", timeout, format_argv(argv_list))
        return CommandResult(
            argv=argv_list,
            returncode=NO_RETURN_CODE,
            duration_ms=elapsed_ms,
            timed_out=True,
        )
    except OSError as e:
        # Executable missing or not runnable
        return CommandResult(
            argv=argv_list,
            returncode=NO_RETURN_CODE,
            stderr=str(e),
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    elapsed_ms = int((time.monotonic() - start) * 1000)
    if proc.stdout:
        logger.debug("STDOUT %s", proc.stdout.strip())
    if proc.stderr:
        logger.debug("STDERR %s", proc.stderr.strip())

    return CommandResult(
        argv=argv_list,
        returncode=proc.returncode,
        stdout=proc.stdout or "",
        stderr=proc.stderr or "",
        duration_ms=elapsed_ms,
    )
