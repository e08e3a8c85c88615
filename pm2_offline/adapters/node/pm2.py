"""
PM2 adapter — post-install probes for the pm2 command.

Answers three questions for the orchestrator: which PM2 version is
installed, whether the pm2 command is reachable, and (before a
reinstall) whether a running daemon should be stopped.
"""

from __future__ import annotations

import logging
import re
import shutil
import time
from pathlib import Path

from pm2_offline.adapters.base import InstallTool, Verifier
from pm2_offline.adapters.shell.command import run_command

logger = logging.getLogger(__name__)

_VERSION_LINE = re.compile(r"^\d+\.\d+\.\d+")


class Pm2Adapter(Verifier):
    """Verifier for an npm-installed PM2.

    Args:
        install_tool: Used to find the global bin directory when pm2
            is not on PATH.
        command: Command name of the main package.
        settle_seconds: Pause after stopping the daemon so its
            processes exit before files are replaced.
    """

    def __init__(
        self,
        install_tool: InstallTool | None = None,
        command: str = "pm2",
        settle_seconds: float = 2.0,
    ):
        self._tool = install_tool
        self._command = command
        self._settle_seconds = settle_seconds

    def _resolve(self) -> str | None:
        """Locate the pm2 executable on PATH or in npm's global bin dir."""
        found = shutil.which(self._command)
        if found:
            return found
        fallback = self.fallback_binary()
        if fallback is not None and fallback.is_file():
            return str(fallback)
        return None

    def fallback_binary(self) -> Path | None:
        """``<npm root -g>/../bin/pm2``, where npm links global bins."""
        if self._tool is None:
            return None
        root = self._tool.global_root()
        if root is None:
            return None
        return root.parent / "bin" / self._command

    def current_version(self) -> str | None:
        exe = self._resolve()
        if exe is None:
            return None
        result = run_command([exe, "--version"], timeout=30)
        if not result.ok:
            return None
        # pm2 may print daemon banners before the version
        versions = [
            line.strip()
            for line in result.stdout.splitlines()
            if _VERSION_LINE.match(line.strip())
        ]
        return versions[-1] if versions else None

    def is_functional(self) -> bool:
        on_path = shutil.which(self._command)
        if on_path:
            version = self.current_version() or "unknown"
            logger.info("%s installed, version %s", self._command, version)
            if not run_command([on_path, "list"], timeout=60).ok:
                logger.warning("%s is installed but '%s list' failed", self._command, self._command)
            return True

        fallback = self.fallback_binary()
        if fallback is not None and fallback.is_file():
            logger.warning(
                "%s installed at %s but not on PATH; add %s to PATH",
                self._command,
                fallback,
                fallback.parent,
            )
            return True

        logger.error("%s not correctly installed", self._command)
        return False

    def stop_daemon(self) -> bool:
        exe = shutil.which(self._command)
        if exe is None:
            logger.info("No existing %s installation found", self._command)
            return False
        result = run_command([exe, "kill"], timeout=60)
        if result.ok:
            logger.info("Stopped running %s daemon", self._command)
        else:
            logger.warning("'%s kill' failed, continuing: %s", self._command, result.error_text)
        if self._settle_seconds > 0:
            time.sleep(self._settle_seconds)
        return result.ok
