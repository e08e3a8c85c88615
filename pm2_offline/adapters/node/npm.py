"""
npm adapter — global installs from local .tgz archives.

Wraps ``npm install -g``, ``npm uninstall -g`` and ``npm root -g`` behind
the InstallTool contract. Commands never go through a shell and every
invocation carries a timeout.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
from pathlib import Path

from pm2_offline.adapters.base import InstallTool
from pm2_offline.adapters.shell.command import run_command
from pm2_offline.core.models.receipt import Receipt

logger = logging.getLogger(__name__)

# Fixed locations checked when npm is not on PATH
_NPM_CANDIDATES = (
    "/usr/bin/npm",
    "/usr/local/bin/npm",
    "/opt/nodejs/bin/npm",
)

# nvm installs, per user
_NVM_PATTERNS = (
    "/root/.nvm/versions/node/*/bin/npm",
    "/home/*/.nvm/versions/node/*/bin/npm",
)

_QUIET_FLAGS = ("--no-audit", "--no-fund", "--silent")


def locate_npm(extra_candidates: list[str] | None = None) -> str | None:
    """Find an npm executable, extending PATH when it lives off-PATH.

    Returns:
        Path to npm, or None when no candidate is executable.
    """
    found = shutil.which("npm")
    if found:
        return found

    candidates = list(extra_candidates or []) + list(_NPM_CANDIDATES)
    for pattern in _NVM_PATTERNS:
        candidates.extend(sorted(glob.glob(pattern)))

    for candidate in candidates:
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            bin_dir = os.path.dirname(candidate)
            # node and globally installed bins sit next to npm
            os.environ["PATH"] = bin_dir + os.pathsep + os.environ.get("PATH", "")
            logger.info("Found npm at %s (added %s to PATH)", candidate, bin_dir)
            return candidate

    return None


class NpmAdapter(InstallTool):
    """Install tool backed by the npm CLI.

    Args:
        npm: npm executable (default: resolved with ``locate_npm``).
        timeout: Seconds allowed per install attempt.
        scope: Organization whose scoped leftovers are cleaned on
            uninstall (``pm2-io`` also clears ``@pm2/io``).
    """

    def __init__(self, npm: str | None = None, timeout: int = 600, scope: str = "pm2"):
        self._npm = npm
        self._timeout = timeout
        self._scope = scope
        self._root_cache: Path | None = None

    @property
    def name(self) -> str:
        return "npm"

    @property
    def executable(self) -> str:
        if self._npm is None:
            self._npm = locate_npm() or "npm"
        return self._npm

    def is_available(self) -> bool:
        if self._npm is not None:
            return shutil.which(self._npm) is not None or os.access(self._npm, os.X_OK)
        return locate_npm() is not None

    def version(self) -> str | None:
        """Detect the npm version string."""
        result = run_command([self.executable, "--version"], timeout=15)
        return result.stdout.strip() if result.ok else None

    # ── InstallTool ─────────────────────────────────────────────

    def install(self, archive: Path, *, force: bool = False) -> Receipt:
        argv = [self.executable, "install", "-g", str(archive)]
        if force:
            argv.append("--force")
        argv.extend(_QUIET_FLAGS)

        result = run_command(argv, timeout=self._timeout)
        meta = {"command": " ".join(argv), "force": force}

        if result.ok:
            return Receipt.success(
                tool=self.name,
                operation="install",
                target=str(archive),
                output=result.stdout.strip(),
                duration_ms=result.duration_ms,
                return_code=result.returncode,
                metadata=meta,
            )
        return Receipt.failure(
            tool=self.name,
            operation="install",
            target=str(archive),
            error=result.error_text,
            duration_ms=result.duration_ms,
            return_code=result.returncode,
            metadata={**meta, "timed_out": result.timed_out},
        )

    def uninstall(self, package_name: str) -> Receipt:
        argv = [self.executable, "uninstall", "-g", package_name, "--silent"]
        result = run_command(argv, timeout=self._timeout)
        removed = self._remove_leftovers(package_name)

        meta = {"command": " ".join(argv), "removed_dirs": removed}
        if result.ok:
            return Receipt.success(
                tool=self.name,
                operation="uninstall",
                target=package_name,
                duration_ms=result.duration_ms,
                return_code=result.returncode,
                metadata=meta,
            )
        return Receipt.failure(
            tool=self.name,
            operation="uninstall",
            target=package_name,
            error=result.error_text,
            duration_ms=result.duration_ms,
            return_code=result.returncode,
            metadata=meta,
        )

    def global_root(self) -> Path | None:
        if self._root_cache is not None:
            return self._root_cache
        result = run_command([self.executable, "root", "-g"], timeout=30)
        if not result.ok or not result.stdout.strip():
            logger.debug("npm root -g failed: %s", result.error_text)
            return None
        self._root_cache = Path(result.stdout.strip().splitlines()[-1])
        return self._root_cache

    # ── Helpers ─────────────────────────────────────────────────

    def _leftover_dirs(self, package_name: str) -> list[Path]:
        root = self.global_root()
        if root is None or not package_name:
            return []
        dirs = [root / package_name]
        prefix = f"{self._scope}-"
        if self._scope and package_name.startswith(prefix) and len(package_name) > len(prefix):
            dirs.append(root / f"@{self._scope}" / package_name[len(prefix):])
        return dirs

    def _remove_leftovers(self, package_name: str) -> list[str]:
        """Delete package directories npm uninstall left behind."""
        removed: list[str] = []
        for path in self._leftover_dirs(package_name):
            if not path.is_dir():
                continue
            try:
                shutil.rmtree(path)
                removed.append(str(path))
            except OSError as e:
                logger.warning("Could not remove %s: %s", path, e)
        return removed
