"""
Mock adapters — scripted stand-ins for npm and pm2.

Used by tests and by ``install --mock`` to exercise the whole staging
and retry logic without touching the host's global packages.
Scripts are keyed by archive file name (``pm2-io-2.0.0.tgz``).
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path

from pm2_offline.adapters.base import InstallTool, Verifier
from pm2_offline.core.models.receipt import Receipt


@dataclass(frozen=True)
class ToolCall:
    """One recorded invocation of the scripted tool."""

    operation: str      # install | uninstall
    target: str         # archive file name or package name
    force: bool = False


class ScriptedInstallTool(InstallTool):
    """Install tool whose results are scripted per archive.

    By default every install succeeds. ``set_script`` gives an archive
    an ordered list of install results; calls beyond the list reuse
    its last entry.

    Thread-safe: the batch installer calls it from worker threads.
    """

    def __init__(
        self,
        tool_name: str = "scripted",
        available: bool = True,
        delay: float = 0.0,
        root: Path | None = None,
    ):
        self._name = tool_name
        self._available = available
        self._delay = delay
        self._root = root
        self._scripts: dict[str, list[bool]] = {}
        self._forced_only: set[str] = set()
        self._uninstall_failures: set[str] = set()
        self._uninstall_errors: set[str] = set()
        self._calls: list[ToolCall] = []
        self._counters: dict[str, int] = {}
        self._lock = threading.Lock()
        self._active = 0
        self._peak = 0

    @property
    def name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return self._available

    # ── Scripting ───────────────────────────────────────────────

    def set_script(self, archive_name: str, results: list[bool]) -> None:
        """Script the results of successive install calls for an archive."""
        if not results:
            raise ValueError("results must not be empty")
        self._scripts[archive_name] = list(results)

    def fail_always(self, archive_name: str) -> None:
        self.set_script(archive_name, [False])

    def succeed_only_forced(self, archive_name: str) -> None:
        """Normal installs fail, forced installs succeed."""
        self._forced_only.add(archive_name)

    def fail_uninstall(self, package_name: str, *, raise_error: bool = False) -> None:
        """Make uninstall of a package fail, or raise when ``raise_error``."""
        if raise_error:
            self._uninstall_errors.add(package_name)
        else:
            self._uninstall_failures.add(package_name)

    # ── Introspection ───────────────────────────────────────────

    @property
    def calls(self) -> list[ToolCall]:
        with self._lock:
            return list(self._calls)

    def install_calls(self, archive_name: str | None = None) -> list[ToolCall]:
        return [
            c for c in self.calls
            if c.operation == "install" and (archive_name is None or c.target == archive_name)
        ]

    def uninstall_calls(self) -> list[ToolCall]:
        return [c for c in self.calls if c.operation == "uninstall"]

    @property
    def peak_concurrency(self) -> int:
        """Highest number of install calls seen running at once."""
        return self._peak

    def reset(self) -> None:
        with self._lock:
            self._calls.clear()
            self._counters.clear()
            self._peak = 0

    # ── InstallTool ─────────────────────────────────────────────

    def install(self, archive: Path, *, force: bool = False) -> Receipt:
        key = Path(archive).name
        with self._lock:
            self._calls.append(ToolCall("install", key, force))
            index = self._counters.get(key, 0)
            self._counters[key] = index + 1
            self._active += 1
            self._peak = max(self._peak, self._active)

        try:
            if self._delay:
                time.sleep(self._delay)
            ok = self._scripted_result(key, index, force)
        finally:
            with self._lock:
                self._active -= 1

        if ok:
            return Receipt.success(
                tool=self._name,
                operation="install",
                target=str(archive),
                output="[scripted] installed",
                metadata={"force": force, "call": index + 1},
            )
        return Receipt.failure(
            tool=self._name,
            operation="install",
            target=str(archive),
            error="[scripted] install failed",
            metadata={"force": force, "call": index + 1},
        )

    def uninstall(self, package_name: str) -> Receipt:
        with self._lock:
            self._calls.append(ToolCall("uninstall", package_name))
        if package_name in self._uninstall_errors:
            raise RuntimeError(f"[scripted] uninstall of {package_name} blew up")
        if package_name in self._uninstall_failures:
            return Receipt.failure(
                tool=self._name,
                operation="uninstall",
                target=package_name,
                error="[scripted] uninstall failed",
            )
        return Receipt.success(tool=self._name, operation="uninstall", target=package_name)

    def global_root(self) -> Path | None:
        return self._root

    def _scripted_result(self, key: str, index: int, force: bool) -> bool:
        if key in self._forced_only:
            return force
        script = self._scripts.get(key)
        if script is None:
            return True
        return script[min(index, len(script) - 1)]


class MockVerifier(Verifier):
    """Verifier with fixed answers and a call log."""

    def __init__(self, version: str | None = None, functional: bool = True):
        self.version = version
        self.functional = functional
        self.calls: list[str] = []

    def current_version(self) -> str | None:
        self.calls.append("current_version")
        return self.version

    def is_functional(self) -> bool:
        self.calls.append("is_functional")
        return self.functional

    def stop_daemon(self) -> bool:
        self.calls.append("stop_daemon")
        return self.version is not None
