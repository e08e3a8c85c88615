"""
Adapter base — the contract between the install engine and host tools.

The engine never shells out itself. It talks to an InstallTool (npm)
and a Verifier (pm2) through these interfaces, which lets tests swap in
scripted fakes for the host package manager.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pm2_offline.core.models.receipt import Receipt


class InstallTool(ABC):
    """Package manager that installs archives into the global scope.

    Implementations NEVER raise for tool failures: a failed install or
    uninstall is a Receipt with status='failed'.

    Implementations must be safe to call from several worker threads at
    once; each call is independent.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The tool identifier (e.g., 'npm')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the underlying tool can be run. Fast, never raises."""

    @abstractmethod
    def install(self, archive: Path, *, force: bool = False) -> Receipt:
        """Install one archive globally. ``force`` overrides conflict checks."""

    @abstractmethod
    def uninstall(self, package_name: str) -> Receipt:
        """Remove a globally installed package (best-effort)."""

    @abstractmethod
    def global_root(self) -> Path | None:
        """Directory holding globally installed packages, if known."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class Verifier(ABC):
    """Probe for the installed main package."""

    @abstractmethod
    def current_version(self) -> str | None:
        """Version of the installed main package, or None if absent."""

    @abstractmethod
    def is_functional(self) -> bool:
        """Whether the main package's command is reachable after install."""

    def stop_daemon(self) -> bool:
        """Stop a running daemon of the main package before reinstalling.

        Returns True when something was stopped. Default: nothing to stop.
        """
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"
