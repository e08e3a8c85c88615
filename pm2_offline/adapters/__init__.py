"""Adapters — bindings for the host tools the installer drives.

Public re-exports for convenient access.
"""

from pm2_offline.adapters.base import InstallTool, Verifier
from pm2_offline.adapters.mock import MockVerifier, ScriptedInstallTool

__all__ = [
    "InstallTool",
    "MockVerifier",
    "ScriptedInstallTool",
    "Verifier",
]
