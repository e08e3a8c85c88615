"""
Receipt model — the adapter I/O contract.

Adapters run external tools (npm, pm2) and return Receipts. A failed
tool invocation is a Receipt with status='failed', never an exception,
so the install engine can branch on results without try/except noise.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Receipt(BaseModel):
    """Result of one adapter invocation."""

    tool: str                        # adapter that produced it (npm, pm2, scripted)
    operation: str                   # install, uninstall, version, ...
    target: str = ""                 # archive path or package name
    status: Literal["ok", "failed"] = "ok"

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @classmethod
    def success(
        cls,
        tool: str,
        operation: str,
        target: str = "",
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            tool=tool,
            operation=operation,
            target=target,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        tool: str,
        operation: str,
        error: str,
        target: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            tool=tool,
            operation=operation,
            target=target,
            status="failed",
            error=error,
            **kwargs,
        )
