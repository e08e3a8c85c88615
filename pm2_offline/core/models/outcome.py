"""
Install outcome models — one result per archive, one report per stage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from pm2_offline.core.models.archive import PackageArchive, Stage


class OutcomeStatus(StrEnum):
    """Final status of one archive's attempt sequence."""

    SUCCESS = "success"
    SUCCESS_FORCED = "success_forced"
    FAILED = "failed"


class InstallOutcome(BaseModel):
    """Result of installing one archive. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    archive: PackageArchive
    status: OutcomeStatus
    attempts: int = 0               # real install invocations made
    error: str | None = None
    duration_ms: int = 0

    @property
    def installed(self) -> bool:
        return self.status != OutcomeStatus.FAILED

    @property
    def forced(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS_FORCED

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED

    def to_dict(self) -> dict:
        return {
            "archive": str(self.archive.path),
            "name": self.archive.display_name,
            "status": self.status.value,
            "attempts": self.attempts,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class StageReport:
    """Aggregate over one stage's outcomes."""

    stage: Stage
    outcomes: list[InstallOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.status == OutcomeStatus.SUCCESS)

    @property
    def forced(self) -> int:
        return sum(1 for o in self.outcomes if o.forced)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.failed)

    @property
    def installed(self) -> int:
        return self.succeeded + self.forced

    @property
    def status(self) -> str:
        if self.failed == 0:
            return "ok"
        if self.installed > 0:
            return "partial"
        return "failed"

    def to_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            "status": self.status,
            "total": self.total,
            "succeeded": self.succeeded,
            "forced": self.forced,
            "failed": self.failed,
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
