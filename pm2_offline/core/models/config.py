"""
Installer configuration model — loaded from pm2-offline.yml.

Every field has a default, so running without a config file installs
PM2 with the same rules the stock offline installers use.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

DEFAULT_CORE_PACKAGES = [
    "async",
    "debug",
    "semver",
    "commander",
    "eventemitter2",
    "js-yaml",
]


class InstallerConfig(BaseModel):
    """Tunable knobs of an offline install run."""

    # What is being installed
    main_package: str = "pm2"
    core_packages: list[str] = Field(default_factory=lambda: list(DEFAULT_CORE_PACKAGES))

    # Where archives live when no directory is given
    packages_subdir: str = "packages"

    # Parallelism
    min_jobs: int = Field(default=2, ge=1)
    max_jobs: int = Field(default=8, ge=1)

    # Per install attempt, seconds
    attempt_timeout: int = Field(default=600, gt=0)

    # Behavior switches
    skip_if_current: bool = True
    stop_daemon: bool = True

    # Optional NDJSON run ledger
    audit_log: str | None = None

    @model_validator(mode="after")
    def _check_job_bounds(self) -> InstallerConfig:
        if self.min_jobs > self.max_jobs:
            raise ValueError(
                f"min_jobs ({self.min_jobs}) must not exceed max_jobs ({self.max_jobs})"
            )
        return self

    def clamp_jobs(self, jobs: int) -> int:
        """Clamp a requested job count into [min_jobs, max_jobs]."""
        return max(self.min_jobs, min(self.max_jobs, jobs))
