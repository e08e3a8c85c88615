"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from pm2_offline.core.models import PackageArchive, InstallPlan, InstallOutcome
"""

from pm2_offline.core.models.archive import (
    UNKNOWN_NAME,
    InstallPlan,
    PackageArchive,
    Stage,
    strip_version_suffix,
)
from pm2_offline.core.models.config import DEFAULT_CORE_PACKAGES, InstallerConfig
from pm2_offline.core.models.outcome import InstallOutcome, OutcomeStatus, StageReport
from pm2_offline.core.models.receipt import Receipt

__all__ = [
    # archive.py
    "UNKNOWN_NAME",
    "InstallPlan",
    "PackageArchive",
    "Stage",
    "strip_version_suffix",
    # config.py
    "DEFAULT_CORE_PACKAGES",
    "InstallerConfig",
    # outcome.py
    "InstallOutcome",
    "OutcomeStatus",
    "StageReport",
    # receipt.py
    "Receipt",
]
