"""
Stage orchestrator — the four install stages, strictly in order.

Flow:
    stop daemon → skip-if-current check → core deps → regular deps
    → pm2 core → pm2 main → verify

Stages 1-3 go through the batch installer; the single main archive
runs the same attempt sequence with no pool. A stage never starts
before the previous one has fully joined.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable

from pm2_offline.adapters.base import InstallTool, Verifier
from pm2_offline.core.engine.batch import OutcomeCallback, install_batch, install_one
from pm2_offline.core.errors import SetupError
from pm2_offline.core.models.archive import InstallPlan, PackageArchive, Stage
from pm2_offline.core.models.outcome import InstallOutcome, StageReport
from pm2_offline.core.services.versions import version_at_least

logger = logging.getLogger(__name__)

StageCallback = Callable[[Stage, list[PackageArchive]], None]

BATCH_STAGES = (Stage.CORE_DEPS, Stage.REGULAR_DEPS, Stage.PM2_CORE)


@dataclass
class RunReport:
    """Result of an orchestrated run."""

    stages: list[StageReport] = field(default_factory=list)
    skipped: bool = False
    current_version: str | None = None
    target_version: str = ""
    verified: bool = False

    @property
    def outcomes(self) -> list[InstallOutcome]:
        return [o for report in self.stages for o in report.outcomes]

    @property
    def main_outcome(self) -> InstallOutcome | None:
        for report in self.stages:
            if report.stage == Stage.PM2_MAIN and report.outcomes:
                return report.outcomes[0]
        return None

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def installed(self) -> int:
        """Installed archives, forced ones included."""
        return sum(r.installed for r in self.stages)

    @property
    def forced(self) -> int:
        return sum(r.forced for r in self.stages)

    @property
    def failed(self) -> int:
        return sum(r.failed for r in self.stages)

    @property
    def main_failed(self) -> bool:
        main = self.main_outcome
        return main is not None and main.failed

    @property
    def status(self) -> str:
        if not self.verified or self.main_failed:
            return "failed"
        if self.failed > 0:
            return "degraded"
        return "ok"

    @property
    def ok(self) -> bool:
        return self.status != "failed"

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "skipped": self.skipped,
            "current_version": self.current_version,
            "target_version": self.target_version,
            "verified": self.verified,
            "total": self.total,
            "installed": self.installed,
            "forced": self.forced,
            "failed": self.failed,
            "stages": [r.to_dict() for r in self.stages],
        }


def should_skip(plan: InstallPlan, verifier: Verifier) -> tuple[bool, str | None]:
    """Whether the installed main package already satisfies the plan.

    Returns:
        (skip, current_version).
    """
    assert plan.main is not None
    current = verifier.current_version()
    if current is None:
        logger.info("Main package not installed, proceeding with installation")
        return False, None

    target = plan.main.declared_version
    if not target:
        logger.warning("Unable to get target version, proceeding with installation")
        return False, current

    if version_at_least(current, target):
        logger.info("Installed version %s >= target %s", current, target)
        return True, current

    logger.info("Installed version %s < target %s", current, target)
    return False, current


def run_stages(
    plan: InstallPlan,
    tool: InstallTool,
    verifier: Verifier,
    concurrency_limit: int,
    *,
    skip_if_current: bool = True,
    stop_daemon: bool = True,
    cancel: threading.Event | None = None,
    on_stage: StageCallback | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> RunReport:
    """Install a classified plan stage by stage and verify the result.

    Args:
        plan: Output of the classifier.
        tool: Install tool (npm, or a scripted fake).
        verifier: Probe for the main package.
        concurrency_limit: Worker pool size for stages 1-3.
        skip_if_current: Skip all stages when the installed version
            already satisfies the main archive's version.
        stop_daemon: Ask the verifier to stop a running daemon first.
        cancel: Cooperative cancellation for in-flight batches.
        on_stage: Called when a non-empty stage starts.
        on_outcome: Called for every finished archive.

    Returns:
        RunReport with per-stage results and verification status.

    Raises:
        SetupError: If the plan has no main-package archive.
    """
    if plan.main is None:
        raise SetupError("Main package archive not found")

    report = RunReport(target_version=plan.main.declared_version)

    if stop_daemon:
        verifier.stop_daemon()

    if skip_if_current:
        skip, report.current_version = should_skip(plan, verifier)
        if skip:
            report.skipped = True
            report.verified = verifier.is_functional()
            logger.info("Installation skipped, existing version is sufficient")
            return report

    for stage in BATCH_STAGES:
        archives = plan.stage(stage)
        if not archives:
            continue
        if on_stage is not None:
            on_stage(stage, archives)
        logger.info("Installing %s (%d archives)...", stage.label, len(archives))
        outcomes, failed = install_batch(
            archives,
            concurrency_limit,
            tool,
            cancel=cancel,
            on_outcome=on_outcome,
        )
        report.stages.append(StageReport(stage=stage, outcomes=outcomes))
        if failed:
            logger.warning("%d of %d %s failed", failed, len(outcomes), stage.label)

    main_archives = plan.stage(Stage.PM2_MAIN)
    if on_stage is not None:
        on_stage(Stage.PM2_MAIN, main_archives)
    logger.info("Installing %s...", plan.main.display_name)
    outcome = install_one(plan.main, tool, cancel=cancel)
    if on_outcome is not None:
        on_outcome(outcome)
    report.stages.append(StageReport(stage=Stage.PM2_MAIN, outcomes=[outcome]))
    if outcome.failed:
        logger.error("%s installation failed: %s", plan.main.display_name, outcome.error)

    report.verified = verifier.is_functional()
    logger.info(
        "Run finished: %d installed, %d failed, verified=%s",
        report.installed,
        report.failed,
        report.verified,
    )
    return report
