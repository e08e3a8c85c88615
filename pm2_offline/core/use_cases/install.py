"""
Install use case — the full offline install from directory to verdict.

Checks the environment, scans and classifies the archives, runs the
stage orchestrator, and records the run. Setup-fatal problems come
back as ``InstallResult.error`` before anything is installed.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass
from pathlib import Path

from pm2_offline.adapters.base import InstallTool, Verifier
from pm2_offline.core.engine.batch import OutcomeCallback
from pm2_offline.core.engine.orchestrator import RunReport, StageCallback, run_stages
from pm2_offline.core.errors import SetupError
from pm2_offline.core.models.archive import InstallPlan
from pm2_offline.core.models.config import InstallerConfig
from pm2_offline.core.persistence.audit import AuditEntry, AuditWriter
from pm2_offline.core.services.classifier import classify
from pm2_offline.core.services.manifest import find_archives, scan_archives

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of an install (or dry-run) request."""

    archive_dir: Path | None = None
    jobs: int = 0
    plan: InstallPlan | None = None
    report: RunReport | None = None
    dry_run: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        if self.error:
            return False
        if self.report is None:
            return self.dry_run
        return self.report.ok

    def to_dict(self) -> dict:
        result: dict = {}
        if self.error:
            result["error"] = self.error
            return result

        result["archive_dir"] = str(self.archive_dir)
        result["jobs"] = self.jobs
        result["dry_run"] = self.dry_run
        if self.plan:
            result["plan"] = self.plan.to_dict()
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def default_jobs(config: InstallerConfig) -> int:
    """Half the CPU count, clamped to the configured range."""
    return config.clamp_jobs((os.cpu_count() or 4) // 2)


def resolve_jobs(requested: int | None, config: InstallerConfig) -> int:
    if requested is None:
        return default_jobs(config)
    jobs = config.clamp_jobs(requested)
    if jobs != requested:
        logger.warning(
            "Parallel jobs %d outside [%d, %d], using %d",
            requested,
            config.min_jobs,
            config.max_jobs,
            jobs,
        )
    return jobs


def resolve_archive_dir(archive_dir: Path | None, config: InstallerConfig) -> Path:
    """Explicit dir, else ``./<packages_subdir>`` when present, else cwd."""
    if archive_dir is not None:
        return archive_dir
    conventional = Path.cwd() / config.packages_subdir
    return conventional if conventional.is_dir() else Path.cwd()


def prepare_plan(
    archive_dir: Path,
    config: InstallerConfig,
    scratch_root: Path | None = None,
) -> InstallPlan:
    """Scan a directory and classify its archives.

    Raises:
        SetupError: If the directory is missing or holds no archives.
    """
    if not archive_dir.is_dir():
        raise SetupError(f"Directory does not exist: {archive_dir}")
    if not find_archives(archive_dir):
        raise SetupError(f"No .tgz files found in directory {archive_dir}")

    archives = scan_archives(archive_dir, scratch_root)
    return classify(
        archives,
        main_package=config.main_package,
        core_packages=config.core_packages,
    )


def run_install(
    archive_dir: Path | None = None,
    jobs: int | None = None,
    config: InstallerConfig | None = None,
    *,
    tool: InstallTool | None = None,
    verifier: Verifier | None = None,
    dry_run: bool = False,
    skip_if_current: bool | None = None,
    stop_daemon: bool | None = None,
    audit_path: Path | None = None,
    cancel: threading.Event | None = None,
    on_stage: StageCallback | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> InstallResult:
    """Install the main package from a directory of archives.

    Args:
        archive_dir: Directory of .tgz files (default: see resolve_archive_dir).
        jobs: Requested parallel jobs; clamped to the configured range.
        config: Installer configuration (default: built-in defaults).
        tool: Install tool (default: npm).
        verifier: Main-package probe (default: pm2).
        dry_run: Classify only; nothing is installed.
        skip_if_current: Override ``config.skip_if_current``.
        stop_daemon: Override ``config.stop_daemon``.
        audit_path: Override ``config.audit_log``.
        cancel: Cooperative cancellation for running batches.
        on_stage: Progress callback per stage.
        on_outcome: Progress callback per archive.

    Returns:
        InstallResult; ``error`` is set for setup-fatal conditions.
    """
    config = config or InstallerConfig()
    result = InstallResult(dry_run=dry_run)
    started = time.monotonic()

    if audit_path is None and config.audit_log:
        audit_path = Path(config.audit_log)

    try:
        result.archive_dir = resolve_archive_dir(archive_dir, config)
        result.jobs = resolve_jobs(jobs, config)

        if not dry_run:
            if tool is None:
                from pm2_offline.adapters.node.npm import NpmAdapter

                tool = NpmAdapter(timeout=config.attempt_timeout, scope=config.main_package)
            if not tool.is_available():
                raise SetupError(f"{tool.name} not found, please install Node.js first")

        with tempfile.TemporaryDirectory(prefix="pm2-offline-scan-") as scratch:
            result.plan = prepare_plan(result.archive_dir, config, Path(scratch))

        if result.plan.main is None:
            raise SetupError(f"{config.main_package} main package archive not found")

        if dry_run:
            return result

        assert tool is not None
        if verifier is None:
            from pm2_offline.adapters.node.pm2 import Pm2Adapter

            verifier = Pm2Adapter(install_tool=tool, command=config.main_package)

        result.report = run_stages(
            result.plan,
            tool,
            verifier,
            result.jobs,
            skip_if_current=config.skip_if_current if skip_if_current is None else skip_if_current,
            stop_daemon=config.stop_daemon if stop_daemon is None else stop_daemon,
            cancel=cancel,
            on_stage=on_stage,
            on_outcome=on_outcome,
        )

    except SetupError as e:
        logger.error("%s", e)
        result.error = str(e)

    if audit_path is not None:
        _write_audit(result, config, audit_path, int((time.monotonic() - started) * 1000))

    return result


def _write_audit(
    result: InstallResult,
    config: InstallerConfig,
    path: Path,
    duration_ms: int,
) -> None:
    entry = AuditEntry(
        archive_dir=str(result.archive_dir or ""),
        main_package=config.main_package,
        jobs=result.jobs,
        duration_ms=duration_ms,
    )
    if result.plan is not None:
        entry.archives_total = result.plan.total
    if result.error:
        entry.status = "error"
        entry.errors.append(result.error)
    elif result.dry_run:
        entry.status = "dry-run"

    report = result.report
    if report is not None:
        entry.status = report.status
        entry.skipped = report.skipped
        entry.verified = report.verified
        entry.target_version = report.target_version
        entry.current_version = report.current_version
        entry.installed = report.installed
        entry.forced = report.forced
        entry.failed = report.failed
        entry.failed_archives = [o.archive.path.name for o in report.outcomes if o.failed]

    AuditWriter(path).write(entry)
