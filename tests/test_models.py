"""
Tests for domain models — archives, plans, outcomes, receipts, config.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from pm2_offline.core.models import (
    InstallerConfig,
    InstallOutcome,
    InstallPlan,
    OutcomeStatus,
    PackageArchive,
    Receipt,
    Stage,
    StageReport,
    strip_version_suffix,
)

from tests.conftest import make_archive


class TestStripVersionSuffix:
    @pytest.mark.parametrize(
        "stem, expected",
        [
            ("mystery-pkg-1.0.0", "mystery-pkg"),
            ("pm2-io-6.0.1", "pm2-io"),
            ("pm2-6.0.8", "pm2"),
            ("pm2", "pm2"),
            ("js-yaml-4.1.0-rc.1", "js-yaml"),
        ],
    )
    def test_strip(self, stem: str, expected: str):
        assert strip_version_suffix(stem) == expected


class TestPackageArchive:
    def test_readable(self):
        archive = make_archive("@pm2/io", "6.0.1")
        assert archive.manifest_readable
        assert archive.match_key == "@pm2/io"
        assert archive.display_name == "@pm2/io@6.0.1"
        assert archive.base_name == "pm2-io"

    def test_unreadable(self):
        archive = PackageArchive(path=Path("/pkgs/mystery-pkg-1.0.0.tgz"))
        assert not archive.manifest_readable
        assert archive.file_stem == "mystery-pkg-1.0.0"
        assert archive.match_key == "mystery-pkg"

    def test_frozen(self):
        archive = make_archive("async")
        with pytest.raises(ValidationError):
            archive.declared_name = "other"


class TestInstallPlan:
    def test_stages_in_execution_order(self):
        plan = InstallPlan(main=make_archive("pm2", "6.0.8"))
        assert [stage for stage, _ in plan.stages()] == [
            Stage.CORE_DEPS,
            Stage.REGULAR_DEPS,
            Stage.PM2_CORE,
            Stage.PM2_MAIN,
        ]

    def test_total_excludes_displaced(self):
        plan = InstallPlan(
            core_deps=[make_archive("async")],
            main=make_archive("pm2", "6.0.8"),
            displaced_main=[make_archive("pm2", "5.3.0")],
        )
        assert plan.total == 2

    def test_stage_returns_copy(self):
        plan = InstallPlan(core_deps=[make_archive("async")])
        plan.stage(Stage.CORE_DEPS).clear()
        assert len(plan.core_deps) == 1


class TestOutcomes:
    def _outcome(self, status: OutcomeStatus) -> InstallOutcome:
        return InstallOutcome(archive=make_archive("x"), status=status, attempts=1)

    def test_status_flags(self):
        assert self._outcome(OutcomeStatus.SUCCESS).installed
        forced = self._outcome(OutcomeStatus.SUCCESS_FORCED)
        assert forced.installed and forced.forced
        assert self._outcome(OutcomeStatus.FAILED).failed

    def test_stage_report_counts(self):
        report = StageReport(
            stage=Stage.REGULAR_DEPS,
            outcomes=[
                self._outcome(OutcomeStatus.SUCCESS),
                self._outcome(OutcomeStatus.SUCCESS_FORCED),
                self._outcome(OutcomeStatus.FAILED),
            ],
        )
        assert report.total == 3
        assert report.succeeded == 1
        assert report.forced == 1
        assert report.installed == 2
        assert report.failed == 1
        assert report.status == "partial"

    def test_stage_report_status(self):
        ok = StageReport(stage=Stage.CORE_DEPS, outcomes=[self._outcome(OutcomeStatus.SUCCESS)])
        failed = StageReport(stage=Stage.CORE_DEPS, outcomes=[self._outcome(OutcomeStatus.FAILED)])
        assert ok.status == "ok"
        assert failed.status == "failed"
        assert StageReport(stage=Stage.CORE_DEPS).status == "ok"

    def test_to_dict(self):
        data = self._outcome(OutcomeStatus.SUCCESS_FORCED).to_dict()
        assert data["status"] == "success_forced"
        assert data["name"] == "x@1.0.0"


class TestReceipt:
    def test_success(self):
        r = Receipt.success(tool="npm", operation="install", target="a.tgz", output="added 1")
        assert r.ok and not r.failed
        assert r.error is None

    def test_failure(self):
        r = Receipt.failure(tool="npm", operation="install", error="EEXIST", return_code=1)
        assert r.failed
        assert r.error == "EEXIST"
        assert r.return_code == 1


class TestInstallerConfig:
    def test_defaults(self):
        config = InstallerConfig()
        assert config.main_package == "pm2"
        assert "async" in config.core_packages
        assert (config.min_jobs, config.max_jobs) == (2, 8)
        assert config.attempt_timeout == 600
        assert config.skip_if_current and config.stop_daemon

    def test_clamp(self):
        config = InstallerConfig()
        assert config.clamp_jobs(0) == 2
        assert config.clamp_jobs(5) == 5
        assert config.clamp_jobs(32) == 8

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError):
            InstallerConfig(min_jobs=6, max_jobs=4)

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            InstallerConfig(attempt_timeout=0)
