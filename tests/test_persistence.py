"""
Tests for the run ledger — NDJSON append and read-back.
"""

from pathlib import Path

from pm2_offline.core.persistence.audit import AuditEntry, AuditWriter, generate_run_id


class TestRunId:
    def test_format(self):
        run_id = generate_run_id()
        assert run_id.startswith("run-")
        assert len(run_id.split("-")) == 4

    def test_unique(self):
        assert len({generate_run_id() for _ in range(50)}) == 50


class TestAuditWriter:
    def test_append_and_read(self, tmp_path: Path):
        writer = AuditWriter(tmp_path / "logs" / "runs.ndjson")
        writer.write(AuditEntry(status="ok", installed=5))
        writer.write(AuditEntry(status="degraded", failed=1, failed_archives=["x-1.0.0.tgz"]))

        entries = writer.read_all()

        assert [e.status for e in entries] == ["ok", "degraded"]
        assert entries[1].failed_archives == ["x-1.0.0.tgz"]
        assert len(writer.path.read_text().splitlines()) == 2

    def test_missing_file(self, tmp_path: Path):
        assert AuditWriter(tmp_path / "none.ndjson").read_all() == []

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "runs.ndjson"
        writer = AuditWriter(path)
        writer.write(AuditEntry(status="ok"))
        with path.open("a") as f:
            f.write("{not json\n\n")
        writer.write(AuditEntry(status="failed"))

        assert [e.status for e in writer.read_all()] == ["ok", "failed"]

    def test_write_error_is_not_raised(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        writer = AuditWriter(blocker / "runs.ndjson")

        writer.write(AuditEntry(status="ok"))

        assert writer.read_all() == []
