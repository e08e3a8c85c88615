"""
Tests for the manifest reader — package.json extraction and directory scan.
"""

from pathlib import Path

from pm2_offline.core.services.manifest import (
    UNREADABLE,
    find_archives,
    parse_manifest,
    read_archive,
    read_manifest,
    scan_archives,
)

from tests.conftest import build_tgz


class TestParseManifest:
    def test_name_and_version(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "chokidar", "version": "4.0.3", "main": "index.js"}')
        assert parse_manifest(manifest) == ("chokidar", "4.0.3")

    def test_missing_file(self, tmp_path: Path):
        assert parse_manifest(tmp_path / "package.json") == UNREADABLE

    def test_invalid_json(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "broken",')
        assert parse_manifest(manifest) == UNREADABLE

    def test_missing_version(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "noversion"}')
        assert parse_manifest(manifest) == UNREADABLE

    def test_empty_name(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "  ", "version": "1.0.0"}')
        assert parse_manifest(manifest) == UNREADABLE

    def test_non_string_version(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "x", "version": 1}')
        assert parse_manifest(manifest) == UNREADABLE

    def test_top_level_array(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('["name", "version"]')
        assert parse_manifest(manifest) == UNREADABLE

    def test_nested_name_ignored(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"repository": {"name": "inner"}, "version": "1.0.0"}')
        assert parse_manifest(manifest) == UNREADABLE

    def test_first_occurrence_wins(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": "first", "version": "1.0.0", "name": "second"}')
        assert parse_manifest(manifest) == ("first", "1.0.0")

    def test_whitespace_trimmed(self, tmp_path: Path):
        manifest = tmp_path / "package.json"
        manifest.write_text('{"name": " semver ", "version": "7.6.0\\n"}')
        assert parse_manifest(manifest) == ("semver", "7.6.0")


class TestReadManifest:
    def test_npm_pack_layout(self, tmp_path: Path):
        archive = build_tgz(tmp_path / "async-3.2.0.tgz", {"name": "async", "version": "3.2.0"})
        assert read_manifest(archive) == ("async", "3.2.0")

    def test_any_top_directory_is_stripped(self, tmp_path: Path):
        archive = build_tgz(
            tmp_path / "types-node-20.0.0.tgz",
            {"name": "@types/node", "version": "20.0.0"},
            prefix="node",
        )
        assert read_manifest(archive) == ("@types/node", "20.0.0")

    def test_no_manifest(self, tmp_path: Path):
        archive = build_tgz(tmp_path / "empty-1.0.0.tgz", None)
        assert read_manifest(archive) == UNREADABLE

    def test_invalid_manifest(self, tmp_path: Path):
        archive = build_tgz(tmp_path / "mystery-pkg-1.0.0.tgz", "{not json")
        assert read_manifest(archive) == UNREADABLE

    def test_corrupt_archive(self, tmp_path: Path):
        archive = tmp_path / "corrupt-1.0.0.tgz"
        archive.write_bytes(b"this is not a gzip stream")
        assert read_manifest(archive) == UNREADABLE

    def test_scratch_space_cleaned_up(self, tmp_path: Path):
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        archive = build_tgz(tmp_path / "debug-4.3.0.tgz", {"name": "debug", "version": "4.3.0"})

        read_manifest(archive, scratch)

        assert list(scratch.iterdir()) == []


class TestScan:
    def test_find_archives_recursive_and_sorted(self, packages_dir: Path):
        build_tgz(packages_dir / "b-1.0.0.tgz", {"name": "b", "version": "1.0.0"})
        build_tgz(packages_dir / "nested" / "a-1.0.0.tgz", {"name": "a", "version": "1.0.0"})
        build_tgz(packages_dir / "a-1.0.0.tgz", {"name": "a", "version": "1.0.0"})
        (packages_dir / "README.md").write_text("not an archive")

        found = find_archives(packages_dir)

        assert found == sorted(found)
        assert [p.name for p in found] == ["a-1.0.0.tgz", "b-1.0.0.tgz", "a-1.0.0.tgz"]

    def test_unreadable_manifest_falls_back_to_file_name(self, packages_dir: Path):
        path = build_tgz(packages_dir / "mystery-pkg-1.0.0.tgz", "garbage")

        archive = read_archive(path)

        assert not archive.manifest_readable
        assert archive.match_key == "mystery-pkg"
        assert archive.display_name == "mystery-pkg-1.0.0"

    def test_scan_archives(self, pm2_packages: Path):
        archives = scan_archives(pm2_packages)
        names = {a.declared_name for a in archives}
        assert names == {"async", "debug", "chokidar", "pm2-io", "pm2"}
        assert all(a.manifest_readable for a in archives)

    def test_scan_empty_directory(self, packages_dir: Path):
        assert scan_archives(packages_dir) == []
