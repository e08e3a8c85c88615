"""
Shared test fixtures and configuration.
"""

import io
import json
import logging
import tarfile
from pathlib import Path

import pytest

from pm2_offline.core.models.archive import PackageArchive


def build_tgz(
    path: Path,
    manifest: dict | str | None = None,
    *,
    prefix: str = "package",
) -> Path:
    """Write an npm-pack style .tgz with an optional package.json.

    ``manifest`` may be a dict (dumped as JSON), a raw string (written
    as-is, so it can be invalid), or None (no package.json at all).
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    def add(tar: tarfile.TarFile, name: str, payload: bytes) -> None:
        info = tarfile.TarInfo(f"{prefix}/{name}")
        info.size = len(payload)
        info.mode = 0o644
        tar.addfile(info, io.BytesIO(payload))

    with tarfile.open(path, "w:gz") as tar:
        if manifest is not None:
            text = manifest if isinstance(manifest, str) else json.dumps(manifest)
            add(tar, "package.json", text.encode("utf-8"))
        add(tar, "index.js", b"module.exports = {};\n")
    return path


def make_archive(name: str, version: str = "1.0.0", filename: str | None = None) -> PackageArchive:
    """In-memory archive with a readable manifest (no file on disk)."""
    if filename is None:
        filename = f"{name.lstrip('@').replace('/', '-')}-{version}.tgz"
    return PackageArchive(path=Path("/pkgs") / filename, declared_name=name, declared_version=version)


@pytest.fixture
def packages_dir(tmp_path: Path) -> Path:
    """Return an empty ``packages`` directory."""
    directory = tmp_path / "packages"
    directory.mkdir()
    return directory


@pytest.fixture
def pm2_packages(packages_dir: Path) -> Path:
    """The happy-path set: two core deps, one regular, one pm2 core, pm2."""
    for name, version in [
        ("async", "3.2.0"),
        ("debug", "4.3.0"),
        ("chokidar", "4.0.3"),
        ("pm2-io", "2.0.0"),
        ("pm2", "6.0.8"),
    ]:
        build_tgz(packages_dir / f"{name}-{version}.tgz", {"name": name, "version": version})
    return packages_dir


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
