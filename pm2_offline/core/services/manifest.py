"""
Manifest reader — name and version from an npm archive's package.json.

Each archive is unpacked into its own throwaway scratch directory, with
the leading ``package/`` component stripped the way ``tar
--strip-components=1`` would. An unreadable manifest is not an error:
the archive gets the sentinel identity and is classified by file name.
"""

from __future__ import annotations

import json
import logging
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Iterator

from pm2_offline.core.models.archive import UNKNOWN_NAME, PackageArchive

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"
ARCHIVE_GLOB = "*.tgz"

UNREADABLE = (UNKNOWN_NAME, "")


def _stripped_members(tar: tarfile.TarFile) -> Iterator[tarfile.TarInfo]:
    """Yield regular files and dirs with their first path component removed."""
    for member in tar.getmembers():
        if not (member.isfile() or member.isdir()):
            continue
        parts = PurePosixPath(member.name.lstrip("/")).parts
        if len(parts) < 2 or ".." in parts:
            continue
        member.name = str(PurePosixPath(*parts[1:]))
        yield member


def _first_occurrence(pairs: list[tuple[str, object]]) -> dict[str, object]:
    """JSON object hook: a repeated key keeps its first value."""
    result: dict[str, object] = {}
    for key, value in pairs:
        result.setdefault(key, value)
    return result


def parse_manifest(manifest_path: Path) -> tuple[str, str]:
    """Read ``(name, version)`` from a package.json file.

    Only top-level fields count, and only their first occurrence.

    Returns:
        The pair, or the sentinel ``("unknown", "")`` when the file is
        missing, unparseable, or lacks a non-empty name or version.
    """
    if not manifest_path.is_file():
        return UNREADABLE
    try:
        data = json.loads(
            manifest_path.read_text(encoding="utf-8"),
            object_pairs_hook=_first_occurrence,
        )
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("Cannot parse %s: %s", manifest_path, e)
        return UNREADABLE

    if not isinstance(data, dict):
        return UNREADABLE

    name = data.get("name")
    version = data.get("version")
    if not isinstance(name, str) or not isinstance(version, str):
        return UNREADABLE
    name, version = name.strip(), version.strip()
    if not name or not version:
        return UNREADABLE
    return name, version


def read_manifest(archive_path: Path, scratch_root: Path | None = None) -> tuple[str, str]:
    """Extract an archive to scratch space and read its manifest.

    Args:
        archive_path: The .tgz to inspect.
        scratch_root: Parent for the per-call scratch directory
            (default: the system temp dir). Each call gets a unique
            directory, so concurrent calls never collide.

    Returns:
        ``(name, version)`` or the sentinel ``("unknown", "")``.
    """
    with tempfile.TemporaryDirectory(prefix="pm2-offline-", dir=scratch_root) as tmp:
        try:
            with tarfile.open(archive_path, "r:*") as tar:
                tar.extractall(tmp, members=_stripped_members(tar), filter="data")
        except (tarfile.TarError, OSError, EOFError) as e:
            logger.warning("Cannot extract %s: %s", archive_path.name, e)
            return UNREADABLE

        name, version = parse_manifest(Path(tmp) / MANIFEST_FILE)

    if (name, version) == UNREADABLE:
        logger.warning("Unreadable manifest in %s, using file name", archive_path.name)
    return name, version


def read_archive(archive_path: Path, scratch_root: Path | None = None) -> PackageArchive:
    name, version = read_manifest(archive_path, scratch_root)
    return PackageArchive(path=archive_path, declared_name=name, declared_version=version)


def find_archives(directory: Path) -> list[Path]:
    """All .tgz files under a directory, in sorted path order."""
    return sorted(p for p in directory.rglob(ARCHIVE_GLOB) if p.is_file())


def scan_archives(directory: Path, scratch_root: Path | None = None) -> list[PackageArchive]:
    """Discover and identify every archive under a directory."""
    archives = [read_archive(p, scratch_root) for p in find_archives(directory)]
    logger.info("Scanned %d archives in %s", len(archives), directory)
    return archives
