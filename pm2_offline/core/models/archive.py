"""
Archive models — what was found on disk and where it goes.

A PackageArchive is discovered once per run by the directory scan and
never mutated afterward. The classifier partitions archives into an
InstallPlan with four stages that always run in the order of ``Stage``.
"""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# Sentinel name used when an archive's manifest cannot be read
UNKNOWN_NAME = "unknown"

# "-<digit>..." suffix that npm pack appends to file names
_VERSION_SUFFIX = re.compile(r"-[0-9].*$")


class Stage(StrEnum):
    """Install stages, declared in required execution order."""

    CORE_DEPS = "core_deps"
    REGULAR_DEPS = "regular_deps"
    PM2_CORE = "pm2_core"
    PM2_MAIN = "pm2_main"

    @property
    def label(self) -> str:
        return _STAGE_LABELS[self]


_STAGE_LABELS = {
    Stage.CORE_DEPS: "core dependencies",
    Stage.REGULAR_DEPS: "regular dependencies",
    Stage.PM2_CORE: "PM2 core packages",
    Stage.PM2_MAIN: "PM2",
}


def strip_version_suffix(stem: str) -> str:
    """Drop a trailing ``-<version>`` from an archive file stem.

    Everything from the first hyphen followed by a digit is removed:
    ``mystery-pkg-1.0.0`` → ``mystery-pkg``, ``pm2-io-6.0.1`` → ``pm2-io``.
    """
    return _VERSION_SUFFIX.sub("", stem) or stem


class PackageArchive(BaseModel):
    """One installable npm archive."""

    model_config = ConfigDict(frozen=True)

    path: Path
    declared_name: str = UNKNOWN_NAME
    declared_version: str = ""

    @property
    def file_stem(self) -> str:
        name = self.path.name
        return name[: -len(".tgz")] if name.endswith(".tgz") else self.path.stem

    @property
    def base_name(self) -> str:
        """Filename-derived package name (version suffix stripped)."""
        return strip_version_suffix(self.file_stem)

    @property
    def manifest_readable(self) -> bool:
        return not (self.declared_name == UNKNOWN_NAME and not self.declared_version)

    @property
    def match_key(self) -> str:
        """Name the classifier matches against."""
        return self.declared_name if self.manifest_readable else self.base_name

    @property
    def display_name(self) -> str:
        if self.manifest_readable:
            return f"{self.declared_name}@{self.declared_version}"
        return self.file_stem


class InstallPlan(BaseModel):
    """The four-way partition of the discovered archives."""

    core_deps: list[PackageArchive] = Field(default_factory=list)
    regular_deps: list[PackageArchive] = Field(default_factory=list)
    pm2_core: list[PackageArchive] = Field(default_factory=list)
    main: PackageArchive | None = None

    # Main-package candidates that lost the tie-break to a later one
    displaced_main: list[PackageArchive] = Field(default_factory=list)

    def stage(self, stage: Stage) -> list[PackageArchive]:
        """Archives assigned to a stage, in install order."""
        if stage == Stage.PM2_MAIN:
            return [self.main] if self.main is not None else []
        return list(getattr(self, stage.value))

    def stages(self) -> list[tuple[Stage, list[PackageArchive]]]:
        return [(stage, self.stage(stage)) for stage in Stage]

    @property
    def total(self) -> int:
        return sum(len(items) for _, items in self.stages())

    def to_dict(self) -> dict:
        data: dict = {
            stage.value: [str(a.path) for a in items]
            for stage, items in self.stages()
        }
        data["displaced_main"] = [str(a.path) for a in self.displaced_main]
        return data
