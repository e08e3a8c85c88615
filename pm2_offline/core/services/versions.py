"""
Version comparison for the skip-if-current check (pure).

No I/O, no subprocess. Only the ``X.Y.Z`` core of a version is compared;
pre-release suffixes on a part (``0-beta``) are dropped.
"""

from __future__ import annotations

import re

_SEMVER_PREFIX = re.compile(r"^\d+\.\d+\.\d+")


def parse_version(version: str | None) -> tuple[int, int, int] | None:
    """Parse ``"v6.0.8"`` into ``(6, 0, 8)``.

    Returns None when the string does not start with ``X.Y.Z``.
    """
    if not version:
        return None
    v = "".join(version.split()).lstrip("v")
    if not _SEMVER_PREFIX.match(v):
        return None

    parts: list[int] = []
    for raw in v.split(".")[:3]:
        digits = raw.split("-", 1)[0].split("+", 1)[0]
        parts.append(int(digits) if digits.isdigit() else 0)
    return parts[0], parts[1], parts[2]


def version_at_least(current: str | None, target: str | None) -> bool:
    """Whether ``current >= target``.

    An unparseable current version never satisfies; an unparseable
    target is satisfied by any valid current version.
    """
    cur = parse_version(current)
    if cur is None:
        return False
    tgt = parse_version(target)
    if tgt is None:
        return True
    return cur >= tgt
