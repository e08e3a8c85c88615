"""
Package classifier — bucket archives into the four install stages.

This is a fixed-pattern heuristic, not dependency resolution: it encodes
"foundational libraries first, then generic dependencies, then PM2's
own plugin-like packages, then PM2 itself" as an ordered rule table.
Each archive's match key is tested against the rules top to bottom and
the first matching rule decides its stage.

Main-package tie-break: archives are classified in the order given
(the scan yields sorted paths). When several archives match the main
rule, the LAST one wins and earlier ones are recorded as displaced.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable

from pm2_offline.core.models.archive import InstallPlan, PackageArchive, Stage
from pm2_offline.core.models.config import DEFAULT_CORE_PACKAGES

logger = logging.getLogger(__name__)

_TOKEN_SPLIT = re.compile(r"[-_./@]")


@dataclass(frozen=True)
class ClassifierRule:
    """One row of the rule table."""

    name: str
    matches: Callable[[str], bool]
    stage: Stage


def build_rules(
    main_package: str = "pm2",
    core_packages: Iterable[str] | None = None,
) -> list[ClassifierRule]:
    """Build the ordered rule table for a main package.

    Args:
        main_package: Name of the package the run exists to install.
        core_packages: Exact names installed in the first stage.
    """
    core = frozenset(DEFAULT_CORE_PACKAGES if core_packages is None else core_packages)
    scope = f"@{main_package}/"
    # "pm2-6.0.8" / "pm26.0.8": a main archive whose version never got split off
    bare_with_version = re.compile(rf"{re.escape(main_package)}-?\d[\w.+-]*")

    def is_core(key: str) -> bool:
        return key in core

    def is_main(key: str) -> bool:
        return key == main_package or bare_with_version.fullmatch(key) is not None

    def is_related(key: str) -> bool:
        return key.startswith(scope) or main_package in _TOKEN_SPLIT.split(key)

    return [
        ClassifierRule("core-allowlist", is_core, Stage.CORE_DEPS),
        ClassifierRule("main-package", is_main, Stage.PM2_MAIN),
        ClassifierRule("main-related", is_related, Stage.PM2_CORE),
        ClassifierRule("fallback", lambda key: True, Stage.REGULAR_DEPS),
    ]


def stage_for(archive: PackageArchive, rules: list[ClassifierRule]) -> Stage:
    """First-match-wins lookup of one archive's stage."""
    key = archive.match_key
    for rule in rules:
        if rule.matches(key):
            logger.debug("%s → %s (rule %s)", key, rule.stage, rule.name)
            return rule.stage
    return Stage.REGULAR_DEPS


def classify(
    archives: Iterable[PackageArchive],
    rules: list[ClassifierRule] | None = None,
    *,
    main_package: str = "pm2",
    core_packages: Iterable[str] | None = None,
) -> InstallPlan:
    """Partition archives into an InstallPlan.

    Args:
        archives: Discovered archives, in evaluation order.
        rules: Pre-built rule table (default: ``build_rules``).
        main_package: Used only when ``rules`` is not given.
        core_packages: Used only when ``rules`` is not given.

    Returns:
        InstallPlan in which every archive sits in exactly one bucket
        (a displaced main candidate counts as ``displaced_main``).
    """
    if rules is None:
        rules = build_rules(main_package, core_packages)

    plan = InstallPlan()
    for archive in archives:
        stage = stage_for(archive, rules)
        if stage == Stage.PM2_MAIN:
            if plan.main is not None:
                logger.warning(
                    "Multiple main-package archives: %s replaces %s",
                    archive.path.name,
                    plan.main.path.name,
                )
                plan.displaced_main.append(plan.main)
            plan.main = archive
        else:
            getattr(plan, stage.value).append(archive)

    logger.info(
        "Classified %d archives: core=%d regular=%d pm2-core=%d main=%s",
        plan.total + len(plan.displaced_main),
        len(plan.core_deps),
        len(plan.regular_deps),
        len(plan.pm2_core),
        plan.main.path.name if plan.main else "none",
    )
    return plan
