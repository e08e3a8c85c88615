"""
Batch installer — bounded-parallel global installs with retry/fallback.

Every archive runs the same attempt sequence inside one job:

    install → (uninstall base name, best-effort) → install → install --force

The first success ends the sequence. At most three real install
invocations happen per archive, with no backoff between them.

Jobs run on a thread pool sized to the concurrency limit; each job
blocks on its own npm subprocess. Each job writes its own result
slot, and the call returns only after every job has finished.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
import time
from typing import Callable, Sequence

from pm2_offline.adapters.base import InstallTool
from pm2_offline.core.models.archive import PackageArchive
from pm2_offline.core.models.outcome import InstallOutcome, OutcomeStatus

logger = logging.getLogger(__name__)

OutcomeCallback = Callable[[InstallOutcome], None]

CANCELLED = "cancelled"


def _cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def _remove_previous(tool: InstallTool, archive: PackageArchive) -> None:
    """Best-effort removal of an installed package with the same base name."""
    base = archive.base_name
    try:
        receipt = tool.uninstall(base)
    except Exception as e:
        logger.warning("Removing existing %s raised, ignoring: %s", base, e)
        return
    if receipt.failed:
        logger.warning("Could not remove existing %s: %s", base, receipt.error)
    else:
        logger.debug("Removed existing %s", base)


def install_one(
    archive: PackageArchive,
    tool: InstallTool,
    *,
    cancel: threading.Event | None = None,
) -> InstallOutcome:
    """Run the full attempt sequence for a single archive.

    Args:
        archive: Archive to install.
        tool: Install tool to drive.
        cancel: Checked before each attempt; once set, no further
            attempts start and the outcome is ``failed``.

    Returns:
        InstallOutcome. Never raises for install failures.
    """
    start = time.monotonic()
    attempts = 0
    last_error: str | None = None

    def finish(status: OutcomeStatus, error: str | None = None) -> InstallOutcome:
        return InstallOutcome(
            archive=archive,
            status=status,
            attempts=attempts,
            error=error,
            duration_ms=int((time.monotonic() - start) * 1000),
        )

    # (attempt label, force flag, remove existing package first)
    sequence = (
        ("install", False, False),
        ("reinstall", False, True),
        ("forced install", True, False),
    )

    for label, force, remove_first in sequence:
        if _cancelled(cancel):
            return finish(OutcomeStatus.FAILED, CANCELLED)
        if remove_first:
            _remove_previous(tool, archive)

        attempts += 1
        try:
            receipt = tool.install(archive.path, force=force)
        except Exception as e:
            logger.error("%s of %s raised: %s", label, archive.file_stem, e)
            last_error = f"Unexpected error: {e}"
            continue

        if receipt.ok:
            status = OutcomeStatus.SUCCESS_FORCED if force else OutcomeStatus.SUCCESS
            return finish(status)

        last_error = receipt.error
        logger.info("%s of %s failed: %s", label, archive.file_stem, receipt.error)

    return finish(OutcomeStatus.FAILED, last_error)


def install_batch(
    archives: Sequence[PackageArchive],
    concurrency_limit: int,
    tool: InstallTool,
    *,
    cancel: threading.Event | None = None,
    on_outcome: OutcomeCallback | None = None,
) -> tuple[list[InstallOutcome], int]:
    """Install archives with at most ``concurrency_limit`` jobs running.

    Args:
        archives: Archives to install. Base names must be distinct.
        concurrency_limit: Worker pool size, already clamped by the caller.
        tool: Install tool shared by all jobs.
        cancel: Cooperative cancellation, checked between attempts.
        on_outcome: Called once per finished job, in completion order.

    Returns:
        (outcomes in input order, number of ``failed`` outcomes).

    Raises:
        ValueError: If ``concurrency_limit`` is not positive.
    """
    if concurrency_limit <= 0:
        raise ValueError(f"concurrency_limit must be positive, got {concurrency_limit}")
    if not archives:
        return [], 0

    slots: list[InstallOutcome | None] = [None] * len(archives)

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=concurrency_limit,
        thread_name_prefix="install",
    ) as pool:
        futures = {
            pool.submit(install_one, archive, tool, cancel=cancel): index
            for index, archive in enumerate(archives)
        }
        for future in concurrent.futures.as_completed(futures):
            index = futures[future]
            outcome = future.result()
            slots[index] = outcome
            if on_outcome is not None:
                on_outcome(outcome)

    outcomes = [o for o in slots if o is not None]
    failed = sum(1 for o in outcomes if o.failed)
    logger.info(
        "Batch done: %d installed (%d forced), %d failed",
        len(outcomes) - failed,
        sum(1 for o in outcomes if o.forced),
        failed,
    )
    return outcomes, failed
