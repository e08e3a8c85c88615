"""
Run-level error types.

Only conditions that abort a whole run are exceptions. Everything that
can go wrong for a single archive is reported in its InstallOutcome.
"""

from __future__ import annotations


class SetupError(Exception):
    """Setup-fatal condition: nothing is installed when this is raised.

    Raised for a missing npm, a missing or empty archive directory, and
    an archive set without a main-package candidate.
    """
