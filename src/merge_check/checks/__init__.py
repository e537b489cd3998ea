"""Batch merge-readiness checks.

Modules:
    mirroring: paired-directory drift (pure, no git access)
    overlap: cross-branch file and line-range overlap
    residual: leftovers of patterns a branch removed
    combined: merge every branch into a temporary branch and run test/build
"""

from __future__ import annotations

import time

COMBINED_BRANCH_TEST = "combined-branch-test"
MIRRORING = "mirroring"
OVERLAP_DETECTION = "overlap-detection"
RESIDUAL_PATTERN_SCAN = "residual-pattern-scan"

__all__ = [
    "COMBINED_BRANCH_TEST",
    "MIRRORING",
    "OVERLAP_DETECTION",
    "RESIDUAL_PATTERN_SCAN",
    "elapsed_ms",
]


def elapsed_ms(start: float) -> int:
    """Milliseconds since ``start`` (a ``time.monotonic()`` reading)."""
    return int((time.monotonic() - start) * 1000)
