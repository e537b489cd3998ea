"""Exceptions raised by merge-check.

Expected failure modes inside a check (conflicts, failing tests, missing
branches) are reported as findings, not raised. These exceptions cover the
cases where no report can be produced at all.
"""

from __future__ import annotations


class MergeCheckError(Exception):
    """Base class for merge-check errors."""


class MergeCheckConfigError(MergeCheckError):
    """Raised when .merge-check/config.yaml is invalid."""


class RunLogError(MergeCheckError):
    """Raised when items must come from a run log and none is available."""


class NoBranchesError(MergeCheckError):
    """Raised when none of the requested items resolves to a branch."""
