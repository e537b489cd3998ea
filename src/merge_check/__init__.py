"""merge-check: verify that a batch of feature branches integrates cleanly."""

from merge_check.models import (
    BatchVerdict,
    BranchCheckResult,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    MergeReport,
    Severity,
)
from merge_check.runner import CheckMode, run_merge_checks

__version__ = "0.1.0"

__all__ = [
    "BatchVerdict",
    "BranchCheckResult",
    "BranchInfo",
    "CheckFinding",
    "CheckMode",
    "CheckResult",
    "CheckVerdict",
    "MergeReport",
    "Severity",
    "run_merge_checks",
]
