"""Cross-branch file overlap detection.

Files touched by two or more items are overlaps. Each is classified from
``git diff --unified=0`` hunk headers: if any two items' changed line ranges
intersect the overlap is ``conflicting``, otherwise ``additive``. Overlaps are
always warnings, never failures; intersecting ranges are a signal for human
review rather than proof of breakage.
"""

from __future__ import annotations

import itertools
import logging
import time
from pathlib import Path
from typing import Callable, Sequence

from merge_check.checks import OVERLAP_DETECTION, elapsed_ms
from merge_check.core.git import run_git
from merge_check.models import (
    BranchCheckResult,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    FileOverlap,
    OverlapType,
    Severity,
)
from merge_check.parsing import LineRange, parse_hunk_ranges, ranges_overlap

__all__ = [
    "RangeProvider",
    "build_file_map",
    "classify_overlap",
    "find_overlaps",
    "git_range_provider",
    "run_overlap_detection",
]

logger = logging.getLogger(__name__)

RangeProvider = Callable[[BranchInfo, str], list[LineRange]]


def _format_items(items: Sequence[int]) -> str:
    return ", ".join(f"#{item}" for item in items)


def git_range_provider(repo_root: Path, trunk_ref: str, remote: str = "origin") -> RangeProvider:
    """Read changed ``+`` line ranges of one file on one branch from git."""

    def _ranges(branch: BranchInfo, file_path: str) -> list[LineRange]:
        result = run_git(
            repo_root,
            ["diff", "--unified=0", f"{trunk_ref}...{branch.ref(remote)}", "--", file_path],
        )
        if not result.ok:
            logger.debug("No hunks for %s on %s", file_path, branch.branch_name)
            return []
        return parse_hunk_ranges(result.stdout)

    return _ranges


def build_file_map(branches: Sequence[BranchInfo]) -> dict[str, list[int]]:
    """Map each modified file to the items that modified it, in batch order."""
    file_map: dict[str, list[int]] = {}
    for branch in branches:
        for file_path in branch.files_modified:
            items = file_map.setdefault(file_path, [])
            if branch.item_id not in items:
                items.append(branch.item_id)
    return file_map


def classify_overlap(
    file_path: str,
    branches: Sequence[BranchInfo],
    range_provider: RangeProvider,
) -> OverlapType:
    ranges = [range_provider(branch, file_path) for branch in branches]
    for left, right in itertools.combinations(ranges, 2):
        if ranges_overlap(left, right):
            return OverlapType.CONFLICTING
    return OverlapType.ADDITIVE


def find_overlaps(branches: Sequence[BranchInfo], range_provider: RangeProvider) -> list[FileOverlap]:
    by_id = {branch.item_id: branch for branch in branches}
    overlaps: list[FileOverlap] = []
    for file_path, items in build_file_map(branches).items():
        if len(items) < 2:
            continue
        involved = [by_id[item] for item in items]
        overlaps.append(
            FileOverlap(
                file=file_path,
                items=tuple(items),
                type=classify_overlap(file_path, involved, range_provider),
            )
        )
    return overlaps


def run_overlap_detection(
    branches: Sequence[BranchInfo],
    range_provider: RangeProvider,
) -> CheckResult:
    start = time.monotonic()
    overlaps = find_overlaps(branches, range_provider)

    batch_findings: list[CheckFinding] = []
    if not overlaps:
        batch_findings.append(
            CheckFinding(
                check_name=OVERLAP_DETECTION,
                severity=Severity.INFO,
                message="No file overlaps detected across branches",
            )
        )
    for overlap in overlaps:
        batch_findings.append(
            CheckFinding(
                check_name=OVERLAP_DETECTION,
                severity=Severity.WARNING,
                message=f"{overlap.file} modified by items {_format_items(overlap.items)} ({overlap.type})",
                file=overlap.file,
            )
        )

    branch_results: list[BranchCheckResult] = []
    for branch in branches:
        involved = [overlap for overlap in overlaps if branch.item_id in overlap.items]
        findings = [
            CheckFinding(
                check_name=OVERLAP_DETECTION,
                severity=Severity.WARNING,
                message=(
                    f"Overlaps with {_format_items([i for i in overlap.items if i != branch.item_id])}"
                    f" on {overlap.file} ({overlap.type})"
                ),
                file=overlap.file,
                item_id=branch.item_id,
            )
            for overlap in involved
        ]
        branch_results.append(
            BranchCheckResult(
                item_id=branch.item_id,
                verdict=CheckVerdict.WARN if involved else CheckVerdict.PASS,
                findings=findings,
            )
        )

    return CheckResult(
        name=OVERLAP_DETECTION,
        passed=not overlaps,
        branch_results=branch_results,
        batch_findings=batch_findings,
        duration_ms=elapsed_ms(start),
    )
