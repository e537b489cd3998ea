"""Paired-directory mirroring check.

When a branch touches a file under one side of a mirror pair (for example a
packaged template copy of a live config directory), the counterpart under
the other side must change in the same branch. Pure data transformation: no
git access.
"""

from __future__ import annotations

import time
from typing import Sequence

from merge_check.checks import MIRRORING, elapsed_ms
from merge_check.models import (
    BranchCheckResult,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    MirrorDirection,
    MirrorPair,
    Severity,
    UnmirroredChange,
)

__all__ = ["mirror_path", "find_unmirrored_changes", "run_mirroring_check"]


def mirror_path(file_path: str, pairs: Sequence[MirrorPair]) -> tuple[str, MirrorDirection] | None:
    """Counterpart path of ``file_path`` and the side it lives on, if mirrored."""
    for pair in pairs:
        source_prefix = pair.source + "/"
        target_prefix = pair.target + "/"
        if file_path.startswith(source_prefix):
            return pair.target + "/" + file_path[len(source_prefix):], MirrorDirection.SOURCE_ONLY
        if file_path.startswith(target_prefix):
            return pair.source + "/" + file_path[len(target_prefix):], MirrorDirection.TARGET_ONLY
    return None


def find_unmirrored_changes(branch: BranchInfo, pairs: Sequence[MirrorPair]) -> list[UnmirroredChange]:
    modified = set(branch.files_modified)
    changes: list[UnmirroredChange] = []
    for file_path in branch.files_modified:
        mirrored = mirror_path(file_path, pairs)
        if mirrored is None:
            continue
        counterpart, direction = mirrored
        if counterpart not in modified:
            changes.append(
                UnmirroredChange(
                    source_file=file_path,
                    target_file=counterpart,
                    direction=direction,
                    item_id=branch.item_id,
                )
            )
    return changes


def run_mirroring_check(branches: Sequence[BranchInfo], pairs: Sequence[MirrorPair]) -> CheckResult:
    start = time.monotonic()
    branch_results: list[BranchCheckResult] = []

    for branch in branches:
        changes = find_unmirrored_changes(branch, pairs)
        findings = [
            CheckFinding(
                check_name=MIRRORING,
                severity=Severity.WARNING,
                message=f"Modified {change.source_file} but not its mirror {change.target_file}",
                file=change.source_file,
                item_id=branch.item_id,
            )
            for change in changes
        ]
        branch_results.append(
            BranchCheckResult(
                item_id=branch.item_id,
                verdict=CheckVerdict.WARN if changes else CheckVerdict.PASS,
                findings=findings,
            )
        )

    return CheckResult(
        name=MIRRORING,
        passed=all(result.verdict == CheckVerdict.PASS for result in branch_results),
        branch_results=branch_results,
        batch_findings=[],
        duration_ms=elapsed_ms(start),
    )
