"""Merge check orchestration.

Resolves the batch, runs the selected checks and builds the report. The
combined branch test owns the working tree, so it runs first and alone; the
read-only checks address git only through explicit refs and may then run
concurrently.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Callable, Sequence

from merge_check.checks import COMBINED_BRANCH_TEST, MIRRORING, OVERLAP_DETECTION, RESIDUAL_PATTERN_SCAN
from merge_check.checks.combined import CombinedBranchTester
from merge_check.checks.mirroring import run_mirroring_check
from merge_check.checks.overlap import git_range_provider, run_overlap_detection
from merge_check.checks.residual import ResidualScanner
from merge_check.core.config import MergeCheckConfig
from merge_check.errors import NoBranchesError, RunLogError
from merge_check.github import CommentPoster, post_report
from merge_check.models import BranchInfo, CheckResult, MergeReport
from merge_check.report import build_report
from merge_check.resolver import BranchResolver, TitleLookup
from merge_check.run_log import RunLog, find_most_recent_log, resolve_log_dir

__all__ = [
    "CheckMode",
    "MergeCheckRun",
    "checks_for_mode",
    "run_checks",
    "run_merge_checks",
]

logger = logging.getLogger(__name__)


class CheckMode(StrEnum):
    CHECK = "check"
    SCAN = "scan"
    REVIEW = "review"
    ALL = "all"


_DETERMINISTIC_CHECKS = (COMBINED_BRANCH_TEST, MIRRORING, OVERLAP_DETECTION)
_SCAN_CHECKS = (RESIDUAL_PATTERN_SCAN,)


def checks_for_mode(mode: CheckMode) -> list[str]:
    """``check`` runs the deterministic checks; every other mode adds the residual scan.

    ``review`` and ``all`` are reserved for an AI briefing phase and currently
    select the same checks as ``scan``.
    """
    if mode == CheckMode.CHECK:
        return list(_DETERMINISTIC_CHECKS)
    return [*_DETERMINISTIC_CHECKS, *_SCAN_CHECKS]


@dataclass
class MergeCheckRun:
    """Inputs that stay fixed for one run."""

    repo_root: Path
    config: MergeCheckConfig
    jobs: int = 1


def run_checks(run: MergeCheckRun, branches: Sequence[BranchInfo], check_names: Sequence[str]) -> list[CheckResult]:
    """Run ``check_names`` and return results in the requested order."""
    config = run.config
    results: dict[str, CheckResult] = {}

    if COMBINED_BRANCH_TEST in check_names:
        results[COMBINED_BRANCH_TEST] = CombinedBranchTester(run.repo_root, config).run(branches)

    read_only: dict[str, Callable[[], CheckResult]] = {
        MIRRORING: lambda: run_mirroring_check(branches, config.mirror_pairs),
        OVERLAP_DETECTION: lambda: run_overlap_detection(
            branches, git_range_provider(run.repo_root, config.trunk_ref, config.remote)
        ),
        RESIDUAL_PATTERN_SCAN: lambda: ResidualScanner(
            run.repo_root,
            config.trunk_ref,
            remote=config.remote,
            scan_globs=config.scan_globs,
            min_length=config.min_pattern_length,
            max_patterns=config.max_patterns_per_branch,
        ).run(branches),
    }
    selected = [name for name in check_names if name in read_only]

    if run.jobs > 1 and len(selected) > 1:
        with ThreadPoolExecutor(max_workers=run.jobs) as pool:
            futures = {name: pool.submit(read_only[name]) for name in selected}
            for name, future in futures.items():
                results[name] = future.result()
    else:
        for name in selected:
            results[name] = read_only[name]()

    for name in check_names:
        if name not in results:
            logger.warning("Unknown check '%s' skipped", name)
    return [results[name] for name in check_names if name in results]


def run_merge_checks(
    item_ids: Sequence[int],
    mode: CheckMode,
    repo_root: Path,
    config: MergeCheckConfig,
    *,
    title_lookup: TitleLookup | None = None,
    poster: CommentPoster | None = None,
    jobs: int = 1,
) -> MergeReport:
    """Run all selected merge checks for a batch and produce a report.

    With no ``item_ids`` the batch is taken from the most recent run log.
    Raises ``RunLogError`` if that log is missing and ``NoBranchesError``
    if no item resolves to a branch.
    """
    run_log: RunLog | None = find_most_recent_log(resolve_log_dir(repo_root, config.log_dir))
    ids = list(item_ids)
    if not ids:
        if run_log is None:
            raise RunLogError("No run logs found. Specify item numbers or record a batch run first.")
        ids = run_log.item_ids

    branches = BranchResolver(repo_root, config, title_lookup=title_lookup).resolve(ids, run_log)
    if not branches:
        raise NoBranchesError(
            "No feature branches found for the specified items. "
            "Ensure branches exist (pushed to the remote or in local worktrees)."
        )

    results = run_checks(MergeCheckRun(repo_root=repo_root, config=config, jobs=jobs), branches, checks_for_mode(mode))
    report = build_report(branches, results, run_id=run_log.run_id if run_log else None)

    if poster is not None:
        post_report(report, poster)
    return report
