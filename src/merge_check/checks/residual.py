"""Residual pattern scan.

Lines a branch removed are treated as literal search patterns; any remaining
occurrence elsewhere in the trunk tree suggests an incomplete migration.
Matches in files the branch already touches, in dependency/vendor
directories and in test files are ignored.
"""

from __future__ import annotations

import logging
import re
import time
from collections import OrderedDict
from pathlib import Path
from typing import Sequence

from merge_check.checks import RESIDUAL_PATTERN_SCAN, elapsed_ms
from merge_check.core.config import DEFAULT_SCAN_GLOBS
from merge_check.core.git import run_git
from merge_check.models import (
    BranchCheckResult,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    ExtractedPattern,
    ResidualMatch,
    Severity,
)
from merge_check.parsing import iter_removed_lines, parse_grep_output

__all__ = [
    "MIN_PATTERN_LENGTH",
    "MAX_PATTERNS_PER_BRANCH",
    "extract_patterns",
    "is_noise_line",
    "is_excluded_path",
    "ResidualScanner",
]

logger = logging.getLogger(__name__)

MIN_PATTERN_LENGTH = 8
MAX_PATTERNS_PER_BRANCH = 50

NOISE_PATTERNS = [
    re.compile(r"^\s*$"),
    re.compile(r"^\s*//"),
    re.compile(r"^\s*#(?!!)"),
    re.compile(r"^\s*/?\*"),
    re.compile(r"^\s*(import|export)\s"),
    re.compile(r"^\s*from\s+\S+\s+import\s"),
    re.compile(r"^\s*[\{\}\(\)\[\]]*\s*[;,]?\s*$"),
]

VENDOR_DIRS = ("node_modules/", "vendor/", ".venv/", "venv/", "site-packages/", "third_party/")
TEST_FILE_PATTERN = re.compile(
    r"(^|/)(tests?|__tests__)/|\.(test|spec)\.[^/]+$|(^|/)test_[^/]+\.py$|_test\.py$"
)

_PATTERN_PREVIEW = 60
_CONTENT_LIMIT = 200


def is_noise_line(content: str) -> bool:
    """Blank, comment-only, import/export or lone-bracket lines."""
    return any(pattern.search(content) for pattern in NOISE_PATTERNS)


def is_excluded_path(file_path: str) -> bool:
    """Dependency/vendor directories and test files never count as residuals."""
    if any(file_path.startswith(d) or f"/{d}" in file_path for d in VENDOR_DIRS):
        return True
    return bool(TEST_FILE_PATTERN.search(file_path))


def extract_patterns(
    diff_text: str,
    item_id: int,
    min_length: int = MIN_PATTERN_LENGTH,
    max_patterns: int = MAX_PATTERNS_PER_BRANCH,
) -> list[ExtractedPattern]:
    """Literal patterns from the removed lines of a unified diff.

    Trimmed, deduplicated within the branch, capped at ``max_patterns``.
    """
    patterns: list[ExtractedPattern] = []
    seen: set[str] = set()
    for removed in iter_removed_lines(diff_text):
        content = removed.content.strip()
        if len(content) < min_length or is_noise_line(content) or content in seen:
            continue
        seen.add(content)
        patterns.append(ExtractedPattern(pattern=content, source_file=removed.file, item_id=item_id))
        if len(patterns) >= max_patterns:
            break
    return patterns


def _preview(pattern: str) -> str:
    if len(pattern) > _PATTERN_PREVIEW:
        return pattern[:_PATTERN_PREVIEW] + "..."
    return pattern


class ResidualScanner:
    """Extract removed patterns per branch and search the trunk tree for them."""

    def __init__(
        self,
        repo_root: Path,
        trunk_ref: str,
        remote: str = "origin",
        scan_globs: Sequence[str] = DEFAULT_SCAN_GLOBS,
        min_length: int = MIN_PATTERN_LENGTH,
        max_patterns: int = MAX_PATTERNS_PER_BRANCH,
        grep_timeout: float = 10,
    ) -> None:
        self.repo_root = repo_root
        self.trunk_ref = trunk_ref
        self.remote = remote
        self.scan_globs = tuple(scan_globs)
        self.min_length = min_length
        self.max_patterns = max_patterns
        self.grep_timeout = grep_timeout

    def branch_patterns(self, branch: BranchInfo) -> list[ExtractedPattern]:
        result = run_git(
            self.repo_root,
            ["diff", "--unified=0", f"{self.trunk_ref}...{branch.ref(self.remote)}"],
        )
        if not result.ok:
            logger.warning("Could not diff %s for residual scan: %s", branch.branch_name, result.stderr.strip())
            return []
        return extract_patterns(result.stdout, branch.item_id, self.min_length, self.max_patterns)

    def find_residuals(
        self,
        patterns: Sequence[ExtractedPattern],
        exclude_files: Sequence[str],
    ) -> list[ResidualMatch]:
        """Fixed-string search of the trunk tree for each pattern."""
        excluded = set(exclude_files)
        matches: list[ResidualMatch] = []
        for pattern in patterns:
            result = run_git(
                self.repo_root,
                ["grep", "-n", "-I", "--fixed-strings", "-e", pattern.pattern, self.trunk_ref, "--", *self.scan_globs],
                timeout=self.grep_timeout,
            )
            # Exit code 1 means no match.
            if not result.ok:
                continue
            for hit in parse_grep_output(_strip_tree_prefix(result.stdout, self.trunk_ref)):
                if hit.file in excluded or is_excluded_path(hit.file):
                    continue
                matches.append(
                    ResidualMatch(
                        pattern=pattern.pattern,
                        file=hit.file,
                        line=hit.line,
                        content=hit.content[:_CONTENT_LIMIT],
                        item_id=pattern.item_id,
                    )
                )
        return matches

    def scan_branch(self, branch: BranchInfo) -> tuple[BranchCheckResult, CheckFinding | None]:
        patterns = self.branch_patterns(branch)
        if not patterns:
            return (
                BranchCheckResult(
                    item_id=branch.item_id,
                    verdict=CheckVerdict.PASS,
                    findings=[
                        CheckFinding(
                            check_name=RESIDUAL_PATTERN_SCAN,
                            severity=Severity.INFO,
                            message="No significant patterns extracted from diff",
                            item_id=branch.item_id,
                        )
                    ],
                ),
                None,
            )

        residuals = self.find_residuals(patterns, branch.files_modified)
        if not residuals:
            return (
                BranchCheckResult(
                    item_id=branch.item_id,
                    verdict=CheckVerdict.PASS,
                    findings=[
                        CheckFinding(
                            check_name=RESIDUAL_PATTERN_SCAN,
                            severity=Severity.INFO,
                            message=f"Scanned {len(patterns)} patterns, no residuals found",
                            item_id=branch.item_id,
                        )
                    ],
                ),
                None,
            )

        by_pattern: OrderedDict[str, list[ResidualMatch]] = OrderedDict()
        for match in residuals:
            by_pattern.setdefault(match.pattern, []).append(match)

        findings: list[CheckFinding] = []
        for pattern, pattern_matches in by_pattern.items():
            files = list(dict.fromkeys(match.file for match in pattern_matches))
            findings.append(
                CheckFinding(
                    check_name=RESIDUAL_PATTERN_SCAN,
                    severity=Severity.WARNING,
                    message=(
                        f'Pattern "{_preview(pattern)}" still found in {len(files)} file(s): {", ".join(files)}'
                    ),
                    file=files[0],
                    line=pattern_matches[0].line,
                    item_id=branch.item_id,
                )
            )

        summary = CheckFinding(
            check_name=RESIDUAL_PATTERN_SCAN,
            severity=Severity.WARNING,
            message=(
                f"Item #{branch.item_id}: {len(residuals)} residual match(es) across {len(by_pattern)} pattern(s)"
            ),
            item_id=branch.item_id,
        )
        return BranchCheckResult(item_id=branch.item_id, verdict=CheckVerdict.WARN, findings=findings), summary

    def run(self, branches: Sequence[BranchInfo]) -> CheckResult:
        start = time.monotonic()
        branch_results: list[BranchCheckResult] = []
        batch_findings: list[CheckFinding] = []
        for branch in branches:
            result, summary = self.scan_branch(branch)
            branch_results.append(result)
            if summary is not None:
                batch_findings.append(summary)

        return CheckResult(
            name=RESIDUAL_PATTERN_SCAN,
            passed=all(result.verdict == CheckVerdict.PASS for result in branch_results),
            branch_results=branch_results,
            batch_findings=batch_findings,
            duration_ms=elapsed_ms(start),
        )


def _strip_tree_prefix(text: str, tree: str) -> str:
    """Drop the ``<tree>:`` prefix ``git grep`` adds when searching a ref."""
    prefix = f"{tree}:"
    return "\n".join(line[len(prefix):] if line.startswith(prefix) else line for line in text.splitlines())
