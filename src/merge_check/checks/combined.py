"""Combined branch test.

Merges every feature branch into a disposable integration branch cut from
trunk, then runs the project's test and build commands on the result. This is
the only check that mutates the working tree, so it owns it exclusively for
its whole run:

    IDLE -> TEMP_BRANCH_CREATED -> MERGING_BRANCHES -> ALL_MERGED | MERGE_FAILED
         -> TEST_RUN -> BUILD_RUN -> CLEANED

``CLEANED`` is reached from every state: ``integration_branch`` restores the
original checkout and force-deletes the temporary branch on every exit path,
exceptions included.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Iterator, Sequence

from merge_check.checks import COMBINED_BRANCH_TEST, elapsed_ms
from merge_check.core.config import MergeCheckConfig
from merge_check.core.git import CommandResult, current_branch, run_command, run_git
from merge_check.models import (
    BranchCheckResult,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    Severity,
)
from merge_check.parsing import split_lines

__all__ = [
    "OUTPUT_EXCERPT_LIMIT",
    "TesterState",
    "IntegrationBranchError",
    "MergeAttempt",
    "integration_branch",
    "CombinedBranchTester",
]

logger = logging.getLogger(__name__)

OUTPUT_EXCERPT_LIMIT = 500
TEMP_BRANCH_PREFIX = "merge-check/temp-"

# One integration run per process at a time: HEAD is a single shared resource.
_WORKTREE_LOCK = threading.Lock()


class TesterState(StrEnum):
    IDLE = "idle"
    TEMP_BRANCH_CREATED = "temp_branch_created"
    MERGING_BRANCHES = "merging_branches"
    ALL_MERGED = "all_merged"
    MERGE_FAILED = "merge_failed"
    TEST_RUN = "test_run"
    BUILD_RUN = "build_run"
    CLEANED = "cleaned"


class IntegrationBranchError(RuntimeError):
    """The temporary integration branch could not be created."""


@dataclass
class MergeAttempt:
    item_id: int
    branch_name: str
    success: bool
    conflict_files: list[str] = field(default_factory=list)
    error: str = ""


def _excerpt(result: CommandResult) -> str:
    return result.output[:OUTPUT_EXCERPT_LIMIT]


@contextmanager
def integration_branch(
    repo_root: Path,
    base_ref: str,
    fallback_branch: str = "main",
    name: str | None = None,
) -> Iterator[str]:
    """Check out a new temporary branch from ``base_ref`` for the duration of the block.

    On exit the originally checked-out branch is restored and the temporary
    branch force-deleted, whatever happened inside the block. Raises
    ``IntegrationBranchError`` (after restoring) if the branch cannot be created.
    """
    temp_branch = name or f"{TEMP_BRANCH_PREFIX}{int(time.time())}-{uuid.uuid4().hex[:8]}"
    with _WORKTREE_LOCK:
        original = current_branch(repo_root)
        created = run_git(repo_root, ["checkout", "-b", temp_branch, base_ref])
        try:
            if not created.ok:
                raise IntegrationBranchError(created.stderr.strip() or f"git checkout -b {temp_branch} failed")
            yield temp_branch
        finally:
            # A merge interrupted by an exception must not block the checkout.
            if run_git(repo_root, ["rev-parse", "-q", "--verify", "MERGE_HEAD"]).ok:
                run_git(repo_root, ["merge", "--abort"])
            restore_to = original if original and original != "HEAD" else fallback_branch
            restored = run_git(repo_root, ["checkout", restore_to])
            if not restored.ok:
                logger.error("Failed to restore %s after combined test: %s", restore_to, restored.stderr.strip())
            deleted = run_git(repo_root, ["branch", "-D", temp_branch])
            if not deleted.ok and created.ok:
                logger.error("Failed to delete temporary branch %s: %s", temp_branch, deleted.stderr.strip())


class CombinedBranchTester:
    """Merge all branches into a throwaway branch and run test/build on it."""

    def __init__(self, repo_root: Path, config: MergeCheckConfig) -> None:
        self.repo_root = repo_root
        self.config = config
        self.state = TesterState.IDLE
        self.history: list[TesterState] = [TesterState.IDLE]

    def _transition(self, state: TesterState) -> None:
        logger.debug("combined-branch-test: %s -> %s", self.state, state)
        self.state = state
        self.history.append(state)

    def _finding(self, severity: Severity, message: str, item_id: int | None = None) -> CheckFinding:
        return CheckFinding(check_name=COMBINED_BRANCH_TEST, severity=severity, message=message, item_id=item_id)

    def merge_branch(self, branch: BranchInfo) -> MergeAttempt:
        """Merge one branch; on conflict, record the files and abort the merge."""
        result = run_git(
            self.repo_root,
            ["merge", "--no-ff", "--no-edit", branch.ref(self.config.remote)],
        )
        if result.ok:
            return MergeAttempt(item_id=branch.item_id, branch_name=branch.branch_name, success=True)

        unmerged = run_git(self.repo_root, ["diff", "--name-only", "--diff-filter=U"])
        conflict_files = split_lines(unmerged.stdout) if unmerged.ok else []
        aborted = run_git(self.repo_root, ["merge", "--abort"])
        if not aborted.ok:
            # Merges that fail before starting leave nothing to abort.
            logger.debug("merge --abort after %s: %s", branch.branch_name, aborted.stderr.strip())
        return MergeAttempt(
            item_id=branch.item_id,
            branch_name=branch.branch_name,
            success=False,
            conflict_files=conflict_files,
            error=result.output,
        )

    def _attempt_result(self, attempt: MergeAttempt) -> BranchCheckResult:
        if attempt.success:
            return BranchCheckResult(
                item_id=attempt.item_id,
                verdict=CheckVerdict.PASS,
                findings=[
                    self._finding(Severity.INFO, "Branch merged cleanly into combined state", attempt.item_id)
                ],
            )
        if attempt.conflict_files:
            message = (
                f"Merge conflict with {len(attempt.conflict_files)} file(s): {', '.join(attempt.conflict_files)}"
            )
        else:
            message = f"Merge failed: {attempt.error[:OUTPUT_EXCERPT_LIMIT] or 'unknown error'}"
        return BranchCheckResult(
            item_id=attempt.item_id,
            verdict=CheckVerdict.FAIL,
            findings=[self._finding(Severity.ERROR, message, attempt.item_id)],
        )

    def _run_step(self, label: str, command: Sequence[str]) -> CheckFinding:
        result = run_command(command, cwd=self.repo_root, timeout=self.config.command_timeout)
        display = " ".join(command)
        if result.ok:
            return self._finding(Severity.INFO, f"{display} passed on combined state")
        if result.timed_out:
            return self._finding(
                Severity.ERROR,
                f"{display} timed out after {self.config.command_timeout}s on combined state",
            )
        logger.info("%s failed on combined state (exit %s)", label, result.returncode)
        return self._finding(Severity.ERROR, f"{display} failed on combined state: {_excerpt(result)}")

    def run(self, branches: Sequence[BranchInfo]) -> CheckResult:
        start = time.monotonic()
        branch_results: list[BranchCheckResult] = []
        batch_findings: list[CheckFinding] = []

        fetched = run_git(self.repo_root, ["fetch", self.config.remote], timeout=self.config.command_timeout)
        if not fetched.ok:
            logger.warning("git fetch %s failed: %s", self.config.remote, fetched.stderr.strip())

        try:
            with integration_branch(self.repo_root, self.config.trunk_ref, self.config.trunk):
                self._transition(TesterState.TEMP_BRANCH_CREATED)
                self._transition(TesterState.MERGING_BRANCHES)

                attempts = [self.merge_branch(branch) for branch in branches]
                branch_results.extend(self._attempt_result(attempt) for attempt in attempts)

                failed = [attempt for attempt in attempts if not attempt.success]
                if failed:
                    self._transition(TesterState.MERGE_FAILED)
                    batch_findings.append(
                        self._finding(
                            Severity.ERROR,
                            f"{len(failed)}/{len(branches)} branches had merge conflicts; skipping test/build",
                        )
                    )
                else:
                    self._transition(TesterState.ALL_MERGED)
                    self._transition(TesterState.TEST_RUN)
                    batch_findings.append(self._run_step("test", self.config.test_command))
                    self._transition(TesterState.BUILD_RUN)
                    batch_findings.append(self._run_step("build", self.config.build_command))
        except IntegrationBranchError as exc:
            batch_findings.append(self._finding(Severity.ERROR, f"Failed to create temp branch: {exc}"))
        finally:
            self._transition(TesterState.CLEANED)

        return CheckResult(
            name=COMBINED_BRANCH_TEST,
            passed=not any(f.severity == Severity.ERROR for f in batch_findings),
            branch_results=branch_results,
            batch_findings=batch_findings,
            duration_ms=elapsed_ms(start),
        )
