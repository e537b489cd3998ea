"""Resolve work-item identifiers to feature branches.

Branch names follow ``<prefix><id>-<slug>`` (``feature/42-fix-login``). Local
worktrees win over remote branches: their diff is fresher and needs no
network.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable

from merge_check.core.config import MergeCheckConfig
from merge_check.core.git import run_git
from merge_check.models import BranchInfo
from merge_check.parsing import parse_remote_branches, parse_worktree_porcelain, split_lines
from merge_check.run_log import RunLog

__all__ = [
    "BranchResolver",
    "TitleLookup",
    "placeholder_title",
]

logger = logging.getLogger(__name__)

TitleLookup = Callable[[int], "str | None"]


def placeholder_title(item_id: int) -> str:
    return f"Item #{item_id}"


class BranchResolver:
    """Find each item's branch and the files it modifies relative to trunk."""

    def __init__(
        self,
        repo_root: Path,
        config: MergeCheckConfig,
        title_lookup: TitleLookup | None = None,
    ) -> None:
        self.repo_root = repo_root
        self.config = config
        self.title_lookup = title_lookup

    def list_remote_branches(self) -> list[str]:
        pattern = f"{self.config.remote}/{self.config.branch_prefix}*"
        result = run_git(self.repo_root, ["branch", "-r", "--list", pattern])
        if not result.ok:
            return []
        return parse_remote_branches(result.stdout, self.config.remote)

    def list_worktrees(self) -> dict[str, str]:
        result = run_git(self.repo_root, ["worktree", "list", "--porcelain"])
        if not result.ok:
            return {}
        return parse_worktree_porcelain(result.stdout)

    def _branch_pattern(self, item_id: int) -> re.Pattern[str]:
        return re.compile(rf"^{re.escape(self.config.branch_prefix)}{item_id}-")

    def find_branch(
        self,
        item_id: int,
        remote_branches: list[str],
        worktrees: dict[str, str],
    ) -> str | None:
        pattern = self._branch_pattern(item_id)
        for branch in worktrees:
            if pattern.match(branch):
                return branch
        for branch in remote_branches:
            if pattern.match(branch):
                return branch
        return None

    def worktree_files(self, worktree_path: str) -> list[str]:
        """Files changed in a worktree: committed, staged, unstaged, untracked."""
        root = Path(worktree_path)
        files: list[str] = []
        seen: set[str] = set()

        committed = run_git(root, ["diff", "--name-only", f"{self.config.trunk_ref}...HEAD"])
        if not committed.ok:
            # Trunk may never have been fetched into this clone.
            committed = run_git(root, ["diff", "--name-only", f"{self.config.trunk}...HEAD"])
        uncommitted = run_git(root, ["diff", "--name-only", "HEAD"])
        untracked = run_git(root, ["ls-files", "--others", "--exclude-standard"])

        for result in (committed, uncommitted, untracked):
            if not result.ok:
                continue
            for name in split_lines(result.stdout):
                if name not in seen:
                    seen.add(name)
                    files.append(name)
        return files

    def remote_files(self, branch: str) -> list[str]:
        ref = f"{self.config.remote}/{branch}"
        result = run_git(self.repo_root, ["diff", "--name-only", f"{self.config.trunk_ref}...{ref}"])
        if not result.ok:
            logger.warning("Could not diff %s against %s: %s", ref, self.config.trunk_ref, result.stderr.strip())
            return []
        return split_lines(result.stdout)

    def resolve_title(self, item_id: int, run_log: RunLog | None) -> str:
        if run_log is not None:
            issue = run_log.issue(item_id)
            if issue is not None and issue.title:
                return issue.title
        if self.title_lookup is not None:
            title = self.title_lookup(item_id)
            if title:
                return title
        return placeholder_title(item_id)

    def resolve(self, item_ids: list[int], run_log: RunLog | None = None) -> list[BranchInfo]:
        """Resolve items in input order; items with no branch are skipped."""
        remote_branches = self.list_remote_branches()
        worktrees = self.list_worktrees()

        branches: list[BranchInfo] = []
        for item_id in item_ids:
            branch = self.find_branch(item_id, remote_branches, worktrees)
            if branch is None:
                logger.warning("No branch found for item #%s", item_id)
                continue

            worktree_path = worktrees.get(branch)
            if worktree_path:
                files = self.worktree_files(worktree_path)
            else:
                files = self.remote_files(branch)

            issue = run_log.issue(item_id) if run_log is not None else None
            branches.append(
                BranchInfo(
                    item_id=item_id,
                    title=self.resolve_title(item_id, run_log),
                    branch_name=branch,
                    worktree_path=worktree_path,
                    external_ref_id=issue.external_ref_id if issue is not None else None,
                    files_modified=tuple(files),
                )
            )
            logger.debug("Resolved #%s to %s (%d files)", item_id, branch, len(files))
        return branches
