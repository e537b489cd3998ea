"""Combined branch test against real repositories.

Every scenario ends with the same cleanup assertions: the original branch is
checked out again, no temporary branch survives and no merge is in progress.
"""

from __future__ import annotations

import dataclasses
import subprocess
from unittest.mock import patch

import pytest

from merge_check.checks.combined import (
    CombinedBranchTester,
    IntegrationBranchError,
    TesterState,
    integration_branch,
)
from merge_check.models import BranchInfo, CheckVerdict, Severity
from tests.utils import git, local_branches, make_branch

pytestmark = pytest.mark.git_repo


def _branch(item_id: int, name: str, files: tuple[str, ...] = ()) -> BranchInfo:
    return BranchInfo(item_id=item_id, title=f"Item {item_id}", branch_name=name, files_modified=files)


def _assert_clean(repo, expected_branch: str = "main") -> None:
    assert git(repo, "rev-parse", "--abbrev-ref", "HEAD") == expected_branch
    assert local_branches(repo, "merge-check/*") == []
    merge_head = subprocess.run(
        ["git", "rev-parse", "-q", "--verify", "MERGE_HEAD"], cwd=repo, capture_output=True, text=True
    )
    assert merge_head.returncode != 0


def test_clean_merges_run_test_and_build(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-alpha", {"alpha.txt": "alpha\n"})
    make_branch(temp_repo, "feature/2-beta", {"beta.txt": "beta\n"})
    tester = CombinedBranchTester(temp_repo, passing_config)

    result = tester.run([_branch(1, "feature/1-alpha"), _branch(2, "feature/2-beta")])

    assert result.passed is True
    assert [r.verdict for r in result.branch_results] == [CheckVerdict.PASS, CheckVerdict.PASS]
    assert [f.severity for f in result.batch_findings] == [Severity.INFO, Severity.INFO]
    assert "git --version passed on combined state" in result.batch_findings[0].message
    assert tester.history == [
        TesterState.IDLE,
        TesterState.TEMP_BRANCH_CREATED,
        TesterState.MERGING_BRANCHES,
        TesterState.ALL_MERGED,
        TesterState.TEST_RUN,
        TesterState.BUILD_RUN,
        TesterState.CLEANED,
    ]
    _assert_clean(temp_repo)
    assert not (temp_repo / "alpha.txt").exists()


def test_conflict_fails_only_the_conflicting_item(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-readme", {"README.md": "# Title from one\n"})
    make_branch(temp_repo, "feature/2-readme", {"README.md": "# Title from two\n"})
    make_branch(temp_repo, "feature/3-other", {"other.txt": "other\n"})
    tester = CombinedBranchTester(temp_repo, passing_config)

    result = tester.run(
        [_branch(1, "feature/1-readme"), _branch(2, "feature/2-readme"), _branch(3, "feature/3-other")]
    )

    verdicts = {r.item_id: r.verdict for r in result.branch_results}
    assert verdicts == {1: CheckVerdict.PASS, 2: CheckVerdict.FAIL, 3: CheckVerdict.PASS}
    conflict = result.result_for(2).findings[0]
    assert conflict.severity == Severity.ERROR
    assert "README.md" in conflict.message
    assert result.passed is False
    assert result.batch_findings[0].message == "1/3 branches had merge conflicts; skipping test/build"
    assert TesterState.MERGE_FAILED in tester.history
    assert TesterState.TEST_RUN not in tester.history
    assert tester.state == TesterState.CLEANED
    _assert_clean(temp_repo)


def test_failing_test_command_is_reported_with_output(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-alpha", {"alpha.txt": "alpha\n"})
    config = dataclasses.replace(passing_config, test_command=("sh", "-c", "echo boom >&2; exit 3"))

    result = CombinedBranchTester(temp_repo, config).run([_branch(1, "feature/1-alpha")])

    assert result.passed is False
    test_finding, build_finding = result.batch_findings
    assert test_finding.severity == Severity.ERROR
    assert "failed on combined state" in test_finding.message
    assert "boom" in test_finding.message
    assert build_finding.severity == Severity.INFO
    assert result.result_for(1).verdict == CheckVerdict.PASS
    _assert_clean(temp_repo)


def test_command_timeout(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-alpha", {"alpha.txt": "alpha\n"})
    config = dataclasses.replace(passing_config, test_command=("sleep", "5"), command_timeout=1)

    result = CombinedBranchTester(temp_repo, config).run([_branch(1, "feature/1-alpha")])

    assert result.batch_findings[0].severity == Severity.ERROR
    assert "timed out after 1s" in result.batch_findings[0].message
    _assert_clean(temp_repo)


def test_missing_trunk_reports_temp_branch_failure(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-alpha", {"alpha.txt": "alpha\n"})
    config = dataclasses.replace(passing_config, trunk="nonexistent")
    tester = CombinedBranchTester(temp_repo, config)

    result = tester.run([_branch(1, "feature/1-alpha")])

    assert result.passed is False
    assert result.branch_results == []
    assert len(result.batch_findings) == 1
    assert result.batch_findings[0].message.startswith("Failed to create temp branch:")
    assert tester.history == [TesterState.IDLE, TesterState.CLEANED]
    _assert_clean(temp_repo)


def test_exception_mid_merge_still_cleans_up(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-readme", {"README.md": "# Title from one\n"})
    make_branch(temp_repo, "feature/2-readme", {"README.md": "# Title from two\n"})
    tester = CombinedBranchTester(temp_repo, passing_config)

    def _merge_then_crash(branch: BranchInfo):
        # Leave a conflicted merge in progress before blowing up.
        subprocess.run(["git", "merge", "--no-ff", "--no-edit", "origin/feature/1-readme"], cwd=temp_repo)
        subprocess.run(["git", "merge", "--no-ff", "--no-edit", "origin/feature/2-readme"], cwd=temp_repo)
        raise RuntimeError("disk full")

    with patch.object(tester, "merge_branch", side_effect=_merge_then_crash):
        with pytest.raises(RuntimeError, match="disk full"):
            tester.run([_branch(1, "feature/1-readme")])

    assert tester.state == TesterState.CLEANED
    _assert_clean(temp_repo)
    assert (temp_repo / "README.md").read_text(encoding="utf-8") == "# Demo project\n"


def test_restores_a_non_main_original_branch(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-alpha", {"alpha.txt": "alpha\n"})
    git(temp_repo, "checkout", "-b", "work-in-progress")

    CombinedBranchTester(temp_repo, passing_config).run([_branch(1, "feature/1-alpha")])

    _assert_clean(temp_repo, expected_branch="work-in-progress")


def test_integration_branch_context_manager(temp_repo):
    with integration_branch(temp_repo, "origin/main", name="merge-check/temp-manual") as name:
        assert name == "merge-check/temp-manual"
        assert git(temp_repo, "rev-parse", "--abbrev-ref", "HEAD") == name

    _assert_clean(temp_repo)

    with pytest.raises(IntegrationBranchError):
        with integration_branch(temp_repo, "origin/missing"):
            pytest.fail("block must not run when the branch cannot be created")
    _assert_clean(temp_repo)
