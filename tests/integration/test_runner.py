"""End-to-end runs of ``run_merge_checks`` on real repositories."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest

from merge_check.checks import COMBINED_BRANCH_TEST, MIRRORING, OVERLAP_DETECTION, RESIDUAL_PATTERN_SCAN
from merge_check.errors import NoBranchesError, RunLogError
from merge_check.models import BatchVerdict, CheckVerdict
from merge_check.runner import CheckMode, checks_for_mode, run_merge_checks
from tests.utils import local_branches, make_branch

pytestmark = pytest.mark.git_repo


def test_checks_for_mode():
    assert checks_for_mode(CheckMode.CHECK) == [COMBINED_BRANCH_TEST, MIRRORING, OVERLAP_DETECTION]
    for mode in (CheckMode.SCAN, CheckMode.REVIEW, CheckMode.ALL):
        assert checks_for_mode(mode)[-1] == RESIDUAL_PATTERN_SCAN


def test_clean_batch_is_ready(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-a", {"a.ts": "export const a = 1;\n"})
    make_branch(temp_repo, "feature/2-b", {"b.ts": "export const b = 2;\n"})

    report = run_merge_checks([1, 2], CheckMode.CHECK, temp_repo, passing_config)

    assert report.batch_verdict == BatchVerdict.READY
    assert [c.name for c in report.checks] == [COMBINED_BRANCH_TEST, MIRRORING, OVERLAP_DETECTION]
    assert report.issue_verdicts == {1: CheckVerdict.PASS, 2: CheckVerdict.PASS}
    assert report.run_id is None
    assert local_branches(temp_repo, "merge-check/*") == []


def test_mirror_drift_needs_attention(temp_repo, passing_config):
    make_branch(temp_repo, "feature/1-hook", {"hooks/pre-commit.sh": "#!/bin/sh\nexit 0\n"})

    report = run_merge_checks([1], CheckMode.CHECK, temp_repo, passing_config)

    assert report.batch_verdict == BatchVerdict.NEEDS_ATTENTION
    assert report.issue_verdicts[1] == CheckVerdict.WARN


@pytest.mark.parametrize("jobs", [1, 4])
def test_conflict_blocks_and_results_keep_requested_order(temp_repo, passing_config, jobs):
    make_branch(temp_repo, "feature/1-one", {"README.md": "# One\n"})
    make_branch(temp_repo, "feature/2-two", {"README.md": "# Two\n"})

    report = run_merge_checks([1, 2], CheckMode.SCAN, temp_repo, passing_config, jobs=jobs)

    assert report.batch_verdict == BatchVerdict.BLOCKED
    assert report.issue_verdicts == {1: CheckVerdict.WARN, 2: CheckVerdict.FAIL}
    assert [c.name for c in report.checks] == checks_for_mode(CheckMode.SCAN)


def test_items_from_most_recent_run_log(temp_repo, passing_config):
    make_branch(temp_repo, "feature/8-logged", {"logged.ts": "export const x = 1;\n"})
    log_dir = temp_repo / ".merge-check" / "logs"
    log_dir.mkdir(parents=True)
    (log_dir / "run-2026-05-01T00-00-00-abc.json").write_text(
        json.dumps({"runId": "abc", "issues": [{"issueNumber": 8, "title": "Logged item", "prNumber": 80}]}),
        encoding="utf-8",
    )

    posted: list[tuple[int, str]] = []

    class Poster:
        def post_comment(self, external_ref_id: int, body: str) -> bool:
            posted.append((external_ref_id, body))
            return True

    report = run_merge_checks([], CheckMode.CHECK, temp_repo, passing_config, poster=Poster())

    assert report.run_id == "abc"
    assert report.branches[0].title == "Logged item"
    assert [ref for ref, _ in posted] == [80]


def test_no_items_and_no_run_log(temp_repo, passing_config):
    with patch("merge_check.runner.resolve_log_dir", return_value=temp_repo / "no-logs"):
        with pytest.raises(RunLogError):
            run_merge_checks([], CheckMode.CHECK, temp_repo, passing_config)


def test_no_resolvable_branches(temp_repo, passing_config):
    with pytest.raises(NoBranchesError):
        run_merge_checks([404], CheckMode.CHECK, temp_repo, passing_config)
