from __future__ import annotations

from merge_check.core.git import CommandResult, current_branch, find_repo_root, run_command, run_git


def test_missing_executable_maps_to_127(tmp_path):
    result = run_command(["merge-check-no-such-binary", "--help"], cwd=tmp_path)

    assert result.returncode == 127
    assert not result.ok
    assert "not found" in result.stderr


def test_timeout_maps_to_124(tmp_path):
    result = run_command(["sleep", "5"], cwd=tmp_path, timeout=0.2)

    assert result.timed_out
    assert "timed out" in result.output


def test_output_puts_stderr_first():
    result = CommandResult(args=("x",), returncode=1, stdout="out\n", stderr="err\n")
    assert result.output == "err\nout"


def test_git_outside_a_repository(tmp_path):
    assert find_repo_root(tmp_path) is None
    assert current_branch(tmp_path) is None
    assert not run_git(tmp_path, ["status"]).ok
