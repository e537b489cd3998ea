from __future__ import annotations

from pathlib import Path
from typing import Iterator

import pytest

from merge_check.core.config import MergeCheckConfig
from tests.utils import commit_all, git, run, write_files


@pytest.fixture()
def temp_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """A repository on ``main`` with one commit, pushed to a bare ``origin``.

    ``HOME`` points into ``tmp_path`` so user-level run logs and git config
    never leak into a test.
    """
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))

    origin = tmp_path / "origin.git"
    run(["git", "init", "--bare", "-q", str(origin)], cwd=tmp_path)

    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    run(["git", "init", "-q"], cwd=repo_dir)
    git(repo_dir, "symbolic-ref", "HEAD", "refs/heads/main")
    git(repo_dir, "config", "user.name", "Merge Check")
    git(repo_dir, "config", "user.email", "merge-check@example.com")
    git(repo_dir, "config", "commit.gpgsign", "false")
    write_files(repo_dir, {"README.md": "# Demo project\n"})
    commit_all(repo_dir, "Initial commit")
    git(repo_dir, "remote", "add", "origin", str(origin))
    git(repo_dir, "push", "-q", "-u", "origin", "main")
    yield repo_dir


@pytest.fixture()
def passing_config() -> MergeCheckConfig:
    """Config whose test/build commands always succeed without a toolchain."""
    return MergeCheckConfig(
        test_command=("git", "--version"),
        build_command=("git", "--version"),
        command_timeout=30,
    )
