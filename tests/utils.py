"""Helpers for building throwaway git repositories in tests."""

from __future__ import annotations

import subprocess
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]


def run(cmd: list[str], cwd: Path) -> subprocess.CompletedProcess[str]:
    return subprocess.run(cmd, cwd=str(cwd), check=True, capture_output=True, text=True)


def git(repo: Path, *args: str) -> str:
    return run(["git", *args], cwd=repo).stdout.strip()


def write_files(repo: Path, files: dict[str, str]) -> None:
    for relative, content in files.items():
        path = repo / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


def commit_all(repo: Path, message: str) -> None:
    git(repo, "add", "-A")
    git(repo, "commit", "-m", message)


def make_branch(
    repo: Path,
    name: str,
    files: dict[str, str],
    *,
    base: str = "main",
    push: bool = True,
) -> None:
    """Create ``name`` from ``base`` with ``files`` written, commit, push, and go back to main."""
    git(repo, "checkout", "-b", name, base)
    write_files(repo, files)
    commit_all(repo, f"Work on {name}")
    if push:
        git(repo, "push", "-q", "origin", name)
    git(repo, "checkout", "main")


def numbered_lines(count: int, prefix: str = "line") -> str:
    return "".join(f"{prefix} {i}\n" for i in range(1, count + 1))


def replace_line(text: str, number: int, new: str) -> str:
    lines = text.splitlines(keepends=True)
    lines[number - 1] = new + "\n"
    return "".join(lines)


def local_branches(repo: Path, pattern: str = "*") -> list[str]:
    output = git(repo, "branch", "--list", pattern, "--format=%(refname:short)")
    return [line for line in output.splitlines() if line.strip()]
