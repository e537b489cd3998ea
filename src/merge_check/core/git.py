"""Subprocess seam for git and for the project's build/test commands.

Every external command goes through ``run_git`` or ``run_command`` so that
failures have one deterministic shape: a result object with a return code,
never an exception. Missing executables map to 127, timeouts to 124.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

__all__ = [
    "CommandResult",
    "GitResult",
    "run_command",
    "run_git",
    "current_branch",
    "find_repo_root",
]

logger = logging.getLogger(__name__)

NOT_FOUND_RETURNCODE = 127
TIMEOUT_RETURNCODE = 124


@dataclass(frozen=True)
class CommandResult:
    """Normalized outcome of a subprocess."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def timed_out(self) -> bool:
        return self.returncode == TIMEOUT_RETURNCODE

    @property
    def output(self) -> str:
        """Combined stderr/stdout, stderr first since failures land there."""
        parts = [self.stderr.strip(), self.stdout.strip()]
        return "\n".join(part for part in parts if part)


GitResult = CommandResult


def run_command(
    args: Sequence[str],
    cwd: Path,
    timeout: float | None = None,
) -> CommandResult:
    """Run a command, capturing output, and normalize failures."""
    argv = tuple(str(arg) for arg in args)
    try:
        completed = subprocess.run(
            list(argv),
            cwd=str(cwd),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout,
        )
    except FileNotFoundError:
        return CommandResult(
            args=argv,
            returncode=NOT_FOUND_RETURNCODE,
            stdout="",
            stderr=f"{argv[0]} executable not found on PATH",
        )
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out after %ss: %s", timeout, " ".join(argv))
        return CommandResult(
            args=argv,
            returncode=TIMEOUT_RETURNCODE,
            stdout="",
            stderr=f"command timed out after {timeout}s: {' '.join(argv)}",
        )
    return CommandResult(
        args=argv,
        returncode=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


def run_git(repo_root: Path, args: Sequence[str], timeout: float | None = 60) -> GitResult:
    """Run ``git <args>`` inside ``repo_root``."""
    result = run_command(["git", *args], cwd=repo_root, timeout=timeout)
    if not result.ok:
        logger.debug("git %s failed (%s): %s", " ".join(args), result.returncode, result.stderr.strip())
    return result


def current_branch(repo_root: Path) -> str | None:
    """Return the checked-out branch name, or None when it cannot be read."""
    result = run_git(repo_root, ["rev-parse", "--abbrev-ref", "HEAD"])
    name = result.stdout.strip()
    if not result.ok or not name:
        return None
    return name


def find_repo_root(start: Path | None = None) -> Path | None:
    """Return the top level of the git repository containing ``start``."""
    result = run_git((start or Path.cwd()), ["rev-parse", "--show-toplevel"])
    if not result.ok or not result.stdout.strip():
        return None
    return Path(result.stdout.strip())
