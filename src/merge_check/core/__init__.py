"""Core utilities: git subprocess seam and project configuration."""

from .config import MergeCheckConfig, load_config
from .git import CommandResult, GitResult, current_branch, find_repo_root, run_command, run_git

__all__ = [
    "CommandResult",
    "GitResult",
    "MergeCheckConfig",
    "current_branch",
    "find_repo_root",
    "load_config",
    "run_command",
    "run_git",
]
