"""Project-scoped merge-check configuration in .merge-check/config.yaml."""

from __future__ import annotations

import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML

from merge_check.errors import MergeCheckConfigError
from merge_check.models import MirrorPair

__all__ = [
    "CONFIG_DIRNAME",
    "DEFAULT_MIRROR_PAIRS",
    "DEFAULT_SCAN_GLOBS",
    "MergeCheckConfig",
    "config_path",
    "load_config",
    "save_config",
]

CONFIG_DIRNAME = ".merge-check"

DEFAULT_MIRROR_PAIRS: tuple[MirrorPair, ...] = (
    MirrorPair(source=".claude/skills", target="templates/skills"),
    MirrorPair(source="hooks", target="templates/hooks"),
)

DEFAULT_SCAN_GLOBS: tuple[str, ...] = ("*.ts", "*.tsx", "*.js", "*.jsx", "*.py", "*.md", "*.sh")


def _as_command(value: Any, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    if isinstance(value, str):
        parts = shlex.split(value)
    elif isinstance(value, (list, tuple)):
        parts = [str(part) for part in value]
    else:
        raise MergeCheckConfigError(f"Command must be a string or list, got {type(value).__name__}")
    if not parts:
        raise MergeCheckConfigError("Command must not be empty")
    return tuple(parts)


def _as_positive_int(value: Any, key: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise MergeCheckConfigError(f"'{key}' must be a positive integer, got {value!r}")
    return value


@dataclass(slots=True)
class MergeCheckConfig:
    """Settings controlling how a batch is resolved and checked."""

    trunk: str = "main"
    remote: str = "origin"
    branch_prefix: str = "feature/"
    test_command: tuple[str, ...] = ("npm", "test")
    build_command: tuple[str, ...] = ("npm", "run", "build")
    command_timeout: int = 120
    mirror_pairs: tuple[MirrorPair, ...] = DEFAULT_MIRROR_PAIRS
    scan_globs: tuple[str, ...] = DEFAULT_SCAN_GLOBS
    min_pattern_length: int = 8
    max_patterns_per_branch: int = 50
    log_dir: str | None = None
    github_repo: str | None = None

    @property
    def trunk_ref(self) -> str:
        return f"{self.remote}/{self.trunk}"

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "trunk": self.trunk,
            "remote": self.remote,
            "branch_prefix": self.branch_prefix,
            "test_command": list(self.test_command),
            "build_command": list(self.build_command),
            "command_timeout": self.command_timeout,
            "mirror_pairs": [pair.to_dict() for pair in self.mirror_pairs],
            "scan_globs": list(self.scan_globs),
            "min_pattern_length": self.min_pattern_length,
            "max_patterns_per_branch": self.max_patterns_per_branch,
        }
        if self.log_dir:
            payload["log_dir"] = self.log_dir
        if self.github_repo:
            payload["github_repo"] = self.github_repo
        return payload

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> MergeCheckConfig:
        if not isinstance(data, dict):
            return cls()

        defaults = cls()

        pairs_raw = data.get("mirror_pairs")
        if pairs_raw is None:
            mirror_pairs = defaults.mirror_pairs
        elif isinstance(pairs_raw, list):
            try:
                mirror_pairs = tuple(MirrorPair.from_dict(dict(item)) for item in pairs_raw)
            except (KeyError, TypeError, ValueError) as exc:
                raise MergeCheckConfigError(f"Invalid mirror_pairs entry: {exc}") from exc
        else:
            raise MergeCheckConfigError("'mirror_pairs' must be a list of {source, target} mappings")

        globs_raw = data.get("scan_globs")
        if globs_raw is None:
            scan_globs = defaults.scan_globs
        elif isinstance(globs_raw, list) and globs_raw:
            scan_globs = tuple(str(glob) for glob in globs_raw)
        else:
            raise MergeCheckConfigError("'scan_globs' must be a non-empty list")

        def _text(key: str, default: str) -> str:
            value = data.get(key)
            return str(value).strip() if isinstance(value, str) and value.strip() else default

        log_dir = data.get("log_dir")
        github_repo = data.get("github_repo")
        return cls(
            trunk=_text("trunk", defaults.trunk),
            remote=_text("remote", defaults.remote),
            branch_prefix=_text("branch_prefix", defaults.branch_prefix),
            test_command=_as_command(data.get("test_command"), defaults.test_command),
            build_command=_as_command(data.get("build_command"), defaults.build_command),
            command_timeout=_as_positive_int(data.get("command_timeout"), "command_timeout", defaults.command_timeout),
            mirror_pairs=mirror_pairs,
            scan_globs=scan_globs,
            min_pattern_length=_as_positive_int(
                data.get("min_pattern_length"), "min_pattern_length", defaults.min_pattern_length
            ),
            max_patterns_per_branch=_as_positive_int(
                data.get("max_patterns_per_branch"), "max_patterns_per_branch", defaults.max_patterns_per_branch
            ),
            log_dir=str(log_dir) if isinstance(log_dir, str) and log_dir.strip() else None,
            github_repo=str(github_repo) if isinstance(github_repo, str) and github_repo.strip() else None,
        )


def config_path(repo_root: Path) -> Path:
    return repo_root / CONFIG_DIRNAME / "config.yaml"


def load_config(repo_root: Path) -> MergeCheckConfig:
    """Load config from .merge-check/config.yaml, or defaults when absent."""
    path = config_path(repo_root)
    if not path.exists():
        return MergeCheckConfig()

    yaml = YAML(typ="safe")
    try:
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.load(handle) or {}
    except Exception as exc:
        raise MergeCheckConfigError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise MergeCheckConfigError(f"{path} must contain a mapping at the top level")
    return MergeCheckConfig.from_dict(payload)


def save_config(repo_root: Path, config: MergeCheckConfig) -> Path:
    """Write config to .merge-check/config.yaml."""
    path = config_path(repo_root)
    path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False
    with path.open("w", encoding="utf-8") as handle:
        yaml.dump(config.to_dict(), handle)
    return path
