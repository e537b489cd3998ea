"""Prior-run records used to discover and enrich a batch.

A run log is the JSON file a batch executor writes per run
(``run-<timestamp>-<runId>.json``). Only the fields merge-check needs are
modelled; everything else in the file is ignored.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from merge_check.core.config import CONFIG_DIRNAME

__all__ = [
    "RunLogIssue",
    "RunLog",
    "default_log_dirs",
    "resolve_log_dir",
    "find_most_recent_log",
]

logger = logging.getLogger(__name__)


class RunLogIssue(BaseModel):
    """One work item as recorded by a prior run."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    item_id: int = Field(..., gt=0, alias="issueNumber")
    title: str = ""
    external_ref_id: int | None = Field(default=None, gt=0, alias="prNumber")


class RunLog(BaseModel):
    """Subset of a batch run log."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version: int = 1
    run_id: str = Field(..., min_length=1, alias="runId")
    start_time: str | None = Field(default=None, alias="startTime")
    end_time: str | None = Field(default=None, alias="endTime")
    issues: list[RunLogIssue] = Field(default_factory=list)

    @property
    def item_ids(self) -> list[int]:
        return [issue.item_id for issue in self.issues]

    def issue(self, item_id: int) -> RunLogIssue | None:
        for issue in self.issues:
            if issue.item_id == item_id:
                return issue
        return None


def default_log_dirs(repo_root: Path) -> list[Path]:
    """Project-level log dir first, then the user-level one."""
    return [
        repo_root / CONFIG_DIRNAME / "logs",
        Path.home() / CONFIG_DIRNAME / "logs",
    ]


def resolve_log_dir(repo_root: Path, custom: str | None = None) -> Path:
    if custom:
        path = Path(custom).expanduser()
        return path if path.is_absolute() else repo_root / path
    candidates = default_log_dirs(repo_root)
    for candidate in candidates:
        if candidate.is_dir():
            return candidate
    return candidates[0]


def find_most_recent_log(log_dir: Path) -> RunLog | None:
    """Load the newest ``run-*.json`` in ``log_dir``.

    File names embed a sortable timestamp, so the lexically greatest is the
    most recent. A missing directory or an unreadable/invalid newest log
    yields None.
    """
    if not log_dir.is_dir():
        return None

    candidates = sorted(log_dir.glob("run-*.json"), reverse=True)
    if not candidates:
        return None

    newest = candidates[0]
    try:
        payload = json.loads(newest.read_text(encoding="utf-8"))
        return RunLog.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Ignoring unreadable run log %s: %s", newest, exc)
        return None
