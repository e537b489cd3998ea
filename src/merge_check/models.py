"""Data model for batch merge-readiness checks.

Verdicts are closed enumerations with an explicit severity order so that
"worst verdict" reduction lives in one place (``worst_verdict``) instead of
string comparisons scattered through the checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Iterable

__all__ = [
    "CheckVerdict",
    "BatchVerdict",
    "Severity",
    "OverlapType",
    "MirrorDirection",
    "MirrorPair",
    "BranchInfo",
    "CheckFinding",
    "BranchCheckResult",
    "CheckResult",
    "FileOverlap",
    "ExtractedPattern",
    "ResidualMatch",
    "UnmirroredChange",
    "MergeReport",
    "worst_verdict",
]


class CheckVerdict(StrEnum):
    """Per-item verdict from a single check."""

    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"

    @property
    def rank(self) -> int:
        return _VERDICT_RANK[self]


_VERDICT_RANK = {
    CheckVerdict.PASS: 0,
    CheckVerdict.WARN: 1,
    CheckVerdict.FAIL: 2,
}


def worst_verdict(verdicts: Iterable[CheckVerdict]) -> CheckVerdict:
    """Return the most severe verdict, PASS for an empty input."""
    worst = CheckVerdict.PASS
    for verdict in verdicts:
        if verdict.rank > worst.rank:
            worst = verdict
    return worst


class BatchVerdict(StrEnum):
    """Batch-level readiness signal."""

    READY = "READY"
    NEEDS_ATTENTION = "NEEDS_ATTENTION"
    BLOCKED = "BLOCKED"


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class OverlapType(StrEnum):
    ADDITIVE = "additive"
    CONFLICTING = "conflicting"


class MirrorDirection(StrEnum):
    SOURCE_ONLY = "source-only"
    TARGET_ONLY = "target-only"


@dataclass(frozen=True)
class MirrorPair:
    """Two directories whose contents must change together."""

    source: str
    target: str

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MirrorPair:
        return cls(
            source=str(data["source"]).rstrip("/"),
            target=str(data["target"]).rstrip("/"),
        )


@dataclass(frozen=True)
class BranchInfo:
    """Feature branch resolved for one work item."""

    item_id: int
    title: str
    branch_name: str
    worktree_path: str | None = None
    external_ref_id: int | None = None
    files_modified: tuple[str, ...] = ()

    def ref(self, remote: str = "origin") -> str:
        """Git ref to diff or merge this branch.

        Worktree branches may never have been pushed, so they are addressed by
        their local name. Everything else goes through the remote ref.
        """
        if self.worktree_path:
            return self.branch_name
        return f"{remote}/{self.branch_name}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "title": self.title,
            "branchName": self.branch_name,
            "worktreePath": self.worktree_path,
            "externalRefId": self.external_ref_id,
            "filesModified": list(self.files_modified),
        }


@dataclass(frozen=True)
class CheckFinding:
    """Atomic unit of output from any check."""

    check_name: str
    severity: Severity
    message: str
    file: str | None = None
    line: int | None = None
    item_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "checkName": self.check_name,
            "severity": str(self.severity),
            "message": self.message,
        }
        if self.file is not None:
            payload["file"] = self.file
        if self.line is not None:
            payload["line"] = self.line
        if self.item_id is not None:
            payload["itemId"] = self.item_id
        return payload


@dataclass
class BranchCheckResult:
    """One check's view of one work item."""

    item_id: int
    verdict: CheckVerdict
    findings: list[CheckFinding] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "itemId": self.item_id,
            "verdict": str(self.verdict),
            "findings": [f.to_dict() for f in self.findings],
        }


@dataclass
class CheckResult:
    """One check's view of the whole batch."""

    name: str
    passed: bool
    branch_results: list[BranchCheckResult] = field(default_factory=list)
    batch_findings: list[CheckFinding] = field(default_factory=list)
    duration_ms: int = 0

    def result_for(self, item_id: int) -> BranchCheckResult | None:
        for result in self.branch_results:
            if result.item_id == item_id:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "passed": self.passed,
            "branchResults": [r.to_dict() for r in self.branch_results],
            "batchFindings": [f.to_dict() for f in self.batch_findings],
            "durationMs": self.duration_ms,
        }


@dataclass(frozen=True)
class FileOverlap:
    file: str
    items: tuple[int, ...]
    type: OverlapType


@dataclass(frozen=True)
class ExtractedPattern:
    """Literal string pulled from a removed diff line."""

    pattern: str
    source_file: str
    item_id: int


@dataclass(frozen=True)
class ResidualMatch:
    pattern: str
    file: str
    line: int
    content: str
    item_id: int


@dataclass(frozen=True)
class UnmirroredChange:
    source_file: str
    target_file: str
    direction: MirrorDirection
    item_id: int


@dataclass(frozen=True)
class MergeReport:
    """Terminal artifact of a merge-check run."""

    timestamp: str
    branches: tuple[BranchInfo, ...]
    checks: tuple[CheckResult, ...]
    issue_verdicts: dict[int, CheckVerdict]
    batch_verdict: BatchVerdict
    findings: tuple[CheckFinding, ...]
    run_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runId": self.run_id,
            "timestamp": self.timestamp,
            "branches": [b.to_dict() for b in self.branches],
            "checks": [c.to_dict() for c in self.checks],
            "issueVerdicts": {str(k): str(v) for k, v in self.issue_verdicts.items()},
            "batchVerdict": str(self.batch_verdict),
            "findings": [f.to_dict() for f in self.findings],
        }
