"""Merge readiness report: verdict reduction, Markdown rendering, exit codes."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Mapping, Sequence

from merge_check.models import (
    BatchVerdict,
    BranchInfo,
    CheckFinding,
    CheckResult,
    CheckVerdict,
    MergeReport,
    Severity,
    worst_verdict,
)

__all__ = [
    "EXIT_CODES",
    "build_report",
    "collect_findings",
    "compute_batch_verdict",
    "compute_issue_verdicts",
    "exit_code_for",
    "finding_mentions_item",
    "format_branch_report_markdown",
    "format_check_name",
    "format_report_json",
    "format_report_markdown",
]

EXIT_CODES: dict[str, int] = {
    BatchVerdict.READY: 0,
    BatchVerdict.NEEDS_ATTENTION: 1,
    BatchVerdict.BLOCKED: 2,
}

_VERDICT_ICONS = {
    CheckVerdict.PASS: "\u2705",
    CheckVerdict.WARN: "\u26a0\ufe0f",
    CheckVerdict.FAIL: "\u274c",
    BatchVerdict.READY: "\u2705",
    BatchVerdict.NEEDS_ATTENTION: "\u26a0\ufe0f",
    BatchVerdict.BLOCKED: "\u274c",
}

_SEVERITY_ICONS = {
    Severity.ERROR: "\u274c",
    Severity.WARNING: "\u26a0\ufe0f",
    Severity.INFO: "\u2139\ufe0f",
}


def exit_code_for(verdict: str) -> int:
    """READY 0, NEEDS_ATTENTION 1, BLOCKED 2; anything unrecognized is 1."""
    return EXIT_CODES.get(str(verdict), 1)


def compute_issue_verdicts(
    branches: Sequence[BranchInfo],
    checks: Sequence[CheckResult],
) -> dict[int, CheckVerdict]:
    """Worst verdict per item across every check that reported on it."""
    verdicts: dict[int, CheckVerdict] = {}
    for branch in branches:
        reported = (check.result_for(branch.item_id) for check in checks)
        verdicts[branch.item_id] = worst_verdict(r.verdict for r in reported if r is not None)
    return verdicts


def _has_unattributed_error(check: CheckResult) -> bool:
    """A batch-level error not backed by a failing per-item result.

    Summaries of per-item failures ("2/3 branches had merge conflicts") are
    backed by FAIL results; infrastructure and test/build errors are not.
    """
    failing = {r.item_id for r in check.branch_results if r.verdict == CheckVerdict.FAIL}
    for finding in check.batch_findings:
        if finding.severity != Severity.ERROR:
            continue
        if finding.item_id is not None and finding.item_id in failing:
            continue
        if finding.item_id is None and failing:
            continue
        return True
    return False


def compute_batch_verdict(
    issue_verdicts: Mapping[int, CheckVerdict],
    checks: Sequence[CheckResult] = (),
) -> BatchVerdict:
    verdicts = list(issue_verdicts.values())
    if CheckVerdict.FAIL in verdicts or any(_has_unattributed_error(check) for check in checks):
        return BatchVerdict.BLOCKED
    if CheckVerdict.WARN in verdicts or any(not check.passed for check in checks):
        return BatchVerdict.NEEDS_ATTENTION
    return BatchVerdict.READY


def collect_findings(checks: Sequence[CheckResult]) -> list[CheckFinding]:
    findings: list[CheckFinding] = []
    for check in checks:
        findings.extend(check.batch_findings)
        for result in check.branch_results:
            findings.extend(result.findings)
    return findings


def build_report(
    branches: Sequence[BranchInfo],
    checks: Sequence[CheckResult],
    run_id: str | None = None,
    timestamp: str | None = None,
) -> MergeReport:
    known = {branch.item_id for branch in branches}
    for check in checks:
        for result in check.branch_results:
            if result.item_id not in known:
                raise ValueError(f"Check '{check.name}' reported on unknown item #{result.item_id}")

    issue_verdicts = compute_issue_verdicts(branches, checks)
    return MergeReport(
        run_id=run_id,
        timestamp=timestamp or datetime.now(timezone.utc).isoformat(),
        branches=tuple(branches),
        checks=tuple(checks),
        issue_verdicts=issue_verdicts,
        batch_verdict=compute_batch_verdict(issue_verdicts, checks),
        findings=tuple(collect_findings(checks)),
    )


def format_check_name(name: str) -> str:
    """``overlap-detection`` -> ``Overlap Detection``."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split("-"))


def _finding_line(finding: CheckFinding) -> str:
    return f"- {_SEVERITY_ICONS.get(finding.severity, '')} {finding.message}"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def finding_mentions_item(finding: CheckFinding, item_id: int) -> bool:
    """True if the finding is attributed to the item or names it as ``#<id>``."""
    if finding.item_id == item_id:
        return True
    return re.search(rf"#{item_id}(?!\d)", finding.message) is not None


def format_report_markdown(report: MergeReport) -> str:
    lines: list[str] = ["# Merge Readiness Report", ""]
    if report.run_id:
        lines.append(f"**Run:** {report.run_id}")
    lines.append(f"**Generated:** {report.timestamp}")
    lines.append(f"**Batch Verdict:** {_VERDICT_ICONS[report.batch_verdict]} **{report.batch_verdict}**")
    lines.append("")

    lines.extend(["## Per-Item Verdicts", "", "| Item | Title | Branch | Verdict |", "|------|-------|--------|---------|"])
    for branch in report.branches:
        verdict = report.issue_verdicts.get(branch.item_id, CheckVerdict.PASS)
        lines.append(
            f"| #{branch.item_id} | {_escape_cell(branch.title)} | `{branch.branch_name}` "
            f"| {_VERDICT_ICONS[verdict]} {verdict} |"
        )
    lines.append("")

    for check in report.checks:
        lines.append(f"## {format_check_name(check.name)}")
        lines.append("")
        status = "\u2705 Passed" if check.passed else "\u274c Issues found"
        lines.append(f"**Status:** {status} ({round(check.duration_ms / 1000)}s)")
        lines.append("")

        if check.batch_findings:
            lines.extend(_finding_line(finding) for finding in check.batch_findings)
            lines.append("")

        for result in check.branch_results:
            significant = [f for f in result.findings if f.severity != Severity.INFO]
            if not significant:
                continue
            lines.append(f"### Item #{result.item_id}")
            lines.append("")
            lines.extend(_finding_line(finding) for finding in significant)
            lines.append("")

    errors = sum(1 for f in report.findings if f.severity == Severity.ERROR)
    warnings = sum(1 for f in report.findings if f.severity == Severity.WARNING)
    lines.extend(
        [
            "## Summary",
            "",
            f"- **Errors:** {errors}",
            f"- **Warnings:** {warnings}",
            f"- **Items in batch:** {len(report.branches)}",
            f"- **Checks run:** {len(report.checks)}",
            "",
        ]
    )
    return "\n".join(lines)


def format_branch_report_markdown(report: MergeReport, item_id: int) -> str:
    """Report scoped to one item: its own findings plus batch findings naming it."""
    branch = next((b for b in report.branches if b.item_id == item_id), None)
    if branch is None:
        return f"No data for item #{item_id} in this report."

    verdict = report.issue_verdicts.get(item_id, CheckVerdict.PASS)
    lines: list[str] = [
        "# Merge Readiness: Per-Item Report",
        "",
        f"**Item:** #{item_id} {branch.title}",
        f"**Branch:** `{branch.branch_name}`",
        f"**Batch Verdict:** {_VERDICT_ICONS[report.batch_verdict]} **{report.batch_verdict}**",
        f"**Item Verdict:** {_VERDICT_ICONS[verdict]} **{verdict}**",
        "",
    ]

    sections = 0
    for check in report.checks:
        result = check.result_for(item_id)
        significant = [f for f in result.findings if f.severity != Severity.INFO] if result else []
        relevant_batch = [f for f in check.batch_findings if finding_mentions_item(f, item_id)]
        if not significant and not relevant_batch:
            continue
        sections += 1
        lines.append(f"## {format_check_name(check.name)}")
        lines.append("")
        lines.extend(_finding_line(finding) for finding in relevant_batch)
        lines.extend(_finding_line(finding) for finding in significant)
        lines.append("")

    if sections == 0:
        lines.extend(["All checks passed for this item.", ""])
    return "\n".join(lines)


def format_report_json(report: MergeReport) -> str:
    return json.dumps(report.to_dict(), indent=2)
