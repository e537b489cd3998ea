"""Parsers for git text output.

Kept free of subprocess calls so each format assumption can be pinned down
with literal fixtures.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterator

__all__ = [
    "GrepLine",
    "LineRange",
    "RemovedLine",
    "HUNK_HEADER_PATTERN",
    "parse_hunk_ranges",
    "ranges_overlap",
    "parse_grep_output",
    "parse_worktree_porcelain",
    "parse_remote_branches",
    "iter_removed_lines",
    "split_lines",
]

LineRange = tuple[int, int]

# "@@ -12,3 +14,5 @@ optional section heading"; counts default to 1 when omitted.
HUNK_HEADER_PATTERN = re.compile(r"^@@\s+-\d+(?:,\d+)?\s+\+(\d+)(?:,(\d+))?\s+@@")


@dataclass(frozen=True)
class GrepLine:
    file: str
    line: int
    content: str


@dataclass(frozen=True)
class RemovedLine:
    file: str
    content: str


def split_lines(text: str) -> list[str]:
    """Non-blank lines of ``text``, right-stripped."""
    return [line.rstrip() for line in text.splitlines() if line.strip()]


def parse_hunk_ranges(diff_text: str) -> list[LineRange]:
    """Inclusive ``+`` side line ranges from ``git diff --unified=0`` output.

    Hunks that add no lines (pure deletions, ``+N,0``) are skipped.
    """
    ranges: list[LineRange] = []
    for line in diff_text.splitlines():
        match = HUNK_HEADER_PATTERN.match(line)
        if not match:
            continue
        start = int(match.group(1))
        count = int(match.group(2)) if match.group(2) is not None else 1
        if count > 0:
            ranges.append((start, start + count - 1))
    return ranges


def ranges_overlap(a: list[LineRange], b: list[LineRange]) -> bool:
    """True when any range in ``a`` intersects any range in ``b`` (inclusive)."""
    for a_start, a_end in a:
        for b_start, b_end in b:
            if a_start <= b_end and b_start <= a_end:
                return True
    return False


def parse_grep_output(text: str) -> list[GrepLine]:
    """Parse ``git grep -n`` output (``file:line:content``).

    File names containing colons are not supported by this format; lines
    without a numeric second field are reported with line 0.
    """
    matches: list[GrepLine] = []
    for raw in text.splitlines():
        if not raw.strip():
            continue
        file, sep, rest = raw.partition(":")
        if not sep:
            continue
        number, sep, content = rest.partition(":")
        if sep and number.isdigit():
            matches.append(GrepLine(file=file, line=int(number), content=content.strip()))
        else:
            matches.append(GrepLine(file=file, line=0, content=rest.strip()))
    return matches


def parse_worktree_porcelain(text: str) -> dict[str, str]:
    """Map branch name to worktree path from ``git worktree list --porcelain``."""
    worktrees: dict[str, str] = {}
    current_path = ""
    for line in text.splitlines():
        if line.startswith("worktree "):
            current_path = line[len("worktree "):]
        elif line.startswith("branch refs/heads/"):
            worktrees[line[len("branch refs/heads/"):]] = current_path
    return worktrees


def parse_remote_branches(text: str, remote: str = "origin") -> list[str]:
    """Branch names from ``git branch -r`` output, with the remote prefix removed."""
    prefix = f"{remote}/"
    branches: list[str] = []
    for line in text.splitlines():
        name = line.strip()
        if not name or " -> " in name:
            continue
        if name.startswith(prefix):
            name = name[len(prefix):]
        branches.append(name)
    return branches


def iter_removed_lines(diff_text: str) -> Iterator[RemovedLine]:
    """Yield removed lines (``-`` prefix) with the file they were removed from.

    File-header lines (``--- a/...``) are consumed to track the current file
    and never yielded themselves.
    """
    current_file = ""
    for line in diff_text.splitlines():
        if line.startswith("--- "):
            header = line[4:]
            current_file = header[2:] if header.startswith("a/") else header
            continue
        if line.startswith("-"):
            yield RemovedLine(file=current_file, content=line[1:])
