"""Tests for cross-branch overlap detection with in-memory line ranges."""

from __future__ import annotations

from merge_check.checks.overlap import build_file_map, find_overlaps, run_overlap_detection
from merge_check.models import BranchInfo, CheckVerdict, OverlapType, Severity


def _branch(item_id: int, *files: str) -> BranchInfo:
    return BranchInfo(item_id=item_id, title=f"Item {item_id}", branch_name=f"feature/{item_id}-x", files_modified=files)


def _provider(ranges: dict[tuple[int, str], list[tuple[int, int]]]):
    def _ranges(branch: BranchInfo, file_path: str) -> list[tuple[int, int]]:
        return ranges.get((branch.item_id, file_path), [])

    return _ranges


def test_build_file_map_keeps_batch_order():
    branches = [_branch(3, "a.ts", "b.ts"), _branch(1, "b.ts"), _branch(2, "c.ts")]
    assert build_file_map(branches) == {"a.ts": [3], "b.ts": [3, 1], "c.ts": [2]}


def test_disjoint_files_produce_no_overlaps():
    branches = [_branch(1, "a.ts"), _branch(2, "b.ts")]
    result = run_overlap_detection(branches, _provider({}))

    assert result.passed is True
    assert [r.verdict for r in result.branch_results] == [CheckVerdict.PASS, CheckVerdict.PASS]
    assert len(result.batch_findings) == 1
    assert result.batch_findings[0].severity == Severity.INFO
    assert result.batch_findings[0].message == "No file overlaps detected across branches"


def test_adjacent_but_disjoint_ranges_are_additive():
    branches = [_branch(1, "shared.ts"), _branch(2, "shared.ts")]
    provider = _provider({(1, "shared.ts"): [(1, 5)], (2, "shared.ts"): [(6, 10)]})

    overlaps = find_overlaps(branches, provider)

    assert len(overlaps) == 1
    assert overlaps[0].items == (1, 2)
    assert overlaps[0].type == OverlapType.ADDITIVE


def test_intersecting_ranges_are_conflicting():
    branches = [_branch(1, "shared.ts"), _branch(2, "shared.ts")]
    provider = _provider({(1, "shared.ts"): [(1, 5)], (2, "shared.ts"): [(3, 8)]})

    result = run_overlap_detection(branches, provider)

    assert result.passed is False
    assert [r.verdict for r in result.branch_results] == [CheckVerdict.WARN, CheckVerdict.WARN]
    assert result.batch_findings[0].message == "shared.ts modified by items #1, #2 (conflicting)"
    assert result.branch_results[0].findings[0].message == "Overlaps with #2 on shared.ts (conflicting)"
    assert result.branch_results[1].findings[0].message == "Overlaps with #1 on shared.ts (conflicting)"


def test_any_conflicting_pair_among_three_items():
    branches = [_branch(1, "f.ts"), _branch(2, "f.ts"), _branch(3, "f.ts")]
    provider = _provider({(1, "f.ts"): [(1, 2)], (2, "f.ts"): [(10, 12)], (3, "f.ts"): [(12, 20)]})

    assert find_overlaps(branches, provider)[0].type == OverlapType.CONFLICTING


def test_only_involved_items_are_flagged():
    branches = [_branch(1, "shared.ts"), _branch(2, "shared.ts"), _branch(3, "unique.ts")]
    provider = _provider({(1, "shared.ts"): [(1, 1)], (2, "shared.ts"): [(50, 50)]})

    result = run_overlap_detection(branches, provider)

    verdicts = {r.item_id: r.verdict for r in result.branch_results}
    assert verdicts == {1: CheckVerdict.WARN, 2: CheckVerdict.WARN, 3: CheckVerdict.PASS}
    assert all(r.verdict != CheckVerdict.FAIL for r in result.branch_results)
    assert result.result_for(3).findings == []
