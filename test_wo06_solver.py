#!/usr/bin/env python3
"""
WO-06 Solver Tests

Tests:
1. Assignment satisfies every constraint (check_assignment)
2. Same (graph, seed) → same assignment
3. Ground rows respected
4. Odd periodic checkerboard → ContradictionError
5. check_assignment rejects broken results
"""

import numpy as np
import pytest

from wfcgen.errors import ContradictionError, GraphInvariantError
from wfcgen.op.adjacency import build_constraints
from wfcgen.op.extract import extract_fragments
from wfcgen.op.fragment import Fragment
from wfcgen.op.solver import CollapseResult, EntropicSolver, check_assignment, compatibility_matrices
from wfcgen.op.topology import build_topology

COLORS = {
    "A": (255, 0, 0, 255),
    "B": (0, 0, 255, 255),
    "K": (0, 0, 0, 255),
    "W": (255, 255, 255, 255),
}


def _raster(rows):
    return np.array([[COLORS[c] for c in row] for row in rows], dtype=np.uint8)


def _graph(sample, fw, fh, ow, oh, refl=False, rot=False, periodic=False, ground=False):
    cat = extract_fragments(sample, fw, fh, allow_reflection=refl, allow_rotation=rot)
    adj = build_constraints(cat)
    return build_topology(cat, adj, ow, oh, periodic=periodic, contains_ground=ground)


def test_checkerboard_solution():
    """1×1 checkerboard solves to an alternating grid."""
    print("Testing checkerboard solve...")

    g = _graph(_raster(["AB", "BA"]), 1, 1, 5, 4)
    result = EntropicSolver().solve(g, seed=1)
    check_assignment(g, result)

    for (x, y), frag in result.assignment.items():
        if x + 1 < g.grid_width:
            assert frag != result[(x + 1, y)]
        if y + 1 < g.grid_height:
            assert frag != result[(x, y + 1)]
    assert len(result) == 20 and result.seed == 1

    print("  ✓ Alternating assignment")


def test_overlap_solution():
    """3×3 fragments with orientations: every neighbour pair overlaps."""
    print("Testing overlap solve...")

    stripes = _raster(["KWKWKW"] * 6)
    g = _graph(stripes, 3, 3, 10, 8, refl=True, rot=True)
    result = EntropicSolver().solve(g, seed=42)
    check_assignment(g, result)

    print("  ✓ Overlap-consistent assignment")


def test_seed_determinism():
    """Same seed, same assignment; assignment hash is stable."""
    print("Testing seed determinism...")

    g = _graph(_raster(["KWKW", "KWKW", "KWKW"]), 2, 2, 9, 6, rot=True)
    r1 = EntropicSolver().solve(g, seed=123)
    r2 = EntropicSolver().solve(g, seed=123)
    assert r1.assignment == r2.assignment
    assert r1.assignment_hash() == r2.assignment_hash()

    print("  ✓ Deterministic for fixed seed")


def test_ground_rows():
    """Last row only ground fragments; others never ground."""
    print("Testing ground solve...")

    g = _graph(_raster(["AA", "AA", "BB"]), 1, 1, 3, 3, ground=True)
    result = EntropicSolver().solve(g, seed=0)
    check_assignment(g, result)

    a, b = Fragment(_raster(["A"])), Fragment(_raster(["B"]))
    for (x, y), frag in result.assignment.items():
        assert frag == (b if y == 2 else a)

    print("  ✓ Ground rows respected")


def test_contradiction():
    """An odd periodic cycle cannot alternate."""
    print("Testing contradiction...")

    g = _graph(_raster(["AB", "BA"]), 1, 1, 3, 3, periodic=True)
    for seed in (0, 1, 2):
        with pytest.raises(ContradictionError) as exc:
            EntropicSolver().solve(g, seed=seed)
        assert exc.value.seed == seed
        assert exc.value.coord is not None
        assert "CONTRADICTION" in str(exc.value)

    print("  ✓ ContradictionError raised")


def test_compatibility_matrices():
    """Matrices mirror the permitted lists."""
    print("Testing compatibility matrices...")

    g = _graph(_raster(["AB", "BA"]), 1, 1, 3, 3)
    m = compatibility_matrices(g)
    assert m[(1, 0)].tolist() == [[False, True], [True, False]]
    assert set(m) == {(0, -1), (0, 1), (-1, 0), (1, 0)}

    print("  ✓ Matrices match permitted lists")


def test_check_assignment_rejects():
    """Missing coords, non-candidates and violations are all caught."""
    print("Testing check_assignment...")

    g = _graph(_raster(["AB", "BA"]), 1, 1, 3, 2)
    good = EntropicSolver().solve(g, seed=5)

    missing = dict(good.assignment)
    del missing[(0, 0)]
    with pytest.raises(GraphInvariantError):
        check_assignment(g, CollapseResult(assignment=missing, seed=5))

    stranger = dict(good.assignment)
    stranger[(0, 0)] = Fragment(_raster(["K"]))
    with pytest.raises(GraphInvariantError):
        check_assignment(g, CollapseResult(assignment=stranger, seed=5))

    clash = dict(good.assignment)
    clash[(0, 0)] = clash[(1, 0)]
    with pytest.raises(GraphInvariantError):
        check_assignment(g, CollapseResult(assignment=clash, seed=5))

    print("  ✓ Broken assignments rejected")


def run_tests():
    """Run all WO-06 tests."""
    print("\n" + "="*60)
    print("WO-06 Solver Tests")
    print("="*60 + "\n")

    test_checkerboard_solution()
    test_overlap_solution()
    test_seed_determinism()
    test_ground_rows()
    test_contradiction()
    test_compatibility_matrices()
    test_check_assignment_rejects()

    print("\n" + "="*60)
    print("✓ All WO-06 tests passed")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_tests()
