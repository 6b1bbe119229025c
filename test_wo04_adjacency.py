#!/usr/bin/env python3
"""
WO-04 Adjacency Tests

Tests:
1. Checkerboard 1×1: A →(1,0)→ {B}, B →(1,0)→ {A}
2. Only orthogonal offsets; one set per (root, offset)
3. Keyed path agrees with the pairwise is_overlapping path
4. Permitted lists are symmetric under offset negation
5. Interning: same lists, fewer (or equal) sets, shared roots
6. Ids are deterministic across builds
7. Single-row sample: vertical offsets fall back to every fragment
"""

import numpy as np
import pytest

from wfcgen.op.adjacency import build_constraints, compatible_indices
from wfcgen.op.extract import extract_fragments
from wfcgen.op.fragment import Fragment, OFFSETS, opposite
from wfcgen.op.solver import EntropicSolver, check_assignment
from wfcgen.op.topology import build_topology

COLORS = {
    "A": (255, 0, 0, 255),
    "B": (0, 0, 255, 255),
    "K": (0, 0, 0, 255),
    "W": (255, 255, 255, 255),
}


def _raster(rows):
    return np.array([[COLORS[c] for c in row] for row in rows], dtype=np.uint8)


def _random_sample(seed, shape=(7, 7)):
    rng = np.random.default_rng(seed)
    palette = np.array([COLORS["K"], COLORS["W"]], dtype=np.uint8)
    return palette[rng.integers(0, 2, size=shape)]


def test_checkerboard_adjacency():
    """1×1 checkerboard: every neighbour of A is B and vice versa."""
    print("Testing checkerboard adjacency...")

    cat = extract_fragments(_raster(["AB", "BA"]), 1, 1)
    adj = build_constraints(cat)
    a, b = Fragment(_raster(["A"])), Fragment(_raster(["B"]))

    for offset in OFFSETS:
        assert adj.permitted(a, offset) == (b,), f"A at {offset}"
        assert adj.permitted(b, offset) == (a,), f"B at {offset}"
    assert set(adj.receipt.overlap_mode.values()) == {"observed"}

    print("  ✓ A →(1,0)→ {B}")


def test_single_row_sample():
    """One window row: vertical offsets permit every fragment and the grid solves."""
    print("Testing single-row sample...")

    cat = extract_fragments(_raster(["ABA"]), 1, 1)
    adj = build_constraints(cat)
    a, b = Fragment(_raster(["A"])), Fragment(_raster(["B"]))

    for root in (a, b):
        for offset in [(0, -1), (0, 1)]:
            assert set(adj.permitted(root, offset)) == {a, b}, f"{offset}"
    assert adj.permitted(a, (1, 0)) == (b,)
    assert adj.receipt.overlap_mode["0,1"] == "vacuous"
    assert adj.receipt.overlap_mode["1,0"] == "observed"

    g = build_topology(cat, adj, 3, 3)
    result = EntropicSolver().solve(g, seed=1)
    check_assignment(g, result)
    assert len(result) == 9

    print("  ✓ Vacuous vertical adjacency")


def test_offsets_and_set_count():
    """Sets exist only for the four orthogonal offsets, one per root."""
    print("Testing offsets...")

    cat = extract_fragments(_random_sample(0), 3, 3, allow_rotation=True)
    adj = build_constraints(cat)

    assert len(adj.sets) == len(cat) * 4
    assert {cs.offset for cs in adj.sets.values()} == set(OFFSETS)
    for cs in adj.sets.values():
        assert len(cs.roots) == 1
        assert cs.root in cat

    root = cat.fragments[0]
    for bad in [(0, 0), (1, 1), (-1, -1)]:
        with pytest.raises(ValueError):
            adj.set_for(root, bad)
    assert set(adj.receipt.overlap_mode.values()) == {"pixels"}
    assert adj.receipt.pairs_tested == len(cat) * len(cat) * 4

    print("  ✓ Orthogonal offsets only")


def test_keyed_matches_pairwise():
    """Bucketed strip lookup gives exactly the is_overlapping answer."""
    print("Testing keyed vs pairwise...")

    for seed, (fw, fh), refl, rot in [
        (1, (3, 3), True, True),
        (2, (2, 3), True, False),
        (3, (2, 2), False, True),
    ]:
        cat = extract_fragments(_random_sample(seed), fw, fh, allow_reflection=refl, allow_rotation=rot)
        for offset in OFFSETS:
            keyed = compatible_indices(cat, offset, method="keyed")
            pairwise = compatible_indices(cat, offset, method="pairwise")
            assert keyed == pairwise, f"seed={seed} offset={offset}"
        print(f"  ✓ {fw}x{fh} refl={refl} rot={rot}: {len(cat)} fragments agree")


def test_permitted_symmetry():
    """other ∈ permitted(root, d) ⇔ root ∈ permitted(other, -d)."""
    print("Testing symmetry...")

    for sample, size in [(_random_sample(4), 3), (_raster(["AB", "BA", "AB"]), 1)]:
        cat = extract_fragments(sample, size, size, allow_reflection=True, allow_rotation=True)
        adj = build_constraints(cat)
        for root in cat.fragments:
            for offset in OFFSETS:
                for other in cat.fragments:
                    forward = other in adj.permitted(root, offset)
                    backward = root in adj.permitted(other, opposite(offset))
                    assert forward == backward

    print("  ✓ Symmetric permitted lists")


def test_interning():
    """Interned sets hold the same lists and are shared across roots."""
    print("Testing interning...")

    cat = extract_fragments(_random_sample(5), 3, 3, allow_reflection=True, allow_rotation=True)
    plain = build_constraints(cat)
    interned = build_constraints(cat, intern=True)

    assert len(interned.sets) <= len(plain.sets)
    assert len(interned.sets) == interned.receipt.distinct_lists
    assert interned.receipt.distinct_lists == plain.receipt.distinct_lists
    assert interned.receipt.adjacency_hash == plain.receipt.adjacency_hash

    for root in cat.fragments:
        for offset in OFFSETS:
            assert interned.permitted(root, offset) == plain.permitted(root, offset)
            assert root in interned.set_for(root, offset).roots

    shared = [cs for cs in interned.sets.values() if len(cs.roots) > 1]
    for cs in shared:
        with pytest.raises(ValueError):
            cs.root

    print(f"  ✓ {len(plain.sets)} sets → {len(interned.sets)} interned")


def test_deterministic_ids():
    """Two builds of the same catalog produce the same ids."""
    print("Testing deterministic ids...")

    cat = extract_fragments(_random_sample(6), 3, 3, allow_rotation=True)
    a = build_constraints(cat)
    b = build_constraints(cat)
    assert list(a.sets) == list(b.sets)
    assert all(set_id.startswith("cs_") for set_id in a.sets)
    assert a.ids_for((1, 0)) == b.ids_for((1, 0))
    assert len(a.ids_for((1, 0))) == len(cat)

    print("  ✓ Deterministic ids")


def run_tests():
    """Run all WO-04 tests."""
    print("\n" + "="*60)
    print("WO-04 Adjacency Tests")
    print("="*60 + "\n")

    test_checkerboard_adjacency()
    test_single_row_sample()
    test_offsets_and_set_count()
    test_keyed_matches_pairwise()
    test_permitted_symmetry()
    test_interning()
    test_deterministic_ids()

    print("\n" + "="*60)
    print("✓ All WO-04 tests passed")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_tests()
