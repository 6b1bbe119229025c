#!/usr/bin/env python3
"""
WO-03 Extraction Tests

Tests:
1. Monochrome sample: one fragment, weight = window count
2. Checkerboard 1×1: two fragments, weight 2 each
3. Equal regions merge across positions and orientations
4. Orientation multiplier 1/2/4/8 and total_weight = windows × orientations
5. Ground set: base vs orbit policy
6. Observed pairs recorded only for degenerate (1-wide) fragments
7. Fail-closed parameter checks
8. Catalog order and hash are deterministic
"""

import numpy as np
import pytest

from wfcgen.op.extract import extract_fragments
from wfcgen.op.fragment import Fragment

COLORS = {
    "A": (255, 0, 0, 255),
    "B": (0, 0, 255, 255),
    "C": (0, 255, 0, 255),
    "D": (255, 255, 0, 255),
    "E": (255, 0, 255, 255),
    "F": (0, 255, 255, 255),
}


def _raster(rows):
    return np.array([[COLORS[c] for c in row] for row in rows], dtype=np.uint8)


def _frag(rows):
    return Fragment(_raster(rows))


def test_monochrome_sample():
    """4×4 single colour, 2×2 fragments, no orientations → 1 fragment × 9."""
    print("Testing monochrome sample...")

    cat = extract_fragments(_raster(["AAAA"] * 4), 2, 2)

    assert len(cat) == 1
    assert cat.weight(cat.fragments[0]) == 9
    assert cat.total_weight == 9
    assert cat.receipt.windows == 9
    assert cat.receipt.orientations_per_window == 1

    # every orientation of a uniform square is itself
    cat8 = extract_fragments(_raster(["AAAA"] * 4), 2, 2, allow_reflection=True, allow_rotation=True)
    assert len(cat8) == 1
    assert cat8.total_weight == 9 * 8

    print("  ✓ Monochrome sample")


def test_checkerboard_single_pixel():
    """2×2 checkerboard, 1×1 fragments → {A: 2, B: 2}."""
    print("Testing checkerboard 1×1...")

    cat = extract_fragments(_raster(["AB", "BA"]), 1, 1)
    a, b = _frag(["A"]), _frag(["B"])

    assert len(cat) == 2
    assert cat.weight(a) == 2 and cat.weight(b) == 2
    assert a in cat and b in cat
    assert _frag(["C"]) not in cat

    print("  ✓ Checkerboard 1×1")


def test_identical_regions_merge():
    """Equal regions merge across positions and orientations."""
    print("Testing identical regions merge...")

    # windows AB, BB, BA; mirroring maps AB <-> BA
    cat = extract_fragments(_raster(["ABBA"]), 2, 1, allow_reflection=True)
    assert len(cat) == 3
    assert cat.weight(_frag(["AB"])) == 2
    assert cat.weight(_frag(["BA"])) == 2
    assert cat.weight(_frag(["BB"])) == 2

    # same region at two positions
    cat = extract_fragments(_raster(["ABAB"]), 2, 1)
    assert cat.weight(_frag(["AB"])) == 2
    assert cat.weight(_frag(["BA"])) == 1

    print("  ✓ Identical regions merge")


def test_orientation_counts():
    """Distinct 2×2 square yields 1/2/4/8 distinct variants per flags."""
    print("Testing orientation counts...")

    sample = _raster(["AB", "CD"])
    cases = [
        (False, False, 1),
        (True, False, 2),
        (False, True, 4),
        (True, True, 8),
    ]
    for refl, rot, n in cases:
        cat = extract_fragments(sample, 2, 2, allow_reflection=refl, allow_rotation=rot)
        assert len(cat) == n, f"refl={refl} rot={rot}"
        assert all(cat.weight(f) == 1 for f in cat.fragments)
        assert cat.receipt.orientations_per_window == n
        print(f"  ✓ refl={refl} rot={rot}: {n} variants")


def test_total_weight():
    """Sum of weights = windows × orientations, whatever merges happen."""
    print("Testing total weight...")

    rng = np.random.default_rng(3)
    palette = np.array([COLORS["A"], COLORS["B"]], dtype=np.uint8)
    sample = palette[rng.integers(0, 2, size=(7, 6))]

    for refl, rot, n in [(False, False, 1), (True, False, 2), (False, True, 4), (True, True, 8)]:
        cat = extract_fragments(sample, 3, 3, allow_reflection=refl, allow_rotation=rot)
        windows = (6 - 3 + 1) * (7 - 3 + 1)
        assert cat.receipt.windows == windows
        assert cat.total_weight == windows * n
        assert all(w > 0 for w in cat.weights.values())

    # non-square fragments without rotation
    cat = extract_fragments(sample, 2, 3, allow_reflection=True)
    assert cat.total_weight == (6 - 2 + 1) * (7 - 3 + 1) * 2

    print("  ✓ total_weight = windows × orientations")


def test_ground_base_policy():
    """Base policy: ground = base fragments of the last window row."""
    print("Testing ground (base)...")

    cat = extract_fragments(_raster(["AA", "AA", "BB"]), 1, 1)
    assert cat.ground == frozenset({_frag(["B"])})
    assert cat.ground_weights() == {_frag(["B"]): 2}
    assert cat.non_ground_weights() == {_frag(["A"]): 4}

    sample = _raster(["AB", "CD", "EF"])
    cat = extract_fragments(sample, 2, 2, allow_rotation=True)
    assert cat.ground == frozenset({_frag(["CD", "EF"])})
    assert cat.receipt.ground_count == 1

    print("  ✓ Ground = last-row base fragments")


def test_ground_orbit_policy():
    """Orbit policy: every orientation of a last-row window is ground."""
    print("Testing ground (orbit)...")

    sample = _raster(["AB", "CD", "EF"])
    cat = extract_fragments(sample, 2, 2, allow_rotation=True, ground_policy="orbit")

    base = _frag(["CD", "EF"])
    expected = {base, base.rotate(), base.rotate().rotate(), base.rotate().rotate().rotate()}
    assert cat.ground == frozenset(expected)
    assert cat.receipt.ground_policy == "orbit"

    print("  ✓ Ground = full orbit")


def test_observed_pairs():
    """Neighbouring windows recorded only when a dimension is 1."""
    print("Testing observed pairs...")

    cat = extract_fragments(_raster(["AB", "BA"]), 1, 1)
    a, b = _frag(["A"]), _frag(["B"])
    assert (a, b, (1, 0)) in cat.observed
    assert (b, a, (-1, 0)) in cat.observed
    assert (a, b, (0, 1)) in cat.observed
    assert (a, a, (1, 0)) not in cat.observed

    # rotation carries offsets along: horizontal pair becomes vertical
    cat = extract_fragments(_raster(["AB"]), 1, 1, allow_rotation=True)
    assert (a, b, (0, 1)) in cat.observed

    cat = extract_fragments(_raster(["AB", "CD", "EF"]), 2, 2)
    assert cat.observed == frozenset()
    assert cat.receipt.observed_pairs == 0

    print("  ✓ Observed pairs")


def test_invalid_parameters():
    """Bad sizes, rotation of non-square fragments, unknown policy."""
    print("Testing invalid parameters...")

    sample = _raster(["ABC", "DEF"])
    with pytest.raises(ValueError):
        extract_fragments(sample, 2, 3)          # taller than sample
    with pytest.raises(ValueError):
        extract_fragments(sample, 4, 1)          # wider than sample
    with pytest.raises(ValueError):
        extract_fragments(sample, 0, 1)
    with pytest.raises(ValueError):
        extract_fragments(sample, 2, 1, allow_rotation=True)
    with pytest.raises(ValueError):
        extract_fragments(sample, 1, 1, ground_policy="everything")
    with pytest.raises(ValueError):
        extract_fragments(np.zeros((3, 3, 3), dtype=np.uint8), 1, 1)
    with pytest.raises(ValueError):
        extract_fragments(np.full((2, 2, 4), 256, dtype=np.int16), 1, 1)
    with pytest.raises(ValueError):
        extract_fragments(np.full((2, 2, 4), -1, dtype=np.int16), 1, 1)

    print("  ✓ Invalid parameters rejected")


def test_deterministic_catalog():
    """Catalog order is by digest; two extractions hash the same."""
    print("Testing catalog determinism...")

    rng = np.random.default_rng(11)
    palette = np.array([COLORS["A"], COLORS["B"], COLORS["C"]], dtype=np.uint8)
    sample = palette[rng.integers(0, 3, size=(6, 6))]

    c1 = extract_fragments(sample, 3, 3, allow_reflection=True, allow_rotation=True)
    c2 = extract_fragments(sample.copy(), 3, 3, allow_reflection=True, allow_rotation=True)

    assert [f.digest for f in c1.fragments] == sorted(f.digest for f in c1.fragments)
    assert c1.fragments == c2.fragments
    assert c1.receipt.catalog_hash == c2.receipt.catalog_hash

    print("  ✓ Deterministic catalog")


def run_tests():
    """Run all WO-03 tests."""
    print("\n" + "="*60)
    print("WO-03 Extraction Tests")
    print("="*60 + "\n")

    test_monochrome_sample()
    test_checkerboard_single_pixel()
    test_identical_regions_merge()
    test_orientation_counts()
    test_total_weight()
    test_ground_base_policy()
    test_ground_orbit_policy()
    test_observed_pairs()
    test_invalid_parameters()
    test_deterministic_catalog()

    print("\n" + "="*60)
    print("✓ All WO-03 tests passed")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_tests()
