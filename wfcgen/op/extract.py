# wfcgen/op/extract.py
# WO-03: FragmentExtractor → weighted Catalog with ground set

"""
Contract (WO-03):
Slice the sample into every fw×fh window, expand each window into its
orientation set, and merge structurally equal fragments into one catalog entry.

Frozen algorithm:
1. Windows: every top-left (x, y) with x ∈ [0, W-fw], y ∈ [0, H-fh]
2. Orientations: per flags (d4.orientations), base first
3. Weights: +1 per variant occurrence (weights = occurrence counts, all > 0)
4. Ground: base fragments of the last valid row (y = H-fh)
   policy "base" → base fragment only; "orbit" → every orientation of it
5. Observed adjacency: when fw == 1 or fh == 1 the pixel-overlap test has no
   shared pixels along that axis, so neighbouring windows of the sample are
   recorded (oriented with the same chain) for the adjacency builder.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Tuple
import numpy as np

from .d4 import apply_step, apply_step_offset, orientation_count, orientation_steps, orientations
from .fragment import Fragment, OFFSETS, opposite
from .hash import hash_lines
from .receipts import CatalogRc

GROUND_POLICIES = ("base", "orbit")

ObservedPair = Tuple[Fragment, Fragment, Tuple[int, int]]


@dataclass(frozen=True, eq=False)
class Catalog:
    """
    Deduplicated fragments with occurrence weights.

    fragments is ordered by content digest so that every iteration over the
    catalog is deterministic across runs and platforms.
    """
    fragments: Tuple[Fragment, ...]
    weights: Dict[Fragment, int]
    ground: FrozenSet[Fragment]
    observed: FrozenSet[ObservedPair]
    fragment_width: int
    fragment_height: int
    receipt: CatalogRc

    def __len__(self) -> int:
        return len(self.fragments)

    def __contains__(self, fragment: object) -> bool:
        return fragment in self.weights

    def weight(self, fragment: Fragment) -> int:
        """
        Occurrence count of a catalog fragment.

        Raises:
            KeyError: if the fragment is not in the catalog
        """
        return self.weights[fragment]

    @property
    def total_weight(self) -> int:
        return sum(self.weights.values())

    def ground_weights(self) -> Dict[Fragment, int]:
        """Weight map restricted to the ground set."""
        return {f: self.weights[f] for f in self.fragments if f in self.ground}

    def non_ground_weights(self) -> Dict[Fragment, int]:
        """Weight map minus the ground set."""
        return {f: self.weights[f] for f in self.fragments if f not in self.ground}

    def all_weights(self) -> Dict[Fragment, int]:
        """Full weight map in catalog order."""
        return {f: self.weights[f] for f in self.fragments}


def _as_rgba(image: np.ndarray) -> np.ndarray:
    """
    Normalise a decoded sample to (H, W, 4) uint8.

    Raises:
        ValueError: if the array is not an RGBA raster
    """
    G = np.asarray(image)
    if G.ndim != 3 or G.shape[2] != 4:
        raise ValueError(f"Sample must be an RGBA raster (H, W, 4), got shape {G.shape}")
    if G.dtype.kind not in "iu":
        raise ValueError(f"Sample must be integer dtype, got {G.dtype}")
    if G.size and (G.min() < 0 or G.max() > 255):
        raise ValueError(f"Sample values must lie in 0..255, got {G.min()}..{G.max()}")
    return G.astype(np.uint8, copy=False)


def _orient_pair(
    a: Fragment,
    b: Fragment,
    offset: Tuple[int, int],
    steps: Tuple[str, ...]
) -> List[ObservedPair]:
    """Walk a neighbouring pair through the orientation chain."""
    out = [(a, b, offset)]
    for step in steps:
        a, b = Fragment(apply_step(a.pixels, step)), Fragment(apply_step(b.pixels, step))
        offset = apply_step_offset(offset, step)
        out.append((a, b, offset))
    return out


def extract_fragments(
    image: np.ndarray,
    fragment_width: int,
    fragment_height: int,
    allow_reflection: bool = False,
    allow_rotation: bool = False,
    ground_policy: str = "base",
) -> Catalog:
    """
    Build the weighted fragment catalog of a sample image.

    Args:
        image: decoded sample, (H, W, 4) RGBA
        fragment_width: fw (pixels)
        fragment_height: fh (pixels)
        allow_reflection: add mirrored variants
        allow_rotation: add rotated variants (square fragments only)
        ground_policy: "base" or "orbit" (see module contract)

    Returns:
        Catalog with weights, ground set and CatalogRc receipt

    Raises:
        ValueError: on non-positive fragment size, a fragment larger than the
            sample, rotation of non-square fragments, or an unknown policy
    """
    G = _as_rgba(image)
    H, W = G.shape[:2]
    fw, fh = int(fragment_width), int(fragment_height)

    if fw <= 0 or fh <= 0:
        raise ValueError(f"Fragment size must be positive, got {fw}x{fh}")
    if fw > W or fh > H:
        raise ValueError(f"Fragment {fw}x{fh} does not fit sample {W}x{H}")
    if allow_rotation and fw != fh:
        raise ValueError(
            f"Rotation requires square fragments (got {fw}x{fh}); rotated "
            "fragments would not match the node footprint"
        )
    if ground_policy not in GROUND_POLICIES:
        raise ValueError(f"Unknown ground_policy {ground_policy!r}, must be in {GROUND_POLICIES}")

    steps = orientation_steps(allow_reflection, allow_rotation)
    n_orient = orientation_count(allow_reflection, allow_rotation)
    rows = H - fh + 1
    cols = W - fw + 1

    weights: Dict[Fragment, int] = {}
    ground: set = set()
    bases: List[List[Fragment]] = []

    for y in range(rows):
        row: List[Fragment] = []
        for x in range(cols):
            base = Fragment.from_image(G, x, y, fw, fh)
            row.append(base)

            variants = [
                Fragment(raster)
                for _, raster in orientations(base.pixels, allow_reflection, allow_rotation)
            ]

            if y == rows - 1:
                if ground_policy == "orbit":
                    ground.update(variants)
                else:
                    ground.add(base)

            for variant in variants:
                weights[variant] = weights.get(variant, 0) + 1
        bases.append(row)

    observed: set = set()
    if fw == 1 or fh == 1:
        for y in range(rows):
            for x in range(cols):
                for dx, dy in OFFSETS:
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < cols and 0 <= ny < rows:
                        for a, b, o in _orient_pair(bases[y][x], bases[ny][nx], (dx, dy), steps):
                            observed.add((a, b, o))
                            observed.add((b, a, opposite(o)))

    fragments = tuple(sorted(weights, key=lambda f: f.digest))
    catalog_lines = [f"{f.digest}:{weights[f]}" for f in fragments]
    catalog_lines += [f"ground:{f.digest}" for f in ground]

    receipt = CatalogRc(
        sample_shape=(W, H),
        fragment_shape=(fw, fh),
        windows=rows * cols,
        orientations_per_window=n_orient,
        fragment_count=len(fragments),
        total_weight=sum(weights.values()),
        ground_count=len(ground),
        ground_policy=ground_policy,
        observed_pairs=len(observed),
        catalog_hash=hash_lines(catalog_lines),
    )

    return Catalog(
        fragments=fragments,
        weights=weights,
        ground=frozenset(ground),
        observed=frozenset(observed),
        fragment_width=fw,
        fragment_height=fh,
        receipt=receipt,
    )
