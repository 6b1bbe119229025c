# wfcgen/op/d4.py
# WO-01: D4 dihedral operations on fragment rasters and offsets

from __future__ import annotations
import numpy as np
from typing import List, Tuple

# Orientation labels in generation order (frozen).
# With both flags the chain is: base, three successive 90° rotations, a flip of
# the last rotation, then three successive rotations of the flipped raster.
# Together these are the 8 elements of D4, each visited exactly once.
ORIENTATION_LABELS = (
    "base",
    "rot90",
    "rot180",
    "rot270",
    "flip",
    "flip_rot90",
    "flip_rot180",
    "flip_rot270",
)

ROTATE = "R"
FLIP = "F"

# Step chains per (allow_reflection, allow_rotation)
_STEPS = {
    (False, False): (),
    (False, True): (ROTATE, ROTATE, ROTATE),
    (True, False): (FLIP,),
    (True, True): (ROTATE, ROTATE, ROTATE, FLIP, ROTATE, ROTATE, ROTATE),
}

# Labels matching each chain (base first)
_LABELS = {
    (False, False): ("base",),
    (False, True): ("base", "rot90", "rot180", "rot270"),
    (True, False): ("base", "flip"),
    (True, True): ORIENTATION_LABELS,
}


def rotate_cw(G: np.ndarray) -> np.ndarray:
    """
    Rotate raster 90° clockwise; width and height swap.

    Contract:
    Source pixel at (row r, col c) of an H×W raster lands at (row c, col H-1-r)
    of the W×H result. Four applications reproduce the input exactly.

    Note: numpy's rot90(k=1) is 90° counterclockwise; clockwise is k=3.
    """
    return np.rot90(G, k=3, axes=(0, 1))


def flip_w(G: np.ndarray) -> np.ndarray:
    """
    Mirror raster along the width axis; dimensions unchanged.

    Contract:
    Source pixel at column c lands at column W-1-c. Involution (flip² = id).
    """
    return G[:, ::-1]


def apply_step(G: np.ndarray, step: str) -> np.ndarray:
    """Apply one chain step ("R" or "F") to a raster."""
    if step == ROTATE:
        return rotate_cw(G)
    if step == FLIP:
        return flip_w(G)
    raise ValueError(f"Invalid orientation step {step!r}")


def apply_step_offset(offset: Tuple[int, int], step: str) -> Tuple[int, int]:
    """
    Apply one chain step to a (dx, dy) offset, y pointing down.

    Contract:
    - rotate_cw: (x, y) → (H-1-y, x), so (dx, dy) → (-dy, dx)
    - flip_w: (x, y) → (W-1-x, y), so (dx, dy) → (-dx, dy)

    Two rasters sitting at `offset` from each other still sit at the
    transformed offset once both are transformed by the same step.
    """
    dx, dy = offset
    if step == ROTATE:
        return (-dy, dx)
    if step == FLIP:
        return (-dx, dy)
    raise ValueError(f"Invalid orientation step {step!r}")


def orientation_steps(allow_reflection: bool, allow_rotation: bool) -> Tuple[str, ...]:
    """Chain of steps that walks from the base raster through every variant."""
    return _STEPS[(bool(allow_reflection), bool(allow_rotation))]


def orientation_count(allow_reflection: bool, allow_rotation: bool) -> int:
    """Number of variants generated per base raster (1, 2, 4 or 8)."""
    return len(_LABELS[(bool(allow_reflection), bool(allow_rotation))])


def orientations(
    G: np.ndarray,
    allow_reflection: bool,
    allow_rotation: bool
) -> List[Tuple[str, np.ndarray]]:
    """
    Generate the orientation set of a raster.

    Contract:
    - neither flag: [base]
    - rotation only: [base, rot90, rot180, rot270]
    - reflection only: [base, flip]
    - both: full dihedral group in chain order (see ORIENTATION_LABELS)

    Variants are NOT deduplicated here; a symmetric raster yields repeated
    entries, and each one counts towards the catalog weight.

    Args:
        G: raster (H×W×4)
        allow_reflection: include mirrored variants
        allow_rotation: include rotated variants

    Returns:
        List of (label, raster) in generation order, base first
    """
    key = (bool(allow_reflection), bool(allow_rotation))
    labels = _LABELS[key]

    current = G
    out = [(labels[0], current)]
    for label, step in zip(labels[1:], _STEPS[key]):
        current = apply_step(current, step)
        out.append((label, current))
    return out
