# wfcgen/op/fragment.py
# WO-02: Fragment value type + exact overlap test

"""
Contract (WO-02):
A Fragment is an immutable fw×fh block of RGBA pixels.

- Identity is structural: two fragments are equal iff shape and every pixel match.
- Hashing uses a BLAKE3 digest of the framed raster, computed once.
- rotate(): 90° clockwise, width/height swap; rotate⁴ = id.
- flip(): mirror along the width axis; flip² = id.
- is_overlapping(A, B, dx, dy): every pixel pair in the intersection of A's
  footprint and B's footprint shifted by (dx, dy) is equal.
  Symmetric: is_overlapping(A, B, dx, dy) == is_overlapping(B, A, -dx, -dy).

Rasters are indexed [y, x] (row-major), shape (H, W, 4), dtype uint8.
"""

from __future__ import annotations
from typing import Tuple
import numpy as np

from .d4 import rotate_cw, flip_w
from .hash import hash_raster

# Orthogonal offsets (dx, dy), frozen order: up, down, left, right
OFFSETS: Tuple[Tuple[int, int], ...] = ((0, -1), (0, 1), (-1, 0), (1, 0))

Pixel = Tuple[int, int, int, int]


def check_offset(dx: int, dy: int) -> None:
    """
    Reject center and diagonal offsets.

    Raises:
        ValueError: if (dx, dy) is not one of OFFSETS
    """
    if (dx, dy) not in OFFSETS:
        raise ValueError(f"Invalid offset ({dx}, {dy}), must be one of {OFFSETS}")


def opposite(offset: Tuple[int, int]) -> Tuple[int, int]:
    """(dx, dy) → (-dx, -dy)."""
    return (-offset[0], -offset[1])


class Fragment:
    """
    Immutable RGBA pixel block with content equality.

    Construct from any (H, W, 4) integer array; the raster is copied and made
    read-only so no caller can mutate a fragment after it enters a catalog.
    """

    __slots__ = ("_pixels", "_digest")

    def __init__(self, pixels: np.ndarray):
        src = np.asarray(pixels)
        if src.dtype.kind in "iu" and src.size and (src.min() < 0 or src.max() > 255):
            raise ValueError(f"Fragment pixel values must lie in 0..255, got {src.min()}..{src.max()}")
        G = np.array(src, dtype=np.uint8, copy=True)
        if G.ndim != 3 or G.shape[2] != 4:
            raise ValueError(f"Fragment raster must have shape (H, W, 4), got {G.shape}")
        if G.shape[0] == 0 or G.shape[1] == 0:
            raise ValueError(f"Fragment raster must be non-empty, got {G.shape}")
        G.setflags(write=False)
        self._pixels = G
        self._digest = hash_raster(G)

    @classmethod
    def from_image(cls, image: np.ndarray, x: int, y: int, width: int, height: int) -> "Fragment":
        """
        Slice a width×height window whose top-left pixel is (x, y).

        Raises:
            IndexError: if the window does not fit inside the image
        """
        H, W = image.shape[:2]
        if x < 0 or y < 0 or width <= 0 or height <= 0 or x + width > W or y + height > H:
            raise IndexError(
                f"window_oob: req=(x={x}, y={y}, w={width}, h={height}) vs image=({W}x{H})"
            )
        return cls(image[y:y + height, x:x + width])

    @property
    def pixels(self) -> np.ndarray:
        """Read-only (H, W, 4) raster."""
        return self._pixels

    @property
    def width(self) -> int:
        return self._pixels.shape[1]

    @property
    def height(self) -> int:
        return self._pixels.shape[0]

    @property
    def digest(self) -> str:
        """BLAKE3 content hash (shape + pixels)."""
        return self._digest

    def pixel(self, x: int, y: int) -> Pixel:
        """
        Pixel at column x, row y.

        Raises:
            IndexError: if (x, y) is outside the fragment
        """
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise IndexError(f"pixel_oob: req=({x}, {y}) vs fragment=({self.width}x{self.height})")
        return tuple(int(v) for v in self._pixels[y, x])

    def rotate(self) -> "Fragment":
        """90° clockwise rotation; the result is height×width."""
        return Fragment(rotate_cw(self._pixels))

    def flip(self) -> "Fragment":
        """Mirror along the width axis."""
        return Fragment(flip_w(self._pixels))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Fragment):
            return NotImplemented
        if self._digest != other._digest:
            return False
        return np.array_equal(self._pixels, other._pixels)

    def __hash__(self) -> int:
        return hash(self._digest)

    def __repr__(self) -> str:
        return f"Fragment({self.width}x{self.height}, {self._digest[:12]})"


def overlap_region(
    root: Fragment,
    other: Fragment,
    dx: int,
    dy: int
) -> Tuple[int, int, int, int]:
    """
    Intersection of root's footprint with other's footprint shifted by (dx, dy).

    Returns:
        (x0, x1, y0, y1) in root coordinates, half-open; empty when x0 >= x1 or y0 >= y1
    """
    x0 = max(0, dx)
    x1 = min(root.width, dx + other.width)
    y0 = max(0, dy)
    y1 = min(root.height, dy + other.height)
    return x0, x1, y0, y1


def has_overlap(root: Fragment, other: Fragment, dx: int, dy: int) -> bool:
    """True when the shifted footprints share at least one pixel."""
    x0, x1, y0, y1 = overlap_region(root, other, dx, dy)
    return x0 < x1 and y0 < y1


def is_overlapping(root: Fragment, other: Fragment, dx: int, dy: int) -> bool:
    """
    Exact pixel-overlap test.

    Contract (WO-02):
    True iff every pixel of root inside the intersection equals the pixel of
    `other` at the same absolute position (other's origin at (dx, dy)).
    An empty intersection is vacuously true.

    Raises:
        ValueError: if (dx, dy) is not an orthogonal offset
    """
    check_offset(dx, dy)
    x0, x1, y0, y1 = overlap_region(root, other, dx, dy)
    if x0 >= x1 or y0 >= y1:
        return True

    a = root.pixels[y0:y1, x0:x1]
    b = other.pixels[y0 - dy:y1 - dy, x0 - dx:x1 - dx]
    return bool(np.array_equal(a, b))
