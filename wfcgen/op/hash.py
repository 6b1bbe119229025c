# wfcgen/op/hash.py
# WO-00: BLAKE3 hashing helpers

from __future__ import annotations
from blake3 import blake3
import numpy as np
from .bytes import to_bytes_raster


def hash_bytes(b: bytes) -> str:
    """
    Hash bytes with BLAKE3, return hex digest.

    Args:
        b: bytes to hash

    Returns:
        str: hex digest (64 hex chars = 256 bits)
    """
    return blake3(b).hexdigest()


def hash_raster(G: np.ndarray) -> str:
    """
    Hash an RGBA raster using the framed row-major serialization.

    Contract:
    Shape is part of the hashed bytes, so a 2×3 raster never collides with a
    3×2 raster holding the same pixel sequence.

    Args:
        G: numpy array of shape (H, W, 4)

    Returns:
        str: BLAKE3 hex digest of serialized raster
    """
    return hash_bytes(to_bytes_raster(G))


def hash_lines(lines: list[str]) -> str:
    """BLAKE3 over newline-joined, sorted lines (order-independent table hash)."""
    return hash_bytes("\n".join(sorted(lines)).encode())
