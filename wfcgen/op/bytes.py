# wfcgen/op/bytes.py
# WO-00: Canonical encodings (RGBA rasters, LEB128 varints, ZigZag offsets)

from __future__ import annotations
import numpy as np


def to_bytes_raster(G: np.ndarray) -> bytes:
    """
    Encode an H×W×4 RGBA raster as <H><W><row-major uint8 bytes>.

    Contract:
    Dimensions are framed as LEB128 varints so that rasters with equal pixel
    bytes but different shapes (e.g. 2×3 vs 3×2) never share an encoding.

    Args:
        G: numpy array of shape (H, W, 4)

    Returns:
        bytes: framed serialization

    Raises:
        TypeError: if G is not integer dtype
        ValueError: if G is not an (H, W, 4) raster
    """
    if G.dtype.kind not in "iu":
        raise TypeError("Raster must be integer dtype")
    if G.ndim != 3 or G.shape[2] != 4:
        raise ValueError(f"Raster must have shape (H, W, 4), got {G.shape}")

    H, W = G.shape[:2]
    g8 = np.ascontiguousarray(G, dtype=np.uint8)
    return varu(H) + varu(W) + g8.tobytes(order="C")


def _zigzag(i: int) -> int:
    """
    ZigZag encoding: map signed int to unsigned.

    ZigZag mapping:
      0 → 0, -1 → 1, 1 → 2, -2 → 3, 2 → 4, ...
    """
    return (-i << 1) - 1 if i < 0 else (i << 1)


def zigzag_encode(i: int) -> bytes:
    """
    Encode signed integer as ZigZag LEB128 varint.

    Args:
        i: signed integer

    Returns:
        bytes: ZigZag-encoded LEB128 varint
    """
    return varu(_zigzag(i))


def varu(n: int) -> bytes:
    """
    Encode unsigned integer as LEB128 varint.

    Args:
        n: unsigned integer (must be >= 0)

    Returns:
        bytes: LEB128 varint

    Raises:
        ValueError: if n < 0
        OverflowError: if n too large for LEB128
    """
    if n < 0:
        raise ValueError("varu expects unsigned (n >= 0)")

    if n >= (1 << 63):
        raise OverflowError(f"Integer {n} too large for safe LEB128 encoding")

    out = bytearray()
    while True:
        byte = n & 0x7F
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            break
    return bytes(out)


def frame_params(*ints: int, signed: bool = False) -> bytes:
    """
    Frame parameter list as <count><p1>...<pk>.

    Used for offsets (signed) and coordinates (unsigned) inside hashed ids.

    Args:
        *ints: parameters to encode
        signed: if True, use ZigZag encoding; else plain LEB128

    Returns:
        bytes: framed parameter list
    """
    out = bytearray()
    out += varu(len(ints))
    for v in ints:
        out += zigzag_encode(v) if signed else varu(v)
    return bytes(out)

