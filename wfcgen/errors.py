# wfcgen/errors.py
# WO-00: Typed failures (fail-closed)

from __future__ import annotations
from typing import Optional, Tuple


class ImageDecodeError(ValueError):
    """Sample image is missing or cannot be decoded. Fatal to the run."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"IMAGE_DECODE: {path}: {reason}")
        self.path = path
        self.reason = reason


class ContradictionError(RuntimeError):
    """
    No globally consistent assignment was found.

    Carries the seed of the failed attempt and the node whose candidate set
    became empty (None when the graph was contradictory before any choice).
    """

    def __init__(self, seed: int, coord: Optional[Tuple[int, int]] = None, attempts: int = 1):
        where = f" at node {coord}" if coord is not None else ""
        super().__init__(f"CONTRADICTION{where} (seed={seed}, attempts={attempts})")
        self.seed = seed
        self.coord = coord
        self.attempts = attempts


class GraphInvariantError(ValueError):
    """Programming-error invariant violation in a graph or an assignment."""
