# wfcgen/op/world.py
# WO-08: Output consumer: wall-sentinel scan → obstacles

"""
Contract (WO-08):
Every output pixel exactly equal to the wall colour becomes one cubic
obstacle at world position (x·scale, 0, y·scale) with edge length `scale`.
Anything else is open space.

Obstacle names are MAZE_MESH_{x}_{y}_{n}, where n comes from a MeshCounter
owned by the caller and passed in explicitly; no process-wide state.
"""

from __future__ import annotations
from dataclasses import dataclass
from threading import Lock
from typing import List, Tuple

import numpy as np

WALL = (0, 0, 0, 255)
WORLD_SCALE = 200.0


class MeshCounter:
    """Monotonic name counter shared by the generation/reconstruction context."""

    def __init__(self, start: int = 0):
        self._value = start
        self._lock = Lock()

    @property
    def value(self) -> int:
        return self._value

    def next(self) -> int:
        with self._lock:
            n = self._value
            self._value += 1
            return n


@dataclass(frozen=True)
class Obstacle:
    name: str
    cell: Tuple[int, int]                      # (x, y) in the output raster
    position: Tuple[float, float, float]       # world space, y-up
    size: Tuple[float, float, float]


def wall_cells(grid: np.ndarray, wall_color: Tuple[int, int, int, int] = WALL) -> List[Tuple[int, int]]:
    """
    (x, y) of every pixel exactly matching wall_color, column-major
    (x outer, y inner) like the world builder scans.

    Raises:
        ValueError: if grid is not an (H, W, 4) raster
    """
    G = np.asarray(grid)
    if G.ndim != 3 or G.shape[2] != 4:
        raise ValueError(f"Output grid must have shape (H, W, 4), got {G.shape}")
    mask = np.all(G == np.asarray(wall_color, dtype=G.dtype), axis=2)
    xs, ys = np.nonzero(mask.T)
    return list(zip(xs.tolist(), ys.tolist()))


def scan_obstacles(
    grid: np.ndarray,
    counter: MeshCounter,
    wall_color: Tuple[int, int, int, int] = WALL,
    scale: float = WORLD_SCALE,
) -> List[Obstacle]:
    """
    One Obstacle per wall pixel.

    Args:
        grid: reconstructed output raster
        counter: explicit name counter (advanced once per obstacle)
        wall_color: RGBA sentinel
        scale: world units per pixel

    Returns:
        Obstacles in scan order
    """
    out = []
    for x, y in wall_cells(grid, wall_color):
        n = counter.next()
        px, pz = x * scale, y * scale
        out.append(Obstacle(
            name=f"MAZE_MESH_{x}_{y}_{n}",
            cell=(x, y),
            position=(float(px), 0.0, float(pz)),
            size=(float(scale),) * 3,
        ))
    return out
