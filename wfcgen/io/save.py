# wfcgen/io/save.py
# WO-00: JSON/JSONL receipts, PNG output and terminal preview

from __future__ import annotations
import json
import os
from typing import Any

import numpy as np
from PIL import Image

BLOCK = "█"


def _ensure_parent(path: str) -> None:
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)


def write_json(path: str, obj: Any) -> None:
    """
    Write object as JSON to file.

    Creates parent directories if needed.
    Uses compact JSON (no whitespace) for determinism.

    Args:
        path: output file path
        obj: JSON-serializable object
    """
    _ensure_parent(path)
    with open(path, "w") as f:
        json.dump(obj, f, separators=(",", ":"))


def write_jsonl(path: str, records: list[Any]) -> None:
    """
    Write list of objects as JSONL (one JSON object per line).

    Used for receipts output.

    Args:
        path: output file path
        records: list of JSON-serializable objects
    """
    _ensure_parent(path)
    with open(path, "w") as f:
        for record in records:
            f.write(json.dumps(record, separators=(",", ":")) + "\n")


def write_png(path: str, grid: np.ndarray, scale: int = 1) -> None:
    """
    Save an (H, W, 4) raster as RGBA PNG, optionally nearest-upscaled.

    Raises:
        ValueError: if grid is not an RGBA raster or scale < 1
    """
    G = np.asarray(grid, dtype=np.uint8)
    if G.ndim != 3 or G.shape[2] != 4:
        raise ValueError(f"Grid must have shape (H, W, 4), got {G.shape}")
    if scale < 1:
        raise ValueError(f"scale must be >= 1, got {scale}")
    if scale > 1:
        G = np.repeat(np.repeat(G, scale, axis=0), scale, axis=1)
    _ensure_parent(path)
    Image.fromarray(G).save(path)


def format_ansi(grid: np.ndarray) -> str:
    """
    Truecolor terminal preview: two full blocks per pixel, one line per row.
    Alpha is ignored.
    """
    G = np.asarray(grid)
    lines = []
    for row in G:
        cells = []
        for r, g, b, _ in row.tolist():
            cells.append(f"\x1b[38;2;{r};{g};{b}m{BLOCK}{BLOCK}")
        lines.append("".join(cells) + "\x1b[0m")
    return "\n".join(lines)
