# wfcgen/op/reconstruct.py
# WO-07: MapReconstructor: CollapseResult → output raster

"""
Contract (WO-07):
Output = outputHeight × outputWidth × 4 raster filled with the background
sentinel, then for each node (x, y):
- last grid column or last grid row: write the chosen fragment's full fw×fh
  block at (x, y) (covers the margin nodes would otherwise overhang)
- otherwise: write only the fragment's top-left pixel at (x, y)

Interior single-pixel writes are only correct because neighbouring choices
are overlap-consistent; that is the solver's guarantee. verify=True re-checks
it with is_overlapping and fails closed.
"""

from __future__ import annotations
from typing import Tuple

import numpy as np

from wfcgen.errors import GraphInvariantError
from .fragment import has_overlap, is_overlapping
from .hash import hash_raster
from .receipts import ReconstructRc
from .solver import CollapseResult
from .topology import ConstraintGraph

BACKGROUND = (0, 0, 128, 0)


def _check_coords(graph: ConstraintGraph, result: CollapseResult) -> None:
    for coord in result.assignment:
        if (
            not isinstance(coord, tuple)
            or len(coord) != 2
            or not all(isinstance(v, (int, np.integer)) for v in coord)
        ):
            raise GraphInvariantError(f"malformed_coord: {coord!r}")
        if not graph.in_grid(coord):
            raise GraphInvariantError(
                f"coord_oob: {coord} vs grid=({graph.grid_width}x{graph.grid_height})"
            )
    missing = [c for c in graph.nodes if c not in result.assignment]
    if missing:
        raise GraphInvariantError(f"missing_assignment: {sorted(missing)[:5]} ({len(missing)} total)")


def _verify(graph: ConstraintGraph, result: CollapseResult) -> None:
    for node in graph:
        chosen = result[node.coord]
        for offset, nb in node.neighbors.items():
            other = result[nb]
            if has_overlap(chosen, other, *offset):
                ok = is_overlapping(chosen, other, *offset)
            else:
                ok = other in graph.permitted(chosen, offset)
            if not ok:
                raise GraphInvariantError(
                    f"inconsistent_assignment: {node.coord} {offset} -> {nb}"
                )


def reconstruct(
    graph: ConstraintGraph,
    result: CollapseResult,
    output_width: int,
    output_height: int,
    background: Tuple[int, int, int, int] = BACKGROUND,
    verify: bool = False,
) -> Tuple[np.ndarray, ReconstructRc]:
    """
    Build the output raster from a per-node assignment.

    Args:
        graph: the graph the assignment was solved on
        result: CollapseResult (coord → Fragment)
        output_width / output_height: output size; must match the graph
        background: sentinel fill colour (RGBA)
        verify: re-check every neighbouring pair before writing

    Returns:
        (grid, receipt): (H, W, 4) uint8 raster and ReconstructRc

    Raises:
        GraphInvariantError: output size inconsistent with the graph,
            malformed/out-of-range/missing coordinates, wrong fragment size,
            or (verify=True) an inconsistent neighbouring pair
    """
    fw, fh = graph.catalog.fragment_width, graph.catalog.fragment_height
    if output_width - fw + 1 != graph.grid_width or output_height - fh + 1 != graph.grid_height:
        raise GraphInvariantError(
            f"output_size: {output_width}x{output_height} does not match grid "
            f"{graph.grid_width}x{graph.grid_height} for fragment {fw}x{fh}"
        )
    _check_coords(graph, result)
    if verify:
        _verify(graph, result)

    out = np.empty((output_height, output_width, 4), dtype=np.uint8)
    out[:, :] = np.asarray(background, dtype=np.uint8)

    last_x = graph.grid_width - 1
    last_y = graph.grid_height - 1
    margin = 0
    interior = 0
    written = np.zeros((output_height, output_width), dtype=bool)

    for node in graph:
        x, y = node.coord
        fragment = result[node.coord]
        if fragment.width != fw or fragment.height != fh:
            raise GraphInvariantError(
                f"fragment_shape: {node.coord} got {fragment.width}x{fragment.height}, want {fw}x{fh}"
            )
        if x == last_x or y == last_y:
            out[y:y + fh, x:x + fw] = fragment.pixels
            written[y:y + fh, x:x + fw] = True
            margin += 1
        else:
            out[y, x] = fragment.pixels[0, 0]
            written[y, x] = True
            interior += 1

    receipt = ReconstructRc(
        output_shape=(output_width, output_height),
        margin_writes=margin,
        interior_writes=interior,
        background_pixels=int((~written).sum()),
        verified=verify,
        output_hash=hash_raster(out),
    )
    return out, receipt
