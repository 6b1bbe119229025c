# wfcgen/op/topology.py
# WO-05: GridTopologyBuilder → Nodes + ConstraintGraph

"""
Contract (WO-05):
Node grid = [0, gridWidth) × [0, gridHeight) with
  gridWidth  = outputWidth  - fw + 1
  gridHeight = outputHeight - fh + 1
(one node per fragment top-left corner).

Neighbours (per offset in OFFSETS):
- periodic: wrap modulo the grid dimension on that axis
- open:     out-of-range neighbour omitted (no constraint that way)

Candidates:
- contains_ground off:            full catalog weight map
- contains_ground on, last row:   ground-restricted map
- contains_ground on, other rows: catalog minus ground
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, Iterator, Tuple

from .adjacency import Adjacency, ConstraintSet, Offset
from wfcgen.errors import GraphInvariantError
from .extract import Catalog
from .fragment import Fragment, OFFSETS, check_offset
from .hash import hash_lines
from .receipts import TopologyRc

Coord = Tuple[int, int]


@dataclass(frozen=True, eq=False)
class Node:
    """
    One solvable grid position.

    neighbors maps each live offset to the neighbour coordinate;
    constraint_set_ids maps the same offsets to every set id applicable in
    that direction (the solver picks the one whose root it chose).
    """
    coord: Coord
    weights: Dict[Fragment, int]
    neighbors: Dict[Offset, Coord]
    constraint_set_ids: Dict[Offset, Tuple[str, ...]]

    @property
    def id(self) -> str:
        x, y = self.coord
        return f"node_{x}_{y}"


@dataclass(frozen=True, eq=False)
class ConstraintGraph:
    """
    Immutable solver input: nodes + constraint sets (+ the catalog they came from).
    """
    grid_width: int
    grid_height: int
    nodes: Dict[Coord, Node]
    adjacency: Adjacency
    catalog: Catalog
    periodic: bool
    contains_ground: bool
    receipt: TopologyRc

    @property
    def constraint_sets(self) -> Dict[str, ConstraintSet]:
        return self.adjacency.sets

    def __iter__(self) -> Iterator[Node]:
        for y in range(self.grid_height):
            for x in range(self.grid_width):
                yield self.nodes[(x, y)]

    def __len__(self) -> int:
        return len(self.nodes)

    def in_grid(self, coord: Coord) -> bool:
        x, y = coord
        return 0 <= x < self.grid_width and 0 <= y < self.grid_height

    def node(self, coord: Coord) -> Node:
        """
        Node at a grid coordinate.

        Raises:
            GraphInvariantError: if coord is outside the grid
        """
        if not self.in_grid(coord):
            raise GraphInvariantError(
                f"node_oob: req={coord} vs grid=({self.grid_width}x{self.grid_height})"
            )
        return self.nodes[coord]

    def permitted(self, fragment: Fragment, offset: Offset) -> Tuple[Fragment, ...]:
        """Fragments allowed at `offset` from `fragment`."""
        return self.adjacency.permitted(fragment, offset)

    def validate(self) -> None:
        """
        Check graph invariants before solving.

        Raises:
            GraphInvariantError: unknown set id, set id with wrong offset,
                neighbour outside the grid, empty candidate map or a
                non-positive weight
        """
        expected = self.grid_width * self.grid_height
        if len(self.nodes) != expected:
            raise GraphInvariantError(f"node_count: {len(self.nodes)} != {expected}")

        for node in self:
            if not node.weights:
                raise GraphInvariantError(f"empty_candidates: {node.coord}")
            for fragment, weight in node.weights.items():
                if weight <= 0:
                    raise GraphInvariantError(f"non_positive_weight: {node.coord} {fragment!r}={weight}")
            for offset, neighbor in node.neighbors.items():
                check_offset(*offset)
                if not self.in_grid(neighbor):
                    raise GraphInvariantError(f"neighbor_oob: {node.coord} -> {neighbor}")
                for set_id in node.constraint_set_ids.get(offset, ()):
                    cs = self.adjacency.sets.get(set_id)
                    if cs is None:
                        raise GraphInvariantError(f"unknown_constraint_set: {set_id}")
                    if cs.offset != offset:
                        raise GraphInvariantError(f"offset_mismatch: {set_id} {cs.offset} != {offset}")


def grid_shape(output_width: int, output_height: int, fragment_width: int, fragment_height: int) -> Tuple[int, int]:
    """
    (gridWidth, gridHeight) for an output size.

    Raises:
        ValueError: if the output is smaller than one fragment
    """
    gw = output_width - fragment_width + 1
    gh = output_height - fragment_height + 1
    if gw <= 0 or gh <= 0:
        raise ValueError(
            f"Output {output_width}x{output_height} smaller than fragment {fragment_width}x{fragment_height}"
        )
    return gw, gh


def neighbor_coord(coord: Coord, offset: Offset, gw: int, gh: int, periodic: bool) -> Coord | None:
    """
    Neighbour of `coord` at `offset`, or None across an open boundary.
    """
    x, y = coord
    nx, ny = x + offset[0], y + offset[1]
    if periodic:
        return (nx % gw, ny % gh)
    if 0 <= nx < gw and 0 <= ny < gh:
        return (nx, ny)
    return None


def build_topology(
    catalog: Catalog,
    adjacency: Adjacency,
    output_width: int,
    output_height: int,
    periodic: bool = False,
    contains_ground: bool = False,
) -> ConstraintGraph:
    """
    Assemble the ConstraintGraph for an output size.

    Args:
        catalog: extracted catalog
        adjacency: constraint sets built from the same catalog
        output_width / output_height: output raster size (pixels)
        periodic: wrap neighbours on both axes
        contains_ground: partition candidates into ground (last row) / rest

    Returns:
        ConstraintGraph with TopologyRc receipt
    """
    gw, gh = grid_shape(output_width, output_height, catalog.fragment_width, catalog.fragment_height)

    ids_per_offset = {offset: adjacency.ids_for(offset) for offset in OFFSETS}

    full = catalog.all_weights()
    if contains_ground:
        ground_map = catalog.ground_weights()
        other_map = catalog.non_ground_weights()
    else:
        ground_map = full
        other_map = full

    nodes: Dict[Coord, Node] = {}
    links = 0
    lines = []
    for y in range(gh):
        weights = ground_map if y == gh - 1 else other_map
        for x in range(gw):
            neighbors: Dict[Offset, Coord] = {}
            set_ids: Dict[Offset, Tuple[str, ...]] = {}
            for offset in OFFSETS:
                n = neighbor_coord((x, y), offset, gw, gh, periodic)
                if n is None:
                    continue
                neighbors[offset] = n
                set_ids[offset] = ids_per_offset[offset]
                links += 1
                lines.append(f"{x},{y}|{offset[0]},{offset[1]}|{n[0]},{n[1]}")
            nodes[(x, y)] = Node(
                coord=(x, y),
                weights=dict(weights),
                neighbors=neighbors,
                constraint_set_ids=set_ids,
            )

    receipt = TopologyRc(
        grid_shape=(gw, gh),
        node_count=len(nodes),
        periodic=periodic,
        contains_ground=contains_ground,
        neighbor_links=links,
        ground_row_candidates=len(ground_map),
        other_row_candidates=len(other_map),
        topology_hash=hash_lines(lines + [f"ground:{len(ground_map)}", f"other:{len(other_map)}"]),
    )

    return ConstraintGraph(
        grid_width=gw,
        grid_height=gh,
        nodes=nodes,
        adjacency=adjacency,
        catalog=catalog,
        periodic=periodic,
        contains_ground=contains_ground,
        receipt=receipt,
    )
