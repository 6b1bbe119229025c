# wfcgen/op/solver.py
# WO-06: Constraint solver contract + reference entropic solver

"""
Contract (WO-06):
A solver accepts (graph, optional seed) and returns a CollapseResult holding
exactly one fragment per node such that, for every node and every live
neighbour offset, the neighbour's fragment is in the permitted list of the
node's fragment at that offset. Otherwise it raises ContradictionError.

The search strategy is the solver's own business. EntropicSolver is the
package's reference implementation:
1. Domains start as each node's candidate map
2. Arc-consistency propagation over boolean compatibility matrices
3. Repeatedly collapse the lowest-entropy undecided node (weighted draw,
   seeded numpy Generator), then propagate
4. An emptied domain → ContradictionError (no backtracking; retries belong
   to the caller)
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

from wfcgen.errors import ContradictionError, GraphInvariantError
from .fragment import Fragment, OFFSETS
from .hash import hash_lines
from .topology import ConstraintGraph, Coord

DEBUG = False

_SEED_MASK = (1 << 63) - 1


def fresh_seed() -> int:
    """Draw a seed from OS entropy (recorded in receipts so runs can be replayed)."""
    return int(np.random.SeedSequence().entropy) & _SEED_MASK


@dataclass(frozen=True, eq=False)
class CollapseResult:
    """One chosen fragment per node coordinate."""
    assignment: Dict[Coord, Fragment]
    seed: int

    def __getitem__(self, coord: Coord) -> Fragment:
        return self.assignment[coord]

    def __len__(self) -> int:
        return len(self.assignment)

    def assignment_hash(self) -> str:
        """BLAKE3 over sorted "x,y:digest" lines."""
        return hash_lines([f"{x},{y}:{f.digest}" for (x, y), f in self.assignment.items()])


class Solver(Protocol):
    def solve(self, graph: ConstraintGraph, seed: Optional[int] = None) -> CollapseResult:
        ...


def compatibility_matrices(graph: ConstraintGraph) -> Dict[Tuple[int, int], np.ndarray]:
    """
    Per offset, an n×n boolean matrix M with M[i, j] = fragment j permitted at
    offset from fragment i (indices in catalog order).
    """
    frags = graph.catalog.fragments
    index = {f: i for i, f in enumerate(frags)}
    n = len(frags)
    matrices = {offset: np.zeros((n, n), dtype=bool) for offset in OFFSETS}

    referenced = set()
    for node in graph:
        for ids in node.constraint_set_ids.values():
            referenced.update(ids)

    for set_id in referenced:
        cs = graph.constraint_sets[set_id]
        cols = [index[f] for f in cs.permitted]
        for root in cs.roots:
            matrices[cs.offset][index[root], cols] = True
    return matrices


class EntropicSolver:
    """
    Minimum-entropy collapse with arc-consistency propagation.

    Deterministic for a given (graph, seed).
    """

    def solve(self, graph: ConstraintGraph, seed: Optional[int] = None) -> CollapseResult:
        if seed is None:
            seed = fresh_seed()
        rng = np.random.default_rng(seed)

        frags = graph.catalog.fragments
        index = {f: i for i, f in enumerate(frags)}
        coords: List[Coord] = [node.coord for node in graph]
        pos = {c: k for k, c in enumerate(coords)}
        N, n = len(coords), len(frags)

        domain = np.zeros((N, n), dtype=bool)
        weight = np.zeros((N, n), dtype=np.float64)
        for k, node in enumerate(graph):
            for fragment, w in node.weights.items():
                if fragment not in index:
                    raise GraphInvariantError(f"candidate_not_in_catalog: {node.coord} {fragment!r}")
                domain[k, index[fragment]] = True
                weight[k, index[fragment]] = w

        matrices = compatibility_matrices(graph)
        links = [
            [(offset, pos[nb]) for offset, nb in graph.nodes[c].neighbors.items()]
            for c in coords
        ]

        def propagate(stack: List[int]) -> None:
            while stack:
                k = stack.pop()
                for offset, m in links[k]:
                    support = matrices[offset][domain[k]].any(axis=0)
                    narrowed = domain[m] & support
                    if not np.array_equal(narrowed, domain[m]):
                        if not narrowed.any():
                            raise ContradictionError(seed, coords[m])
                        domain[m] = narrowed
                        stack.append(m)

        for k in range(N):
            if not domain[k].any():
                raise ContradictionError(seed, coords[k])
        propagate(list(range(N)))

        steps = 0
        while True:
            counts = domain.sum(axis=1)
            undecided = np.flatnonzero(counts > 1)
            if undecided.size == 0:
                break

            w = np.where(domain[undecided], weight[undecided], 0.0)
            totals = w.sum(axis=1)
            with np.errstate(divide="ignore", invalid="ignore"):
                logs = np.where(w > 0, np.log(np.where(w > 0, w, 1.0)), 0.0)
            entropy = np.log(totals) - (w * logs).sum(axis=1) / totals
            entropy = entropy + rng.random(undecided.size) * 1e-6
            k = int(undecided[int(np.argmin(entropy))])

            p = np.where(domain[k], weight[k], 0.0)
            choice = int(rng.choice(n, p=p / p.sum()))
            domain[k] = False
            domain[k, choice] = True
            steps += 1
            if DEBUG:
                print(f"  [solve] step {steps}: collapse {coords[k]} -> {frags[choice]!r}")
            propagate([k])

        assignment = {c: frags[int(np.flatnonzero(domain[k])[0])] for k, c in enumerate(coords)}
        return CollapseResult(assignment=assignment, seed=seed)


def check_assignment(graph: ConstraintGraph, result: CollapseResult) -> None:
    """
    Verify a CollapseResult against the solver contract.

    Raises:
        GraphInvariantError: missing/extra coordinates, non-candidate choice,
            or a neighbour outside the permitted list
    """
    expected = set(graph.nodes)
    got = set(result.assignment)
    if got != expected:
        missing = sorted(expected - got)[:5]
        extra = sorted(got - expected)[:5]
        raise GraphInvariantError(f"assignment_coords: missing={missing} extra={extra}")

    for node in graph:
        chosen = result[node.coord]
        if chosen not in node.weights:
            raise GraphInvariantError(f"not_a_candidate: {node.coord} {chosen!r}")
        for offset, nb in node.neighbors.items():
            if result[nb] not in graph.permitted(chosen, offset):
                raise GraphInvariantError(f"constraint_violated: {node.coord} {offset} -> {nb}")
