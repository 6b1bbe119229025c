#!/usr/bin/env python3
# wfcgen/runner.py
# WO-10: Generation runner + determinism receipts

"""
Contract (WO-10):
One generation run walks a fixed, one-way state machine:

  EMPTY → CONSTRAINTS_BUILT → COLLAPSED → RECONSTRUCTED

Frozen order (no reordering):
load image → extract(03) → adjacency(04) → topology(05) → validate →
solve(06, bounded retries) → reconstruct(07)

Catalog and graph are built once and reused by every solve attempt.
Attempt 0 uses the run's base seed; attempt k > 0 uses a seed derived from
(base, k) through numpy SeedSequence, so a retried run replays exactly.

J1 Determinism: same config + same seed ⇒ same section hashes, table_hash
and output hash.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from wfcgen.config import GenerationConfig
from wfcgen.errors import ContradictionError
from wfcgen.io.load_data import load_image
from wfcgen.op.adjacency import Adjacency, build_constraints
from wfcgen.op.extract import Catalog, extract_fragments
from wfcgen.op.hash import hash_lines
from wfcgen.op.receipts import RunRc, SolveRc, env_fingerprint, section_hash
from wfcgen.op.reconstruct import reconstruct
from wfcgen.op.solver import CollapseResult, EntropicSolver, Solver, check_assignment, fresh_seed
from wfcgen.op.topology import ConstraintGraph, build_topology

EMPTY = "empty"
CONSTRAINTS_BUILT = "constraints_built"
COLLAPSED = "collapsed"
RECONSTRUCTED = "reconstructed"

_SEED_MASK = (1 << 63) - 1


def attempt_seed(base_seed: int, attempt: int) -> int:
    """Seed for a given attempt; attempt 0 is the base seed itself."""
    if attempt == 0:
        return base_seed
    state = np.random.SeedSequence([base_seed, attempt]).generate_state(1, dtype=np.uint64)
    return int(state[0]) & _SEED_MASK


@dataclass
class GenerationRun:
    """
    A single one-shot run. Each stage method may be called once, in order.
    """
    config: GenerationConfig
    solver: Solver = field(default_factory=EntropicSolver)
    image: Optional[np.ndarray] = None
    state: str = EMPTY
    catalog: Optional[Catalog] = None
    adjacency: Optional[Adjacency] = None
    graph: Optional[ConstraintGraph] = None
    result: Optional[CollapseResult] = None
    grid: Optional[np.ndarray] = None
    rc: Optional[RunRc] = None

    def _expect(self, state: str) -> None:
        if self.state != state:
            raise RuntimeError(f"Run is in state {self.state!r}, expected {state!r}")

    def build_constraints(self) -> ConstraintGraph:
        """EMPTY → CONSTRAINTS_BUILT."""
        self._expect(EMPTY)
        cfg = self.config
        cfg.validate()

        self.rc = RunRc(env=env_fingerprint(), config=cfg.to_dict())

        if self.image is None:
            self.image = load_image(cfg.source_image)

        self.catalog = extract_fragments(
            self.image,
            cfg.fragment_width,
            cfg.fragment_height,
            allow_reflection=cfg.allow_reflection,
            allow_rotation=cfg.allow_rotation,
            ground_policy=cfg.ground_policy,
        )
        self.adjacency = build_constraints(self.catalog, intern=cfg.intern_constraints)
        self.graph = build_topology(
            self.catalog,
            self.adjacency,
            cfg.output_width,
            cfg.output_height,
            periodic=cfg.periodic,
            contains_ground=cfg.contains_ground,
        )
        self.graph.validate()

        self.rc.sections["catalog"] = self.catalog.receipt
        self.rc.sections["adjacency"] = self.adjacency.receipt
        self.rc.sections["topology"] = self.graph.receipt
        self.state = CONSTRAINTS_BUILT
        return self.graph

    def collapse(self) -> CollapseResult:
        """
        CONSTRAINTS_BUILT → COLLAPSED.

        Raises:
            ContradictionError: every attempt contradicted (the run is abandoned)
        """
        self._expect(CONSTRAINTS_BUILT)
        cfg = self.config
        base = cfg.random_seed if cfg.random_seed is not None else fresh_seed()

        seeds: List[int] = []
        contradictions = []
        last_error: Optional[ContradictionError] = None
        for attempt in range(cfg.max_attempts):
            seed = attempt_seed(base, attempt)
            seeds.append(seed)
            try:
                result = self.solver.solve(self.graph, seed)
            except ContradictionError as e:
                contradictions.append({"seed": seed, "coord": list(e.coord) if e.coord else None})
                last_error = e
                continue

            if cfg.verify_assignment:
                check_assignment(self.graph, result)
            self.result = result
            self.rc.sections["solve"] = SolveRc(
                ok=True,
                attempts=len(seeds),
                seeds=seeds,
                contradictions=contradictions,
                assignment_hash=result.assignment_hash(),
            )
            self.state = COLLAPSED
            return result

        self.rc.sections["solve"] = SolveRc(
            ok=False,
            attempts=len(seeds),
            seeds=seeds,
            contradictions=contradictions,
            assignment_hash=None,
        )
        self._seal()
        raise ContradictionError(last_error.seed, last_error.coord, attempts=len(seeds))

    def reconstruct(self) -> np.ndarray:
        """COLLAPSED → RECONSTRUCTED."""
        self._expect(COLLAPSED)
        cfg = self.config
        self.grid, rec_rc = reconstruct(
            self.graph,
            self.result,
            cfg.output_width,
            cfg.output_height,
            background=cfg.background_color,
            verify=cfg.verify_assignment,
        )
        self.rc.sections["reconstruct"] = rec_rc
        self.rc.final = {
            "shape": [cfg.output_height, cfg.output_width],
            "seed": self.result.seed,
            "output_hash": rec_rc.output_hash,
        }
        self._seal()
        self.state = RECONSTRUCTED
        return self.grid

    def _seal(self) -> None:
        """Recompute per-section hashes and the table hash."""
        self.rc.hashes = {name: section_hash(rc) for name, rc in self.rc.sections.items()}
        self.rc.table_hash = hash_lines([f"{k}:{v}" for k, v in self.rc.hashes.items()])


def generate(
    config: GenerationConfig,
    solver: Optional[Solver] = None,
    image: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, RunRc]:
    """
    Run one full generation.

    Args:
        config: run parameters
        solver: constraint solver (defaults to EntropicSolver)
        image: pre-decoded RGBA sample; when None, config.source_image is loaded

    Returns:
        (grid, run_rc): output raster (H, W, 4) and the full receipt

    Raises:
        ValueError: invalid config or sample
        ImageDecodeError: sample missing/corrupt
        ContradictionError: no consistent assignment within max_attempts
    """
    run = GenerationRun(config=config, solver=solver or EntropicSolver(), image=image)
    run.build_constraints()
    run.collapse()
    grid = run.reconstruct()
    return grid, run.rc
