# wfcgen/op/receipts.py
# WO-00: Receipts kernel and environment fingerprinting

from __future__ import annotations
import platform
import sys
import json
from dataclasses import dataclass, asdict, field
from importlib.metadata import version, PackageNotFoundError
from typing import Any
from .hash import hash_bytes


@dataclass
class EnvRc:
    """
    Environment fingerprint.

    All fields take part in the determinism harness: two runs are only
    comparable when their fingerprints match.
    """
    platform: str
    endian: str
    py_version: str
    numpy_version: str
    blake3_version: str
    build_flags_hash: str


def _dist_version(name: str) -> str:
    try:
        return version(name)
    except PackageNotFoundError:
        return "unknown"


def env_fingerprint() -> EnvRc:
    """
    Capture environment fingerprint for determinism checking.

    Returns:
        EnvRc: environment receipt
    """
    build_info = {
        "py_version": sys.version,
        "implementation": platform.python_implementation(),
        "version_info": list(sys.version_info),
    }
    flags = hash_bytes(json.dumps(build_info, sort_keys=True).encode())

    return EnvRc(
        platform=platform.platform(),
        endian=sys.byteorder,
        py_version=platform.python_version(),
        numpy_version=_dist_version("numpy"),
        blake3_version=_dist_version("blake3"),
        build_flags_hash=flags,
    )


@dataclass
class CatalogRc:
    """
    Fragment extraction receipt.

    Records window count, orientation multiplier, distinct fragments, total
    weight (= windows × orientations), ground set size and the catalog hash
    (BLAKE3 over sorted "digest:weight" lines).
    """
    sample_shape: tuple[int, int]          # (W, H) of the sample image
    fragment_shape: tuple[int, int]        # (fw, fh)
    windows: int                           # valid top-left positions
    orientations_per_window: int           # 1, 2, 4 or 8
    fragment_count: int                    # distinct fragments
    total_weight: int                      # sum of weights
    ground_count: int                      # |ground set|
    ground_policy: str                     # "base" | "orbit"
    observed_pairs: int                    # sample adjacency pairs (degenerate axes only)
    catalog_hash: str


@dataclass
class AdjacencyRc:
    """
    Adjacency constraint receipt.

    pairs_tested counts (root, other, offset) triples; distinct_lists counts
    unique (offset, permitted list) contents regardless of interning.
    """
    fragment_count: int
    pairs_tested: int
    constraint_set_count: int
    distinct_lists: int
    interned: bool
    overlap_mode: dict[str, str]           # "dx,dy" -> "pixels" | "observed" | "vacuous"
    adjacency_hash: str


@dataclass
class TopologyRc:
    """Grid topology receipt."""
    grid_shape: tuple[int, int]            # (gridWidth, gridHeight)
    node_count: int
    periodic: bool
    contains_ground: bool
    neighbor_links: int                    # total live (node, offset) links
    ground_row_candidates: int             # candidates per last-row node
    other_row_candidates: int              # candidates per other node
    topology_hash: str


@dataclass
class SolveRc:
    """
    Solve receipt.

    seeds lists every seed tried in order; the last one produced the
    assignment when ok is True.
    """
    ok: bool
    attempts: int
    seeds: list[int]
    contradictions: list[dict[str, Any]]   # [{seed, coord}, ...]
    assignment_hash: str | None


@dataclass
class ReconstructRc:
    """Reconstruction receipt."""
    output_shape: tuple[int, int]          # (outputWidth, outputHeight)
    margin_writes: int                     # nodes written as full fragment blocks
    interior_writes: int                   # nodes written as single pixels
    background_pixels: int                 # pixels left at the sentinel background
    verified: bool                         # post-hoc overlap check ran
    output_hash: str


@dataclass
class RunRc:
    """
    Root receipt container for a single generation run.

    sections: stage name → receipt; hashes: stage name → BLAKE3 of the
    receipt's canonical JSON; table_hash: BLAKE3 over sorted "stage:hash".
    """
    env: EnvRc
    config: dict[str, Any]
    sections: dict[str, Any] = field(default_factory=dict)
    hashes: dict[str, str] = field(default_factory=dict)
    table_hash: str = ""
    final: dict[str, Any] = field(default_factory=dict)


def to_plain(x: Any) -> Any:
    """Recursively convert dataclasses/tuples to JSON-serializable values."""
    if hasattr(x, "__dataclass_fields__"):
        return {k: to_plain(v) for k, v in asdict(x).items()}
    if isinstance(x, dict):
        return {str(k): to_plain(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [to_plain(v) for v in x]
    return x


def section_hash(rc: Any) -> str:
    """BLAKE3 of a receipt's canonical JSON (sorted keys, compact)."""
    payload = json.dumps(to_plain(rc), sort_keys=True, separators=(",", ":"))
    return hash_bytes(payload.encode())


def aggregate(run: dict | RunRc) -> dict:
    """
    Convert nested receipts (dataclasses or dicts) to JSON-serializable dict.

    Args:
        run: RunRc or dict containing receipts

    Returns:
        dict: plain representation suitable for write_json/write_jsonl
    """
    return to_plain(run)
