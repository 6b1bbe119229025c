# wfcgen/op/adjacency.py
# WO-04: AdjacencyConstraintBuilder → ConstraintSets

"""
Contract (WO-04):
For every catalog fragment (root), every other catalog fragment and every
orthogonal offset, decide whether `other` may sit at `offset` from `root`.

Frozen rules:
- Offsets: OFFSETS only; (0,0) and diagonals never appear
- Overlap mode "pixels": is_overlapping(root, other, dx, dy) (exact equality)
- Overlap mode "observed": used only when the shifted footprints share no
  pixel (fragment dimension 1 along the offset axis); then the pair must have
  been seen side by side in the sample (Catalog.observed)
- Overlap mode "vacuous": no shared pixel and no neighbouring windows along
  that offset in the sample (one window row or column); every fragment is
  permitted
- Permitted lists keep catalog order (digest order)
- Ids are BLAKE3-derived, never random:
    per-root:  H(root digest ‖ offset)
    interned:  H(offset ‖ permitted digests), one object shared by all roots
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np

from .bytes import frame_params
from .extract import Catalog
from .fragment import Fragment, OFFSETS, check_offset, has_overlap, is_overlapping, overlap_region
from .hash import hash_bytes, hash_lines
from .receipts import AdjacencyRc

Offset = Tuple[int, int]


@dataclass(frozen=True, eq=False)
class ConstraintSet:
    """
    Fragments permitted at `offset` from each fragment in `roots`.

    Without interning `roots` holds exactly one fragment.
    """
    id: str
    offset: Offset
    roots: Tuple[Fragment, ...]
    permitted: Tuple[Fragment, ...]

    def __post_init__(self):
        check_offset(*self.offset)

    @property
    def root(self) -> Fragment:
        """The source fragment of a per-root set."""
        if len(self.roots) != 1:
            raise ValueError(f"ConstraintSet {self.id} is shared by {len(self.roots)} roots")
        return self.roots[0]


@dataclass(frozen=True, eq=False)
class Adjacency:
    """All constraint sets plus the (root, offset) → id index."""
    sets: Dict[str, ConstraintSet]
    by_root: Dict[Tuple[Fragment, Offset], str]
    receipt: AdjacencyRc

    def set_for(self, root: Fragment, offset: Offset) -> ConstraintSet:
        """
        Constraint set applying to `root` at `offset`.

        Raises:
            ValueError: invalid offset
            KeyError: root not in the catalog
        """
        check_offset(*offset)
        return self.sets[self.by_root[(root, tuple(offset))]]

    def permitted(self, root: Fragment, offset: Offset) -> Tuple[Fragment, ...]:
        return self.set_for(root, offset).permitted

    def ids_for(self, offset: Offset) -> Tuple[str, ...]:
        """Distinct set ids for one offset, in first-seen catalog order."""
        check_offset(*offset)
        seen: Dict[str, None] = {}
        for (root, o), set_id in self.by_root.items():
            if o == tuple(offset):
                seen.setdefault(set_id, None)
        return tuple(seen)


def _overlap_mode(catalog: Catalog, offset: Offset) -> str:
    """
    'pixels' when fragments share pixels at this offset. Otherwise
    'observed' if the sample has neighbouring windows along this offset,
    else 'vacuous' (every fragment permitted).
    """
    probe = catalog.fragments[0]
    if has_overlap(probe, probe, *offset):
        return "pixels"
    if any(o == offset for _, _, o in catalog.observed):
        return "observed"
    return "vacuous"


def _compatible_pairwise(catalog: Catalog, offset: Offset) -> List[List[int]]:
    """Reference path: one is_overlapping call per ordered pair."""
    dx, dy = offset
    frags = catalog.fragments
    return [
        [j for j, other in enumerate(frags) if is_overlapping(root, other, dx, dy)]
        for root in frags
    ]


def _compatible_keyed(catalog: Catalog, offset: Offset) -> List[List[int]]:
    """
    Grouped path for a uniform-shape catalog.

    Root i and other j are compatible iff root's overlap strip equals other's
    shifted strip byte for byte, so bucket `other` by its strip bytes once and
    look each root's strip up. Same answer as the pairwise path in O(n).
    """
    dx, dy = offset
    frags = catalog.fragments
    x0, x1, y0, y1 = overlap_region(frags[0], frags[0], dx, dy)

    P = np.stack([f.pixels for f in frags])
    root_strips = P[:, y0:y1, x0:x1]
    other_strips = P[:, y0 - dy:y1 - dy, x0 - dx:x1 - dx]

    buckets: Dict[bytes, List[int]] = {}
    for j in range(len(frags)):
        buckets.setdefault(np.ascontiguousarray(other_strips[j]).tobytes(), []).append(j)

    return [
        list(buckets.get(np.ascontiguousarray(root_strips[i]).tobytes(), []))
        for i in range(len(frags))
    ]


def _compatible_observed(catalog: Catalog, offset: Offset) -> List[List[int]]:
    """Pairs seen side by side in the (oriented) sample."""
    frags = catalog.fragments
    index = {f: i for i, f in enumerate(frags)}
    out: List[List[int]] = [[] for _ in frags]
    for a, b, o in catalog.observed:
        if o == offset:
            out[index[a]].append(index[b])
    return [sorted(set(js)) for js in out]


def compatible_indices(catalog: Catalog, offset: Offset, method: str = "keyed") -> List[List[int]]:
    """
    Per root (catalog index), the sorted indices of permitted fragments.

    Args:
        catalog: extracted catalog
        offset: orthogonal offset
        method: "keyed" (grouped strips) or "pairwise" (is_overlapping per pair)

    Raises:
        ValueError: invalid offset or method
    """
    check_offset(*offset)
    if method not in ("keyed", "pairwise"):
        raise ValueError(f"Unknown method {method!r}")
    mode = _overlap_mode(catalog, offset)
    if mode == "observed":
        return _compatible_observed(catalog, offset)
    if mode == "vacuous":
        return [list(range(len(catalog))) for _ in catalog.fragments]

    shapes = {f.pixels.shape for f in catalog.fragments}
    if method == "pairwise" or len(shapes) != 1:
        return _compatible_pairwise(catalog, offset)
    return _compatible_keyed(catalog, offset)


def _set_id(parts: bytes) -> str:
    return "cs_" + hash_bytes(parts)[:32]


def build_constraints(catalog: Catalog, intern: bool = False, method: str = "keyed") -> Adjacency:
    """
    Compute every ConstraintSet of a catalog.

    Args:
        catalog: extracted catalog (non-empty)
        intern: share one ConstraintSet among roots with identical permitted
            lists at the same offset (memory O(distinct patterns))
        method: compatibility path, see compatible_indices

    Returns:
        Adjacency with sets, (root, offset) index and AdjacencyRc
    """
    if len(catalog) == 0:
        raise ValueError("Cannot build constraints for an empty catalog")

    frags = catalog.fragments
    sets: Dict[str, ConstraintSet] = {}
    by_root: Dict[Tuple[Fragment, Offset], str] = {}
    modes: Dict[str, str] = {}
    distinct: set = set()
    table_lines: List[str] = []

    for offset in OFFSETS:
        dx, dy = offset
        modes[f"{dx},{dy}"] = _overlap_mode(catalog, offset)
        compat = compatible_indices(catalog, offset, method=method)
        offset_bytes = frame_params(dx, dy, signed=True)

        shared_roots: Dict[Tuple[int, ...], List[Fragment]] = {}
        for i, root in enumerate(frags):
            key = tuple(compat[i])
            distinct.add((offset, key))
            table_lines.append(
                f"{root.digest}|{dx},{dy}|" + ",".join(frags[j].digest for j in key)
            )
            if intern:
                shared_roots.setdefault(key, []).append(root)
            else:
                set_id = _set_id(root.digest.encode() + offset_bytes)
                sets[set_id] = ConstraintSet(
                    id=set_id,
                    offset=offset,
                    roots=(root,),
                    permitted=tuple(frags[j] for j in key),
                )
                by_root[(root, offset)] = set_id

        for key, roots in shared_roots.items():
            permitted = tuple(frags[j] for j in key)
            set_id = _set_id(offset_bytes + b"".join(f.digest.encode() for f in permitted))
            sets[set_id] = ConstraintSet(id=set_id, offset=offset, roots=tuple(roots), permitted=permitted)
            for root in roots:
                by_root[(root, offset)] = set_id

    receipt = AdjacencyRc(
        fragment_count=len(frags),
        pairs_tested=len(frags) * len(frags) * len(OFFSETS),
        constraint_set_count=len(sets),
        distinct_lists=len(distinct),
        interned=intern,
        overlap_mode=modes,
        adjacency_hash=hash_lines(table_lines),
    )
    return Adjacency(sets=sets, by_root=by_root, receipt=receipt)
