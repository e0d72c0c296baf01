"""
Network canonicalization.

Turns a raw, possibly redundant collection of strut curves into a list of
unique nodes and a list of struts expressed as node-index pairs. Nothing in
here raises for bad geometry: invalid, tiny, closed and duplicate curves are
dropped and counted.
"""
from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from strutmesh.contracts import CanonicalNetwork, IndexPair
from strutmesh.curves import Curve, as_curve

logger = logging.getLogger(__name__)

DROP_INVALID = "invalid"
DROP_SHORT = "short"
DROP_CLOSED = "closed"
DROP_DUPLICATE = "duplicate"


class _NodeRegistry:
    """Nodes registered in order of first appearance, hashed on a voxel grid."""

    def __init__(self, tolerance: float):
        self.tolerance = tolerance
        self.points: List[np.ndarray] = []
        self._cells: Dict[Tuple[int, int, int], List[int]] = defaultdict(list)

    def _cell(self, point: np.ndarray) -> Tuple[int, int, int]:
        q = np.floor(point / self.tolerance).astype(np.int64)
        return int(q[0]), int(q[1]), int(q[2])

    def closest(self, point: np.ndarray) -> Optional[int]:
        """Index of the nearest registered node within tolerance, if any."""
        cx, cy, cz = self._cell(point)
        best = None
        best_dist = self.tolerance
        for dx, dy, dz in itertools.product((-1, 0, 1), repeat=3):
            for idx in self._cells.get((cx + dx, cy + dy, cz + dz), ()):
                dist = float(np.linalg.norm(self.points[idx] - point))
                if dist <= best_dist:
                    best, best_dist = idx, dist
        return best

    def register(self, point: np.ndarray) -> int:
        idx = self.closest(point)
        if idx is not None:
            return idx
        self.points.append(np.array(point, dtype=float))
        new_idx = len(self.points) - 1
        self._cells[self._cell(point)].append(new_idx)
        return new_idx


def canonicalize_network(
    curves: Iterable,
    tolerance: float,
    min_length: Optional[float] = None,
) -> CanonicalNetwork:
    """Deduplicate nodes and struts of a raw curve network.

    Args:
        curves: Curves, or point sequences accepted by ``as_curve``.
        tolerance: Distance under which two points are the same node.
        min_length: Curves shorter than this are dropped. Defaults to
            *tolerance*.

    Returns:
        CanonicalNetwork with nodes in order of first appearance and the
        surviving curves parallel to their node pairs.
    """
    if min_length is None:
        min_length = tolerance
    min_length = max(min_length, tolerance)

    registry = _NodeRegistry(tolerance)
    kept_curves: List[Curve] = []
    node_pairs: List[IndexPair] = []
    source_indices: List[int] = []
    pair_lookup: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    dropped = {DROP_INVALID: 0, DROP_SHORT: 0, DROP_CLOSED: 0, DROP_DUPLICATE: 0}

    for source_index, raw in enumerate(curves):
        curve = as_curve(raw)
        if curve is None or not curve.is_valid:
            dropped[DROP_INVALID] += 1
            continue
        if curve.length < min_length:
            dropped[DROP_SHORT] += 1
            continue
        start, end = curve.start, curve.end
        if np.linalg.norm(end - start) <= tolerance:
            dropped[DROP_CLOSED] += 1
            continue

        i = registry.register(start)
        j = registry.register(end)
        if i == j:
            dropped[DROP_CLOSED] += 1
            continue

        key = (min(i, j), max(i, j))
        midpoint = curve.midpoint
        if any(
            np.linalg.norm(kept_curves[k].midpoint - midpoint) <= tolerance
            for k in pair_lookup.get(key, ())
        ):
            dropped[DROP_DUPLICATE] += 1
            continue

        pair_lookup[key].append(len(kept_curves))
        kept_curves.append(curve)
        node_pairs.append((i, j))
        source_indices.append(source_index)

    network = CanonicalNetwork(
        nodes=registry.points,
        curves=kept_curves,
        node_pairs=node_pairs,
        source_indices=source_indices,
        dropped={k: v for k, v in dropped.items() if v},
    )
    logger.info(
        "Canonical network: %d nodes, %d struts (%d curves dropped)",
        len(network.nodes), len(network.curves), network.dropped_count,
    )
    if network.dropped:
        logger.debug("Dropped curves by reason: %s", network.dropped)
    return network
