"""
Lattice graph assembly and nodal radius assignment.

The graph is a set of flat arenas (nodes, struts, plates) that refer to
each other by integer index only.
"""
from __future__ import annotations

import logging
from typing import Callable, Sequence, Union

import numpy as np

from strutmesh.contracts import CanonicalNetwork, LatticeGraph, Node, Plate, Strut

logger = logging.getLogger(__name__)

RadiusField = Callable[[np.ndarray], float]


def build_lattice_graph(network: CanonicalNetwork) -> LatticeGraph:
    """Create nodes, struts and their two end plates from a canonical network.

    The start plate normal is the curve tangent at the start; the end plate
    normal is the negated tangent at the end, so both point away from their
    node into the strut.
    """
    graph = LatticeGraph()
    for position in network.nodes:
        graph.nodes.append(Node(position=np.asarray(position, dtype=float)))

    for strut_index, (curve, (i, j)) in enumerate(zip(network.curves, network.node_pairs)):
        graph.plates.append(Plate(node_index=i, normal=curve.tangent_at(0.0), strut_index=strut_index))
        graph.plates.append(Plate(node_index=j, normal=-curve.tangent_at(curve.length), strut_index=strut_index))
        plate_pair = (len(graph.plates) - 2, len(graph.plates) - 1)
        graph.struts.append(Strut(curve=curve, node_pair=(i, j), plate_pair=plate_pair))

        graph.nodes[i].strut_indices.append(strut_index)
        graph.nodes[j].strut_indices.append(strut_index)
        graph.nodes[i].plate_indices.append(plate_pair[0])
        graph.nodes[j].plate_indices.append(plate_pair[1])

    logger.debug(
        "Lattice graph: %d nodes, %d struts, %d plates",
        len(graph.nodes), len(graph.struts), len(graph.plates),
    )
    return graph


def assign_radii(graph: LatticeGraph, radius: Union[float, Sequence[float]]) -> None:
    """Set nodal radii from a scalar or one value per node.

    Strut end radii are copied from their nodes.
    """
    if np.isscalar(radius):
        values = np.full(len(graph.nodes), float(radius))
    else:
        values = np.asarray(radius, dtype=float).reshape(-1)
        if len(values) != len(graph.nodes):
            raise ValueError(
                f"Expected {len(graph.nodes)} radii (one per node), got {len(values)}"
            )
    if len(values) and (not np.all(np.isfinite(values)) or np.any(values <= 0.0)):
        raise ValueError("Radii must be finite and strictly positive")

    for node, value in zip(graph.nodes, values):
        node.radius = float(value)
    _copy_strut_radii(graph)


def assign_gradient_radii(
    graph: LatticeGraph,
    field: RadiusField,
    min_radius: float,
    max_radius: float,
) -> None:
    """Set nodal radii from a field over the unitized lattice bounding box.

    *field* receives the node position normalized so the lattice bounding
    box maps to ``[0, 1]^3`` and returns a value in ``[0, 1]`` (clipped),
    which is mapped linearly onto ``[min_radius, max_radius]``.
    """
    if min_radius <= 0.0 or max_radius <= 0.0:
        raise ValueError("min_radius and max_radius must be positive")

    lo, hi = lattice_bounds(graph)
    extent = hi - lo
    safe_extent = np.where(extent > 0.0, extent, 1.0)

    radii = []
    for node in graph.nodes:
        unit = np.where(extent > 0.0, (node.position - lo) / safe_extent, 0.0)
        value = float(np.clip(field(unit), 0.0, 1.0))
        radii.append(min_radius + value * (max_radius - min_radius))
    assign_radii(graph, radii)


def assign_strut_radii(
    graph: LatticeGraph,
    start_radii: Sequence[float],
    end_radii: Sequence[float],
) -> None:
    """Set per-plate radii, one start and one end value per strut.

    Overrides radii copied from nodes. Each node radius becomes the mean of
    its incident strut-end radii.
    """
    starts = np.asarray(start_radii, dtype=float).reshape(-1)
    ends = np.asarray(end_radii, dtype=float).reshape(-1)
    if len(starts) != len(graph.struts) or len(ends) != len(graph.struts):
        raise ValueError(
            f"Expected {len(graph.struts)} start and end radii (one per strut), "
            f"got {len(starts)} and {len(ends)}"
        )
    both = np.concatenate([starts, ends])
    if len(both) and (not np.all(np.isfinite(both)) or np.any(both <= 0.0)):
        raise ValueError("Radii must be finite and strictly positive")

    for strut, start, end in zip(graph.struts, starts, ends):
        strut.start_radius = float(start)
        strut.end_radius = float(end)
    for node_index, node in enumerate(graph.nodes):
        if node.strut_indices:
            node.radius = float(np.mean(
                [graph.struts[s].radius_at(node_index) for s in node.strut_indices]
            ))


def lattice_bounds(graph: LatticeGraph, samples: int = 16):
    """Axis-aligned bounds of all strut curves, sampled along their length."""
    points = [node.position for node in graph.nodes]
    for strut in graph.struts:
        if strut.curve.is_linear:
            continue
        for s in np.linspace(0.0, strut.curve.length, samples):
            points.append(strut.curve.point_at(float(s)))
    if not points:
        return np.zeros(3), np.zeros(3)
    stacked = np.vstack(points)
    return stacked.min(axis=0), stacked.max(axis=0)


def _copy_strut_radii(graph: LatticeGraph) -> None:
    for strut in graph.struts:
        i, j = strut.node_pair
        strut.start_radius = graph.nodes[i].radius
        strut.end_radius = graph.nodes[j].radius
