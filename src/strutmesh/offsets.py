"""
Plate offset solving and sharp-node repair.

Each plate is pushed back from its node along the strut until the circles
of all plates at that node are pairwise clear of each other's planes. That
guarantees every plate ring ends up on the node's convex hull instead of
being engulfed by a neighbouring plate.
"""
from __future__ import annotations

import logging
import math
from typing import List, Optional, Tuple

import numpy as np

from strutmesh.contracts import LatticeGraph, OffsetResult, Plate, SolidifyConfig
from strutmesh.curves import Curve, perpendicular_frame, ring_points

logger = logging.getLogger(__name__)

PARALLEL_EPS = 1e-9

CIRCLE_PLANE_NONE = "none"
CIRCLE_PLANE_TANGENT = "tangent"
CIRCLE_PLANE_SECANT = "secant"
CIRCLE_PLANE_COINCIDENT = "coincident"


def classify_circle_plane(
    center: np.ndarray,
    normal: np.ndarray,
    radius: float,
    plane_origin: np.ndarray,
    plane_normal: np.ndarray,
    tol: float,
) -> str:
    """Classify how a circle meets a plane.

    The circle lies in the plane through *center* with normal *normal*.
    A circle parallel to the plane is either ``"coincident"`` (within
    *tol*) or ``"none"``; it is never counted as intersecting.
    """
    n_plane = plane_normal / (np.linalg.norm(plane_normal) + 1e-300)
    n_circle = normal / (np.linalg.norm(normal) + 1e-300)
    distance = abs(float(np.dot(center - plane_origin, n_plane)))
    sin_angle = float(np.linalg.norm(np.cross(n_plane, n_circle)))

    if sin_angle < PARALLEL_EPS:
        return CIRCLE_PLANE_COINCIDENT if distance <= tol else CIRCLE_PLANE_NONE

    reach = radius * sin_angle
    if distance < reach - tol:
        return CIRCLE_PLANE_SECANT
    if distance <= reach + tol:
        return CIRCLE_PLANE_TANGENT
    return CIRCLE_PLANE_NONE


def circles_conflict(
    circle_a: Tuple[np.ndarray, np.ndarray, float],
    circle_b: Tuple[np.ndarray, np.ndarray, float],
    tol: float,
) -> bool:
    """True if either circle cuts or touches the other circle's plane."""
    center_a, normal_a, radius_a = circle_a
    center_b, normal_b, radius_b = circle_b
    hits = (CIRCLE_PLANE_SECANT, CIRCLE_PLANE_TANGENT)
    b_on_a = classify_circle_plane(center_b, normal_b, radius_b, center_a, normal_a, tol)
    a_on_b = classify_circle_plane(center_a, normal_a, radius_a, center_b, normal_b, tol)
    return b_on_a in hits or a_on_b in hits


def node_paths(graph: LatticeGraph, node_index: int) -> List[Tuple[Curve, float, Plate]]:
    """Incident struts oriented to start at the node, with radius and plate."""
    paths = []
    for strut_index in graph.nodes[node_index].strut_indices:
        strut = graph.struts[strut_index]
        if strut.node_pair[0] == node_index:
            curve = strut.curve
            plate = graph.plates[strut.plate_pair[0]]
            radius = strut.start_radius
        else:
            curve = strut.curve.reversed()
            plate = graph.plates[strut.plate_pair[1]]
            radius = strut.end_radius
        paths.append((curve, radius, plate))
    return paths


def compute_node_offsets(
    graph: LatticeGraph,
    node_index: int,
    config: SolidifyConfig,
) -> OffsetResult:
    """Iteratively retreat the plates at one node until no circles conflict.

    Writes ``offset_safety_margin * offset`` to every plate at the node,
    converged or not. Non-convergence within ``offset_max_iterations``
    is reported through ``OffsetResult.converged``.
    """
    paths = node_paths(graph, node_index)
    offsets = [float(radius) for _, radius, _ in paths]
    increments = [o / config.offset_increment_divisor for o in offsets]

    converged = False
    iterations = 0
    while True:
        circles = [
            (curve.point_at(o), curve.tangent_at(o), radius)
            for (curve, radius, _), o in zip(paths, offsets)
        ]
        travel = [False] * len(paths)
        for a in range(len(paths)):
            for b in range(a + 1, len(paths)):
                if circles_conflict(circles[a], circles[b], config.tolerance):
                    travel[a] = True
                    travel[b] = True

        if not any(travel):
            converged = True
            break
        if iterations >= config.offset_max_iterations:
            break
        for k, needs_travel in enumerate(travel):
            if needs_travel:
                offsets[k] += increments[k]
        iterations += 1

    for (_, _, plate), o in zip(paths, offsets):
        plate.offset = config.offset_safety_margin * o

    if converged:
        logger.debug("Node %d offsets converged after %d steps", node_index, iterations)
    else:
        logger.warning(
            "Node %d offsets did not converge within %d iterations; "
            "plates may overlap at this node",
            node_index, config.offset_max_iterations,
        )
    return OffsetResult(
        node_index=node_index,
        converged=converged,
        iterations=iterations,
        offsets=offsets,
    )


def compute_all_offsets(graph: LatticeGraph, config: SolidifyConfig) -> List[OffsetResult]:
    """Run the offset solver at every node joining two or more struts."""
    results = []
    for node_index, node in enumerate(graph.nodes):
        if node.degree < 2:
            continue
        results.append(compute_node_offsets(graph, node_index, config))
    failed = sum(1 for r in results if not r.converged)
    logger.info("Solved plate offsets at %d nodes (%d unconverged)", len(results), failed)
    return results


def is_sharp_node(normals: List[np.ndarray], threshold_rad: float) -> bool:
    """True if every normal is at least *threshold_rad* from the negated sum.

    That happens when all struts lie within one half-space. A vanishing sum
    (balanced struts) is never sharp.
    """
    if not normals:
        return False
    total = np.sum(normals, axis=0)
    total_norm = float(np.linalg.norm(total))
    if total_norm < PARALLEL_EPS:
        return False
    for n in normals:
        cos_angle = float(np.dot(-total, n)) / (total_norm * (float(np.linalg.norm(n)) + 1e-300))
        if math.acos(float(np.clip(cos_angle, -1.0, 1.0))) < threshold_rad:
            return False
    return True


def add_sharp_node_plate(
    graph: LatticeGraph,
    node_index: int,
    config: SolidifyConfig,
) -> Optional[int]:
    """Append a synthetic plate opposite the struts of a sharp node.

    Returns the new plate index, or None if the node is not sharp.
    """
    node = graph.nodes[node_index]
    plates = [graph.plates[i] for i in node.plate_indices if not graph.plates[i].is_synthetic]
    normals = [p.normal for p in plates]
    if not is_sharp_node(normals, config.sharp_angle_threshold_rad):
        return None

    total = np.sum(normals, axis=0)
    radii = [graph.struts[p.strut_index].radius_at(node_index) for p in plates]
    avg_radius = float(np.mean(radii))

    center = node.position - total * avg_radius * config.sharp_plate_offset_factor
    x_axis, y_axis, z_axis = perpendicular_frame(-total)
    ring = ring_points(center, x_axis, y_axis, config.sides, avg_radius)

    graph.plates.append(
        Plate(
            node_index=node_index,
            normal=z_axis,
            strut_index=None,
            vertices=[p for p in ring],
        )
    )
    plate_index = len(graph.plates) - 1
    node.plate_indices.append(plate_index)
    logger.debug("Node %d is sharp; added synthetic plate %d", node_index, plate_index)
    return plate_index


def fix_sharp_nodes(graph: LatticeGraph, config: SolidifyConfig) -> List[int]:
    """Add synthetic plates at every sharp node of degree two or more."""
    sharp = []
    for node_index, node in enumerate(graph.nodes):
        if node.degree < 2:
            continue
        if add_sharp_node_plate(graph, node_index, config) is not None:
            sharp.append(node_index)
    logger.info("Added synthetic plates at %d sharp nodes", len(sharp))
    return sharp
