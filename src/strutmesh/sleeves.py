"""
Sleeve (tube) meshes along struts.

A sleeve runs between the two offset plates of a strut. Consecutive rings
are twisted by half a side so the wall triangulates into near-equilateral
triangles. The first and last rings become the plate rings that the node
hulls are built from, which is what lets sleeves and hulls weld exactly.
"""
from __future__ import annotations

import logging
from typing import List

import numpy as np
import trimesh

from strutmesh.contracts import LatticeGraph, SleeveResult, SolidifyConfig
from strutmesh.curves import perpendicular_frame, perpendicular_frames, ring_points

logger = logging.getLogger(__name__)


def sleeve_divisions(length: float, avg_radius: float, min_divisions: int = 2) -> int:
    """Even number of ring spans giving roughly square wall segments."""
    return max(int(round(length / (2.0 * avg_radius))) * 2, min_divisions)


def sleeve_faces(divisions: int, sides: int) -> np.ndarray:
    """Outward-wound wall triangles for ``divisions + 1`` stacked rings."""
    j = np.repeat(np.arange(divisions), sides)
    i = np.tile(np.arange(sides), divisions)
    v1 = j * sides + i
    v2 = v1 + sides
    v3 = j * sides + sides + (i + 1) % sides
    v4 = j * sides + (i + 1) % sides
    faces = np.empty((2 * divisions * sides, 3), dtype=np.int64)
    faces[0::2] = np.column_stack([v1, v4, v2])
    faces[1::2] = np.column_stack([v2, v4, v3])
    return faces


def build_sleeve(graph: LatticeGraph, strut_index: int, config: SolidifyConfig) -> SleeveResult:
    """Mesh one strut between its start and end plates."""
    strut = graph.struts[strut_index]
    start_plate = graph.plates[strut.plate_pair[0]]
    end_plate = graph.plates[strut.plate_pair[1]]
    curve = strut.curve
    sides = config.sides

    s_start = start_plate.offset
    s_end = curve.length - end_plate.offset
    span = s_end - s_start
    if span <= config.tolerance:
        logger.warning(
            "Strut %d is consumed by its node offsets (%.4g + %.4g >= %.4g); no sleeve",
            strut_index, start_plate.offset, end_plate.offset, curve.length,
        )
        return SleeveResult(strut_index=strut_index, status="collapsed")

    divisions = sleeve_divisions(span, strut.avg_radius, config.min_divisions)
    steps = np.arange(divisions + 1, dtype=float) / divisions

    if curve.is_linear:
        tangent = curve.tangent_at(s_start)
        x_axis, y_axis, _ = perpendicular_frame(tangent)
        origin = curve.point_at(s_start)
        frames = [(origin + tangent * (span * t), x_axis, y_axis) for t in steps]
    else:
        frames = [
            (o, x, y) for o, x, y, _ in perpendicular_frames(curve, s_start + span * steps)
        ]

    rings = []
    for j, (center, x_axis, y_axis) in enumerate(frames):
        radius = strut.start_radius - j * (strut.start_radius - strut.end_radius) / divisions
        start_angle = j * np.pi / sides
        rings.append(ring_points(center, x_axis, y_axis, sides, radius, start_angle))

    vertices = np.vstack(rings)
    mesh = trimesh.Trimesh(vertices=vertices, faces=sleeve_faces(divisions, sides), process=False)

    return SleeveResult(
        strut_index=strut_index,
        status="ok",
        divisions=divisions,
        mesh=mesh,
        start_ring=np.vstack([frames[0][0], rings[0]]),
        end_ring=np.vstack([frames[-1][0], rings[-1]]),
    )


def build_all_sleeves(graph: LatticeGraph, config: SolidifyConfig) -> List[SleeveResult]:
    """Mesh every strut and hand the end rings to their plates."""
    results = []
    for strut_index, strut in enumerate(graph.struts):
        result = build_sleeve(graph, strut_index, config)
        if result.status == "ok":
            graph.plates[strut.plate_pair[0]].vertices = list(result.start_ring)
            graph.plates[strut.plate_pair[1]].vertices = list(result.end_ring)
        results.append(result)
    logger.info(
        "Built %d sleeves (%d collapsed)",
        sum(1 for r in results if r.status == "ok"),
        sum(1 for r in results if r.status != "ok"),
    )
    return results
