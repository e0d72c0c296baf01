"""End caps for nodes joined by a single strut."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
import trimesh

from strutmesh.contracts import LatticeGraph, SolidifyConfig

logger = logging.getLogger(__name__)


def fan_faces(sides: int) -> np.ndarray:
    """Triangles from vertex 0 to each consecutive pair of ring vertices 1..sides."""
    i = np.arange(1, sides + 1)
    return np.column_stack([np.zeros(sides, dtype=np.int64), i, i % sides + 1])


def build_end_cap(
    graph: LatticeGraph,
    node_index: int,
    config: SolidifyConfig,
) -> Optional[trimesh.Trimesh]:
    """Close the open sleeve end at a degree-1 node with a fan.

    The cap is wound to face away from the strut, i.e. against the plate
    normal. Returns None if the plate never received a ring.
    """
    node = graph.nodes[node_index]
    plate = graph.plates[node.plate_indices[0]]
    if len(plate.vertices) != config.sides + 1:
        logger.warning("Node %d has no plate ring to cap", node_index)
        return None

    vertices = np.asarray(plate.vertices, dtype=float)
    faces = fan_faces(config.sides)
    face_normal = np.cross(vertices[faces[0, 1]] - vertices[0], vertices[faces[0, 2]] - vertices[0])
    if float(np.dot(face_normal, plate.normal)) > 0.0:
        faces = faces[:, ::-1]
    return trimesh.Trimesh(vertices=vertices, faces=np.ascontiguousarray(faces), process=False)
