"""
Final mesh assembly.

Sleeves, hulls and end caps are generated independently and share plate
rings only by position, so the merged mesh has to be welded before it is a
single connected solid.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional, Tuple

import numpy as np
import trimesh
from scipy.spatial import KDTree

logger = logging.getLogger(__name__)


def weld_vertices(
    vertices: np.ndarray,
    faces: np.ndarray,
    tolerance: float,
) -> Tuple[np.ndarray, np.ndarray]:
    """Merge vertices closer than *tolerance*, keeping the first of each cluster."""
    vertices = np.asarray(vertices, dtype=float)
    faces = np.asarray(faces, dtype=np.int64)
    if len(vertices) == 0:
        return vertices.reshape(0, 3), faces.reshape(0, 3)

    tree = KDTree(vertices)
    neighbours = tree.query_ball_point(vertices, r=tolerance)
    representative = np.arange(len(vertices))
    for i, group in enumerate(neighbours):
        if representative[i] != i:
            continue
        for j in group:
            if j > i and representative[j] == j:
                representative[j] = i

    keep, inverse = np.unique(representative, return_inverse=True)
    inverse = inverse.reshape(-1)
    return vertices[keep], inverse[faces]


def assemble_mesh(
    parts: Iterable[Optional[trimesh.Trimesh]],
    tolerance: float,
) -> trimesh.Trimesh:
    """Merge sub-meshes into one welded, outward-oriented mesh.

    Missing (None) or empty parts are skipped.
    """
    meshes = [m for m in parts if m is not None and len(m.faces) > 0]
    if not meshes:
        logger.warning("No sub-meshes to assemble")
        return trimesh.Trimesh()

    combined = trimesh.util.concatenate(meshes)
    before = len(combined.vertices)
    vertices, faces = weld_vertices(combined.vertices, combined.faces, tolerance)

    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    mesh.update_faces(mesh.nondegenerate_faces())
    mesh.update_faces(mesh.unique_faces())
    mesh.remove_unreferenced_vertices()
    mesh.fix_normals()
    # Force vertex normals so they travel with the mesh.
    _ = mesh.vertex_normals

    logger.info(
        "Assembled %d parts: %d -> %d vertices, %d faces",
        len(meshes), before, len(mesh.vertices), len(mesh.faces),
    )
    return mesh
