"""
Node hulls.

All plate rings at a node are wrapped in a convex hull built incrementally
(seed tetrahedron, then one point at a time). Hull faces lying on a strut
plate are then removed so the sleeve attached to that plate closes the hole
exactly.

Degenerate inputs never raise: a node whose points are all coplanar falls
back to a flat polygon, and a node with too few points reports "failed".
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Set, Tuple

import numpy as np
import trimesh
from shapely.geometry import MultiPoint, Polygon

from strutmesh.contracts import HullResult, LatticeGraph, SolidifyConfig
from strutmesh.curves import perpendicular_frame

logger = logging.getLogger(__name__)

EPS = 1e-12

HULL_OK = "ok"
HULL_PLANAR = "planar_fallback"
HULL_FAILED = "failed"


# ─── Predicates ──────────────────────────────────────────────────────────────

def is_coplanar(
    a: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    point: np.ndarray,
    tol: float,
) -> bool:
    """True if *point* lies within *tol* of the plane through a, b, c.

    A degenerate (collinear) triangle spans no plane; every point is then
    reported as coplanar.
    """
    normal = np.cross(b - a, c - a)
    norm = float(np.linalg.norm(normal))
    if norm < EPS:
        return True
    return abs(float(np.dot(point - a, normal / norm))) < tol


def face_distances(point: np.ndarray, face_centers: np.ndarray, face_normals: np.ndarray) -> np.ndarray:
    """Signed distance of *point* to each face plane (one face or an (n, 3) stack)."""
    return np.einsum("...j,...j->...", point - face_centers, face_normals)


def is_face_visible(
    point: np.ndarray,
    face_centers: np.ndarray,
    face_normals: np.ndarray,
    tol: float,
):
    """Whether *point* is on the outward side of each face plane or within *tol* of it.

    Returns a bool for a single face and a boolean mask for stacked faces.
    """
    distance = face_distances(point, face_centers, face_normals)
    visible = (distance > 0.0) | (np.abs(distance) < tol)
    if np.ndim(visible) == 0:
        return bool(visible)
    return visible


def _face_planes(vertices: np.ndarray, faces: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    tri = vertices[faces]
    centers = tri.mean(axis=1)
    normals = np.cross(tri[:, 1] - tri[:, 0], tri[:, 2] - tri[:, 0])
    lengths = np.linalg.norm(normals, axis=1)
    normals = normals / np.where(lengths > EPS, lengths, 1.0)[:, None]
    return centers, normals


# ─── Incremental hull ────────────────────────────────────────────────────────

@dataclass
class ConvexHullMesh:
    """Closed hull triangles plus the input index each hull vertex came from."""

    vertices: np.ndarray
    faces: np.ndarray
    source_indices: np.ndarray
    skipped: int = 0


def _seed_tetrahedron(points: np.ndarray, plane_tol: float) -> Optional[List[int]]:
    """Source indices ``[p0, p1, p2, p3]`` ordered so the seed faces point outward."""
    if len(points) < 4:
        return None
    a, b, c = points[0], points[1], points[2]
    fourth = None
    for k in range(3, len(points)):
        if not is_coplanar(a, b, c, points[k], plane_tol):
            fourth = k
            break
    if fourth is None:
        return None
    normal = np.cross(b - a, c - a)
    if float(np.dot(normal, points[fourth] - a)) > 0.0:
        return [0, 1, 2, fourth]
    return [0, 2, 1, fourth]


def _visible_region(faces: np.ndarray, visible: np.ndarray, seed: int) -> np.ndarray:
    """Restrict *visible* to the edge-connected patch containing face *seed*."""
    edge_faces: Dict[Tuple[int, int], List[int]] = defaultdict(list)
    for f in np.flatnonzero(visible):
        a, b, c = (int(v) for v in faces[f])
        for u, w in ((a, b), (b, c), (c, a)):
            edge_faces[(min(u, w), max(u, w))].append(int(f))

    region = np.zeros(len(faces), dtype=bool)
    region[seed] = True
    stack = [seed]
    while stack:
        f = stack.pop()
        a, b, c = (int(v) for v in faces[f])
        for u, w in ((a, b), (b, c), (c, a)):
            for g in edge_faces[(min(u, w), max(u, w))]:
                if not region[g]:
                    region[g] = True
                    stack.append(g)
    return region


def incremental_hull(
    points: Sequence[np.ndarray],
    plane_tol: float,
    weld_tol: float,
) -> Optional[ConvexHullMesh]:
    """Convex hull of *points* by incremental insertion.

    The first three points must span a plane (they come from a single plate
    ring). Points coincident with an existing hull vertex, or that see no
    hull face, are skipped. Returns None when no non-coplanar fourth point
    exists.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    seed = _seed_tetrahedron(pts, plane_tol)
    if seed is None:
        return None

    sources: List[int] = list(seed)
    coords: List[np.ndarray] = [pts[i] for i in seed]
    faces = np.array([[0, 2, 1], [0, 3, 2], [0, 1, 3], [1, 2, 3]], dtype=np.int64)
    skipped = 0

    seeded = set(seed)
    for idx in range(len(pts)):
        if idx in seeded:
            continue
        point = pts[idx]
        vertices = np.asarray(coords)
        if float(np.min(np.linalg.norm(vertices - point, axis=1))) <= weld_tol:
            skipped += 1
            continue

        centers, normals = _face_planes(vertices, faces)
        visible = is_face_visible(point, centers, normals, plane_tol)
        if not visible.any() or visible.all():
            skipped += 1
            continue
        seed_face = int(np.argmax(face_distances(point, centers, normals)))
        visible = _visible_region(faces, visible, seed_face)

        kept = faces[~visible]
        directed: Set[Tuple[int, int]] = set()
        for a, b, c in kept:
            directed.update(((int(a), int(b)), (int(b), int(c)), (int(c), int(a))))
        new_index = len(coords)
        patch = [(b, a, new_index) for a, b in directed if (b, a) not in directed]

        coords.append(point)
        sources.append(idx)
        faces = np.vstack([kept, np.array(patch, dtype=np.int64).reshape(-1, 3)])

    vertices = np.asarray(coords)
    used = np.unique(faces)
    remap = -np.ones(len(vertices), dtype=np.int64)
    remap[used] = np.arange(len(used))
    return ConvexHullMesh(
        vertices=vertices[used],
        faces=remap[faces],
        source_indices=np.asarray(sources, dtype=np.int64)[used],
        skipped=skipped,
    )


# ─── Plate culling ───────────────────────────────────────────────────────────

def cull_plate_faces(
    faces: np.ndarray,
    vertex_plates: np.ndarray,
    cullable_plates: Set[int],
) -> np.ndarray:
    """Drop faces whose three vertices all belong to one cullable plate."""
    owners = vertex_plates[faces]
    same = (owners[:, 0] == owners[:, 1]) & (owners[:, 1] == owners[:, 2])
    cullable = np.isin(owners[:, 0], list(cullable_plates))
    return faces[~(same & cullable)]


def _compact_mesh(vertices: np.ndarray, faces: np.ndarray) -> trimesh.Trimesh:
    mesh = trimesh.Trimesh(vertices=vertices, faces=faces, process=False)
    mesh.remove_unreferenced_vertices()
    return mesh


# ─── Planar fallback ─────────────────────────────────────────────────────────

def planar_polygon_mesh(points: Sequence[np.ndarray]) -> Optional[trimesh.Trimesh]:
    """Flat fan-triangulated convex polygon through coplanar points.

    Returns None if the points do not span an area.
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 3)
    if len(pts) < 3:
        return None
    origin = pts.mean(axis=0)
    _, _, vh = np.linalg.svd(pts - origin, full_matrices=False)
    x_axis, y_axis, _ = perpendicular_frame(vh[-1])
    local = np.column_stack([(pts - origin) @ x_axis, (pts - origin) @ y_axis])

    outline = MultiPoint([tuple(p) for p in local]).convex_hull
    if not isinstance(outline, Polygon) or outline.area <= EPS:
        return None
    ring = np.asarray(outline.exterior.coords)[:-1]
    vertices = origin + ring[:, 0:1] * x_axis + ring[:, 1:2] * y_axis
    n = len(vertices)
    faces = np.column_stack([np.zeros(n - 2, dtype=np.int64), np.arange(1, n - 1), np.arange(2, n)])
    return trimesh.Trimesh(vertices=vertices, faces=faces, process=False)


# ─── Node hull ───────────────────────────────────────────────────────────────

def node_average_radius(graph: LatticeGraph, node_index: int) -> float:
    node = graph.nodes[node_index]
    radii = [graph.struts[s].radius_at(node_index) for s in node.strut_indices]
    return float(np.mean(radii)) if radii else node.radius


def build_node_hull(graph: LatticeGraph, node_index: int, config: SolidifyConfig) -> HullResult:
    """Hull every plate ring at a node and open the strut plates."""
    node = graph.nodes[node_index]
    points: List[np.ndarray] = []
    point_plates: List[int] = []
    cullable: Set[int] = set()
    for plate_index in node.plate_indices:
        plate = graph.plates[plate_index]
        if not plate.vertices:
            continue
        points.extend(plate.vertices)
        point_plates.extend([plate_index] * len(plate.vertices))
        if not plate.is_synthetic and len(plate.vertices) == config.sides + 1:
            cullable.add(plate_index)

    if len(points) < 3:
        logger.warning("Node %d has %d hull points; skipping hull", node_index, len(points))
        return HullResult(node_index=node_index, status=HULL_FAILED)

    plane_tol = config.tolerance * node_average_radius(graph, node_index) * config.hull_plane_tolerance_factor
    hull = incremental_hull(points, plane_tol, config.tolerance)
    if hull is None:
        logger.warning("Node %d plate points are coplanar; using a flat polygon", node_index)
        flat = planar_polygon_mesh(points)
        if flat is None:
            return HullResult(node_index=node_index, status=HULL_FAILED)
        return HullResult(node_index=node_index, status=HULL_PLANAR, mesh=flat, closed_mesh=None)

    closed = trimesh.Trimesh(vertices=hull.vertices, faces=hull.faces, process=False)
    faces = hull.faces
    if config.cull_plate_faces:
        vertex_plates = np.asarray(point_plates, dtype=np.int64)[hull.source_indices]
        faces = cull_plate_faces(faces, vertex_plates, cullable)

    if hull.skipped:
        logger.debug("Node %d hull skipped %d interior/coincident points", node_index, hull.skipped)
    return HullResult(
        node_index=node_index,
        status=HULL_OK,
        mesh=_compact_mesh(hull.vertices, faces),
        closed_mesh=closed,
        skipped_points=hull.skipped,
    )
