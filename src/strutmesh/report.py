"""
Mesh inspection report.

Checks that a solidified lattice is a closed, manifold, outward-facing
solid and renders a short human-readable summary.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

import numpy as np
import trimesh
from scipy.spatial import KDTree

logger = logging.getLogger(__name__)


@dataclass
class MeshReport:
    """Validity report for a triangle mesh."""

    status: str  # "valid" | "invalid"
    vertex_count: int = 0
    face_count: int = 0
    naked_edge_count: int = 0
    non_manifold_edge_count: int = 0
    duplicate_vertex_count: int = 0
    is_watertight: bool = False
    is_winding_consistent: bool = False
    is_solid: bool = False
    normals_flipped: bool = False
    volume: float = 0.0
    euler_number: int = 0
    issues: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return self.status == "valid"


def edge_face_counts(mesh: trimesh.Trimesh) -> np.ndarray:
    """Number of faces using each unique edge."""
    if len(mesh.faces) == 0:
        return np.zeros(0, dtype=np.int64)
    return np.bincount(mesh.edges_unique_inverse)


def boundary_edges(mesh: trimesh.Trimesh) -> np.ndarray:
    """Unique edges referenced by exactly one face, as (m, 2) vertex indices."""
    counts = edge_face_counts(mesh)
    return mesh.edges_unique[np.flatnonzero(counts == 1)]


def duplicate_vertex_count(vertices: np.ndarray, tolerance: float) -> int:
    """Number of vertex pairs closer than *tolerance*."""
    if len(vertices) < 2:
        return 0
    return len(KDTree(np.asarray(vertices, dtype=float)).query_pairs(r=tolerance))


def inspect_mesh(mesh: trimesh.Trimesh, tolerance: float) -> MeshReport:
    """Inspect *mesh* for naked edges, manifoldness and orientation.

    A closed mesh with inward-facing normals is inverted in place and
    reported with ``normals_flipped``.
    """
    report = MeshReport(
        status="invalid",
        vertex_count=int(len(mesh.vertices)),
        face_count=int(len(mesh.faces)),
    )
    if report.face_count == 0:
        report.issues.append("Mesh is empty.")
        return report

    counts = edge_face_counts(mesh)
    report.naked_edge_count = int(np.sum(counts == 1))
    report.non_manifold_edge_count = int(np.sum(counts > 2))
    report.duplicate_vertex_count = duplicate_vertex_count(mesh.vertices, tolerance)
    report.is_watertight = bool(mesh.is_watertight)
    report.is_winding_consistent = bool(mesh.is_winding_consistent)
    report.euler_number = int(mesh.euler_number)

    if report.is_watertight and report.is_winding_consistent:
        volume = float(mesh.volume)
        if volume < 0.0:
            mesh.invert()
            report.normals_flipped = True
            volume = -volume
        report.volume = volume
        report.is_solid = volume > 0.0

    if report.naked_edge_count:
        report.issues.append(f"Mesh has {report.naked_edge_count} naked edges.")
    if report.non_manifold_edge_count:
        report.issues.append(f"Mesh has {report.non_manifold_edge_count} non-manifold edges.")
    if report.duplicate_vertex_count:
        report.issues.append(f"Mesh has {report.duplicate_vertex_count} duplicate vertex pairs.")
    if not report.is_winding_consistent:
        report.issues.append("Mesh winding is inconsistent.")
    if not report.is_solid:
        report.issues.append("Mesh is not solid.")

    report.status = "valid" if not report.issues else "invalid"
    logger.debug("Mesh report: %s (%d issues)", report.status, len(report.issues))
    return report


def format_report(report: MeshReport) -> str:
    """Render a report as plain text."""
    lines = [
        "- Overview -",
        f"Mesh is {report.status.upper()}.",
        "",
        "- Details -",
        f"Vertices: {report.vertex_count}",
        f"Faces: {report.face_count}",
        f"Mesh has {report.naked_edge_count} naked edges.",
        "Mesh is manifold." if report.non_manifold_edge_count == 0 else "Mesh is non-manifold.",
    ]
    if report.is_solid:
        suffix = " (normals have been flipped)" if report.normals_flipped else ""
        lines.append(f"Mesh is solid.{suffix}")
        lines.append(f"Volume: {report.volume:.6g}")
    else:
        lines.append("Mesh is not solid.")
    lines.append(f"Euler number: {report.euler_number}")
    if report.issues:
        lines.append("")
        lines.append("- Issues -")
        lines.extend(f"- {issue}" for issue in report.issues)
    return "\n".join(lines) + "\n"
