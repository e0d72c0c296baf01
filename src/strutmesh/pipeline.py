"""Wireframe -> solid mesh pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import trimesh

from strutmesh.assembly import assemble_mesh
from strutmesh.canonicalize import canonicalize_network
from strutmesh.contracts import (
    CanonicalNetwork,
    HullResult,
    LatticeGraph,
    OffsetResult,
    SleeveResult,
    SolidifyConfig,
    SolidifyIssue,
)
from strutmesh.endcaps import build_end_cap
from strutmesh.graph import (
    RadiusField,
    assign_gradient_radii,
    assign_radii,
    assign_strut_radii,
    build_lattice_graph,
)
from strutmesh.hull import HULL_FAILED, HULL_PLANAR, build_node_hull
from strutmesh.offsets import compute_all_offsets, fix_sharp_nodes
from strutmesh.report import MeshReport, inspect_mesh
from strutmesh.sleeves import build_all_sleeves

logger = logging.getLogger(__name__)


@dataclass
class SolidifyResult:
    """In-memory result of a solidification run."""

    status: str  # "ok" | "warning" | "failed"
    mesh: trimesh.Trimesh
    graph: LatticeGraph
    network: CanonicalNetwork
    offsets: List[OffsetResult] = field(default_factory=list)
    sleeves: List[SleeveResult] = field(default_factory=list)
    hulls: List[HullResult] = field(default_factory=list)
    end_caps: Dict[int, Optional[trimesh.Trimesh]] = field(default_factory=dict)
    sharp_nodes: List[int] = field(default_factory=list)
    issues: List[SolidifyIssue] = field(default_factory=list)
    report: Optional[MeshReport] = None
    elapsed_s: float = 0.0

    @property
    def counts(self) -> Dict[str, int]:
        return {
            "nodes": len(self.graph.nodes),
            "struts": len(self.graph.struts),
            "plates": len(self.graph.plates),
            "curves_dropped": self.network.dropped_count,
            "sleeves": sum(1 for s in self.sleeves if s.mesh is not None),
            "hulls": sum(1 for h in self.hulls if h.mesh is not None),
            "end_caps": sum(1 for m in self.end_caps.values() if m is not None),
            "sharp_nodes": len(self.sharp_nodes),
            "vertices": len(self.mesh.vertices),
            "faces": len(self.mesh.faces),
        }


def solidify(
    curves: Iterable,
    radius: Union[float, Sequence[float], None] = None,
    config: Optional[SolidifyConfig] = None,
    radius_field: Optional[RadiusField] = None,
    radius_range: Optional[Sequence[float]] = None,
    strut_radii: Optional[Sequence[Sequence[float]]] = None,
) -> SolidifyResult:
    """Turn a strut wireframe into a single welded triangle mesh.

    Args:
        curves: Strut curves, or point sequences (two points for a line,
            three or more for a spline).
        radius: Scalar radius for every node, or one radius per canonical
            node.
        config: Tunables; defaults to ``SolidifyConfig()``.
        radius_field: Optional callable over the unitized bounding box
            returning ``[0, 1]``; requires *radius_range*.
        radius_range: ``(min_radius, max_radius)`` for *radius_field*.
        strut_radii: Optional ``(start_radius, end_radius)`` per input
            curve, overriding nodal radii at each strut end.

    Returns:
        SolidifyResult. Geometric trouble is reported through ``status``
        and ``issues``; only caller errors raise ``ValueError``.
    """
    if config is None:
        config = SolidifyConfig()
    if radius is None and radius_field is None and strut_radii is None:
        raise ValueError("One of radius, radius_field or strut_radii must be given")
    if radius_field is not None and (radius_range is None or len(radius_range) != 2):
        raise ValueError("radius_field requires radius_range=(min_radius, max_radius)")
    curves = list(curves)
    if strut_radii is not None:
        strut_radii = np.asarray(strut_radii, dtype=float)
        if strut_radii.shape != (len(curves), 2):
            raise ValueError(
                f"strut_radii needs one (start, end) pair per input curve, "
                f"expected shape ({len(curves)}, 2), got {strut_radii.shape}"
            )

    started = time.perf_counter()
    issues: List[SolidifyIssue] = []

    # Phase 1: canonical network and graph
    network = canonicalize_network(curves, config.tolerance, config.min_strut_length)
    for reason, count in sorted(network.dropped.items()):
        issues.append(SolidifyIssue(
            code=f"curve_dropped_{reason}",
            severity="warning",
            message=f"{count} input curve(s) dropped ({reason})",
        ))
    graph = build_lattice_graph(network)
    if not graph.struts:
        logger.warning("Nothing to solidify: no valid struts after canonicalization")
        issues.append(SolidifyIssue(code="empty_network", severity="error", message="No valid struts"))
        return SolidifyResult(
            status="failed",
            mesh=trimesh.Trimesh(),
            graph=graph,
            network=network,
            issues=issues,
            elapsed_s=time.perf_counter() - started,
        )

    if radius_field is not None:
        assign_gradient_radii(graph, radius_field, float(radius_range[0]), float(radius_range[1]))
    elif radius is not None:
        assign_radii(graph, radius)
    if strut_radii is not None:
        kept = strut_radii[network.source_indices]
        assign_strut_radii(graph, kept[:, 0], kept[:, 1])

    # Phase 2: plate offsets, then sharp-node plates
    offsets = compute_all_offsets(graph, config)
    for result in offsets:
        if not result.converged:
            issues.append(SolidifyIssue(
                code="offset_not_converged",
                severity="warning",
                message=(
                    f"Plate offsets did not converge after {result.iterations} steps; "
                    "the mesh may overlap at this node"
                ),
                node_index=result.node_index,
            ))
    sharp_nodes = fix_sharp_nodes(graph, config) if config.fix_sharp_nodes else []

    # Phase 3: sleeves (also fills the plate rings)
    sleeves = build_all_sleeves(graph, config)
    for sleeve in sleeves:
        if sleeve.status != "ok":
            issues.append(SolidifyIssue(
                code="sleeve_collapsed",
                severity="warning",
                message="Strut is shorter than its node offsets; sleeve omitted",
                strut_index=sleeve.strut_index,
            ))

    # Phase 4: node hulls and end caps
    hulls: List[HullResult] = []
    end_caps: Dict[int, Optional[trimesh.Trimesh]] = {}
    for node_index, node in enumerate(graph.nodes):
        if node.degree == 0:
            continue
        if node.degree == 1:
            cap = build_end_cap(graph, node_index, config)
            end_caps[node_index] = cap
            if cap is None:
                issues.append(SolidifyIssue(
                    code="end_cap_missing",
                    severity="warning",
                    message="End cap could not be built",
                    node_index=node_index,
                ))
            continue
        hull = build_node_hull(graph, node_index, config)
        hulls.append(hull)
        if hull.status == HULL_PLANAR:
            issues.append(SolidifyIssue(
                code="hull_planar_fallback",
                severity="warning",
                message="Node plates are coplanar; closed with a flat polygon",
                node_index=node_index,
            ))
        elif hull.status == HULL_FAILED:
            issues.append(SolidifyIssue(
                code="hull_failed",
                severity="warning",
                message="Node hull could not be built",
                node_index=node_index,
            ))

    # Phase 5: assembly
    parts = [s.mesh for s in sleeves] + [h.mesh for h in hulls] + list(end_caps.values())
    mesh = assemble_mesh(parts, config.tolerance)
    report = inspect_mesh(mesh, config.tolerance)
    if not report.is_valid:
        issues.append(SolidifyIssue(
            code="mesh_invalid",
            severity="warning",
            message="; ".join(report.issues),
        ))

    status = "ok" if not issues else "warning"
    elapsed = time.perf_counter() - started
    logger.info(
        "Solidified %d struts into %d vertices / %d faces in %.2fs (%s, %d issues)",
        len(graph.struts), len(mesh.vertices), len(mesh.faces), elapsed, status, len(issues),
    )
    return SolidifyResult(
        status=status,
        mesh=mesh,
        graph=graph,
        network=network,
        offsets=offsets,
        sleeves=sleeves,
        hulls=hulls,
        end_caps=end_caps,
        sharp_nodes=sharp_nodes,
        issues=issues,
        report=report,
        elapsed_s=elapsed,
    )


def summarize(result: SolidifyResult) -> str:
    """Markdown summary of a run."""
    warn = sum(1 for i in result.issues if i.severity == "warning")
    err = sum(1 for i in result.issues if i.severity == "error")
    counts = result.counts
    lines = [
        "# Solidify run",
        "",
        f"- Status: **{result.status.upper()}**",
        f"- Duration: {result.elapsed_s:.2f}s",
        f"- Nodes: {counts['nodes']} ({counts['sharp_nodes']} sharp)",
        f"- Struts: {counts['struts']} ({counts['curves_dropped']} input curves dropped)",
        f"- Sleeves: {counts['sleeves']}, hulls: {counts['hulls']}, end caps: {counts['end_caps']}",
        f"- Mesh: {counts['vertices']} vertices, {counts['faces']} faces",
        f"- Issues: {err} errors, {warn} warnings",
        "",
        "## Key Issues",
    ]
    if not result.issues:
        lines.append("- None")
    else:
        for issue in result.issues[:12]:
            where = ""
            if issue.node_index is not None:
                where = f" (node {issue.node_index})"
            elif issue.strut_index is not None:
                where = f" (strut {issue.strut_index})"
            lines.append(f"- [{issue.severity}] {issue.code}{where}: {issue.message}")
    return "\n".join(lines) + "\n"
