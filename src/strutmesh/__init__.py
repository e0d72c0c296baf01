"""Public API for strut-network solidification."""

from strutmesh.contracts import LatticeGraph, SolidifyConfig, SolidifyIssue
from strutmesh.curves import LineCurve, SplineCurve
from strutmesh.pipeline import SolidifyResult, solidify, summarize
from strutmesh.report import MeshReport, format_report, inspect_mesh
from strutmesh.wireframe_io import export_mesh, load_wireframe_json

__all__ = [
    "LatticeGraph",
    "LineCurve",
    "MeshReport",
    "SolidifyConfig",
    "SolidifyIssue",
    "SolidifyResult",
    "SplineCurve",
    "export_mesh",
    "format_report",
    "inspect_mesh",
    "load_wireframe_json",
    "solidify",
    "summarize",
]
