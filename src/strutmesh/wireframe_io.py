"""
Wireframe input and mesh output.

Wireframe JSON layout::

    {
      "struts": [[[0, 0, 0], [1, 0, 0]], [[0, 0, 0], [0, 0.5, 0.2], [0, 1, 0]]],
      "radius": 0.1,
      "radii": [0.1, 0.12, ...],
      "strut_radii": [[0.1, 0.08], [0.08, 0.05]]
    }

A two-point strut is a line; three or more points are interpolated as a
spline. ``radii`` (one per canonical node) overrides ``radius``.
``strut_radii`` holds one ``[start, end]`` pair per strut entry and
overrides both at the strut ends.

Only structurally malformed files raise. A well-formed strut that cannot
become a curve (fewer than two points, zero length) is kept as its point
list so canonicalization drops and counts it.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import trimesh

from strutmesh.curves import as_curve

logger = logging.getLogger(__name__)


@dataclass
class Wireframe:
    curves: List  # Curve, or the raw point list when no curve could be built
    radius: Optional[Union[float, List[float]]] = None
    strut_radii: Optional[List[List[float]]] = None


def _parse_point(raw, strut_index: int) -> List[float]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 3:
        raise ValueError(f"Strut {strut_index}: points must be [x, y, z]")
    try:
        return [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Strut {strut_index}: non-numeric coordinate") from exc


def _parse_numbers(raw, key: str) -> List[float]:
    if not isinstance(raw, list):
        raise ValueError(f"'{key}' must be a list of numbers")
    try:
        return [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"'{key}' must be a list of numbers") from exc


def parse_wireframe(data: dict) -> Wireframe:
    """Build a Wireframe from already-decoded JSON."""
    if not isinstance(data, dict) or "struts" not in data:
        raise ValueError("Wireframe JSON must be an object with a 'struts' list")
    raw_struts = data["struts"]
    if not isinstance(raw_struts, list):
        raise ValueError("'struts' must be a list")

    curves: List = []
    unbuilt = 0
    for i, raw in enumerate(raw_struts):
        if not isinstance(raw, list):
            raise ValueError(f"Strut {i}: expected a list of points")
        points = [_parse_point(p, i) for p in raw]
        curve = as_curve(points)
        if curve is None:
            unbuilt += 1
            curves.append(points)
        else:
            curves.append(curve)
    if unbuilt:
        logger.debug("%d strut(s) could not be built as curves", unbuilt)

    radius: Optional[Union[float, List[float]]] = None
    if data.get("radii") is not None:
        radius = _parse_numbers(data["radii"], "radii")
    elif data.get("radius") is not None:
        try:
            radius = float(data["radius"])
        except (TypeError, ValueError) as exc:
            raise ValueError("'radius' must be a number") from exc

    strut_radii: Optional[List[List[float]]] = None
    if data.get("strut_radii") is not None:
        raw_pairs = data["strut_radii"]
        if not isinstance(raw_pairs, list) or len(raw_pairs) != len(raw_struts):
            raise ValueError("'strut_radii' needs one [start, end] pair per strut")
        strut_radii = []
        for pair in raw_pairs:
            values = _parse_numbers(pair, "strut_radii")
            if len(values) != 2:
                raise ValueError("'strut_radii' entries must be [start, end]")
            strut_radii.append(values)
    return Wireframe(curves=curves, radius=radius, strut_radii=strut_radii)


def load_wireframe_json(path: Union[str, Path]) -> Wireframe:
    """Read a wireframe JSON file."""
    path = Path(path)
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as exc:
        raise ValueError(f"{path}: invalid JSON ({exc})") from exc
    wireframe = parse_wireframe(data)
    logger.info("Loaded %d struts from %s", len(wireframe.curves), path)
    return wireframe


def export_mesh(mesh: trimesh.Trimesh, path: Union[str, Path]) -> Path:
    """Write *mesh* in the format implied by the file suffix (STL, OBJ, PLY, ...)."""
    path = Path(path)
    if len(mesh.faces) == 0:
        raise ValueError("Refusing to export an empty mesh")
    path.parent.mkdir(parents=True, exist_ok=True)
    mesh.export(str(path))
    logger.info("Exported %d faces to %s", len(mesh.faces), path)
    return path
