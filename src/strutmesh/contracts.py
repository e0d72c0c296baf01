"""Contracts for the strut-network solidification pipeline."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import trimesh

from strutmesh.curves import Curve

IndexPair = Tuple[int, int]

NODE_INSIDE = "inside"
NODE_OUTSIDE = "outside"
NODE_BOUNDARY = "boundary"


@dataclass(frozen=True)
class SolidifyConfig:
    """Configuration for wireframe -> solid mesh conversion."""

    tolerance: float = 1e-3
    model_tolerance: float = 1e-5
    min_length_factor: float = 100.0
    sides: int = 6

    # Offset solver
    offset_max_iterations: int = 500
    offset_increment_divisor: float = 10.0
    offset_safety_margin: float = 1.05

    # Sharp nodes
    fix_sharp_nodes: bool = True
    sharp_angle_threshold_deg: float = 90.0
    sharp_plate_offset_factor: float = 1.0 / 3.0

    # Hulls and sleeves
    hull_plane_tolerance_factor: float = 0.1
    cull_plate_faces: bool = True
    min_divisions: int = 2

    def __post_init__(self) -> None:
        if not self.tolerance > 0.0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")
        if self.model_tolerance < 0.0:
            raise ValueError("model_tolerance must be non-negative")
        if self.min_length_factor < 0.0:
            raise ValueError("min_length_factor must be non-negative")
        if self.sides < 3:
            raise ValueError(f"sides must be >= 3, got {self.sides}")
        if self.offset_max_iterations < 1:
            raise ValueError("offset_max_iterations must be >= 1")
        if not self.offset_increment_divisor > 0.0:
            raise ValueError("offset_increment_divisor must be positive")
        if self.offset_safety_margin < 1.0:
            raise ValueError("offset_safety_margin must be >= 1.0")
        if not 0.0 < self.sharp_angle_threshold_deg <= 180.0:
            raise ValueError("sharp_angle_threshold_deg must be in (0, 180]")
        if self.sharp_plate_offset_factor < 0.0:
            raise ValueError("sharp_plate_offset_factor must be non-negative")
        if not self.hull_plane_tolerance_factor > 0.0:
            raise ValueError("hull_plane_tolerance_factor must be positive")
        if self.min_divisions < 2 or self.min_divisions % 2:
            raise ValueError("min_divisions must be an even number >= 2")

    @property
    def min_strut_length(self) -> float:
        return max(self.tolerance, self.min_length_factor * self.model_tolerance)

    @property
    def sharp_angle_threshold_rad(self) -> float:
        return math.radians(self.sharp_angle_threshold_deg)


@dataclass
class Node:
    """A lattice node; strut and plate lists are indices into the graph."""

    position: np.ndarray
    radius: float = 0.0
    strut_indices: List[int] = field(default_factory=list)
    plate_indices: List[int] = field(default_factory=list)
    state: str = NODE_INSIDE

    @property
    def degree(self) -> int:
        return len(self.strut_indices)


@dataclass
class Strut:
    """A (possibly curved) connector between two nodes."""

    curve: Curve
    node_pair: IndexPair
    plate_pair: IndexPair = (-1, -1)
    start_radius: float = 0.0
    end_radius: float = 0.0

    @property
    def avg_radius(self) -> float:
        return 0.5 * (self.start_radius + self.end_radius)

    def radius_at(self, node_index: int) -> float:
        """Radius of this strut at the given end node."""
        if node_index == self.node_pair[0]:
            return self.start_radius
        if node_index == self.node_pair[1]:
            return self.end_radius
        raise ValueError(f"Node {node_index} is not an end of this strut")


@dataclass
class Plate:
    """Cross-section ring where a sleeve meets its node.

    ``vertices[0]`` is the ring center for strut plates. Synthetic
    sharp-node plates carry only the ``sides`` ring points.
    """

    node_index: int
    normal: np.ndarray
    strut_index: Optional[int] = None
    offset: float = 0.0
    vertices: List[np.ndarray] = field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.strut_index is None


@dataclass
class LatticeGraph:
    """Flat node/strut/plate arenas cross-referenced by index."""

    nodes: List[Node] = field(default_factory=list)
    struts: List[Strut] = field(default_factory=list)
    plates: List[Plate] = field(default_factory=list)

    def node_plates(self, node_index: int) -> List[Plate]:
        return [self.plates[i] for i in self.nodes[node_index].plate_indices]

    def node_radii(self) -> np.ndarray:
        return np.array([n.radius for n in self.nodes], dtype=float)


@dataclass
class CanonicalNetwork:
    """Deduplicated curve network."""

    nodes: List[np.ndarray]
    curves: List[Curve]
    node_pairs: List[IndexPair]
    dropped: Dict[str, int] = field(default_factory=dict)
    source_indices: List[int] = field(default_factory=list)  # input position of each curve

    @property
    def dropped_count(self) -> int:
        return int(sum(self.dropped.values()))


@dataclass
class OffsetResult:
    """Outcome of the offset solver at one node.

    ``offsets`` are the converged arc-length distances before the safety
    margin, in the order of the node's strut list.
    """

    node_index: int
    converged: bool
    iterations: int
    offsets: List[float] = field(default_factory=list)


@dataclass
class SleeveResult:
    strut_index: int
    status: str  # "ok" | "collapsed"
    divisions: int = 0
    mesh: Optional[trimesh.Trimesh] = None
    start_ring: Optional[np.ndarray] = None  # (sides + 1, 3), center first
    end_ring: Optional[np.ndarray] = None


@dataclass
class HullResult:
    node_index: int
    status: str  # "ok" | "planar_fallback" | "failed"
    mesh: Optional[trimesh.Trimesh] = None
    closed_mesh: Optional[trimesh.Trimesh] = None
    skipped_points: int = 0


@dataclass
class SolidifyIssue:
    """Soft failure or diagnostic observed during solidification."""

    code: str
    severity: str  # "warning" | "error"
    message: str
    node_index: Optional[int] = None
    strut_index: Optional[int] = None
