"""
Parametric strut curves.

All curves are parametrized by arc length: ``point_at(s)`` and
``tangent_at(s)`` take the distance ``s`` travelled from the start of the
curve, in ``[0, length]``. Straight struts are ``LineCurve``; curved struts
are ``SplineCurve`` (an interpolating cubic through sample points).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.interpolate import CubicSpline

EPS = 1e-12

Frame = Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]  # origin, x, y, z


class Curve(ABC):
    """Arc-length parametrized 3D curve."""

    @property
    @abstractmethod
    def length(self) -> float:
        """Total arc length."""

    @property
    @abstractmethod
    def is_linear(self) -> bool:
        """True if the curve is a straight segment."""

    @abstractmethod
    def point_at(self, s: float) -> np.ndarray:
        """Point at arc-length distance *s* from the start."""

    @abstractmethod
    def tangent_at(self, s: float) -> np.ndarray:
        """Unit tangent at arc-length distance *s*."""

    def reversed(self) -> "Curve":
        return _ReversedCurve(self)

    @property
    def start(self) -> np.ndarray:
        return self.point_at(0.0)

    @property
    def end(self) -> np.ndarray:
        return self.point_at(self.length)

    @property
    def midpoint(self) -> np.ndarray:
        return self.point_at(0.5 * self.length)

    @property
    def is_valid(self) -> bool:
        length = self.length
        if not np.isfinite(length) or length <= 0.0:
            return False
        return bool(np.all(np.isfinite(self.start)) and np.all(np.isfinite(self.end)))

    def _clamp(self, s: float) -> float:
        return float(min(max(s, 0.0), self.length))


class LineCurve(Curve):
    """Straight strut between two points."""

    def __init__(self, start: Sequence[float], end: Sequence[float]):
        self._start = np.asarray(start, dtype=float).reshape(3)
        self._end = np.asarray(end, dtype=float).reshape(3)
        delta = self._end - self._start
        self._length = float(np.linalg.norm(delta))
        if self._length > EPS:
            self._direction = delta / self._length
        else:
            self._direction = np.zeros(3)

    def __repr__(self) -> str:
        return f"LineCurve({self._start.tolist()}, {self._end.tolist()})"

    @property
    def length(self) -> float:
        return self._length

    @property
    def is_linear(self) -> bool:
        return True

    def point_at(self, s: float) -> np.ndarray:
        return self._start + self._direction * self._clamp(s)

    def tangent_at(self, s: float) -> np.ndarray:
        return self._direction.copy()

    def reversed(self) -> "LineCurve":
        return LineCurve(self._end, self._start)


class SplineCurve(Curve):
    """Interpolating cubic spline through three or more points.

    The spline is fitted over normalized chord-length parameters and then
    reparametrized by arc length through a sampled lookup table.
    """

    def __init__(self, points: Sequence[Sequence[float]], samples: int = 512):
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        # Drop consecutive duplicates so chord parameters strictly increase.
        keep = np.ones(len(pts), dtype=bool)
        if len(pts) > 1:
            keep[1:] = np.linalg.norm(np.diff(pts, axis=0), axis=1) > EPS
        pts = pts[keep]
        if len(pts) < 2:
            raise ValueError("SplineCurve needs at least two distinct points")

        self._points = pts
        chords = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        u = np.concatenate([[0.0], np.cumsum(chords)])
        u /= u[-1]
        bc_type = "not-a-knot" if len(pts) > 3 else "natural"
        self._spline = CubicSpline(u, pts, axis=0, bc_type=bc_type)
        self._derivative = self._spline.derivative()

        self._u_table = np.linspace(0.0, 1.0, max(int(samples), 16))
        dense = self._spline(self._u_table)
        seg = np.linalg.norm(np.diff(dense, axis=0), axis=1)
        self._s_table = np.concatenate([[0.0], np.cumsum(seg)])

    def __repr__(self) -> str:
        return f"SplineCurve({len(self._points)} points, length={self.length:.4g})"

    @property
    def length(self) -> float:
        return float(self._s_table[-1])

    @property
    def is_linear(self) -> bool:
        chord = self._points[-1] - self._points[0]
        chord_len = float(np.linalg.norm(chord))
        if chord_len < EPS:
            return False
        direction = chord / chord_len
        rel = self._points - self._points[0]
        off_axis = rel - np.outer(rel @ direction, direction)
        return bool(np.max(np.linalg.norm(off_axis, axis=1)) <= 1e-9 * chord_len)

    def _param_at(self, s: float) -> float:
        return float(np.interp(self._clamp(s), self._s_table, self._u_table))

    def point_at(self, s: float) -> np.ndarray:
        return np.asarray(self._spline(self._param_at(s)), dtype=float)

    def tangent_at(self, s: float) -> np.ndarray:
        d = np.asarray(self._derivative(self._param_at(s)), dtype=float)
        norm = float(np.linalg.norm(d))
        if norm < EPS:
            return np.zeros(3)
        return d / norm


class _ReversedCurve(Curve):
    """View of a curve traversed from its end to its start."""

    def __init__(self, base: Curve):
        self._base = base

    def __repr__(self) -> str:
        return f"reversed({self._base!r})"

    @property
    def length(self) -> float:
        return self._base.length

    @property
    def is_linear(self) -> bool:
        return self._base.is_linear

    def point_at(self, s: float) -> np.ndarray:
        return self._base.point_at(self.length - self._clamp(s))

    def tangent_at(self, s: float) -> np.ndarray:
        return -self._base.tangent_at(self.length - self._clamp(s))

    def reversed(self) -> Curve:
        return self._base


def as_curve(item) -> Optional[Curve]:
    """Coerce a curve or a point sequence to a ``Curve``.

    Two points give a ``LineCurve``, three or more a ``SplineCurve``.
    Returns None for anything that cannot be interpreted.
    """
    if item is None:
        return None
    if isinstance(item, Curve):
        return item
    try:
        pts = np.asarray(item, dtype=float)
    except (TypeError, ValueError):
        return None
    if pts.ndim != 2 or pts.shape[1] != 3 or len(pts) < 2:
        return None
    if not np.all(np.isfinite(pts)):
        return None
    if len(pts) == 2:
        return LineCurve(pts[0], pts[1])
    try:
        return SplineCurve(pts)
    except ValueError:
        return None


def perpendicular_frame(normal: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Orthonormal ``(x, y, z)`` with ``z`` along *normal* and ``x × y = z``."""
    z = np.asarray(normal, dtype=float)
    z = z / (np.linalg.norm(z) + EPS)
    a = np.array([1.0, 0.0, 0.0])
    if abs(float(np.dot(a, z))) > 0.9:
        a = np.array([0.0, 0.0, 1.0])
    x = np.cross(z, a)
    x /= np.linalg.norm(x) + EPS
    y = np.cross(z, x)
    return x, y, z


def perpendicular_frames(curve: Curve, distances: Iterable[float]) -> List[Frame]:
    """Rotation-minimizing frames at the given arc-length distances.

    Frames are transported from a frame at the first distance using the
    double-reflection method, sampling the curve densely in between so the
    ring orientation follows the curve without spinning.
    """
    targets = np.asarray(list(distances), dtype=float)
    if targets.size == 0:
        return []

    if curve.is_linear:
        x, y, z = perpendicular_frame(curve.tangent_at(float(targets[0])))
        return [(curve.point_at(float(s)), x, y, z) for s in targets]

    order = np.argsort(targets, kind="stable")
    lo = float(targets[order[0]])
    hi = float(targets[order[-1]])
    dense = np.union1d(np.linspace(lo, hi, 64), targets)

    origin = curve.point_at(float(dense[0]))
    x, _, t = perpendicular_frame(curve.tangent_at(float(dense[0])))
    frames_by_s = {float(dense[0]): (origin, x, np.cross(t, x), t)}

    for s_next in dense[1:]:
        p_next = curve.point_at(float(s_next))
        t_next = curve.tangent_at(float(s_next))
        v1 = p_next - origin
        c1 = float(v1 @ v1)
        if c1 > EPS:
            x_l = x - (2.0 / c1) * float(v1 @ x) * v1
            t_l = t - (2.0 / c1) * float(v1 @ t) * v1
        else:
            x_l, t_l = x, t
        v2 = t_next - t_l
        c2 = float(v2 @ v2)
        if c2 > EPS:
            x_next = x_l - (2.0 / c2) * float(v2 @ x_l) * v2
        else:
            x_next = x_l
        # Re-orthogonalize against the tangent to stop drift.
        x_next = x_next - float(x_next @ t_next) * t_next
        x_next /= np.linalg.norm(x_next) + EPS
        origin, x, t = p_next, x_next, t_next
        frames_by_s[float(s_next)] = (origin, x, np.cross(t, x), t)

    return [frames_by_s[float(s)] for s in targets]


def ring_points(
    origin: np.ndarray,
    x_axis: np.ndarray,
    y_axis: np.ndarray,
    sides: int,
    radius: float,
    start_angle: float = 0.0,
) -> np.ndarray:
    """``sides`` points equally spaced on a circle in the given frame."""
    angles = np.arange(sides, dtype=float) * (2.0 * np.pi / sides) + start_angle
    return (
        np.asarray(origin, dtype=float)[None, :]
        + radius * np.cos(angles)[:, None] * x_axis[None, :]
        + radius * np.sin(angles)[:, None] * y_axis[None, :]
    )
