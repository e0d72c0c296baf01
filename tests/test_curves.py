"""Tests for arc-length parametrized strut curves and frames."""

import numpy as np
import pytest

from strutmesh.curves import (
    LineCurve,
    SplineCurve,
    as_curve,
    perpendicular_frame,
    perpendicular_frames,
    ring_points,
)


class TestLineCurve:
    def test_length_and_points(self):
        curve = LineCurve([0, 0, 0], [3, 4, 0])
        assert curve.length == pytest.approx(5.0)
        assert np.allclose(curve.point_at(2.5), [1.5, 2.0, 0.0])
        assert np.allclose(curve.tangent_at(1.0), [0.6, 0.8, 0.0])

    def test_parameter_is_clamped(self):
        curve = LineCurve([0, 0, 0], [1, 0, 0])
        assert np.allclose(curve.point_at(-1.0), [0, 0, 0])
        assert np.allclose(curve.point_at(5.0), [1, 0, 0])

    def test_reversed(self):
        curve = LineCurve([0, 0, 0], [1, 2, 2]).reversed()
        assert np.allclose(curve.start, [1, 2, 2])
        assert np.allclose(curve.end, [0, 0, 0])
        assert np.allclose(curve.tangent_at(0.0), -np.array([1, 2, 2]) / 3.0)

    def test_zero_length_is_invalid(self):
        assert not LineCurve([1, 1, 1], [1, 1, 1]).is_valid


class TestSplineCurve:
    def test_interpolates_endpoints(self):
        pts = [[0, 0, 0], [1, 1, 0], [2, 0, 0]]
        curve = SplineCurve(pts)
        assert np.allclose(curve.start, pts[0], atol=1e-9)
        assert np.allclose(curve.end, pts[-1], atol=1e-9)
        assert not curve.is_linear

    def test_arc_length_exceeds_chord(self):
        curve = SplineCurve([[0, 0, 0], [1, 1, 0], [2, 0, 0]])
        assert curve.length > 2.0
        assert curve.length < 4.0

    def test_collinear_points_are_linear(self):
        curve = SplineCurve([[0, 0, 0], [1, 0, 0], [2, 0, 0], [3, 0, 0]])
        assert curve.is_linear
        assert curve.length == pytest.approx(3.0, rel=1e-6)

    def test_reversed_spline(self):
        curve = SplineCurve([[0, 0, 0], [1, 1, 0], [2, 0, 0]])
        rev = curve.reversed()
        assert np.allclose(rev.start, curve.end)
        assert np.allclose(rev.point_at(0.3), curve.point_at(curve.length - 0.3))
        assert rev.reversed() is curve


class TestAsCurve:
    def test_two_points_make_a_line(self):
        assert isinstance(as_curve([[0, 0, 0], [1, 0, 0]]), LineCurve)

    def test_three_points_make_a_spline(self):
        assert isinstance(as_curve([[0, 0, 0], [1, 1, 0], [2, 0, 0]]), SplineCurve)

    @pytest.mark.parametrize("raw", [None, [], [[0, 0, 0]], [[0, 0], [1, 1]], "abc"])
    def test_rejects_garbage(self, raw):
        assert as_curve(raw) is None

    def test_rejects_non_finite(self):
        assert as_curve([[0, 0, 0], [np.nan, 0, 0]]) is None


class TestFrames:
    @pytest.mark.parametrize("normal", [[0, 0, 1], [1, 0, 0], [1, 1, 1], [-0.3, 0.2, -5.0]])
    def test_perpendicular_frame_is_right_handed(self, normal):
        x, y, z = perpendicular_frame(np.asarray(normal, dtype=float))
        assert np.allclose(np.cross(x, y), z, atol=1e-9)
        assert np.linalg.norm(x) == pytest.approx(1.0)
        assert np.dot(x, z) == pytest.approx(0.0, abs=1e-9)

    def test_frames_follow_a_curve(self):
        curve = SplineCurve([[0, 0, 0], [1, 1, 0], [2, 0, 1], [3, 0, 0]])
        distances = np.linspace(0.0, curve.length, 7)
        frames = perpendicular_frames(curve, distances)
        assert len(frames) == 7
        for (origin, x, y, z), s in zip(frames, distances):
            assert np.allclose(origin, curve.point_at(s))
            assert np.allclose(z, curve.tangent_at(s))
            assert np.dot(x, z) == pytest.approx(0.0, abs=1e-6)
            assert np.allclose(np.cross(x, y), z, atol=1e-6)

    def test_frames_do_not_flip_between_samples(self):
        curve = SplineCurve([[0, 0, 0], [1, 0.5, 0], [2, 0, 0]])
        frames = perpendicular_frames(curve, np.linspace(0.0, curve.length, 20))
        for (_, x_a, _, _), (_, x_b, _, _) in zip(frames, frames[1:]):
            assert np.dot(x_a, x_b) > 0.9


def test_ring_points_lie_on_circle():
    x, y, z = perpendicular_frame(np.array([0.0, 1.0, 1.0]))
    center = np.array([1.0, 2.0, 3.0])
    ring = ring_points(center, x, y, sides=8, radius=0.25)
    assert ring.shape == (8, 3)
    assert np.allclose(np.linalg.norm(ring - center, axis=1), 0.25)
    assert np.allclose((ring - center) @ z, 0.0)
