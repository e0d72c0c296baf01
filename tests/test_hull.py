"""Tests for incremental node hulls and plate culling."""

import numpy as np
import pytest
import trimesh
from scipy.spatial import ConvexHull

from conftest import make_graph
from strutmesh.hull import (
    HULL_FAILED,
    HULL_OK,
    HULL_PLANAR,
    build_node_hull,
    cull_plate_faces,
    incremental_hull,
    is_coplanar,
    is_face_visible,
    planar_polygon_mesh,
)
from strutmesh.offsets import compute_all_offsets, fix_sharp_nodes
from strutmesh.report import boundary_edges
from strutmesh.sleeves import build_all_sleeves


def _prepared(struts, config, sharp=True):
    graph = make_graph(struts, radius=0.1)
    compute_all_offsets(graph, config)
    if sharp:
        fix_sharp_nodes(graph, config)
    build_all_sleeves(graph, config)
    return graph


class TestPredicates:
    def test_coplanar(self):
        a, b, c = np.zeros(3), np.array([1.0, 0, 0]), np.array([0, 1.0, 0])
        assert is_coplanar(a, b, c, np.array([5.0, 5.0, 1e-6]), 1e-5)
        assert not is_coplanar(a, b, c, np.array([0.2, 0.2, 1e-3]), 1e-5)

    def test_collinear_triangle_is_always_coplanar(self):
        a, b, c = np.zeros(3), np.array([1.0, 0, 0]), np.array([2.0, 0, 0])
        assert is_coplanar(a, b, c, np.array([0, 0, 9.0]), 1e-5)

    def test_visibility(self):
        center, normal = np.zeros(3), np.array([0, 0, 1.0])
        assert is_face_visible(np.array([0, 0, 0.5]), center, normal, 1e-5)
        assert is_face_visible(np.array([3.0, 0, 1e-7]), center, normal, 1e-5)
        assert not is_face_visible(np.array([0, 0, -0.5]), center, normal, 1e-5)

    def test_visibility_mask_over_stacked_faces(self):
        centers = np.zeros((3, 3))
        normals = np.array([[0, 0, 1.0], [0, 0, -1.0], [1.0, 0, 0]])
        mask = is_face_visible(np.array([0, 0, 0.5]), centers, normals, 1e-5)
        assert mask.dtype == bool
        assert mask.tolist() == [True, False, True]


class TestIncrementalHull:
    def test_cube_corners(self):
        points = np.array(
            [[x, y, z] for z in (0.0, 1.0) for y in (0.0, 1.0) for x in (0.0, 1.0)]
        )
        hull = incremental_hull(points, 1e-6, 1e-6)
        mesh = trimesh.Trimesh(hull.vertices, hull.faces, process=False)
        assert mesh.is_watertight
        assert mesh.euler_number == 2
        assert mesh.volume == pytest.approx(1.0)

    def test_matches_scipy_on_random_points(self):
        rng = np.random.default_rng(7)
        points = rng.normal(size=(60, 3))
        hull = incremental_hull(points, 1e-9, 1e-9)
        mesh = trimesh.Trimesh(hull.vertices, hull.faces, process=False)
        reference = ConvexHull(points)
        assert mesh.is_watertight
        assert mesh.volume == pytest.approx(reference.volume, rel=1e-9)
        assert sorted(hull.source_indices.tolist()) == sorted(reference.vertices.tolist())

    def test_interior_and_repeated_points_are_skipped(self):
        points = np.array(
            [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, 0, 1], [0.1, 0.1, 0.1], [1, 0, 0]],
            dtype=float,
        )
        hull = incremental_hull(points, 1e-9, 1e-6)
        assert len(hull.vertices) == 4
        assert hull.skipped == 2

    def test_coplanar_points_have_no_hull(self):
        points = np.array([[0, 0, 0], [1, 0, 0], [0, 1, 0], [1, 1, 0]], dtype=float)
        assert incremental_hull(points, 1e-6, 1e-6) is None


def test_cull_plate_faces():
    faces = np.array([[0, 1, 2], [0, 1, 3], [3, 4, 5]])
    owners = np.array([7, 7, 7, 8, 8, 8])
    kept = cull_plate_faces(faces, owners, {7})
    assert kept.tolist() == [[0, 1, 3], [3, 4, 5]]


def test_planar_polygon_mesh():
    angles = np.linspace(0.0, 2.0 * np.pi, 8, endpoint=False)
    points = np.column_stack([np.cos(angles), np.sin(angles), np.full(8, 2.0)])
    points = np.vstack([points, [[0.0, 0.0, 2.0]]])
    mesh = planar_polygon_mesh(points)
    assert len(mesh.vertices) == 8
    assert len(mesh.faces) == 6
    assert mesh.area == pytest.approx(2.0 * np.sqrt(2.0))
    assert planar_polygon_mesh(np.array([[0, 0, 0], [1, 0, 0], [2, 0, 0]], dtype=float)) is None


class TestBuildNodeHull:
    def test_closed_hull_is_a_sphere(self, corner_struts, config):
        graph = _prepared(corner_struts, config)
        result = build_node_hull(graph, 0, config)
        assert result.status == HULL_OK
        assert result.closed_mesh.is_watertight
        assert result.closed_mesh.euler_number == 2

    def test_strut_plates_are_opened(self, corner_struts, config):
        graph = _prepared(corner_struts, config)
        result = build_node_hull(graph, 0, config)
        edges = boundary_edges(result.mesh)
        assert len(edges) == 3 * config.sides

        boundary_points = result.mesh.vertices[np.unique(edges)]
        ring_points = np.vstack(
            [graph.plates[i].vertices[1:] for i in graph.nodes[0].plate_indices[:3]]
        )
        assert len(boundary_points) == len(ring_points)
        for point in boundary_points:
            assert np.min(np.linalg.norm(ring_points - point, axis=1)) < config.tolerance

    def test_sharp_plate_stays_closed(self, corner_struts, config):
        graph = _prepared(corner_struts, config)
        result = build_node_hull(graph, 0, config)
        synthetic = np.asarray(graph.plates[6].vertices)
        # The synthetic ring is not culled, so none of its points border a hole.
        edges = boundary_edges(result.mesh)
        for point in result.mesh.vertices[np.unique(edges)]:
            assert np.min(np.linalg.norm(synthetic - point, axis=1)) > config.tolerance

    def test_straight_node_bridges_two_rings(self, straight_struts, config):
        graph = _prepared(straight_struts, config)
        result = build_node_hull(graph, 1, config)
        assert result.status == HULL_OK
        assert result.closed_mesh.euler_number == 2
        assert len(boundary_edges(result.mesh)) == 2 * config.sides

    def test_without_rings_the_hull_fails(self, corner_struts, config):
        graph = make_graph(corner_struts, radius=0.1)
        assert build_node_hull(graph, 0, config).status == HULL_FAILED

    def test_coplanar_rings_fall_back_to_a_polygon(self, config):
        graph = make_graph([[[0, 0, 0], [1, 0, 0]], [[0, 0, 0], [0, 1, 0]]], radius=0.1)
        for plate in graph.plates:
            plate.vertices = []
        flat = [np.array([x, y, 0.0]) for x, y in [(0, 0), (1, 0), (0, 1), (1, 1), (0.5, 1.5)]]
        graph.plates[0].vertices = flat[:3]
        graph.plates[2].vertices = flat[3:]
        result = build_node_hull(graph, 0, config)
        assert result.status == HULL_PLANAR
        assert result.mesh is not None
        assert result.closed_mesh is None
