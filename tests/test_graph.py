"""Tests for lattice graph construction and radius assignment."""

import numpy as np
import pytest

from conftest import make_graph
from strutmesh.canonicalize import canonicalize_network
from strutmesh.graph import (
    assign_gradient_radii,
    assign_radii,
    assign_strut_radii,
    build_lattice_graph,
    lattice_bounds,
)


class TestBuildLatticeGraph:
    def test_arenas_are_cross_referenced(self, corner_struts):
        graph = build_lattice_graph(canonicalize_network(corner_struts, 1e-3))
        assert len(graph.nodes) == 4
        assert len(graph.struts) == 3
        assert len(graph.plates) == 6

        hub = graph.nodes[0]
        assert hub.degree == 3
        assert hub.strut_indices == [0, 1, 2]
        for plate_index in hub.plate_indices:
            assert graph.plates[plate_index].node_index == 0

        for strut_index, strut in enumerate(graph.struts):
            start, end = strut.plate_pair
            assert graph.plates[start].strut_index == strut_index
            assert graph.plates[end].strut_index == strut_index
            assert graph.plates[start].node_index == strut.node_pair[0]
            assert graph.plates[end].node_index == strut.node_pair[1]

    def test_plate_normals_point_into_the_strut(self, corner_struts):
        graph = build_lattice_graph(canonicalize_network(corner_struts, 1e-3))
        strut = graph.struts[0]  # origin -> +X
        assert np.allclose(graph.plates[strut.plate_pair[0]].normal, [1, 0, 0])
        assert np.allclose(graph.plates[strut.plate_pair[1]].normal, [-1, 0, 0])

    def test_plates_start_without_offset_or_ring(self, corner_graph):
        for plate in corner_graph.plates:
            assert plate.offset == 0.0
            assert plate.vertices == []
            assert not plate.is_synthetic

    def test_radius_at_rejects_foreign_node(self, corner_graph):
        with pytest.raises(ValueError):
            corner_graph.struts[0].radius_at(3)


class TestAssignRadii:
    def test_scalar_radius(self, corner_graph):
        assert np.allclose(corner_graph.node_radii(), 0.1)
        for strut in corner_graph.struts:
            assert strut.start_radius == pytest.approx(0.1)
            assert strut.avg_radius == pytest.approx(0.1)

    def test_per_node_radii_taper_struts(self, corner_struts):
        graph = make_graph(corner_struts)
        assign_radii(graph, [0.2, 0.1, 0.1, 0.05])
        strut = graph.struts[2]
        assert strut.start_radius == pytest.approx(0.2)
        assert strut.end_radius == pytest.approx(0.05)
        assert strut.radius_at(0) == pytest.approx(0.2)
        assert strut.avg_radius == pytest.approx(0.125)

    def test_wrong_length_raises(self, corner_graph):
        with pytest.raises(ValueError, match="one per node"):
            assign_radii(corner_graph, [0.1, 0.1])

    @pytest.mark.parametrize("bad", [0.0, -0.1, float("nan")])
    def test_non_positive_radius_raises(self, corner_graph, bad):
        with pytest.raises(ValueError):
            assign_radii(corner_graph, bad)



class TestAssignStrutRadii:
    def test_each_strut_end_gets_its_own_radius(self, corner_graph):
        assign_strut_radii(corner_graph, [0.12, 0.08, 0.1], [0.1, 0.08, 0.06])
        assert [s.start_radius for s in corner_graph.struts] == [0.12, 0.08, 0.1]
        assert [s.end_radius for s in corner_graph.struts] == [0.1, 0.08, 0.06]
        assert corner_graph.struts[2].avg_radius == pytest.approx(0.08)

    def test_node_radius_is_the_mean_of_strut_ends(self, corner_graph):
        assign_strut_radii(corner_graph, [0.12, 0.08, 0.1], [0.1, 0.08, 0.06])
        assert corner_graph.node_radii() == pytest.approx([0.1, 0.1, 0.08, 0.06])

    def test_wrong_length_raises(self, corner_graph):
        with pytest.raises(ValueError, match="one per strut"):
            assign_strut_radii(corner_graph, [0.1, 0.1], [0.1, 0.1, 0.1])

    @pytest.mark.parametrize("bad", [0.0, -0.1, float("inf")])
    def test_non_positive_radius_raises(self, corner_graph, bad):
        with pytest.raises(ValueError):
            assign_strut_radii(corner_graph, [0.1, 0.1, 0.1], [0.1, bad, 0.1])
        assert np.allclose(corner_graph.node_radii(), 0.1)

class TestGradientRadii:
    def test_field_maps_onto_radius_range(self, corner_graph):
        assign_gradient_radii(corner_graph, lambda p: p[0], 0.05, 0.15)
        radii = corner_graph.node_radii()
        # Only the +X tip sits at unit x = 1.
        assert radii[0] == pytest.approx(0.05)
        assert radii[1] == pytest.approx(0.15)
        assert radii[2] == pytest.approx(0.05)

    def test_field_values_are_clipped(self, corner_graph):
        assign_gradient_radii(corner_graph, lambda p: 5.0, 0.05, 0.15)
        assert np.allclose(corner_graph.node_radii(), 0.15)

    def test_flat_axis_maps_to_zero(self):
        graph = make_graph([[[0, 0, 0], [1, 0, 0]], [[1, 0, 0], [1, 1, 0]]])
        assign_gradient_radii(graph, lambda p: p[2], 0.1, 0.3)
        assert np.allclose(graph.node_radii(), 0.1)

    def test_rejects_non_positive_range(self, corner_graph):
        with pytest.raises(ValueError):
            assign_gradient_radii(corner_graph, lambda p: 0.5, 0.0, 0.2)


def test_lattice_bounds_include_curved_struts():
    graph = make_graph([[[0, 0, 0], [1, 1, 0], [2, 0, 0]]])
    lo, hi = lattice_bounds(graph)
    assert np.allclose(lo, [0, 0, 0], atol=1e-9)
    assert hi[0] == pytest.approx(2.0)
    assert hi[1] > 0.9
