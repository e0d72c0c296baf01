"""
Shared test fixtures for strut-network solidification tests.
"""
import sys
from pathlib import Path

import numpy as np
import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from strutmesh.canonicalize import canonicalize_network
from strutmesh.contracts import SolidifyConfig
from strutmesh.graph import assign_radii, build_lattice_graph


def make_graph(struts, radius=0.1, tolerance=1e-3):
    """Canonicalize *struts*, build the graph and assign a uniform radius."""
    network = canonicalize_network(struts, tolerance)
    graph = build_lattice_graph(network)
    assign_radii(graph, radius)
    return graph


@pytest.fixture
def config():
    """Default config for tests."""
    return SolidifyConfig()


@pytest.fixture
def corner_struts():
    """Three unit struts from the origin along +X, +Y, +Z."""
    origin = [0.0, 0.0, 0.0]
    return [
        [origin, [1.0, 0.0, 0.0]],
        [origin, [0.0, 1.0, 0.0]],
        [origin, [0.0, 0.0, 1.0]],
    ]


@pytest.fixture
def straight_struts():
    """Two collinear unit struts meeting at the origin."""
    return [
        [[-1.0, 0.0, 0.0], [0.0, 0.0, 0.0]],
        [[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]],
    ]


@pytest.fixture
def cube_struts():
    """The 12 edges of a 2x2x2 cube."""
    corners = np.array(
        [[x, y, z] for x in (0.0, 2.0) for y in (0.0, 2.0) for z in (0.0, 2.0)]
    )
    edges = []
    for a in range(8):
        for b in range(a + 1, 8):
            if np.count_nonzero(corners[a] != corners[b]) == 1:
                edges.append([corners[a].tolist(), corners[b].tolist()])
    return edges


@pytest.fixture
def corner_graph(corner_struts):
    return make_graph(corner_struts)


@pytest.fixture
def wireframe_file(tmp_path: Path, corner_struts) -> str:
    """Corner wireframe saved as JSON."""
    import json

    path = tmp_path / "corner.json"
    path.write_text(json.dumps({"struts": corner_struts, "radius": 0.1}))
    return str(path)
