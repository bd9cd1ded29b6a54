"""Tests for the vertex merge topology and smooth normals."""

import numpy as np
import pytest

from facerender.core.mesh import BufferGeometry
from facerender.core.topology import MergeTopology


def test_from_slots_merges_shared_landmarks():
    topo = MergeTopology.from_slots([0, 1, 2, 2, 1, 3])
    assert topo.triangle_count == 2
    assert topo.slot_count == 6
    assert topo.vertex_count == 4
    np.testing.assert_array_equal(topo.vertex_keys, [0, 1, 2, 3])
    assert topo.slot_to_vertex[1] == topo.slot_to_vertex[4]
    assert topo.slot_to_vertex[2] == topo.slot_to_vertex[3]


def test_from_slots_rejects_partial_triangle():
    with pytest.raises(ValueError):
        MergeTopology.from_slots([0, 1, 2, 3])


def test_flat_quad_normals():
    topo = MergeTopology.from_slots([0, 1, 2, 2, 1, 3])
    positions = np.array([
        0, 0, 0, 1, 0, 0, 0, 1, 0,
        0, 1, 0, 1, 0, 0, 1, 1, 0,
    ], dtype=np.float32)
    normals = topo.compute_vertex_normals(positions)
    assert normals.dtype == np.float32
    np.testing.assert_array_almost_equal(normals.reshape(-1, 3), [[0, 0, 1]] * 6)


def test_shared_vertices_get_identical_unit_normals():
    topo = MergeTopology.from_slots([0, 1, 2, 2, 1, 3])
    # fold the quad along the shared edge
    positions = np.array([
        0, 0, 0, 1, 0, 0, 0, 1, 0,
        0, 1, 0, 1, 0, 0, 1, 1, 1,
    ], dtype=np.float32)
    n = topo.compute_vertex_normals(positions).reshape(-1, 3)
    np.testing.assert_array_almost_equal(n[1], n[4])
    np.testing.assert_array_almost_equal(n[2], n[3])
    np.testing.assert_array_almost_equal(np.linalg.norm(n, axis=1), np.ones(6), decimal=5)


def test_degenerate_triangles_do_not_produce_nan():
    topo = MergeTopology.from_slots([0, 1, 2])
    n = topo.compute_vertex_normals(np.zeros(9, dtype=np.float32))
    assert np.all(np.isfinite(n))


def test_triangle_count_mismatch_raises():
    topo = MergeTopology.from_slots([0, 1, 2])
    with pytest.raises(ValueError):
        topo.compute_vertex_normals(np.zeros(18, dtype=np.float32))


def test_merged_positions_and_indices():
    slots = [5, 6, 7, 7, 6, 8]
    coords = {5: (0, 0, 0), 6: (1, 0, 0), 7: (0, 1, 0), 8: (1, 1, 0)}
    positions = np.array([coords[k] for k in slots], dtype=np.float32).ravel()
    topo = MergeTopology.from_slots(slots)
    merged = topo.merged_positions(positions)
    assert merged.shape == (4, 3)
    np.testing.assert_array_equal(merged[topo.indices()].ravel(), positions)


def test_geometry_normals_written_in_place():
    topo = MergeTopology.from_slots([0, 1, 2])
    geom = BufferGeometry.allocate(1, topology=topo)
    normals_buffer = geom.normals
    geom.positions[:] = [0, 0, 0, 1, 0, 0, 0, 1, 0]
    geom.compute_normals()
    assert geom.normals is normals_buffer
    np.testing.assert_array_almost_equal(geom.normals.reshape(-1, 3), [[0, 0, 1]] * 3)
