"""Tests for math_utils module."""

import numpy as np
import pytest

from facerender.core.math_utils import (
    bounding_box, bounding_box_midpoint, deg_to_rad, mat3_normal,
    mat4_compose, mat4_identity, mat4_look_at, mat4_perspective,
    normalize, points_in_polygon, quat_identity, vec3,
)


def test_vec3():
    v = vec3(1, 2, 3)
    assert v.shape == (3,)
    np.testing.assert_array_equal(v, [1, 2, 3])


def test_mat4_identity():
    np.testing.assert_array_equal(mat4_identity(), np.eye(4))


def test_mat4_compose_translation_and_scale():
    m = mat4_compose(vec3(1, 2, 3), quat_identity(), vec3(2, 2, 2))
    p = m @ np.array([1.0, 1.0, 1.0, 1.0])
    np.testing.assert_array_almost_equal(p[:3], [3, 4, 5])


def test_look_at_maps_target_onto_negative_z():
    view = mat4_look_at(vec3(250, 250, 300), vec3(250, 250, 0), vec3(0, 1, 0))
    p = view @ np.array([250.0, 250.0, 0.0, 1.0])
    np.testing.assert_array_almost_equal(p[:3], [0, 0, -300])


def test_perspective_shape():
    m = mat4_perspective(deg_to_rad(45.0), 1.0, 1.0, 1000.0)
    assert m.shape == (4, 4)
    assert m[3, 2] == pytest.approx(-1.0)


def test_mat3_normal_identity():
    np.testing.assert_array_almost_equal(mat3_normal(mat4_identity()), np.eye(3))


def test_normalize():
    np.testing.assert_array_almost_equal(normalize(vec3(3, 0, 4)), [0.6, 0, 0.8])


def test_bounding_box_midpoint():
    pts = [[0, 0, 0], [2, 0, 0], [0, 2, 0], [2, 2, 0]]
    np.testing.assert_array_almost_equal(bounding_box_midpoint(pts), [1, 1, 0])


def test_bounding_box_midpoint_ignores_sample_density():
    # many points on the left edge must not pull the centre left
    pts = [[0, y, 0] for y in range(10)] + [[4, 0, 0]]
    lo, hi = bounding_box(pts)
    np.testing.assert_array_almost_equal(lo, [0, 0, 0])
    np.testing.assert_array_almost_equal(hi, [4, 9, 0])
    np.testing.assert_array_almost_equal(bounding_box_midpoint(pts), [2, 4.5, 0])


def test_bounding_box_empty_raises():
    with pytest.raises(ValueError):
        bounding_box(np.zeros((0, 3)))


def test_points_in_polygon_square():
    square = [[0, 0], [10, 0], [10, 10], [0, 10]]
    pts = np.array([[5, 5, 0], [15, 5, 0], [-1, -1, 0], [0, 0, 0]], dtype=np.float64)
    inside = points_in_polygon(pts, square)
    assert inside.tolist() == [True, False, False, True]


def test_points_in_polygon_concave():
    # U shape: the notch between the arms is outside
    u_shape = [[0, 0], [30, 0], [30, 30], [20, 30], [20, 10], [10, 10], [10, 30], [0, 30]]
    inside = points_in_polygon([[5, 20], [15, 20], [25, 20], [15, 5]], u_shape)
    assert inside.tolist() == [True, False, True, True]


def test_points_in_polygon_degenerate():
    assert not points_in_polygon([[0, 0]], [[0, 1], [1, 1]]).any()
