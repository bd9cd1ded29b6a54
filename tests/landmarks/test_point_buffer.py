"""Tests for the point buffer adapter."""

import numpy as np
import pytest

from facerender.landmarks.point_buffer import (
    AxisRemap, BoundingBox, PointBufferAdapter, as_point_buffer,
)


def _raw(n=4):
    return np.array([[10, 20, -5], [30, 40, 5], [50, 60, 0], [70, 80, 2]][:n], dtype=np.float32)


def test_as_point_buffer_shape_checked():
    pts = as_point_buffer(_raw(), point_count=4)
    assert pts.dtype == np.float32
    with pytest.raises(ValueError):
        as_point_buffer(_raw(3), point_count=4)
    with pytest.raises(ValueError):
        as_point_buffer(np.zeros((4, 2)), point_count=4)


def test_identity_remap():
    adapter = PointBufferAdapter(AxisRemap(flip_x=False, flip_y=False, flip_z=False), point_count=4)
    np.testing.assert_array_almost_equal(adapter.adapt(_raw()), _raw())


def test_flip_axes():
    remap = AxisRemap(frame_width=100, frame_height=200, flip_x=True, flip_y=True, flip_z=True)
    out = PointBufferAdapter(remap, point_count=4).adapt(_raw())
    np.testing.assert_array_almost_equal(out[0], [90, 180, 5])
    np.testing.assert_array_almost_equal(out[1], [70, 160, -5])


def test_scale_and_offset():
    remap = AxisRemap(flip_y=False, scale=2.0, z_scale=0.5, offset=(1.0, 2.0, 3.0))
    out = PointBufferAdapter(remap, point_count=4).adapt(_raw())
    np.testing.assert_array_almost_equal(out[0], [21, 42, -2])


def test_adapt_preserves_index_order_and_input():
    raw = _raw()
    adapter = PointBufferAdapter(AxisRemap(flip_x=True, flip_y=False), point_count=4)
    out = adapter.adapt(raw)
    np.testing.assert_array_equal(raw, _raw())
    assert out is not raw
    np.testing.assert_array_almost_equal(out[:, 1], raw[:, 1])


def test_fit_to_box_fills_frame():
    remap = AxisRemap(frame_width=100, frame_height=100, flip_y=False)
    adapter = PointBufferAdapter(remap, point_count=4)
    raw = np.array([[10, 10, 0], [30, 10, 0], [10, 30, 0], [30, 30, 4]], dtype=np.float32)
    out = adapter.adapt(raw, BoundingBox.from_points(raw))
    np.testing.assert_array_almost_equal(out[0, :2], [0, 0])
    np.testing.assert_array_almost_equal(out[3], [100, 100, 20])


def test_degenerate_box_ignored():
    adapter = PointBufferAdapter(AxisRemap(flip_y=False), point_count=4)
    raw = _raw()
    out = adapter.adapt(raw, BoundingBox((5.0, 5.0), (5.0, 5.0)))
    np.testing.assert_array_almost_equal(out, raw)


def test_bounding_box_from_points():
    box = BoundingBox.from_points(_raw())
    assert box.top_left == (10.0, 20.0)
    assert box.bottom_right == (70.0, 80.0)
    assert box.width == 60.0
    assert box.height == 60.0


def test_remap_from_config():
    remap = AxisRemap.from_config()
    assert remap.frame_width == 500
    assert remap.flip_y is True
    resized = remap.with_frame(640, 480)
    assert (resized.frame_width, resized.frame_height) == (640, 480)
    assert resized.flip_x == remap.flip_x
