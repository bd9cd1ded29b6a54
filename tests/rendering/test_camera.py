"""Tests for camera framing (no GL context needed)."""

import math

import numpy as np
import pytest

pytest.importorskip("OpenGL.GL")
pytest.importorskip("PySide6.QtOpenGLWidgets")

from facerender.rendering.camera import Camera, frame_distance


def _ndc(camera, point):
    clip = camera.get_view_projection() @ np.array([*point, 1.0])
    return clip[:3] / clip[3]


def test_frame_distance():
    assert frame_distance(500, 45.0) == pytest.approx(500 / math.tan(math.pi / 8))


def test_frame_fills_view_vertically():
    camera = Camera(fov=45.0)
    camera.frame_camera(500, 500)
    camera.set_aspect(500, 500)
    np.testing.assert_array_almost_equal(camera.position, [250, 250, frame_distance(500) / 2])
    np.testing.assert_array_almost_equal(_ndc(camera, (250, 250, 0))[:2], [0, 0])
    assert _ndc(camera, (250, 500, 0))[1] == pytest.approx(1.0)
    assert _ndc(camera, (250, 0, 0))[1] == pytest.approx(-1.0)


def test_points_towards_camera_are_nearer():
    camera = Camera()
    camera.frame_camera(500, 500)
    assert _ndc(camera, (250, 250, 50))[2] < _ndc(camera, (250, 250, 0))[2]


def test_frame_camera_updates_fov():
    camera = Camera()
    camera.frame_camera(640, 480, fov=60.0)
    assert camera.fov == 60.0
    assert camera.far >= frame_distance(480, 60.0) * 4
