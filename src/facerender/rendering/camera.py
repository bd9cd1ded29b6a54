"""Perspective camera with view and projection matrices."""

import math

from facerender.core.math_utils import (
    Mat4,
    Vec3,
    deg_to_rad,
    mat4_identity,
    mat4_look_at,
    mat4_perspective,
    vec3,
)
from facerender.constants import DEFAULT_CAMERA_FOV, DEFAULT_FRAME_HEIGHT, DEFAULT_FRAME_WIDTH


def frame_distance(height: float, fov: float = DEFAULT_CAMERA_FOV) -> float:
    """Reference depth ``z`` for a frame of *height*; the camera sits at ``z / 2``.

    At ``z / 2`` a vertical field of view of *fov* degrees spans exactly
    *height* units at the z = 0 plane.
    """
    return height / math.tan(fov * math.pi / 360.0)


class Camera:
    """A perspective camera that produces view and projection matrices.

    Parameters
    ----------
    fov : float
        Vertical field-of-view in degrees.
    near : float
        Near clipping plane distance.
    far : float
        Far clipping plane distance.
    """

    def __init__(
        self,
        fov: float = DEFAULT_CAMERA_FOV,
        near: float = 1.0,
        far: float = 5000.0,
    ) -> None:
        self.fov = fov
        self.near = near
        self.far = far
        self.aspect: float = 1.0

        self.position: Vec3 = vec3(0.0, 0.0, 1.0)
        self.target: Vec3 = vec3(0.0, 0.0, 0.0)
        self.up: Vec3 = vec3(0.0, 1.0, 0.0)

        # Cached matrices (recomputed on demand)
        self._view_dirty: bool = True
        self._proj_dirty: bool = True
        self._view: Mat4 = mat4_identity()
        self._proj: Mat4 = mat4_identity()

        self.frame_camera(DEFAULT_FRAME_WIDTH, DEFAULT_FRAME_HEIGHT)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def frame_camera(self, width: float, height: float, fov: float | None = None) -> None:
        """Place the camera so a *width* x *height* frame fills the view.

        Render space has its origin at the frame's bottom-left corner, so
        the camera looks straight down -z at the frame centre.
        """
        if fov is not None:
            self.fov = fov
            self._proj_dirty = True
        z = frame_distance(height, self.fov)
        cx, cy = width * 0.5, height * 0.5
        self.position = vec3(cx, cy, z * 0.5)
        self.target = vec3(cx, cy, 0.0)
        self.far = max(self.far, z * 4.0)
        self._view_dirty = True
        self._proj_dirty = True

    def set_aspect(self, width: int, height: int) -> None:
        """Update the aspect ratio from viewport dimensions."""
        if height > 0:
            self.aspect = width / height
            self._proj_dirty = True

    def get_view_matrix(self) -> Mat4:
        """Return the current view (camera) matrix."""
        if self._view_dirty:
            self._view = mat4_look_at(self.position, self.target, self.up)
            self._view_dirty = False
        return self._view

    def get_projection_matrix(self) -> Mat4:
        """Return the current perspective projection matrix."""
        if self._proj_dirty:
            self._proj = mat4_perspective(deg_to_rad(self.fov), self.aspect, self.near, self.far)
            self._proj_dirty = False
        return self._proj

    def get_view_projection(self) -> Mat4:
        """Return ``projection @ view``."""
        return self.get_projection_matrix() @ self.get_view_matrix()
