"""NumPy-backed math utilities: vectors, quaternions, 4x4 matrices, point sets.

Vectors are plain numpy arrays; quaternions are [x, y, z, w] arrays.
Matrices are 4x4 numpy arrays stored row-major (transposed on upload).
"""

import numpy as np
from numpy.typing import ArrayLike, NDArray

# Type aliases
Vec3 = NDArray[np.float64]
Mat3 = NDArray[np.float64]
Mat4 = NDArray[np.float64]
Quat = NDArray[np.float64]  # [x, y, z, w]


def vec3(x: float = 0.0, y: float = 0.0, z: float = 0.0) -> Vec3:
    return np.array([x, y, z], dtype=np.float64)


def mat4_identity() -> Mat4:
    return np.eye(4, dtype=np.float64)


def mat4_from_quaternion(q: Quat) -> Mat4:
    """Convert quaternion [x,y,z,w] to 4x4 rotation matrix."""
    x, y, z, w = q
    m = np.eye(4, dtype=np.float64)
    m[0, 0] = 1 - 2 * (y * y + z * z)
    m[0, 1] = 2 * (x * y - z * w)
    m[0, 2] = 2 * (x * z + y * w)
    m[1, 0] = 2 * (x * y + z * w)
    m[1, 1] = 1 - 2 * (x * x + z * z)
    m[1, 2] = 2 * (y * z - x * w)
    m[2, 0] = 2 * (x * z - y * w)
    m[2, 1] = 2 * (y * z + x * w)
    m[2, 2] = 1 - 2 * (x * x + y * y)
    return m


def mat4_compose(position: Vec3, quaternion: Quat, scale: Vec3) -> Mat4:
    """Compose TRS matrix from position, quaternion rotation, and scale."""
    m = mat4_from_quaternion(quaternion)
    m[:3, 0] *= scale[0]
    m[:3, 1] *= scale[1]
    m[:3, 2] *= scale[2]
    m[0, 3] = position[0]
    m[1, 3] = position[1]
    m[2, 3] = position[2]
    return m


def mat4_perspective(fov_rad: float, aspect: float, near: float, far: float) -> Mat4:
    """Create perspective projection matrix."""
    f = 1.0 / np.tan(fov_rad / 2.0)
    m = np.zeros((4, 4), dtype=np.float64)
    m[0, 0] = f / aspect
    m[1, 1] = f
    m[2, 2] = (far + near) / (near - far)
    m[2, 3] = (2 * far * near) / (near - far)
    m[3, 2] = -1.0
    return m


def mat4_look_at(eye: Vec3, target: Vec3, up: Vec3) -> Mat4:
    """Create view matrix (camera look-at)."""
    f = normalize(target - eye)
    s = normalize(np.cross(f, up))
    if np.linalg.norm(s) < 1e-6:
        # forward parallel to up
        alt_up = np.array([0.0, 0.0, -1.0]) if abs(f[1]) > 0.9 else np.array([0.0, 1.0, 0.0])
        s = normalize(np.cross(f, alt_up))
    u = np.cross(s, f)
    m = np.eye(4, dtype=np.float64)
    m[0, :3] = s
    m[1, :3] = u
    m[2, :3] = -f
    m[0, 3] = -np.dot(s, eye)
    m[1, 3] = -np.dot(u, eye)
    m[2, 3] = np.dot(f, eye)
    return m


def mat3_normal(m: Mat4) -> Mat3:
    """Extract normal matrix (inverse transpose of upper-left 3x3)."""
    return np.linalg.inv(m[:3, :3]).T


def quat_identity() -> Quat:
    return np.array([0.0, 0.0, 0.0, 1.0], dtype=np.float64)


def normalize(v: Vec3) -> Vec3:
    n = np.linalg.norm(v)
    if n < 1e-10:
        return np.zeros_like(v)
    return v / n


def deg_to_rad(degrees: float) -> float:
    return degrees * np.pi / 180.0


# Point-set helpers

def bounding_box(points: ArrayLike) -> tuple[Vec3, Vec3]:
    """Return per-axis (min, max) of an (N, 3) point set."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(pts) == 0:
        raise ValueError("bounding_box of an empty point set")
    return pts.min(axis=0), pts.max(axis=0)


def bounding_box_midpoint(points: ArrayLike) -> Vec3:
    """Midpoint of the axis-aligned bounding box of *points*.

    Used as the centroid of accessory features; unlike the arithmetic mean it
    does not drift toward densely sampled parts of an outline.
    """
    lo, hi = bounding_box(points)
    return (lo + hi) * 0.5


def points_in_polygon(points: ArrayLike, polygon: ArrayLike) -> NDArray[np.bool_]:
    """Even-odd ray casting test of many 2-D points against a closed polygon.

    *points* is (N, >=2), *polygon* is (M, >=2); only x and y are used.
    Points coinciding with a polygon vertex count as inside.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(len(points), -1)[:, :2]
    poly = np.asarray(polygon, dtype=np.float64).reshape(len(polygon), -1)[:, :2]
    x = pts[:, 0]
    y = pts[:, 1]
    inside = np.zeros(len(pts), dtype=bool)
    if len(poly) < 3:
        return inside

    j = len(poly) - 1
    for i in range(len(poly)):
        xi, yi = poly[i]
        xj, yj = poly[j]
        crosses = (yi > y) != (yj > y)
        if crosses.any():
            with np.errstate(divide="ignore", invalid="ignore"):
                x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            inside ^= crosses & (x < x_cross)
        j = i

    on_vertex = ((pts[:, None, :] == poly[None, :, :]).all(axis=2)).any(axis=1)
    return inside | on_vertex
