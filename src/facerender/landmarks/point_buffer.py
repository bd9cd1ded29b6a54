"""Detector-space -> render-space remap of per-frame landmark buffers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from facerender.constants import DEFAULT_FRAME_HEIGHT, DEFAULT_FRAME_WIDTH, FACE_POINT_COUNT
from facerender.core.config_loader import load_config

logger = logging.getLogger(__name__)


def as_point_buffer(raw: ArrayLike, point_count: int = FACE_POINT_COUNT) -> NDArray[np.float32]:
    """Validate and convert *raw* to a ``(point_count, 3)`` float32 array.

    Raises ``ValueError`` for any other shape; a mismatched landmark count
    means the detector and the static tables disagree.
    """
    pts = np.asarray(raw, dtype=np.float32)
    if pts.shape != (point_count, 3):
        raise ValueError(f"point buffer must have shape ({point_count}, 3), got {pts.shape}")
    return pts


@dataclass
class AxisRemap:
    """Per-axis affine remap from detector pixels to render space.

    x' = ((W - x) if flip_x else x) * scale + offset[0]
    y' = ((H - y) if flip_y else y) * scale + offset[1]
    z' = (-z if flip_z else z) * scale * z_scale + offset[2]

    Image y grows downwards while render y grows upwards, hence ``flip_y``
    defaults to True.  ``flip_x`` mirrors a user-facing camera.
    """
    frame_width: float = DEFAULT_FRAME_WIDTH
    frame_height: float = DEFAULT_FRAME_HEIGHT
    flip_x: bool = False
    flip_y: bool = True
    flip_z: bool = False
    scale: float = 1.0
    z_scale: float = 1.0
    offset: tuple[float, float, float] = (0.0, 0.0, 0.0)

    @classmethod
    def from_config(cls, name: str = "point_adapter.json") -> "AxisRemap":
        cfg = load_config(name)
        return cls(
            frame_width=cfg.get("frameWidth", DEFAULT_FRAME_WIDTH),
            frame_height=cfg.get("frameHeight", DEFAULT_FRAME_HEIGHT),
            flip_x=cfg.get("flipX", False),
            flip_y=cfg.get("flipY", True),
            flip_z=cfg.get("flipZ", False),
            scale=cfg.get("scale", 1.0),
            z_scale=cfg.get("zScale", 1.0),
            offset=tuple(cfg.get("offset", (0.0, 0.0, 0.0))),
        )

    def with_frame(self, width: float, height: float) -> "AxisRemap":
        """Copy with the frame dimensions replaced (e.g. after a capture resize)."""
        return AxisRemap(
            frame_width=width, frame_height=height,
            flip_x=self.flip_x, flip_y=self.flip_y, flip_z=self.flip_z,
            scale=self.scale, z_scale=self.z_scale, offset=self.offset,
        )

    def apply_in_place(self, pts: NDArray[np.float32]) -> None:
        """Remap an (N, 3) array in place."""
        if self.flip_x:
            pts[:, 0] = self.frame_width - pts[:, 0]
        if self.flip_y:
            pts[:, 1] = self.frame_height - pts[:, 1]
        if self.flip_z:
            pts[:, 2] = -pts[:, 2]
        pts[:, :2] *= self.scale
        pts[:, 2] *= self.scale * self.z_scale
        pts += np.asarray(self.offset, dtype=np.float32)


@dataclass
class BoundingBox:
    """Detector face box in detector pixels."""
    top_left: tuple[float, float]
    bottom_right: tuple[float, float]

    @property
    def width(self) -> float:
        return self.bottom_right[0] - self.top_left[0]

    @property
    def height(self) -> float:
        return self.bottom_right[1] - self.top_left[1]

    @classmethod
    def from_points(cls, points: ArrayLike) -> "BoundingBox":
        pts = np.asarray(points, dtype=np.float64)
        lo = pts[:, :2].min(axis=0)
        hi = pts[:, :2].max(axis=0)
        return cls((float(lo[0]), float(lo[1])), (float(hi[0]), float(hi[1])))


@dataclass
class PointBufferAdapter:
    """Normalises raw detector output into render-space PointBuffers.

    The adapter performs no detection logic; the remap policy is supplied
    by the caller.  Index ``i`` in is index ``i`` out.
    """
    remap: AxisRemap = field(default_factory=AxisRemap)
    point_count: int = FACE_POINT_COUNT

    def adapt(self, raw: ArrayLike, bounding_box: Optional[BoundingBox] = None) -> NDArray[np.float32]:
        """Return a new render-space ``(point_count, 3)`` buffer.

        With a *bounding_box* (static-image variant) the points are first
        rescaled so the box fills the frame.
        """
        pts = as_point_buffer(raw, self.point_count).copy()
        if bounding_box is not None:
            self.fit_to_box(pts, bounding_box)
        self.remap.apply_in_place(pts)
        return pts

    def fit_to_box(self, pts: NDArray[np.float32], box: BoundingBox) -> None:
        """Rescale *pts* in place so *box* maps onto the configured frame.

        Uniform scale (the tighter of the two axes) keeps the face
        proportions; the box is centred in the frame.
        """
        if box.width <= 0 or box.height <= 0:
            logger.debug("Ignoring degenerate bounding box %s", box)
            return
        s = min(self.remap.frame_width / box.width, self.remap.frame_height / box.height)
        cx = (box.top_left[0] + box.bottom_right[0]) * 0.5
        cy = (box.top_left[1] + box.bottom_right[1]) * 0.5
        pts[:, 0] = (pts[:, 0] - cx) * s + self.remap.frame_width * 0.5
        pts[:, 1] = (pts[:, 1] - cy) * s + self.remap.frame_height * 0.5
        pts[:, 2] *= s
