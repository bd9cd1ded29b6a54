"""Non-mesh decorations (pupil discs) placed at feature centroids."""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike

from facerender.constants import ACCESSORY_NODE_PREFIX, PUPIL_COLOR, PUPIL_SEGMENTS
from facerender.core.material import Material
from facerender.core.math_utils import bounding_box
from facerender.core.mesh import BufferGeometry, MeshInstance
from facerender.core.scene_graph import SceneNode

logger = logging.getLogger(__name__)


def make_disc(segments: int = PUPIL_SEGMENTS, z: float = 0.0) -> BufferGeometry:
    """Unit-radius triangle-fan disc in the plane at height *z*, facing +Z."""
    positions = np.zeros(segments * 9, dtype=np.float32)
    for i in range(segments):
        a0 = 2.0 * math.pi * i / segments
        a1 = 2.0 * math.pi * (i + 1) / segments
        base = i * 9
        positions[base:base + 3] = (0.0, 0.0, z)
        positions[base + 3:base + 6] = (math.cos(a0), math.sin(a0), z)
        positions[base + 6:base + 9] = (math.cos(a1), math.sin(a1), z)
    normals = np.tile(np.array([0.0, 0.0, 1.0], dtype=np.float32), segments * 3)
    return BufferGeometry(positions=positions, normals=normals)


def accessory_node_name(face_id: str, accessory_key: str) -> str:
    return f"{ACCESSORY_NODE_PREFIX}{face_id}_{accessory_key}"


class AccessoryRenderer:
    """Creates accessory nodes once and repositions them every frame.

    Nodes are keyed by ``(face_id, accessory_key)``, so repeated frames never add
    duplicates.  The node sits exactly on the bounding-box midpoint of the
    feature's points; the disc is sized to a fraction of the feature's extent
    and lifted toward the viewer by *depth_bias* inside its own geometry.
    """

    def __init__(
        self,
        root: SceneNode,
        relative_size: float = 0.2,
        depth_bias: float = 0.5,
        segments: int = PUPIL_SEGMENTS,
    ):
        self.root = root
        self.relative_size = relative_size
        self.depth_bias = depth_bias
        self._disc = make_disc(segments, z=depth_bias)
        self._nodes: dict[tuple[str, str], SceneNode] = {}

    def render_accessory(
        self,
        face_id: str,
        accessory_key: str,
        point_subset: ArrayLike,
        parent: Optional[SceneNode] = None,
        material: Optional[Material] = None,
    ) -> SceneNode:
        """Create (first call) or reposition the accessory; returns its node."""
        node = self._nodes.get((face_id, accessory_key))
        if node is None:
            name = accessory_node_name(face_id, accessory_key)
            mat = material or Material.from_hex(PUPIL_COLOR, tag="pupil")
            # geometry is shared by every disc; only node transforms differ
            mesh = MeshInstance(name=name, geometry=self._disc, material=mat)
            node = SceneNode(name=name, mesh=mesh)
            (parent or self.root).add(node)
            self._nodes[(face_id, accessory_key)] = node
            logger.debug("Created accessory %s", name)

        lo, hi = bounding_box(point_subset)
        centre = (lo + hi) * 0.5
        extent = float(max(hi[0] - lo[0], hi[1] - lo[1]))
        radius = max(extent * self.relative_size, 1e-6)
        node.set_position(float(centre[0]), float(centre[1]), float(centre[2]))
        # flat disc: z scale only stretches the depth bias, so keep it at 1
        node.set_scale(radius, radius, 1.0)
        return node

    def get(self, face_id: str, accessory_key: str) -> Optional[SceneNode]:
        return self._nodes.get((face_id, accessory_key))

    def forget_face(self, face_id: str) -> int:
        """Detach and forget every accessory of *face_id*; returns the count."""
        keys = [k for k in self._nodes if k[0] == face_id]
        for key in keys:
            node = self._nodes.pop(key)
            if node.parent is not None:
                node.parent.remove(node)
        return len(keys)

    def __len__(self) -> int:
        return len(self._nodes)
