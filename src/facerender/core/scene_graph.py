"""Scene graph holding per-face groups of surfaces and accessories.

Each tracked face owns a group node (``__face_<id>``) whose children are its
skin, feature and accessory nodes.  Children are drawn in insertion order,
which is also the layer order the renderer uses for polygon offsets.
"""

from typing import Iterator, Optional

from facerender.core.math_utils import (
    Mat4, Vec3, Quat,
    mat4_identity, mat4_compose, quat_identity, vec3,
)
from facerender.core.mesh import MeshInstance


class SceneNode:
    """Transform node: ``world = parent.world @ TRS(position, quaternion, scale)``."""

    def __init__(self, name: str = "", mesh: Optional[MeshInstance] = None):
        self.name = name
        self.mesh: Optional[MeshInstance] = mesh
        self.visible: bool = True
        self.parent: Optional["SceneNode"] = None
        self.children: list["SceneNode"] = []

        self.position: Vec3 = vec3()
        self.quaternion: Quat = quat_identity()
        self.scale: Vec3 = vec3(1, 1, 1)
        self.world_matrix: Mat4 = mat4_identity()
        self._local: Optional[Mat4] = None  # None until first composed or after a move

    # -- hierarchy ----------------------------------------------------

    def add(self, child: "SceneNode") -> "SceneNode":
        """Attach *child* last, detaching it from any previous parent."""
        if child.parent is not None:
            child.parent.remove(child)
        child.parent = self
        self.children.append(child)
        return self

    def remove(self, child: "SceneNode") -> "SceneNode":
        if child.parent is self:
            self.children.remove(child)
            child.parent = None
        return self

    def find(self, name: str) -> Optional["SceneNode"]:
        """Depth-first lookup by name, this node included."""
        if self.name == name:
            return self
        for child in self.children:
            hit = child.find(name)
            if hit is not None:
                return hit
        return None

    def iter_visible(self) -> Iterator["SceneNode"]:
        """Pre-order walk that prunes hidden subtrees."""
        if not self.visible:
            return
        yield self
        for child in self.children:
            yield from child.iter_visible()

    # -- transforms ---------------------------------------------------

    def set_position(self, x: float, y: float, z: float) -> "SceneNode":
        self.position = vec3(x, y, z)
        self._local = None
        return self

    def set_scale(self, x: float, y: float, z: float) -> "SceneNode":
        self.scale = vec3(x, y, z)
        self._local = None
        return self

    @property
    def local_matrix(self) -> Mat4:
        if self._local is None:
            self._local = mat4_compose(self.position, self.quaternion, self.scale)
        return self._local

    def update_world_matrix(self, parent_world: Optional[Mat4] = None) -> None:
        """Recompute world matrices for this subtree."""
        local = self.local_matrix
        self.world_matrix = local.copy() if parent_world is None else parent_world @ local
        for child in self.children:
            child.update_world_matrix(self.world_matrix)


class Scene(SceneNode):
    """Root node; face groups hang directly below it."""

    def __init__(self):
        super().__init__(name="scene")

    def update(self) -> None:
        self.update_world_matrix()

    def collect_meshes(self) -> list[tuple[MeshInstance, Mat4]]:
        """Visible meshes with their world transforms, in draw order."""
        return [
            (node.mesh, node.world_matrix)
            for node in self.iter_visible()
            if node.mesh is not None and node.mesh.visible
        ]
