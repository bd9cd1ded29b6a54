"""Mesh data structures for geometry storage (no GL dependencies)."""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from facerender.constants import FLOATS_PER_TRIANGLE
from facerender.core.material import Material
from facerender.core.topology import MergeTopology


@dataclass
class BufferGeometry:
    """Stores vertex attribute arrays for a mesh.

    All arrays use float32 for GL compatibility.
    positions: flat array, 3 floats per vertex slot (non-indexed triangles)
    normals: flat array, same layout as positions
    topology: optional merge map used for smooth normals; without it
        normals are flat per triangle
    """
    positions: NDArray[np.float32]
    normals: NDArray[np.float32]
    topology: Optional[MergeTopology] = None
    vertex_count: int = 0

    def __post_init__(self):
        if self.vertex_count == 0:
            self.vertex_count = len(self.positions) // 3

    @classmethod
    def allocate(cls, triangle_count: int, topology: Optional[MergeTopology] = None) -> "BufferGeometry":
        """Zero-filled geometry with room for *triangle_count* triangles."""
        size = triangle_count * FLOATS_PER_TRIANGLE
        return cls(
            positions=np.zeros(size, dtype=np.float32),
            normals=np.zeros(size, dtype=np.float32),
            topology=topology,
            vertex_count=triangle_count * 3,
        )

    @property
    def triangle_count(self) -> int:
        return self.vertex_count // 3

    def compute_normals(self) -> None:
        """Recompute normals in place (smooth over topology, else flat)."""
        if self.topology is not None:
            self.normals[:] = self.topology.compute_vertex_normals(self.positions)
            return

        tris = self.positions.reshape(-1, 3, 3).astype(np.float64)
        n = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
        lengths = np.linalg.norm(n, axis=1, keepdims=True)
        n /= np.maximum(lengths, 1e-10)
        self.normals[:] = np.repeat(n, 3, axis=0).ravel().astype(np.float32)


@dataclass
class MeshInstance:
    """A mesh with material, linking geometry to rendering properties."""
    name: str
    geometry: BufferGeometry
    material: Material = field(default_factory=Material)
    visible: bool = True
    # GL handle (set by renderer)
    gl_handle: object = None
    # Set whenever positions/normals change; cleared by the renderer after upload
    needs_update: bool = True

    @property
    def positions(self) -> NDArray[np.float32]:
        return self.geometry.positions

    @property
    def normals(self) -> NDArray[np.float32]:
        return self.geometry.normals

    def mark_dirty(self) -> None:
        self.needs_update = True
