"""Frame-invariant vertex merge topology for per-triangle vertex slots.

Surfaces store one position per triangle vertex slot, so neighbouring
triangles never share a vertex in the position buffer.  Smooth shading needs
the merged topology: all slots that reference the same landmark collapse into
one logical vertex.  Which slots merge depends only on the triangle index
structure, so it is computed once per surface; positions and normals are
recomputed every frame against the cached map.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike, NDArray


@dataclass(frozen=True)
class MergeTopology:
    """Slot -> merged-vertex map.

    slot_to_vertex: (S,) merged vertex id for each vertex slot, S = 3 * triangles
    vertex_keys: (V,) landmark index of each merged vertex
    """
    slot_to_vertex: NDArray[np.intp]
    vertex_keys: NDArray[np.int64]

    @classmethod
    def from_slots(cls, slot_keys: ArrayLike) -> "MergeTopology":
        """Build from the landmark index referenced by every vertex slot."""
        keys = np.asarray(slot_keys, dtype=np.int64).ravel()
        if len(keys) % 3 != 0:
            raise ValueError(f"slot count {len(keys)} is not a multiple of 3")
        unique, inverse = np.unique(keys, return_inverse=True)
        return cls(slot_to_vertex=inverse.astype(np.intp).ravel(), vertex_keys=unique)

    @property
    def slot_count(self) -> int:
        return len(self.slot_to_vertex)

    @property
    def triangle_count(self) -> int:
        return len(self.slot_to_vertex) // 3

    @property
    def vertex_count(self) -> int:
        return len(self.vertex_keys)

    def compute_vertex_normals(self, positions: ArrayLike) -> NDArray[np.float32]:
        """Smooth per-slot normals for a flat ``9 * triangles`` position buffer.

        Each merged vertex gets the area-weighted sum of its adjacent face
        normals (the unnormalised cross product has length 2 * area),
        normalised.  Degenerate triangles contribute nothing.
        """
        tris = np.asarray(positions, dtype=np.float64).reshape(-1, 3, 3)
        if len(tris) != self.triangle_count:
            raise ValueError(
                f"position buffer holds {len(tris)} triangles, topology expects "
                f"{self.triangle_count}"
            )
        face_normals = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])

        accum = np.zeros((self.vertex_count, 3), dtype=np.float64)
        np.add.at(accum, self.slot_to_vertex, np.repeat(face_normals, 3, axis=0))

        lengths = np.linalg.norm(accum, axis=1, keepdims=True)
        accum /= np.maximum(lengths, 1e-10)

        return accum[self.slot_to_vertex].astype(np.float32).ravel()

    def merged_positions(self, positions: ArrayLike) -> NDArray[np.float32]:
        """Return the (V, 3) merged vertex positions (last slot write wins)."""
        pos = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
        out = np.zeros((self.vertex_count, 3), dtype=np.float32)
        out[self.slot_to_vertex] = pos
        return out

    def indices(self) -> NDArray[np.uint32]:
        """Triangle index array into :meth:`merged_positions`."""
        return self.slot_to_vertex.astype(np.uint32)
