"""Registry of persistent surfaces keyed by (face instance, feature)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, Optional

import numpy as np
from numpy.typing import NDArray

from facerender.core.mesh import MeshInstance
from facerender.core.scene_graph import SceneNode

SurfaceKey = tuple[str, str]


@dataclass
class Surface:
    """Runtime data for one (face instance, feature) renderable.

    slot_indices: landmark index feeding each vertex slot, fixed at creation
    triangle_positions: rows of the triangulation table drawn by this surface
    """
    face_id: str
    feature_key: str
    mesh: MeshInstance
    node: SceneNode
    triangle_positions: NDArray[np.uint32]
    slot_indices: NDArray[np.intp]
    update_count: int = 0

    @property
    def key(self) -> SurfaceKey:
        return (self.face_id, self.feature_key)

    @property
    def positions(self) -> NDArray[np.float32]:
        return self.mesh.geometry.positions

    @property
    def normals(self) -> NDArray[np.float32]:
        return self.mesh.geometry.normals

    @property
    def triangle_count(self) -> int:
        return len(self.triangle_positions)

    @property
    def dirty(self) -> bool:
        return self.mesh.needs_update


class SurfaceRegistry:
    """Owns every Surface; keyed lookup, insertion-ordered iteration."""

    def __init__(self):
        self._surfaces: dict[SurfaceKey, Surface] = {}

    def get(self, face_id: str, feature_key: str) -> Optional[Surface]:
        return self._surfaces.get((face_id, feature_key))

    def require(self, face_id: str, feature_key: str) -> Surface:
        """Like :meth:`get` but an unknown key is a programming error."""
        surface = self._surfaces.get((face_id, feature_key))
        if surface is None:
            raise KeyError(f"no surface for face '{face_id}', feature '{feature_key}'")
        return surface

    def add(self, surface: Surface) -> Surface:
        if surface.key in self._surfaces:
            raise ValueError(f"surface {surface.key} already registered")
        self._surfaces[surface.key] = surface
        return surface

    def get_or_create(
        self,
        face_id: str,
        feature_key: str,
        factory: Callable[[], Surface],
    ) -> tuple[Surface, bool]:
        """Return ``(surface, created)``; *factory* runs only on first sight."""
        surface = self._surfaces.get((face_id, feature_key))
        if surface is not None:
            return surface, False
        return self.add(factory()), True

    def surfaces_for(self, face_id: str) -> list[Surface]:
        return [s for (fid, _), s in self._surfaces.items() if fid == face_id]

    def face_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for fid, _ in self._surfaces:
            seen.setdefault(fid, None)
        return list(seen)

    def drop_face(self, face_id: str) -> list[Surface]:
        """Remove and return all surfaces of *face_id*."""
        dropped = self.surfaces_for(face_id)
        for surface in dropped:
            del self._surfaces[surface.key]
        return dropped

    def __contains__(self, key: SurfaceKey) -> bool:
        return key in self._surfaces

    def __len__(self) -> int:
        return len(self._surfaces)

    def __iter__(self) -> Iterator[Surface]:
        return iter(list(self._surfaces.values()))
