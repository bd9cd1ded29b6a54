"""Per-frame face geometry update: landmark buffer -> persistent surfaces.

For every tracked face instance the engine owns one skin surface covering
the full triangulation plus one surface per mesh feature (lips, eyebrows,
eye rims).  Surfaces are allocated on first sight and afterwards only have
their values overwritten:

  1. skin: triangle ``t`` of the table writes its three landmark positions
     at float offset ``t * 9``
  2. features: same scheme, iterating the feature's FeatureTriangleSet
  3. smooth normals over the cached merge topology of each surface
  4. accessories (pupils) at the bounding-box midpoint of their points

This module has ZERO GL imports; all vertex math is done with NumPy.
"""

from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from facerender.constants import FACE_NODE_PREFIX, SKIN_COLOR, SKIN_FEATURE_KEY
from facerender.core.events import EventBus, EventType
from facerender.core.material import Material
from facerender.core.mesh import BufferGeometry, MeshInstance
from facerender.core.scene_graph import SceneNode
from facerender.core.topology import MergeTopology
from facerender.coordination.accessories import AccessoryRenderer
from facerender.coordination.surface_registry import Surface, SurfaceRegistry
from facerender.landmarks.annotation_index import AnnotationIndex
from facerender.landmarks.point_buffer import as_point_buffer

logger = logging.getLogger(__name__)


class MeshUpdateEngine:
    """Maps landmark buffers onto persistent, identity-stable surfaces.

    Parameters
    ----------
    root : SceneNode
        Scene node under which per-face groups (``__face_<id>``) are added.
    annotation_index : AnnotationIndex
        Default index used when :meth:`update_face` is not given one.
    registry : SurfaceRegistry, optional
        Surface storage; injected so callers (and tests) can inspect it.
    accessories : AccessoryRenderer, optional
        Pupil renderer; created under *root* when omitted.
    """

    def __init__(
        self,
        root: SceneNode,
        annotation_index: AnnotationIndex,
        registry: Optional[SurfaceRegistry] = None,
        accessories: Optional[AccessoryRenderer] = None,
        event_bus: Optional[EventBus] = None,
        skin_material: Optional[Material] = None,
    ):
        self.root = root
        self.annotation_index = annotation_index
        self.registry = registry if registry is not None else SurfaceRegistry()
        self.accessories = accessories if accessories is not None else AccessoryRenderer(root)
        self.event_bus = event_bus
        self.skin_material = skin_material or Material.from_hex(SKIN_COLOR, tag="skin")
        self._face_nodes: dict[str, SceneNode] = {}
        # merge topology depends only on triangle rows; share it between faces
        self._topology_cache: dict[tuple[str, int], MergeTopology] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def point_count(self) -> int:
        return self.annotation_index.table.point_count

    def update_face(
        self,
        face_id: str,
        point_buffer: Optional[ArrayLike],
        annotation_index: Optional[AnnotationIndex] = None,
    ) -> bool:
        """Write one frame of landmarks into *face_id*'s surfaces.

        Returns False (and touches nothing) when *point_buffer* is None or
        empty, so the last rendered geometry stays visible.  A buffer of the
        wrong shape raises ``ValueError``.
        """
        if point_buffer is None:
            logger.debug("No point buffer for %s; keeping previous geometry", face_id)
            return False
        raw = np.asarray(point_buffer)
        if raw.size == 0:
            logger.debug("Empty point buffer for %s; keeping previous geometry", face_id)
            return False

        index = annotation_index if annotation_index is not None else self.annotation_index
        pts = as_point_buffer(raw, index.table.point_count)
        group = self.face_node(face_id)

        skin = self._ensure_surface(face_id, SKIN_FEATURE_KEY, None, index, group)
        self._write_surface(skin, pts)

        for key in index.mesh_feature_keys:
            surface = self._ensure_surface(face_id, key, index.feature_triangles(key), index, group)
            self._write_surface(surface, pts)

        for key in index.accessory_keys:
            self.accessories.render_accessory(
                face_id, key, index.accessory_points(key, pts),
                parent=group, material=index.feature(key).material(),
            )

        if self.event_bus is not None:
            self.event_bus.publish(
                EventType.FACE_UPDATED,
                face_id=face_id, surfaces=len(self.registry.surfaces_for(face_id)),
            )
        return True

    def surface(self, face_id: str, feature_key: str) -> Surface:
        """Return an existing surface; unknown keys raise ``KeyError``."""
        if feature_key != SKIN_FEATURE_KEY and feature_key not in self.annotation_index:
            raise KeyError(f"unknown feature '{feature_key}'")
        return self.registry.require(face_id, feature_key)

    def face_node(self, face_id: str) -> SceneNode:
        """Group node holding all of *face_id*'s surfaces (created on demand)."""
        node = self._face_nodes.get(face_id)
        if node is None:
            node = SceneNode(name=FACE_NODE_PREFIX + face_id)
            self.root.add(node)
            self._face_nodes[face_id] = node
            logger.info("Tracking new face instance '%s'", face_id)
        return node

    def face_ids(self) -> list[str]:
        return list(self._face_nodes)

    def drop_face(self, face_id: str) -> int:
        """Release every surface and accessory of a face no longer tracked."""
        dropped = self.registry.drop_face(face_id)
        self.accessories.forget_face(face_id)
        node = self._face_nodes.pop(face_id, None)
        if node is not None and node.parent is not None:
            node.parent.remove(node)
        if self.event_bus is not None:
            self.event_bus.publish(EventType.FACE_DROPPED, face_id=face_id)
        logger.info("Dropped face instance '%s' (%d surfaces)", face_id, len(dropped))
        return len(dropped)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _topology(self, feature_key: str, slots: NDArray[np.intp]) -> MergeTopology:
        cache_key = (feature_key, len(slots))
        topo = self._topology_cache.get(cache_key)
        if topo is None or not np.array_equal(topo.vertex_keys[topo.slot_to_vertex], slots):
            topo = MergeTopology.from_slots(slots)
            self._topology_cache[cache_key] = topo
        return topo

    def _ensure_surface(
        self,
        face_id: str,
        feature_key: str,
        triangle_positions: Optional[NDArray[np.uint32]],
        index: AnnotationIndex,
        group: SceneNode,
    ) -> Surface:
        table = index.table
        if triangle_positions is None:
            rows = np.arange(len(table), dtype=np.uint32)
        else:
            rows = triangle_positions

        surface = self.registry.get(face_id, feature_key)
        if surface is not None:
            if surface.triangle_count != len(rows):
                raise ValueError(
                    f"surface ({face_id}, {feature_key}) was created with "
                    f"{surface.triangle_count} triangles, index now has {len(rows)}"
                )
            return surface

        slots = table.slot_indices(None if triangle_positions is None else rows)
        topology = self._topology(feature_key, slots)
        if feature_key == SKIN_FEATURE_KEY:
            material = self.skin_material
        else:
            material = index.feature(feature_key).material()

        name = f"{FACE_NODE_PREFIX}{face_id}_{feature_key}"
        mesh = MeshInstance(
            name=name,
            geometry=BufferGeometry.allocate(len(rows), topology=topology),
            material=material,
        )
        node = SceneNode(name=name, mesh=mesh)
        group.add(node)

        surface = self.registry.add(Surface(
            face_id=face_id,
            feature_key=feature_key,
            mesh=mesh,
            node=node,
            triangle_positions=rows,
            slot_indices=slots,
        ))
        logger.debug("Created surface %s: %d triangles, %d merged vertices",
                     name, len(rows), topology.vertex_count)
        if self.event_bus is not None:
            self.event_bus.publish(
                EventType.SURFACE_CREATED,
                face_id=face_id, feature_key=feature_key, triangles=len(rows),
            )
        return surface

    @staticmethod
    def _write_surface(surface: Surface, pts: NDArray[np.float32]) -> None:
        """Overwrite positions in place, recompute normals, flag for upload."""
        geom = surface.mesh.geometry
        np.take(pts, surface.slot_indices, axis=0, out=geom.positions.reshape(-1, 3))
        geom.compute_normals()
        surface.mesh.mark_dirty()
        surface.update_count += 1
