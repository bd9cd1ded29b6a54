"""Triangulation table of the canonical 468-point face mesh.

The table is a fixed ``(T, 3)`` array of landmark indices.  Triangle ``t``
owns vertex slots ``3t .. 3t+2`` in every surface position buffer, so the
row order is part of the data contract and never changes after loading.

Two sources are supported:

* a JSON asset (``assets/meshdata/triangulation.json``), the compiled-in
  table shipped with a release;
* the tessellation edge set published by the landmark model
  (``FaceLandmarksConnections.FACE_LANDMARKS_TESSELATION`` in MediaPipe
  Tasks), from which the triangles are recovered as 3-cliques of the edge
  graph.
"""

from __future__ import annotations

import json
import logging
from collections import Counter, defaultdict, deque
from pathlib import Path
from typing import Iterable, Optional

import numpy as np
from numpy.typing import ArrayLike, NDArray

from facerender.constants import FACE_POINT_COUNT, MESHDATA_DIR
from facerender.core.config_loader import load_json

logger = logging.getLogger(__name__)

TRIANGULATION_FILE = "triangulation.json"


def _edge_key(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def _triangle_edges(tri) -> tuple[tuple[int, int], ...]:
    a, b, c = int(tri[0]), int(tri[1]), int(tri[2])
    return _edge_key(a, b), _edge_key(b, c), _edge_key(c, a)


def _has_directed_edge(tri, u: int, v: int) -> bool:
    for i in range(3):
        if tri[i] == u and tri[(i + 1) % 3] == v:
            return True
    return False


class TriangulationTable:
    """Immutable triangle list over a fixed-size landmark point buffer."""

    def __init__(self, triangles: ArrayLike, point_count: int = FACE_POINT_COUNT):
        tris = np.asarray(triangles, dtype=np.int64)
        if tris.ndim == 1:
            if len(tris) % 3 != 0:
                raise ValueError(f"flat triangulation length {len(tris)} is not a multiple of 3")
            tris = tris.reshape(-1, 3)
        if tris.ndim != 2 or tris.shape[1] != 3:
            raise ValueError(f"triangulation must have shape (T, 3), got {tris.shape}")
        self.point_count = int(point_count)
        self.validate_indices(tris, self.point_count)
        self._triangles: NDArray[np.uint32] = tris.astype(np.uint32)
        self._triangles.setflags(write=False)
        self._slots: NDArray[np.intp] = self._triangles.ravel().astype(np.intp)
        self._slots.setflags(write=False)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_triangles(cls, triangles: ArrayLike, point_count: int = FACE_POINT_COUNT) -> "TriangulationTable":
        return cls(triangles, point_count)

    @classmethod
    def from_json(cls, path: Path) -> "TriangulationTable":
        """Load ``{"pointCount": N, "triangles": [[i, j, k], ...]}`` or a flat list."""
        data = load_json(Path(path))
        if isinstance(data, dict):
            table = cls(data["triangles"], data.get("pointCount", FACE_POINT_COUNT))
        else:
            table = cls(data)
        logger.info("Loaded %d triangles from %s", len(table), path)
        return table

    @classmethod
    def from_edges(
        cls,
        edges: Iterable[tuple[int, int]],
        point_count: int = FACE_POINT_COUNT,
    ) -> "TriangulationTable":
        """Recover the triangle list from a tessellation edge set.

        Every face of a triangulated surface is a 3-clique of its edge graph.
        A clique that is not a face (a "separating" triangle) has all three
        edges shared by more than two cliques; those are dropped.  Triangles
        are emitted in lexicographic order of their sorted indices, then the
        winding is made consistent across shared edges.
        """
        adjacency: list[set[int]] = [set() for _ in range(point_count)]
        for a, b in edges:
            a, b = int(a), int(b)
            if not (0 <= a < point_count and 0 <= b < point_count):
                raise ValueError(f"edge ({a}, {b}) out of range for {point_count} points")
            if a == b:
                continue
            adjacency[a].add(b)
            adjacency[b].add(a)

        cliques: list[tuple[int, int, int]] = []
        for a in range(point_count):
            for b in sorted(n for n in adjacency[a] if n > a):
                for c in sorted(n for n in adjacency[a] & adjacency[b] if n > b):
                    cliques.append((a, b, c))

        edge_use: Counter = Counter()
        for tri in cliques:
            edge_use.update(_triangle_edges(tri))
        faces = [
            tri for tri in cliques
            if not all(edge_use[e] > 2 for e in _triangle_edges(tri))
        ]
        dropped = len(cliques) - len(faces)
        if dropped:
            logger.warning("Dropped %d separating triangles from tessellation", dropped)

        oriented = _orient_consistently(np.array(faces, dtype=np.int64).reshape(-1, 3))
        logger.info("Derived %d triangles from %d tessellation edges",
                    len(oriented), sum(len(n) for n in adjacency) // 2)
        return cls(oriented, point_count)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_indices(triangles: NDArray, point_count: int) -> None:
        """Raise ``ValueError`` for out-of-range or degenerate triangles."""
        if len(triangles) == 0:
            return
        lo, hi = int(triangles.min()), int(triangles.max())
        if lo < 0 or hi >= point_count:
            bad = np.nonzero(((triangles < 0) | (triangles >= point_count)).any(axis=1))[0]
            raise ValueError(
                f"triangulation references indices outside [0, {point_count}): "
                f"first bad triangle {int(bad[0])} = {triangles[bad[0]].tolist()}"
            )
        degenerate = (
            (triangles[:, 0] == triangles[:, 1])
            | (triangles[:, 1] == triangles[:, 2])
            | (triangles[:, 0] == triangles[:, 2])
        )
        if degenerate.any():
            t = int(np.nonzero(degenerate)[0][0])
            raise ValueError(f"degenerate triangle {t} = {triangles[t].tolist()}")

    def validate(self, point_count: int) -> None:
        """Check the table against the point count a detector produces."""
        if point_count != self.point_count:
            raise ValueError(
                f"triangulation built for {self.point_count} points, detector yields {point_count}"
            )
        self.validate_indices(self._triangles.astype(np.int64), point_count)

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._triangles)

    @property
    def triangles(self) -> NDArray[np.uint32]:
        """Read-only ``(T, 3)`` view."""
        return self._triangles

    def triangle(self, t: int) -> tuple[int, int, int]:
        a, b, c = self._triangles[t]
        return int(a), int(b), int(c)

    def slot_indices(self, positions: Optional[ArrayLike] = None) -> NDArray[np.intp]:
        """Landmark index of each vertex slot (length ``3 * len(positions)``).

        *positions* selects triangle rows (a FeatureTriangleSet); ``None``
        means the whole table.
        """
        if positions is None:
            return self._slots
        rows = np.asarray(positions, dtype=np.intp)
        return self._triangles[rows].ravel().astype(np.intp)

    def triangles_referencing(self, point_index: int) -> NDArray[np.intp]:
        """Triangle positions that use *point_index* as a vertex."""
        return np.nonzero((self._triangles == point_index).any(axis=1))[0]

    def to_json(self, path: Path) -> None:
        payload = {"pointCount": self.point_count, "triangles": self._triangles.tolist()}
        with open(path, "w") as f:
            json.dump(payload, f, separators=(",", ":"))


def _orient_consistently(triangles: NDArray[np.int64]) -> NDArray[np.int64]:
    """Flip triangles so neighbours traverse each shared edge in opposite directions.

    Breadth-first over edge adjacency; the first triangle of each connected
    component keeps its order.
    """
    tris = triangles.copy()
    edge_faces: dict[tuple[int, int], list[int]] = defaultdict(list)
    for t, tri in enumerate(tris):
        for e in _triangle_edges(tri):
            edge_faces[e].append(t)

    visited = np.zeros(len(tris), dtype=bool)
    for seed in range(len(tris)):
        if visited[seed]:
            continue
        visited[seed] = True
        queue = deque([seed])
        while queue:
            t = queue.popleft()
            a, b, c = (int(v) for v in tris[t])
            for u, v in ((a, b), (b, c), (c, a)):
                for nb in edge_faces[_edge_key(u, v)]:
                    if visited[nb]:
                        continue
                    if _has_directed_edge(tris[nb], u, v):
                        tris[nb] = tris[nb][::-1].copy()
                    visited[nb] = True
                    queue.append(nb)
    return tris


def load_canonical_triangulation(path: Optional[Path] = None) -> TriangulationTable:
    """Load the face mesh triangulation.

    Order of sources: explicit *path*; the shipped
    ``assets/meshdata/triangulation.json``; the tessellation published by the
    installed ``mediapipe`` package.
    """
    if path is not None:
        return TriangulationTable.from_json(Path(path))

    shipped = MESHDATA_DIR / TRIANGULATION_FILE
    if shipped.exists():
        return TriangulationTable.from_json(shipped)

    logger.warning("%s not found, deriving the table from mediapipe", shipped)
    return TriangulationTable.from_edges(mediapipe_tessellation_edges(), FACE_POINT_COUNT)


def mediapipe_tessellation_edges() -> list[tuple[int, int]]:
    """Edge list of the face landmarker's published tessellation."""
    from mediapipe.tasks.python import vision

    return [
        (c.start, c.end)
        for c in vision.FaceLandmarksConnections.FACE_LANDMARKS_TESSELATION
    ]
