"""Feature -> triangle derivation over the shared triangulation table.

A feature's FeatureTriangleSet is the set of triangle *positions* (rows of
the triangulation table) whose three landmark indices all belong to the
union of the feature's annotation groups.  The sets are a pure function of
the static tables, so they are derived once and the index is immutable
afterwards.  A triangle may belong to several features.
"""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from facerender.core.math_utils import points_in_polygon
from facerender.landmarks.annotations import DEFAULT_FEATURES, MESH_ANNOTATIONS, FeatureDef
from facerender.landmarks.triangulation import TriangulationTable

logger = logging.getLogger(__name__)


def _frozen(arr: NDArray) -> NDArray:
    arr.setflags(write=False)
    return arr


def derive_feature_triangles(table: TriangulationTable, point_indices: ArrayLike) -> NDArray[np.uint32]:
    """Triangle positions whose three vertices all lie in *point_indices*.

    Returned sorted ascending, so the result does not depend on the order
    in which groups were united.
    """
    members = np.asarray(point_indices, dtype=np.int64)
    if len(members) == 0 or len(table) == 0:
        return np.zeros(0, dtype=np.uint32)
    inside = np.isin(table.triangles.astype(np.int64), members).all(axis=1)
    return np.nonzero(inside)[0].astype(np.uint32)


def annotate(points: ArrayLike, groups: Mapping[str, Sequence[int]] = MESH_ANNOTATIONS) -> dict[str, NDArray]:
    """Detector-style ``annotations``: group name -> ordered (k, 3) points.

    Points are gathered by index, so callers never need to match
    coordinates back to landmark indices.
    """
    pts = np.asarray(points)
    return {name: pts[list(indices)] for name, indices in groups.items()}


class AnnotationIndex:
    """Immutable lookup of feature point sets and FeatureTriangleSets.

    Build with :meth:`build`; do not construct per frame.
    """

    def __init__(
        self,
        table: TriangulationTable,
        groups: Mapping[str, Sequence[int]],
        features: Sequence[FeatureDef],
        feature_points: Mapping[str, NDArray[np.int64]],
        feature_triangles: Mapping[str, NDArray[np.uint32]],
        interior_filled: bool = False,
    ):
        self.table = table
        self.groups = MappingProxyType({k: tuple(int(i) for i in v) for k, v in groups.items()})
        self._features = {f.key: f for f in features}
        self._order = tuple(f.key for f in features)
        self._points = MappingProxyType(dict(feature_points))
        self._triangles = MappingProxyType(dict(feature_triangles))
        self.interior_filled = interior_filled

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def build(
        cls,
        table: TriangulationTable,
        groups: Mapping[str, Sequence[int]] = MESH_ANNOTATIONS,
        features: Sequence[FeatureDef] = DEFAULT_FEATURES,
    ) -> "AnnotationIndex":
        """Derive every feature's point set and FeatureTriangleSet once."""
        cls._check_features(groups, features)
        cls.validate_groups(groups, table.point_count)

        feature_points: dict[str, NDArray[np.int64]] = {}
        feature_triangles: dict[str, NDArray[np.uint32]] = {}
        for feat in features:
            union = np.unique(np.concatenate(
                [np.asarray(groups[g], dtype=np.int64) for g in feat.groups]
            ))
            feature_points[feat.key] = _frozen(union)
            if not feat.is_accessory:
                feature_triangles[feat.key] = _frozen(derive_feature_triangles(table, union))

        index = cls(table, groups, features, feature_points, feature_triangles)
        logger.info(
            "Annotation index: %d mesh features, %d accessories over %d triangles",
            len(index.mesh_feature_keys), len(index.accessory_keys), len(table),
        )
        for key in index.mesh_feature_keys:
            logger.debug("  %s: %d points, %d triangles",
                         key, len(feature_points[key]), len(feature_triangles[key]))
        return index

    def with_interior(self, reference_points: ArrayLike) -> "AnnotationIndex":
        """Return a new index where ``fill_interior`` features also own enclosed landmarks.

        The outline polygon is the first group followed by the remaining
        groups reversed (upper contour out, lower contour back).  Containment
        is tested in x/y on *reference_points* (one adapted frame); the
        result is stored as landmark indices, so later frames reuse it
        unchanged.
        """
        ref = np.asarray(reference_points, dtype=np.float64)
        if ref.shape != (self.table.point_count, 3):
            raise ValueError(
                f"reference points must have shape ({self.table.point_count}, 3), got {ref.shape}"
            )

        feature_points = dict(self._points)
        feature_triangles = dict(self._triangles)
        for key in self.mesh_feature_keys:
            feat = self._features[key]
            if not feat.fill_interior:
                continue
            outline: list[int] = list(self.groups[feat.groups[0]])
            for g in feat.groups[1:]:
                outline.extend(reversed(self.groups[g]))
            enclosed = np.nonzero(points_in_polygon(ref, ref[outline]))[0]
            union = np.union1d(feature_points[key], enclosed).astype(np.int64)
            feature_points[key] = _frozen(union)
            feature_triangles[key] = _frozen(derive_feature_triangles(self.table, union))
            logger.debug("  %s: interior fill -> %d points, %d triangles",
                         key, len(union), len(feature_triangles[key]))

        return AnnotationIndex(
            self.table, self.groups, [self._features[k] for k in self._order],
            feature_points, feature_triangles, interior_filled=True,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _check_features(groups: Mapping[str, Sequence[int]], features: Iterable[FeatureDef]) -> None:
        seen: set[str] = set()
        for feat in features:
            if feat.key in seen:
                raise ValueError(f"duplicate feature key '{feat.key}'")
            seen.add(feat.key)
            if not feat.groups:
                raise ValueError(f"feature '{feat.key}' has no annotation groups")
            missing = [g for g in feat.groups if g not in groups]
            if missing:
                raise ValueError(f"feature '{feat.key}' references unknown groups {missing}")

    @staticmethod
    def validate_groups(groups: Mapping[str, Sequence[int]], point_count: int) -> None:
        """Raise ``ValueError`` if any group index lies outside ``[0, point_count)``."""
        for name, indices in groups.items():
            bad = [i for i in indices if not 0 <= int(i) < point_count]
            if bad:
                raise ValueError(
                    f"annotation group '{name}' has indices outside [0, {point_count}): {bad}"
                )

    def validate(self, point_count: int) -> None:
        """Startup check of both static tables against the detector's point count."""
        self.table.validate(point_count)
        self.validate_groups(self.groups, point_count)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def feature_keys(self) -> tuple[str, ...]:
        return self._order

    @property
    def mesh_feature_keys(self) -> tuple[str, ...]:
        return tuple(k for k in self._order if not self._features[k].is_accessory)

    @property
    def accessory_keys(self) -> tuple[str, ...]:
        return tuple(k for k in self._order if self._features[k].is_accessory)

    @property
    def needs_interior(self) -> bool:
        """True while some feature still waits for a reference frame."""
        return not self.interior_filled and any(
            self._features[k].fill_interior for k in self.mesh_feature_keys
        )

    def __contains__(self, key: str) -> bool:
        return key in self._features

    def feature(self, key: str) -> FeatureDef:
        try:
            return self._features[key]
        except KeyError:
            raise KeyError(f"unknown feature '{key}'") from None

    def feature_points(self, key: str) -> NDArray[np.int64]:
        """Sorted landmark indices owned by feature *key*."""
        self.feature(key)
        return self._points[key]

    def feature_triangles(self, key: str) -> NDArray[np.uint32]:
        """FeatureTriangleSet (sorted triangle positions) of mesh feature *key*."""
        if self.feature(key).is_accessory:
            raise KeyError(f"feature '{key}' is an accessory and has no triangles")
        return self._triangles[key]

    def accessory_points(self, key: str, point_buffer: ArrayLike) -> NDArray:
        """(k, 3) points of accessory *key* gathered from *point_buffer* by index."""
        if not self.feature(key).is_accessory:
            raise KeyError(f"feature '{key}' is not an accessory")
        return np.asarray(point_buffer)[self._points[key]]

    def features_containing(self, triangle: int) -> list[str]:
        """Mesh features whose FeatureTriangleSet includes *triangle*."""
        return [
            k for k in self.mesh_feature_keys
            if np.any(self._triangles[k] == triangle)
        ]
