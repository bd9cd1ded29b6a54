"""Tests for the mesh update engine."""

import numpy as np
import pytest

from facerender.constants import SKIN_FEATURE_KEY
from facerender.core.events import EventBus, EventType
from facerender.core.scene_graph import Scene
from facerender.coordination.mesh_engine import MeshUpdateEngine
from facerender.landmarks.annotation_index import AnnotationIndex
from facerender.landmarks.annotations import FEATURE_KIND_ACCESSORY, FeatureDef
from facerender.landmarks.triangulation import TriangulationTable

GRID_TRIANGLES = [
    (0, 3, 1), (1, 3, 4), (1, 4, 2), (2, 4, 5),
    (3, 6, 4), (4, 6, 7), (4, 7, 5), (5, 7, 8),
]
GROUPS = {"top": [0, 1, 2], "middle": [3, 4, 5], "bottom": [6, 7, 8], "center": [1, 3, 4]}
FEATURES = (
    FeatureDef("upperHalf", ("top", "middle"), 0xFF0000),
    FeatureDef("corner", ("center",), 0x0000FF),
    FeatureDef("dot", ("top",), 0x111111, kind=FEATURE_KIND_ACCESSORY),
)


def _table():
    return TriangulationTable(GRID_TRIANGLES, point_count=9)


def _points(dz=0.0):
    return np.array([[c * 10.0, r * 10.0, dz] for r in range(3) for c in range(3)], dtype=np.float32)


def _engine(event_bus=None):
    index = AnnotationIndex.build(_table(), GROUPS, FEATURES)
    scene = Scene()
    return MeshUpdateEngine(scene, index, event_bus=event_bus), scene


def test_skin_surface_layout():
    engine, _ = _engine()
    pts = _points()
    assert engine.update_face("face1", pts)
    skin = engine.surface("face1", SKIN_FEATURE_KEY)
    assert skin.positions.shape == (len(GRID_TRIANGLES) * 9,)
    np.testing.assert_array_equal(skin.positions, pts[np.array(GRID_TRIANGLES)].ravel())


def test_feature_surface_layout():
    engine, _ = _engine()
    pts = _points()
    engine.update_face("face1", pts)
    surface = engine.surface("face1", "upperHalf")
    rows = np.array(GRID_TRIANGLES)[[0, 1, 2, 3]]
    assert surface.triangle_count == 4
    np.testing.assert_array_equal(surface.positions, pts[rows].ravel())


def test_buffers_keep_size_and_identity():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    skin = engine.surface("face1", SKIN_FEATURE_KEY)
    positions, normals, mesh = skin.positions, skin.normals, skin.mesh
    engine.update_face("face1", _points(dz=3.0))
    again = engine.surface("face1", SKIN_FEATURE_KEY)
    assert again is skin
    assert again.mesh is mesh
    assert again.positions is positions
    assert again.normals is normals
    assert len(again.positions) == len(GRID_TRIANGLES) * 9
    np.testing.assert_array_almost_equal(again.positions.reshape(-1, 3)[:, 2], 3.0)


def test_update_is_idempotent():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    skin = engine.surface("face1", SKIN_FEATURE_KEY)
    first_pos, first_norm = skin.positions.copy(), skin.normals.copy()
    engine.update_face("face1", _points())
    np.testing.assert_array_equal(skin.positions, first_pos)
    np.testing.assert_array_equal(skin.normals, first_norm)


def test_moving_one_landmark_touches_only_its_triangles():
    engine, _ = _engine()
    pts = _points()
    engine.update_face("face1", pts)
    skin = engine.surface("face1", SKIN_FEATURE_KEY)
    before = skin.positions.reshape(-1, 9).copy()

    moved = pts.copy()
    moved[4] = [11.0, 12.0, 5.0]
    engine.update_face("face1", moved)
    after = skin.positions.reshape(-1, 9)

    changed = np.nonzero((before != after).any(axis=1))[0]
    np.testing.assert_array_equal(changed, _table().triangles_referencing(4))
    for t in changed:
        slot = GRID_TRIANGLES[t].index(4)
        np.testing.assert_array_equal(after[t, slot * 3:slot * 3 + 3], [11.0, 12.0, 5.0])


def test_flat_grid_normals():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    normals = engine.surface("face1", SKIN_FEATURE_KEY).normals.reshape(-1, 3)
    # every triangle in the grid winds the same way
    assert np.allclose(np.abs(normals[:, 2]), 1.0)
    assert np.all(normals[:, 2] == normals[0, 2])


def test_empty_input_retains_geometry():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    skin = engine.surface("face1", SKIN_FEATURE_KEY)
    snapshot = skin.positions.copy()
    count = skin.update_count
    assert engine.update_face("face1", None) is False
    assert engine.update_face("face1", np.zeros((0, 3))) is False
    np.testing.assert_array_equal(skin.positions, snapshot)
    assert skin.update_count == count


def test_no_surface_before_first_detection():
    engine, scene = _engine()
    assert engine.update_face("face1", None) is False
    assert len(engine.registry) == 0
    assert scene.children == []


def test_wrong_shape_raises():
    engine, _ = _engine()
    with pytest.raises(ValueError):
        engine.update_face("face1", np.zeros((8, 3)))


def test_unknown_feature_key_raises():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    with pytest.raises(KeyError):
        engine.surface("face1", "nose")
    with pytest.raises(KeyError):
        engine.surface("face2", "upperHalf")


def test_shared_triangle_in_both_surfaces():
    engine, _ = _engine()
    pts = _points()
    engine.update_face("face1", pts)
    upper = engine.surface("face1", "upperHalf")
    corner = engine.surface("face1", "corner")
    # triangle 1 is the second row of upperHalf and the only row of corner
    np.testing.assert_array_equal(upper.positions[9:18], corner.positions[0:9])


def test_faces_are_independent():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    engine.update_face("face2", _points(dz=7.0))
    one = engine.surface("face1", SKIN_FEATURE_KEY)
    two = engine.surface("face2", SKIN_FEATURE_KEY)
    assert one is not two
    assert one.positions is not two.positions
    np.testing.assert_array_almost_equal(one.positions.reshape(-1, 3)[:, 2], 0.0)
    np.testing.assert_array_almost_equal(two.positions.reshape(-1, 3)[:, 2], 7.0)
    assert engine.face_ids() == ["face1", "face2"]


def test_scene_structure():
    engine, scene = _engine()
    engine.update_face("face1", _points())
    engine.update_face("face1", _points())
    group = scene.find("__face_face1")
    assert group is not None
    names = [child.name for child in group.children]
    assert names == [
        "__face_face1_skin", "__face_face1_upperHalf", "__face_face1_corner",
        "__point_face1_dot",
    ]


def test_surfaces_dirty_after_update():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    surface = engine.surface("face1", "corner")
    surface.mesh.needs_update = False
    engine.update_face("face1", _points())
    assert surface.dirty
    assert surface.update_count == 2


def test_events():
    bus = EventBus()
    created, updated = [], []
    bus.subscribe(EventType.SURFACE_CREATED, lambda **kw: created.append(kw["feature_key"]))
    bus.subscribe(EventType.FACE_UPDATED, lambda **kw: updated.append(kw))
    engine, _ = _engine(bus)
    engine.update_face("face1", _points())
    engine.update_face("face1", _points())
    assert created == [SKIN_FEATURE_KEY, "upperHalf", "corner"]
    assert updated == [{"face_id": "face1", "surfaces": 3}] * 2


def test_drop_face():
    bus = EventBus()
    dropped = []
    bus.subscribe(EventType.FACE_DROPPED, lambda **kw: dropped.append(kw["face_id"]))
    engine, scene = _engine(bus)
    engine.update_face("face1", _points())
    engine.update_face("face2", _points())
    assert engine.drop_face("face1") == 3
    assert dropped == ["face1"]
    assert scene.find("__face_face1") is None
    assert scene.find("__point_face1_dot") is None
    assert engine.face_ids() == ["face2"]
    with pytest.raises(KeyError):
        engine.surface("face1", SKIN_FEATURE_KEY)


def test_interior_index_swap_after_creation_is_rejected():
    engine, _ = _engine()
    engine.update_face("face1", _points())
    features = (FeatureDef("upperHalf", ("top",), 0xFF0000),) + FEATURES[1:]
    other = AnnotationIndex.build(_table(), GROUPS, features)
    with pytest.raises(ValueError):
        engine.update_face("face1", _points(), other)
