"""Tests for accessory (pupil) placement and the surface registry."""

import numpy as np
import pytest

from facerender.core.material import Material
from facerender.core.mesh import BufferGeometry, MeshInstance
from facerender.core.scene_graph import Scene, SceneNode
from facerender.coordination.accessories import AccessoryRenderer, accessory_node_name, make_disc
from facerender.coordination.surface_registry import Surface, SurfaceRegistry


def _eye_points():
    return np.array([[0, 0, 0], [2, 0, 1], [0, 2, 0], [2, 2, -1]], dtype=np.float32)


def test_make_disc():
    disc = make_disc(8)
    assert disc.triangle_count == 8
    pos = disc.positions.reshape(-1, 3)
    np.testing.assert_array_almost_equal(pos[0::3], 0.0)
    np.testing.assert_array_almost_equal(np.linalg.norm(pos[1::3], axis=1), 1.0)
    np.testing.assert_array_almost_equal(disc.normals.reshape(-1, 3), [[0, 0, 1]] * 24)


def test_make_disc_height():
    disc = make_disc(4, z=0.5)
    pos = disc.positions.reshape(-1, 3)
    np.testing.assert_array_almost_equal(pos[:, 2], 0.5)
    np.testing.assert_array_almost_equal(pos[0::3, :2], 0.0)


def test_accessory_at_bounding_box_midpoint():
    scene = Scene()
    renderer = AccessoryRenderer(scene)
    points = np.array([[0, 0, 0], [2, 0, 0], [0, 2, 0], [2, 2, 0]], dtype=np.float32)
    node = renderer.render_accessory("face1", "rightPupil", points)
    assert node.name == "__point_face1_rightPupil"
    np.testing.assert_array_almost_equal(node.position, [1, 1, 0])


def test_accessory_depth_bias_lives_in_disc_geometry():
    scene = Scene()
    renderer = AccessoryRenderer(scene, relative_size=0.5, depth_bias=0.25)
    node = renderer.render_accessory("face1", "rightPupil", _eye_points())
    # z extent of the points is [-1, 1]
    np.testing.assert_array_almost_equal(node.position, [1, 1, 0])
    np.testing.assert_array_almost_equal(node.scale, [1, 1, 1])
    disc_z = node.mesh.geometry.positions.reshape(-1, 3)[:, 2]
    np.testing.assert_array_almost_equal(disc_z, 0.25)


def test_accessory_created_once():
    scene = Scene()
    renderer = AccessoryRenderer(scene)
    first = renderer.render_accessory("face1", "rightPupil", _eye_points())
    second = renderer.render_accessory("face1", "rightPupil", _eye_points() + 5.0)
    assert first is second
    assert len(renderer) == 1
    assert [n.name for n in scene.iter_visible()].count("__point_face1_rightPupil") == 1
    np.testing.assert_array_almost_equal(second.position[:2], [6, 6])


def test_accessory_material_and_parent():
    scene = Scene()
    group = SceneNode(name="__face_face1")
    scene.add(group)
    renderer = AccessoryRenderer(scene)
    node = renderer.render_accessory(
        "face1", "leftPupil", _eye_points(), parent=group,
        material=Material.from_hex(0x111111, tag="pupil"),
    )
    assert node.parent is group
    assert node.mesh.material.tag == "pupil"
    assert renderer.get("face1", "leftPupil") is node
    assert renderer.get("face2", "leftPupil") is None


def test_forget_face():
    scene = Scene()
    renderer = AccessoryRenderer(scene)
    renderer.render_accessory("face1", "rightPupil", _eye_points())
    renderer.render_accessory("face1", "leftPupil", _eye_points())
    renderer.render_accessory("face10", "leftPupil", _eye_points())
    assert renderer.forget_face("face1") == 2
    assert scene.find(accessory_node_name("face1", "rightPupil")) is None
    assert renderer.get("face10", "leftPupil") is not None


def test_forget_face_ignores_ids_sharing_a_prefix():
    scene = Scene()
    renderer = AccessoryRenderer(scene)
    renderer.render_accessory("face1", "leftPupil", _eye_points())
    renderer.render_accessory("face1_b", "leftPupil", _eye_points())
    assert renderer.forget_face("face1") == 1
    assert renderer.get("face1", "leftPupil") is None
    kept = renderer.get("face1_b", "leftPupil")
    assert kept is not None
    assert kept.parent is scene


def _surface(face_id, key):
    mesh = MeshInstance(name=key, geometry=BufferGeometry.allocate(1))
    return Surface(
        face_id=face_id, feature_key=key, mesh=mesh, node=SceneNode(name=key, mesh=mesh),
        triangle_positions=np.array([0], dtype=np.uint32),
        slot_indices=np.array([0, 1, 2], dtype=np.intp),
    )


def test_registry_add_and_lookup():
    registry = SurfaceRegistry()
    s = registry.add(_surface("face1", "skin"))
    assert registry.get("face1", "skin") is s
    assert registry.get("face1", "lips") is None
    assert ("face1", "skin") in registry
    with pytest.raises(ValueError):
        registry.add(_surface("face1", "skin"))
    with pytest.raises(KeyError):
        registry.require("face1", "lips")


def test_registry_get_or_create():
    registry = SurfaceRegistry()
    calls = []

    def factory():
        calls.append(1)
        return _surface("face1", "skin")

    first, created = registry.get_or_create("face1", "skin", factory)
    second, created_again = registry.get_or_create("face1", "skin", factory)
    assert created and not created_again
    assert first is second
    assert len(calls) == 1


def test_registry_faces_and_drop():
    registry = SurfaceRegistry()
    registry.add(_surface("face1", "skin"))
    registry.add(_surface("face2", "skin"))
    registry.add(_surface("face1", "lips"))
    assert registry.face_ids() == ["face1", "face2"]
    assert [s.feature_key for s in registry.surfaces_for("face1")] == ["skin", "lips"]
    dropped = registry.drop_face("face1")
    assert len(dropped) == 2
    assert len(registry) == 1
    assert [s.key for s in registry] == [("face2", "skin")]
