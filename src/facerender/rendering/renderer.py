"""Main OpenGL renderer: traverses the scene graph and issues draw calls.

Uses OpenGL 3.3 core profile.  Meshes are drawn in scene-graph order, so
feature surfaces added after the skin are drawn over it.
"""

import logging

import numpy as np
from OpenGL.GL import (
    GL_COLOR_BUFFER_BIT,
    GL_DEPTH_BUFFER_BIT,
    GL_DEPTH_TEST,
    GL_LEQUAL,
    GL_MULTISAMPLE,
    GL_PROGRAM_POINT_SIZE,
    glClear,
    glClearColor,
    glDepthFunc,
    glEnable,
    glViewport,
)

from facerender.core.material import RenderMode
from facerender.core.math_utils import Mat4, mat3_normal
from facerender.core.mesh import MeshInstance
from facerender.core.scene_graph import Scene
from facerender.rendering.camera import Camera
from facerender.rendering.gl_material import apply_material, restore_material_defaults
from facerender.rendering.gl_mesh import GLMesh
from facerender.rendering.lights import LightSetup
from facerender.rendering.shader_program import ShaderProgram

logger = logging.getLogger(__name__)

# (vertex, fragment) per render mode
SHADER_FILES = {
    RenderMode.SOLID: ("default.vert", "phong.frag"),
    RenderMode.TOON: ("default.vert", "toon.frag"),
    RenderMode.WIREFRAME: ("default.vert", "phong.frag"),
    RenderMode.POINTS: ("points.vert", "points.frag"),
}


class GLRenderer:
    """Traverses a :class:`Scene`, streams dirty meshes, and draws them.

    Usage
    -----
    1. Call :meth:`init_gl` once after a valid GL context is current.
    2. Call :meth:`resize` whenever the viewport changes.
    3. Call :meth:`render` each frame.
    4. Call :meth:`destroy` on shutdown.
    """

    CLEAR_COLOR = (0.0, 0.0, 0.0, 1.0)
    POINT_SIZE = 3.0

    def __init__(self) -> None:
        self._shaders: dict[RenderMode, ShaderProgram] = {}
        # keyed by id(MeshInstance); the instance is kept so the id stays valid
        self._gl_meshes: dict[int, tuple[MeshInstance, GLMesh]] = {}
        self._initialised: bool = False
        self._width: int = 1
        self._height: int = 1
        self._frame_count: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def init_gl(self) -> None:
        """Set up GL state and compile all shader programs.

        Must be called with a current OpenGL context.
        """
        glClearColor(*self.CLEAR_COLOR)
        glEnable(GL_DEPTH_TEST)
        glDepthFunc(GL_LEQUAL)
        glEnable(GL_MULTISAMPLE)
        glEnable(GL_PROGRAM_POINT_SIZE)

        for mode, (vert, frag) in SHADER_FILES.items():
            program = ShaderProgram.from_files(vert, frag)
            program.compile()
            self._shaders[mode] = program
        self._initialised = True
        logger.info("GLRenderer initialised (%d shader programs).", len(self._shaders))

    def resize(self, width: int, height: int) -> None:
        self._width = max(width, 1)
        self._height = max(height, 1)

    def destroy(self) -> None:
        """Free all GL resources."""
        for _mesh, gl_mesh in self._gl_meshes.values():
            gl_mesh.destroy()
        self._gl_meshes.clear()
        for shader in self._shaders.values():
            shader.destroy()
        self._shaders.clear()
        self._initialised = False
        logger.info("GLRenderer destroyed.")

    # ------------------------------------------------------------------
    # Frame rendering
    # ------------------------------------------------------------------

    def render(self, scene: Scene, camera: Camera, lights: LightSetup) -> None:
        """Render one frame: clear, traverse scene, draw all visible meshes."""
        if not self._initialised:
            return

        glViewport(0, 0, self._width, self._height)
        glClear(GL_COLOR_BUFFER_BIT | GL_DEPTH_BUFFER_BIT)

        scene.update()
        view = camera.get_view_matrix()
        proj = camera.get_projection_matrix()
        mesh_list = scene.collect_meshes()

        self._release_orphans({id(mesh) for mesh, _world in mesh_list})

        self._frame_count += 1
        if self._frame_count <= 3 or self._frame_count % 300 == 0:
            logger.debug("Frame %d: %d meshes, viewport %dx%d",
                         self._frame_count, len(mesh_list), self._width, self._height)

        for layer, (mesh, world) in enumerate(mesh_list):
            self._draw_mesh(mesh, world, view, proj, lights, layer)

        restore_material_defaults()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_gl_mesh(self, mesh: MeshInstance) -> GLMesh:
        entry = self._gl_meshes.get(id(mesh))
        if entry is None:
            gl_mesh = GLMesh(mesh.geometry, dynamic=True)
            gl_mesh.upload()
            mesh.gl_handle = gl_mesh
            mesh.needs_update = False
            self._gl_meshes[id(mesh)] = (mesh, gl_mesh)
            return gl_mesh
        gl_mesh = entry[1]
        if mesh.needs_update:
            gl_mesh.sync()
            mesh.needs_update = False
        return gl_mesh

    def _release_orphans(self, live: set[int]) -> None:
        """Destroy GPU buffers of meshes that left the scene (dropped faces)."""
        for key in [k for k in self._gl_meshes if k not in live]:
            mesh, gl_mesh = self._gl_meshes.pop(key)
            gl_mesh.destroy()
            mesh.gl_handle = None

    def _draw_mesh(
        self,
        mesh: MeshInstance,
        world: Mat4,
        view: Mat4,
        proj: Mat4,
        lights: LightSetup,
        layer: int,
    ) -> None:
        gl_mesh = self._ensure_gl_mesh(mesh)
        mode = mesh.material.render_mode
        shader = self._shaders.get(mode, self._shaders[RenderMode.SOLID])
        shader.use()

        model_view = view @ world
        shader.set_uniform_mat4("uModelView", model_view)
        shader.set_uniform_mat4("uProjection", proj)
        try:
            normal_mat = mat3_normal(model_view)
        except np.linalg.LinAlgError:
            normal_mat = np.eye(3, dtype=np.float64)
        shader.set_uniform_mat3("uNormalMatrix", normal_mat)
        if mode == RenderMode.POINTS:
            shader.set_uniform_float("uPointSize", self.POINT_SIZE)

        lights.apply(shader)
        apply_material(shader, mesh.material, layer)
        gl_mesh.draw(mode)
