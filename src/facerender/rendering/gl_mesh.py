"""VAO / VBO pair streaming a surface's vertex slots to the GPU.

Layout (OpenGL 3.3 core):
  - location 0: positions (vec3)
  - location 1: normals   (vec3)

Surfaces are non-indexed triangle lists whose length never changes after
allocation, so per-frame updates overwrite the buffers in place with
``glBufferSubData``.
"""

import logging

import numpy as np
from OpenGL.GL import (
    GL_ARRAY_BUFFER,
    GL_DYNAMIC_DRAW,
    GL_FALSE,
    GL_FLOAT,
    GL_POINTS,
    GL_STATIC_DRAW,
    GL_TRIANGLES,
    glBindBuffer,
    glBindVertexArray,
    glBufferData,
    glBufferSubData,
    glDeleteBuffers,
    glDeleteVertexArrays,
    glDrawArrays,
    glEnableVertexAttribArray,
    glGenBuffers,
    glGenVertexArrays,
    glVertexAttribPointer,
)

from facerender.core.material import RenderMode
from facerender.core.mesh import BufferGeometry

logger = logging.getLogger(__name__)


class GLMesh:
    """GPU-side mirror of a :class:`BufferGeometry`."""

    def __init__(self, geometry: BufferGeometry, *, dynamic: bool = True) -> None:
        self._geometry = geometry
        self._usage = GL_DYNAMIC_DRAW if dynamic else GL_STATIC_DRAW
        self._vao: int = 0
        self._vbo_pos: int = 0
        self._vbo_norm: int = 0
        self._vertex_count: int = 0
        self._nbytes: int = 0

    @property
    def uploaded(self) -> bool:
        return self._vao != 0

    @property
    def vertex_count(self) -> int:
        return self._vertex_count

    def upload(self) -> None:
        """(Re)create the VAO and both VBOs from the geometry's current data."""
        if self.uploaded:
            self.destroy()

        pos = np.ascontiguousarray(self._geometry.positions, dtype=np.float32)
        norm = np.ascontiguousarray(self._geometry.normals, dtype=np.float32)

        self._vao = glGenVertexArrays(1)
        self._vbo_pos = glGenBuffers(1)
        self._vbo_norm = glGenBuffers(1)
        glBindVertexArray(self._vao)
        for location, vbo, data in ((0, self._vbo_pos, pos), (1, self._vbo_norm, norm)):
            glBindBuffer(GL_ARRAY_BUFFER, vbo)
            glBufferData(GL_ARRAY_BUFFER, data.nbytes, data, self._usage)
            glVertexAttribPointer(location, 3, GL_FLOAT, GL_FALSE, 0, None)
            glEnableVertexAttribArray(location)
        glBindVertexArray(0)
        glBindBuffer(GL_ARRAY_BUFFER, 0)

        self._vertex_count = self._geometry.vertex_count
        self._nbytes = pos.nbytes
        logger.debug("GLMesh uploaded: %d vertex slots", self._vertex_count)

    def sync(self) -> None:
        """Stream current positions and normals; re-uploads if the size differs."""
        if not self.uploaded:
            self.upload()
            return
        pos = np.ascontiguousarray(self._geometry.positions, dtype=np.float32)
        if pos.nbytes != self._nbytes:
            self.upload()
            return
        norm = np.ascontiguousarray(self._geometry.normals, dtype=np.float32)
        glBindBuffer(GL_ARRAY_BUFFER, self._vbo_pos)
        glBufferSubData(GL_ARRAY_BUFFER, 0, pos.nbytes, pos)
        glBindBuffer(GL_ARRAY_BUFFER, self._vbo_norm)
        glBufferSubData(GL_ARRAY_BUFFER, 0, norm.nbytes, norm)
        glBindBuffer(GL_ARRAY_BUFFER, 0)

    def draw(self, mode: RenderMode = RenderMode.TOON) -> None:
        """Issue the draw call; shader and uniforms must already be bound."""
        if not self.uploaded or self._vertex_count == 0:
            return
        # wireframe is a polygon mode, set in gl_material
        primitive = GL_POINTS if mode == RenderMode.POINTS else GL_TRIANGLES
        glBindVertexArray(self._vao)
        glDrawArrays(primitive, 0, self._vertex_count)
        glBindVertexArray(0)

    def destroy(self) -> None:
        for attr in ("_vbo_norm", "_vbo_pos"):
            vbo = getattr(self, attr)
            if vbo:
                glDeleteBuffers(1, [vbo])
                setattr(self, attr, 0)
        if self._vao:
            glDeleteVertexArrays(1, [self._vao])
            self._vao = 0
        self._vertex_count = 0
        self._nbytes = 0
