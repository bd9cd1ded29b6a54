"""GLSL program compilation and uniform upload (OpenGL 3.3 core)."""

import logging
from pathlib import Path

import numpy as np
from OpenGL.GL import (
    GL_COMPILE_STATUS,
    GL_FRAGMENT_SHADER,
    GL_LINK_STATUS,
    GL_VERTEX_SHADER,
    glAttachShader,
    glCompileShader,
    glCreateProgram,
    glCreateShader,
    glDeleteProgram,
    glDeleteShader,
    glGetProgramInfoLog,
    glGetProgramiv,
    glGetShaderInfoLog,
    glGetShaderiv,
    glGetUniformLocation,
    glLinkProgram,
    glShaderSource,
    glUniform1f,
    glUniform1i,
    glUniform3f,
    glUniformMatrix3fv,
    glUniformMatrix4fv,
    glUseProgram,
)

logger = logging.getLogger(__name__)

SHADER_DIR = Path(__file__).parent / "shaders"


def load_shader_source(filename: str) -> str:
    """Read a GLSL file from the package's shaders/ directory."""
    return (SHADER_DIR / filename).read_text(encoding="utf-8")


def _decode(info) -> str:
    if isinstance(info, bytes):
        return info.decode("utf-8", errors="replace")
    return str(info)


class ShaderProgram:
    """A linked vertex + fragment program with cached uniform locations."""

    def __init__(self, vertex_source: str, fragment_source: str, name: str = "") -> None:
        self.name = name
        self._sources = (vertex_source, fragment_source)
        self._program: int = 0
        self._locations: dict[str, int] = {}

    @classmethod
    def from_files(cls, vert_filename: str, frag_filename: str) -> "ShaderProgram":
        return cls(
            load_shader_source(vert_filename),
            load_shader_source(frag_filename),
            name=f"{vert_filename}+{frag_filename}",
        )

    def compile(self) -> None:
        """Compile and link; raises ``RuntimeError`` with the driver log on failure."""
        stages = [
            self._compile_stage(GL_VERTEX_SHADER, self._sources[0]),
            self._compile_stage(GL_FRAGMENT_SHADER, self._sources[1]),
        ]
        program = glCreateProgram()
        for stage in stages:
            glAttachShader(program, stage)
        glLinkProgram(program)
        linked = glGetProgramiv(program, GL_LINK_STATUS) == 1
        log = "" if linked else _decode(glGetProgramInfoLog(program))
        for stage in stages:
            glDeleteShader(stage)
        if not linked:
            glDeleteProgram(program)
            raise RuntimeError(f"Shader program '{self.name}' link error:\n{log}")

        self._program = program
        self._locations.clear()
        logger.debug("Shader program '%s' linked (id %d)", self.name, program)

    def _compile_stage(self, stage_type: int, source: str) -> int:
        shader = glCreateShader(stage_type)
        glShaderSource(shader, source)
        glCompileShader(shader)
        if glGetShaderiv(shader, GL_COMPILE_STATUS) != 1:
            log = _decode(glGetShaderInfoLog(shader))
            glDeleteShader(shader)
            kind = "vertex" if stage_type == GL_VERTEX_SHADER else "fragment"
            raise RuntimeError(f"{kind} shader of '{self.name}' failed to compile:\n{log}")
        return shader

    def use(self) -> None:
        glUseProgram(self._program)

    @property
    def program_id(self) -> int:
        return self._program

    def uniform_location(self, name: str) -> int:
        loc = self._locations.get(name)
        if loc is None:
            loc = glGetUniformLocation(self._program, name)
            self._locations[name] = loc
            if loc < 0:
                logger.debug("Uniform '%s' inactive in '%s'", name, self.name)
        return loc

    # Matrices are stored row-major by math_utils; transpose before upload
    # instead of passing transpose=GL_TRUE (rejected by some core profiles).

    def set_uniform_mat4(self, name: str, mat: np.ndarray) -> None:
        loc = self.uniform_location(name)
        if loc >= 0:
            glUniformMatrix4fv(loc, 1, False, np.ascontiguousarray(mat.T, dtype=np.float32))

    def set_uniform_mat3(self, name: str, mat: np.ndarray) -> None:
        loc = self.uniform_location(name)
        if loc >= 0:
            glUniformMatrix3fv(loc, 1, False, np.ascontiguousarray(mat.T, dtype=np.float32))

    def set_uniform_vec3(self, name: str, v) -> None:
        loc = self.uniform_location(name)
        if loc >= 0:
            glUniform3f(loc, float(v[0]), float(v[1]), float(v[2]))

    def set_uniform_float(self, name: str, value: float) -> None:
        loc = self.uniform_location(name)
        if loc >= 0:
            glUniform1f(loc, float(value))

    def set_uniform_int(self, name: str, value: int) -> None:
        loc = self.uniform_location(name)
        if loc >= 0:
            glUniform1i(loc, int(value))

    def destroy(self) -> None:
        if self._program:
            glDeleteProgram(self._program)
            self._program = 0
            self._locations.clear()
