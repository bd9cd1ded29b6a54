"""Rendering subsystem -- OpenGL 3.3 core profile with PySide6 integration."""

from facerender.rendering.camera import Camera
from facerender.rendering.gl_material import apply_material, restore_material_defaults
from facerender.rendering.gl_mesh import GLMesh
from facerender.rendering.gl_widget import GLViewport
from facerender.rendering.lights import LightSetup
from facerender.rendering.renderer import GLRenderer
from facerender.rendering.shader_program import ShaderProgram

__all__ = [
    "Camera",
    "GLMesh",
    "GLRenderer",
    "GLViewport",
    "LightSetup",
    "ShaderProgram",
    "apply_material",
    "restore_material_defaults",
]
