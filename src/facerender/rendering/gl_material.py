"""Apply Material properties to a shader program and configure GL state."""

from OpenGL.GL import (
    GL_BACK,
    GL_BLEND,
    GL_CULL_FACE,
    GL_FILL,
    GL_FRONT_AND_BACK,
    GL_LINE,
    GL_ONE_MINUS_SRC_ALPHA,
    GL_POINT,
    GL_POLYGON_OFFSET_FILL,
    GL_SRC_ALPHA,
    glBlendFunc,
    glCullFace,
    glDepthMask,
    glDisable,
    glEnable,
    glPolygonMode,
    glPolygonOffset,
)

from facerender.core.material import Material, RenderMode
from facerender.rendering.shader_program import ShaderProgram


def apply_material(shader: ShaderProgram, material: Material, layer: int = 0) -> None:
    """Set shader uniforms and GL state to match *material*.

    *layer* is the mesh's position in draw order.  Feature surfaces reuse
    the skin's vertex positions, so each later layer is pulled towards the
    camera by one more polygon-offset unit and wins the depth test.

    Must be called after ``shader.use()`` and before the draw call.
    """
    shader.set_uniform_vec3("uColor", material.color)
    shader.set_uniform_float("uOpacity", material.opacity)
    shader.set_uniform_float("uShininess", material.shininess)

    if material.transparent or material.opacity < 1.0:
        glEnable(GL_BLEND)
        glBlendFunc(GL_SRC_ALPHA, GL_ONE_MINUS_SRC_ALPHA)
        glDepthMask(False)
    else:
        glDisable(GL_BLEND)
        glDepthMask(True)

    if material.double_sided:
        glDisable(GL_CULL_FACE)
    else:
        glEnable(GL_CULL_FACE)
        glCullFace(GL_BACK)

    if material.render_mode == RenderMode.WIREFRAME:
        glPolygonMode(GL_FRONT_AND_BACK, GL_LINE)
    elif material.render_mode == RenderMode.POINTS:
        glPolygonMode(GL_FRONT_AND_BACK, GL_POINT)
    else:
        glPolygonMode(GL_FRONT_AND_BACK, GL_FILL)

    if layer > 0:
        glEnable(GL_POLYGON_OFFSET_FILL)
        glPolygonOffset(-1.0, -float(layer))
    else:
        glDisable(GL_POLYGON_OFFSET_FILL)


def restore_material_defaults() -> None:
    """Reset GL state changed by :func:`apply_material`."""
    glPolygonMode(GL_FRONT_AND_BACK, GL_FILL)
    glDisable(GL_POLYGON_OFFSET_FILL)
    glDisable(GL_BLEND)
    glDepthMask(True)
    glDisable(GL_CULL_FACE)
