"""Ambient, directional and hemisphere lighting for the face shaders."""

from facerender.core.math_utils import Vec3, normalize, vec3
from facerender.rendering.shader_program import ShaderProgram


class LightSetup:
    """Holds the scene lights.

    Attributes
    ----------
    ambient_color : Vec3
        Flat RGB ambient contribution.
    light_dir : Vec3
        Direction *toward* the directional light in view space (normalised).
    light_color : Vec3
        RGB intensity of the directional light.
    sky_color, ground_color : Vec3
        Hemisphere light colours blended by the normal's ``hemi_up`` component.
    """

    def __init__(self) -> None:
        self.ambient_color: Vec3 = vec3(0.25, 0.25, 0.25)
        self.light_dir: Vec3 = normalize(vec3(0.0, 1.0, 1.0))
        self.light_color: Vec3 = vec3(0.5, 0.5, 0.5)
        self.sky_color: Vec3 = vec3(0.3, 0.3, 0.3)
        self.ground_color: Vec3 = vec3(0.1, 0.1, 0.1)
        self.hemi_up: Vec3 = vec3(0.0, 1.0, 0.0)

    def apply(self, shader: ShaderProgram) -> None:
        """Upload light uniforms to the given shader program.

        Must be called after ``shader.use()``.
        """
        shader.set_uniform_vec3("uAmbientColor", self.ambient_color)
        shader.set_uniform_vec3("uLightDir", self.light_dir)
        shader.set_uniform_vec3("uLightColor", self.light_color)
        shader.set_uniform_vec3("uSkyColor", self.sky_color)
        shader.set_uniform_vec3("uGroundColor", self.ground_color)
        shader.set_uniform_vec3("uHemiUp", self.hemi_up)
