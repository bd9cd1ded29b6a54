"""Material definitions for rendering."""

from enum import Enum, auto
from dataclasses import dataclass


class RenderMode(Enum):
    SOLID = auto()
    TOON = auto()
    WIREFRAME = auto()
    POINTS = auto()


@dataclass
class Material:
    """Rendering material properties.

    ``tag`` names the colour/material role of a surface (``"skin"``,
    ``"lips"``, ``"pupil"`` ...) so a presentation layer can restyle
    surfaces without knowing feature keys.
    """
    color: tuple[float, float, float] = (0.8, 0.8, 0.8)
    opacity: float = 1.0
    shininess: float = 30.0
    render_mode: RenderMode = RenderMode.TOON
    double_sided: bool = True
    transparent: bool = False
    tag: str = ""

    @staticmethod
    def from_hex(color_int: int, **kwargs) -> "Material":
        """Create material from integer hex color (e.g., 0xC68642)."""
        return Material(color=Material.hex_to_rgb(color_int), **kwargs)

    @staticmethod
    def hex_to_rgb(color_int: int) -> tuple[float, float, float]:
        r = ((color_int >> 16) & 0xFF) / 255.0
        g = ((color_int >> 8) & 0xFF) / 255.0
        b = (color_int & 0xFF) / 255.0
        return (r, g, b)

    @staticmethod
    def parse_color(value) -> int:
        """Accept ``0xRRGGBB`` ints or ``"#RRGGBB"`` / ``"0xRRGGBB"`` strings."""
        if isinstance(value, int):
            return value
        text = str(value).strip().lower()
        if text.startswith("#"):
            return int(text[1:], 16)
        return int(text, 16)
