"""Named landmark groups of the 468-point face mesh and feature definitions.

``MESH_ANNOTATIONS`` is the fixed vocabulary the detector reports under
``annotations``: each entry is an ordered run of landmark indices (upper
contours run from the outer to the inner corner, lower contours likewise).
The values must match the point ordering of the landmark model exactly.

Features group annotation names into renderable parts.  Mesh features become
triangle sub-surfaces; accessory features are positioned at the centroid of
their points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from facerender.core.config_loader import load_config
from facerender.core.material import Material

logger = logging.getLogger(__name__)


MESH_ANNOTATIONS: dict[str, list[int]] = {
    "silhouette": [
        10, 338, 297, 332, 284, 251, 389, 356, 454, 323, 361, 288,
        397, 365, 379, 378, 400, 377, 152, 148, 176, 149, 150, 136,
        172, 58, 132, 93, 234, 127, 162, 21, 54, 103, 67, 109,
    ],

    "lipsUpperOuter": [61, 185, 40, 39, 37, 0, 267, 269, 270, 409, 291],
    "lipsLowerOuter": [146, 91, 181, 84, 17, 314, 405, 321, 375, 291],
    "lipsUpperInner": [78, 191, 80, 81, 82, 13, 312, 311, 310, 415, 308],
    "lipsLowerInner": [78, 95, 88, 178, 87, 14, 317, 402, 318, 324, 308],

    "rightEyeUpper0": [246, 161, 160, 159, 158, 157, 173],
    "rightEyeLower0": [33, 7, 163, 144, 145, 153, 154, 155, 133],
    "rightEyeUpper1": [247, 30, 29, 27, 28, 56, 190],
    "rightEyeLower1": [130, 25, 110, 24, 23, 22, 26, 112, 243],
    "rightEyeUpper2": [113, 225, 224, 223, 222, 221, 189],
    "rightEyeLower2": [226, 31, 228, 229, 230, 231, 232, 233, 244],
    "rightEyeLower3": [143, 111, 117, 118, 119, 120, 121, 128, 245],

    "rightEyebrowUpper": [156, 70, 63, 105, 66, 107, 55, 193],
    "rightEyebrowLower": [35, 124, 46, 53, 52, 65],

    "leftEyeUpper0": [466, 388, 387, 386, 385, 384, 398],
    "leftEyeLower0": [263, 249, 390, 373, 374, 380, 381, 382, 362],
    "leftEyeUpper1": [467, 260, 259, 257, 258, 286, 414],
    "leftEyeLower1": [359, 255, 339, 254, 253, 252, 256, 341, 463],
    "leftEyeUpper2": [342, 445, 444, 443, 442, 441, 413],
    "leftEyeLower2": [446, 261, 448, 449, 450, 451, 452, 453, 464],
    "leftEyeLower3": [372, 340, 346, 347, 348, 349, 350, 357, 465],

    "leftEyebrowUpper": [383, 300, 293, 334, 296, 336, 285, 417],
    "leftEyebrowLower": [265, 353, 276, 283, 282, 295],

    "midwayBetweenEyes": [168],

    "noseTip": [1],
    "noseBottom": [2],
    "noseRightCorner": [98],
    "noseLeftCorner": [327],

    "rightCheek": [205],
    "leftCheek": [425],
}


FEATURE_KIND_MESH = "mesh"
FEATURE_KIND_ACCESSORY = "accessory"


@dataclass(frozen=True)
class FeatureDef:
    """One renderable feature assembled from annotation groups.

    groups: annotation names whose point indices are united.  For outline
        features the first group is the upper contour and the second the
        lower contour (walked in reverse to close the polygon).
    fill_interior: also claim landmarks enclosed by the outline polygon
        once a reference frame is available.
    """
    key: str
    groups: tuple[str, ...]
    color: int
    kind: str = FEATURE_KIND_MESH
    fill_interior: bool = False
    tag: str = ""

    @property
    def is_accessory(self) -> bool:
        return self.kind == FEATURE_KIND_ACCESSORY

    def material(self) -> Material:
        return Material.from_hex(self.color, tag=self.tag or self.key)

    @classmethod
    def from_dict(cls, d: dict) -> "FeatureDef":
        kind = d.get("kind", FEATURE_KIND_MESH)
        if kind not in (FEATURE_KIND_MESH, FEATURE_KIND_ACCESSORY):
            raise ValueError(f"Feature '{d.get('key')}': unknown kind '{kind}'")
        return cls(
            key=d["key"],
            groups=tuple(d["groups"]),
            color=Material.parse_color(d["color"]),
            kind=kind,
            fill_interior=bool(d.get("fillInterior", False)),
            tag=d.get("tag", ""),
        )


def _outline(key: str, upper: str, lower: str, color: int, tag: str) -> FeatureDef:
    return FeatureDef(key, (upper, lower), color, fill_interior=True, tag=tag)


# Draw order matters: later features are drawn over earlier ones where they
# share triangles.
DEFAULT_FEATURES: tuple[FeatureDef, ...] = (
    _outline("lipsOuter", "lipsUpperOuter", "lipsLowerOuter", 0x8B160E, "lips"),
    _outline("rightEyebrow", "rightEyebrowUpper", "rightEyebrowLower", 0x654321, "eyebrow"),
    _outline("leftEyebrow", "leftEyebrowUpper", "leftEyebrowLower", 0x654321, "eyebrow"),
    _outline("rightEye3", "rightEyeUpper2", "rightEyeLower3", 0xFF69B4, "eyelid"),
    _outline("leftEye3", "leftEyeUpper2", "leftEyeLower3", 0xFF69B4, "eyelid"),
    _outline("rightEye2", "rightEyeUpper2", "rightEyeLower2", 0x8B160E, "eyelid"),
    _outline("leftEye2", "leftEyeUpper2", "leftEyeLower2", 0x8B160E, "eyelid"),
    _outline("rightEye1", "rightEyeUpper1", "rightEyeLower1", 0xFFFFFF, "sclera"),
    _outline("leftEye1", "leftEyeUpper1", "leftEyeLower1", 0xFFFFFF, "sclera"),
    _outline("rightEye0", "rightEyeUpper0", "rightEyeLower0", 0x313456, "iris"),
    _outline("leftEye0", "leftEyeUpper0", "leftEyeLower0", 0x313456, "iris"),
    FeatureDef("rightPupil", ("rightEyeUpper0", "rightEyeLower0"), 0x111111,
               kind=FEATURE_KIND_ACCESSORY, tag="pupil"),
    FeatureDef("leftPupil", ("leftEyeUpper0", "leftEyeLower0"), 0x111111,
               kind=FEATURE_KIND_ACCESSORY, tag="pupil"),
)


def load_feature_defs(name: Optional[str] = "features.json") -> tuple[FeatureDef, ...]:
    """Load feature definitions from assets/config/, or the built-in defaults."""
    if name is None:
        return DEFAULT_FEATURES
    try:
        raw = load_config(name)
    except FileNotFoundError:
        logger.info("No %s found, using built-in feature definitions", name)
        return DEFAULT_FEATURES
    features = tuple(FeatureDef.from_dict(d) for d in raw["features"])
    logger.info("Loaded %d feature definitions from %s", len(features), name)
    return features
