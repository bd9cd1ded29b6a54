"""Shared constants and paths for FaceRender."""

from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent.parent
ASSETS_DIR = PROJECT_ROOT / "assets"
CONFIG_DIR = ASSETS_DIR / "config"
MESHDATA_DIR = ASSETS_DIR / "meshdata"
MODELS_DIR = ASSETS_DIR / "models"

# Face mesh constants
FACE_POINT_COUNT = 468  # MediaPipe / facemesh landmarks (no iris refinement)
FLOATS_PER_TRIANGLE = 9  # 3 vertex slots x 3 floats

# Landmark model (MediaPipe Tasks bundle, fetched on first use)
FACE_LANDMARKER_MODEL = "face_landmarker.task"
FACE_LANDMARKER_URL = (
    "https://storage.googleapis.com/mediapipe-models/face_landmarker/"
    "face_landmarker/float16/1/face_landmarker.task"
)

# Surface keys
SKIN_FEATURE_KEY = "skin"
FACE_NODE_PREFIX = "__face_"
ACCESSORY_NODE_PREFIX = "__point_"

# Default colours (hex, as used by the reference rendering)
SKIN_COLOR = 0xC68642
PUPIL_COLOR = 0x111111

# Reference frame (static image test harness)
DEFAULT_FRAME_WIDTH = 500
DEFAULT_FRAME_HEIGHT = 500

# Camera defaults
DEFAULT_CAMERA_FOV = 45.0

# Pupil disc geometry
PUPIL_SEGMENTS = 16

# Frame loop
TARGET_FPS = 30
MAX_DELTA_TIME = 0.5  # Clamp dt to avoid fps spikes after stalls
FPS_SMOOTHING = 0.9
