"""MediaPipe FaceLandmarker wrapper producing facemesh-style detections.

Each detection carries the pixel-scaled 468-point mesh, the named
annotation groups (gathered by landmark index) and a bounding box.
"""

from __future__ import annotations

import logging
import time
import urllib.request
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import cv2
import mediapipe as mp
import numpy as np
from mediapipe.tasks import python as mp_tasks
from mediapipe.tasks.python import vision
from numpy.typing import NDArray

from facerender.constants import (
    FACE_LANDMARKER_MODEL,
    FACE_LANDMARKER_URL,
    FACE_POINT_COUNT,
    MODELS_DIR,
)
from facerender.landmarks.annotation_index import annotate
from facerender.landmarks.point_buffer import BoundingBox

logger = logging.getLogger(__name__)


@dataclass
class DetectorConfig:
    max_faces: int = 1
    static_image_mode: bool = False
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    model_path: Optional[Path] = None


@dataclass
class FaceDetection:
    """One detected face, in detector pixel space."""
    scaled_mesh: NDArray[np.float32]
    annotations: dict[str, NDArray[np.float32]] = field(default_factory=dict)
    bounding_box: Optional[BoundingBox] = None


def landmarks_to_mesh(landmarks, width: int, height: int) -> NDArray[np.float32]:
    """Normalised MediaPipe landmarks -> (N, 3) pixel-scaled mesh.

    z is scaled by the frame width, matching MediaPipe's convention that z
    shares the x axis scale.
    """
    mesh = np.array([[lm.x, lm.y, lm.z] for lm in landmarks], dtype=np.float32)
    mesh[:, 0] *= width
    mesh[:, 1] *= height
    mesh[:, 2] *= width
    return mesh


def ensure_model(path: Optional[Path] = None, url: str = FACE_LANDMARKER_URL) -> Path:
    """Return the landmarker bundle path, downloading it on first use."""
    path = Path(path) if path is not None else MODELS_DIR / FACE_LANDMARKER_MODEL
    if path.exists():
        return path

    logger.info("Downloading face landmarker model to %s", path)
    path.parent.mkdir(parents=True, exist_ok=True)
    partial = path.with_suffix(path.suffix + ".part")
    try:
        urllib.request.urlretrieve(url, partial)
    except OSError as exc:
        partial.unlink(missing_ok=True)
        raise RuntimeError(
            f"face landmarker model missing at {path} and download failed ({exc}); "
            f"fetch it manually from {url}"
        ) from exc
    partial.replace(path)
    logger.info("Model downloaded: %.1f MB", path.stat().st_size / 1e6)
    return path


class MediaPipeFaceDetector:
    """Landmark detector collaborator; a black box returning detections.

    Still images run the landmarker in IMAGE mode; camera frames use VIDEO
    mode, which needs strictly increasing timestamps.
    """

    def __init__(self, config: Optional[DetectorConfig] = None):
        self.config = config or DetectorConfig()
        model = ensure_model(self.config.model_path)
        running_mode = (
            vision.RunningMode.IMAGE if self.config.static_image_mode else vision.RunningMode.VIDEO
        )
        options = vision.FaceLandmarkerOptions(
            base_options=mp_tasks.BaseOptions(model_asset_path=str(model)),
            running_mode=running_mode,
            num_faces=self.config.max_faces,
            min_face_detection_confidence=self.config.min_detection_confidence,
            min_face_presence_confidence=self.config.min_detection_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
            output_face_blendshapes=False,
            output_facial_transformation_matrixes=False,
        )
        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        self._video = not self.config.static_image_mode
        self._last_timestamp_ms = -1
        logger.info("MediaPipe FaceLandmarker ready (max_faces=%d, %s mode)",
                    self.config.max_faces, "video" if self._video else "image")

    def _next_timestamp_ms(self) -> int:
        ts = max(int(time.monotonic() * 1000), self._last_timestamp_ms + 1)
        self._last_timestamp_ms = ts
        return ts

    def _detect(self, rgb: NDArray[np.uint8]):
        image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(rgb))
        if self._video:
            return self._landmarker.detect_for_video(image, self._next_timestamp_ms())
        return self._landmarker.detect(image)

    def estimate_faces(self, frame_bgr: NDArray[np.uint8]) -> list[FaceDetection]:
        """Run inference on one BGR frame; an empty list means no face."""
        h, w = frame_bgr.shape[:2]
        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        result = self._detect(rgb)
        if not result.face_landmarks:
            return []

        detections = []
        for face_landmarks in result.face_landmarks:
            mesh = landmarks_to_mesh(face_landmarks, w, h)
            if len(mesh) != FACE_POINT_COUNT:
                # the landmarker appends 10 iris points; keep the base mesh
                mesh = mesh[:FACE_POINT_COUNT]
            detections.append(FaceDetection(
                scaled_mesh=mesh,
                annotations=annotate(mesh),
                bounding_box=BoundingBox.from_points(mesh),
            ))
        return detections

    def close(self) -> None:
        self._landmarker.close()
