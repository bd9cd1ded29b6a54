"""Frame sources: live camera (OpenCV) and static image (Pillow).

Frames are BGR ``uint8`` arrays of shape (H, W, 3), the layout OpenCV
produces and the detector expects.
"""

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np
from numpy.typing import NDArray
from PIL import Image

logger = logging.getLogger(__name__)


class FrameSource:
    """Interface of a capture source.

    ``read`` raises ``RuntimeError`` once the underlying device is gone; the
    frame loop treats that as a lost capture source.
    """

    name: str = "source"

    def open(self) -> None:
        raise NotImplementedError

    def read(self) -> NDArray[np.uint8]:
        raise NotImplementedError

    def release(self) -> None:
        pass

    @property
    def is_open(self) -> bool:
        return False

    @property
    def static(self) -> bool:
        """True when every read returns the same image."""
        return False


class CameraSource(FrameSource):
    """Webcam capture through ``cv2.VideoCapture``."""

    def __init__(self, device: int = 0, width: Optional[int] = None, height: Optional[int] = None):
        self.device = device
        self.width = width
        self.height = height
        self.name = f"camera:{device}"
        self._cap: Optional[cv2.VideoCapture] = None

    def open(self) -> None:
        cap = cv2.VideoCapture(self.device)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"Could not open camera {self.device}")
        if self.width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        if self.height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self._cap = cap
        logger.info("Opened %s", self.name)

    def read(self) -> NDArray[np.uint8]:
        if self._cap is None:
            raise RuntimeError(f"{self.name} is not open")
        ok, frame = self._cap.read()
        if not ok or frame is None:
            raise RuntimeError(f"{self.name}: frame grab failed")
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
            logger.info("Released %s", self.name)

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()


class StaticImageSource(FrameSource):
    """A single image served as an endless stream of identical frames."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.name = f"image:{self.path.name}"
        self._frame: Optional[NDArray[np.uint8]] = None

    def open(self) -> None:
        with Image.open(self.path) as img:
            rgb = np.asarray(img.convert("RGB"), dtype=np.uint8)
        self._frame = np.ascontiguousarray(rgb[:, :, ::-1])
        logger.info("Loaded %s (%dx%d)", self.name, rgb.shape[1], rgb.shape[0])

    def read(self) -> NDArray[np.uint8]:
        if self._frame is None:
            raise RuntimeError(f"{self.name} is not open")
        return self._frame

    def release(self) -> None:
        self._frame = None

    @property
    def is_open(self) -> bool:
        return self._frame is not None

    @property
    def static(self) -> bool:
        return True
