"""FaceRender application entry point.

Wires together capture, landmark detection, the mesh update engine and the
OpenGL viewport.
"""

# Disable PyOpenGL's per-call error checking BEFORE any GL imports.
import OpenGL
OpenGL.ERROR_CHECKING = False

import argparse
import logging
import sys
from pathlib import Path

from PySide6.QtGui import QSurfaceFormat
from PySide6.QtWidgets import QApplication

from facerender.constants import DEFAULT_FRAME_HEIGHT, DEFAULT_FRAME_WIDTH
from facerender.core.clock import FrameClock
from facerender.core.config_loader import load_config
from facerender.core.events import EventBus, EventType
from facerender.core.scene_graph import Scene
from facerender.core.state import TrackerState
from facerender.coordination.accessories import AccessoryRenderer
from facerender.coordination.frame_loop import FrameLoop
from facerender.coordination.mesh_engine import MeshUpdateEngine
from facerender.landmarks.annotation_index import AnnotationIndex
from facerender.landmarks.annotations import MESH_ANNOTATIONS, load_feature_defs
from facerender.landmarks.point_buffer import AxisRemap, PointBufferAdapter
from facerender.landmarks.triangulation import load_canonical_triangulation
from facerender.loaders.capture import CameraSource, StaticImageSource
from facerender.loaders.detector import DetectorConfig, MediaPipeFaceDetector
from facerender.rendering.gl_widget import GLViewport, create_gl_format

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="facerender", description="Live face mesh renderer")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--image", type=Path, help="render a single still image")
    source.add_argument("--camera", type=int, default=None, help="camera device index")
    parser.add_argument("--max-faces", type=int, default=None, help="faces tracked per frame")
    parser.add_argument("--triangulation", type=Path, default=None,
                        help="triangulation JSON (defaults to the shipped/mediapipe table)")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def main(argv=None):
    """Launch the FaceRender viewer."""
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(name)s: %(message)s")

    try:
        cfg = load_config("app.json")
    except FileNotFoundError:
        cfg = {}
    max_faces = args.max_faces or cfg.get("maxFaces", 1)

    # Static lookup tables, built once
    table = load_canonical_triangulation(args.triangulation)
    index = AnnotationIndex.build(table, MESH_ANNOTATIONS, load_feature_defs())

    remap = AxisRemap.from_config()
    if args.image is not None:
        frame_source = StaticImageSource(args.image)
        frame_size = (DEFAULT_FRAME_WIDTH, DEFAULT_FRAME_HEIGHT)
    else:
        device = args.camera if args.camera is not None else cfg.get("cameraDevice", 0)
        frame_source = CameraSource(device, int(remap.frame_width), int(remap.frame_height))
        frame_size = (int(remap.frame_width), int(remap.frame_height))

    detector = MediaPipeFaceDetector(DetectorConfig(
        max_faces=max_faces,
        static_image_mode=args.image is not None,
        min_detection_confidence=cfg.get("minDetectionConfidence", 0.5),
        min_tracking_confidence=cfg.get("minTrackingConfidence", 0.5),
        model_path=Path(cfg["landmarkerModel"]) if cfg.get("landmarkerModel") else None,
    ))

    QSurfaceFormat.setDefaultFormat(create_gl_format())
    app = QApplication(sys.argv[:1])

    event_bus = EventBus()
    state = TrackerState()
    scene = Scene()
    acc_cfg = cfg.get("accessory", {})
    engine = MeshUpdateEngine(
        scene, index,
        accessories=AccessoryRenderer(
            scene,
            relative_size=acc_cfg.get("relativeSize", 0.2),
            depth_bias=acc_cfg.get("depthBias", 0.5),
        ),
        event_bus=event_bus,
    )
    loop = FrameLoop(
        frame_source, detector, PointBufferAdapter(remap), engine,
        event_bus=event_bus, state=state, clock=FrameClock(),
        max_face_age=cfg.get("maxFaceAge"),
    )

    event_bus.subscribe(
        EventType.CAPTURE_LOST,
        lambda error: logger.warning("Waiting for capture source (%s)", error),
    )

    viewport = GLViewport(scene, loop, frame_size=frame_size, fps=cfg.get("targetFps", 30))
    event_bus.subscribe(EventType.FRAME_RESIZED, viewport.reframe)
    viewport.setWindowTitle("FaceRender")
    viewport.show()

    def _shutdown():
        viewport.cleanup()
        frame_source.release()
        detector.close()
        logger.info("Processed %d frames (%d empty, %d capture failures)",
                    state.frame_count, state.empty_frames, state.capture_failures)

    app.aboutToQuit.connect(_shutdown)
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
