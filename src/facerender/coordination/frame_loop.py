"""Per-frame orchestrator: capture -> detect -> adapt -> update surfaces."""

from __future__ import annotations

import logging
from typing import Optional

from facerender.core.clock import FrameClock
from facerender.core.events import EventBus, EventType
from facerender.core.state import TrackerState
from facerender.coordination.mesh_engine import MeshUpdateEngine
from facerender.landmarks.point_buffer import PointBufferAdapter

logger = logging.getLogger(__name__)


def face_instance_id(detection_index: int) -> str:
    """Positional face id: first detection is ``face1``."""
    return f"face{detection_index + 1}"


class FrameLoop:
    """Runs one frame of work per :meth:`step` call.

    Call order:
      1. Acquire a capture source if none is open
      2. Read a frame and run the landmark detector
      3. Follow the captured frame size in the adapter's remap
      4. On the first detection, fill feature interiors (once)
      5. Adapt each detection's points and update its face instance
      6. Drop faces not seen for ``max_face_age`` frames (when set)

    Capture and detection failures never escape ``step``: the source is
    released and the next step tries to acquire it again.
    """

    def __init__(
        self,
        source,
        detector,
        adapter: PointBufferAdapter,
        engine: MeshUpdateEngine,
        event_bus: Optional[EventBus] = None,
        state: Optional[TrackerState] = None,
        clock: Optional[FrameClock] = None,
        max_face_age: Optional[int] = None,
        fit_to_box: Optional[bool] = None,
    ):
        self.source = source
        self.detector = detector
        self.adapter = adapter
        self.engine = engine
        self.event_bus = event_bus or EventBus()
        self.state = state or TrackerState()
        self.clock = clock or FrameClock()
        self.max_face_age = max_face_age
        # static images are rescaled so the face fills the frame
        self.fit_to_box = fit_to_box if fit_to_box is not None else bool(getattr(source, "static", False))
        # live frames flip against their real size; fitted images use the configured frame
        self.track_frame_size = not self.fit_to_box
        self._stepping = False

    @property
    def busy(self) -> bool:
        return self._stepping

    def step(self) -> int:
        """Process one frame; returns the number of faces updated."""
        if self._stepping:
            logger.debug("Frame step already in progress; skipping")
            return 0
        self._stepping = True
        try:
            return self._step()
        finally:
            self._stepping = False

    def _step(self) -> int:
        if not self.state.running and not self._acquire():
            return 0

        try:
            frame = self.source.read()
            detections = self.detector.estimate_faces(frame)
        except Exception as e:
            self._lose_capture(e)
            return 0

        self.state.frame_count += 1
        self.clock.tick()
        self.state.fps = self.clock.fps
        if self.track_frame_size:
            self._sync_frame_size(frame)

        if not detections:
            self.state.empty_frames += 1
            logger.debug("Frame %d: no faces detected", self.state.frame_count)
            self.event_bus.publish(EventType.DETECTION_EMPTY, frame=self.state.frame_count)
        else:
            self._prepare_index(detections[0])

        updated = 0
        for i, detection in enumerate(detections):
            box = detection.bounding_box if self.fit_to_box else None
            points = self.adapter.adapt(detection.scaled_mesh, box)
            face_id = face_instance_id(i)
            if self.engine.update_face(face_id, points):
                self.state.record_face(face_id)
                updated += 1

        if self.max_face_age is not None:
            for face_id in self.state.stale_faces(self.max_face_age):
                self.engine.drop_face(face_id)
                self.state.forget_face(face_id)

        self.event_bus.publish(
            EventType.FRAME_PROCESSED,
            frame=self.state.frame_count, faces=updated, fps=self.state.fps,
        )
        return updated

    def _acquire(self) -> bool:
        try:
            self.source.open()
        except Exception as e:
            logger.warning("Capture source unavailable: %s", e)
            self.state.last_error = str(e)
            return False
        self.state.mark_running()
        self.clock.reset()
        logger.info("Capture acquired: %s", getattr(self.source, "name", self.source))
        self.event_bus.publish(EventType.CAPTURE_ACQUIRED, source=getattr(self.source, "name", ""))
        return True

    def _lose_capture(self, error: Exception) -> None:
        logger.warning("Capture lost: %s", error)
        try:
            self.source.release()
        except Exception as e:
            logger.warning("Error releasing capture source: %s", e)
        self.state.mark_capture_lost(str(error))
        self.event_bus.publish(EventType.CAPTURE_LOST, error=str(error))

    def _sync_frame_size(self, frame) -> None:
        height, width = frame.shape[:2]
        remap = self.adapter.remap
        if (remap.frame_width, remap.frame_height) == (width, height):
            return
        self.adapter.remap = remap.with_frame(width, height)
        logger.info("Capture frame size %dx%d", width, height)
        self.event_bus.publish(EventType.FRAME_RESIZED, width=width, height=height)

    def _prepare_index(self, detection) -> None:
        """Fill feature interiors from the first adapted frame, before any surface exists."""
        index = self.engine.annotation_index
        if not index.needs_interior or self.engine.registry:
            return
        box = detection.bounding_box if self.fit_to_box else None
        reference = self.adapter.adapt(detection.scaled_mesh, box)
        self.engine.annotation_index = index.with_interior(reference)
        logger.info("Feature interiors filled from frame %d", self.state.frame_count)
