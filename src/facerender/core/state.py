"""Tracker state: capture phase, frame counters and per-face bookkeeping."""

from dataclasses import dataclass, field
from enum import Enum, auto


class CapturePhase(Enum):
    AWAITING_CAPTURE = auto()
    RUNNING = auto()


@dataclass
class FaceTrack:
    """Bookkeeping for one tracked face instance."""
    face_id: str
    first_frame: int
    last_frame: int
    update_count: int = 0


@dataclass
class TrackerState:
    """Central state container for the frame loop."""
    phase: CapturePhase = CapturePhase.AWAITING_CAPTURE
    frame_count: int = 0
    empty_frames: int = 0
    capture_failures: int = 0
    fps: float = 0.0
    last_error: str = ""
    faces: dict[str, FaceTrack] = field(default_factory=dict)

    @property
    def running(self) -> bool:
        return self.phase == CapturePhase.RUNNING

    def mark_running(self) -> None:
        self.phase = CapturePhase.RUNNING
        self.last_error = ""

    def mark_capture_lost(self, error: str) -> None:
        self.phase = CapturePhase.AWAITING_CAPTURE
        self.capture_failures += 1
        self.last_error = error

    def record_face(self, face_id: str) -> FaceTrack:
        """Note that *face_id* was updated on the current frame."""
        track = self.faces.get(face_id)
        if track is None:
            track = FaceTrack(face_id, self.frame_count, self.frame_count)
            self.faces[face_id] = track
        track.last_frame = self.frame_count
        track.update_count += 1
        return track

    def stale_faces(self, max_age: int) -> list[str]:
        """Return face ids not updated within the last *max_age* frames."""
        return [
            face_id for face_id, track in self.faces.items()
            if self.frame_count - track.last_frame > max_age
        ]

    def forget_face(self, face_id: str) -> None:
        self.faces.pop(face_id, None)
