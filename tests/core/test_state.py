"""Tests for tracker state and the frame clock."""

from facerender.core.clock import FrameClock
from facerender.core.state import CapturePhase, TrackerState


def test_defaults():
    state = TrackerState()
    assert state.phase == CapturePhase.AWAITING_CAPTURE
    assert not state.running
    assert state.frame_count == 0
    assert state.faces == {}


def test_capture_lifecycle():
    state = TrackerState()
    state.mark_running()
    assert state.running
    state.mark_capture_lost("device unplugged")
    assert state.phase == CapturePhase.AWAITING_CAPTURE
    assert state.capture_failures == 1
    assert state.last_error == "device unplugged"
    state.mark_running()
    assert state.last_error == ""


def test_record_face():
    state = TrackerState()
    state.frame_count = 3
    track = state.record_face("face1")
    assert track.first_frame == 3
    state.frame_count = 5
    track = state.record_face("face1")
    assert track.first_frame == 3
    assert track.last_frame == 5
    assert track.update_count == 2


def test_stale_faces():
    state = TrackerState()
    state.frame_count = 1
    state.record_face("face1")
    state.record_face("face2")
    state.frame_count = 10
    state.record_face("face1")
    assert state.stale_faces(5) == ["face2"]
    state.forget_face("face2")
    assert state.stale_faces(5) == []


def test_clock_fps():
    clock = FrameClock(smoothing=0.5)
    dt = clock.tick()
    assert dt >= 0.0
    assert clock.tick() >= 0.0
    clock.reset()
    assert clock.fps == 0.0
