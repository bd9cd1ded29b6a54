"""Tests for event bus."""

from facerender.core.events import EventBus, EventType


def test_subscribe_publish():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.FACE_UPDATED, lambda **kw: received.append(kw))
    bus.publish(EventType.FACE_UPDATED, face_id="face1", surfaces=12)
    assert received == [{"face_id": "face1", "surfaces": 12}]


def test_unsubscribe():
    bus = EventBus()
    received = []
    handler = lambda **kw: received.append(kw)
    bus.subscribe(EventType.CAPTURE_LOST, handler)
    bus.unsubscribe(EventType.CAPTURE_LOST, handler)
    bus.publish(EventType.CAPTURE_LOST, error="gone")
    assert len(received) == 0


def test_unsubscribe_unknown_handler_is_noop():
    bus = EventBus()
    bus.unsubscribe(EventType.CAPTURE_LOST, lambda **kw: None)


def test_different_events_independent():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.DETECTION_EMPTY, lambda **kw: received.append("empty"))
    bus.publish(EventType.FRAME_PROCESSED, frame=1, faces=1, fps=30.0)
    assert len(received) == 0


def test_handler_may_unsubscribe_during_publish():
    bus = EventBus()
    calls = []

    def once(**kw):
        calls.append(kw)
        bus.unsubscribe(EventType.SURFACE_CREATED, once)

    bus.subscribe(EventType.SURFACE_CREATED, once)
    bus.subscribe(EventType.SURFACE_CREATED, lambda **kw: calls.append("second"))
    bus.publish(EventType.SURFACE_CREATED, face_id="face1", feature_key="skin", triangles=8)
    bus.publish(EventType.SURFACE_CREATED, face_id="face1", feature_key="lips", triangles=2)
    assert len(calls) == 3


def test_clear():
    bus = EventBus()
    received = []
    bus.subscribe(EventType.FACE_DROPPED, lambda **kw: received.append(kw))
    bus.clear()
    bus.publish(EventType.FACE_DROPPED, face_id="face1")
    assert received == []
