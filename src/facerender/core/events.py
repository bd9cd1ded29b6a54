"""EventBus for decoupled publish/subscribe communication."""

from enum import Enum, auto
from typing import Any, Callable
from collections import defaultdict


class EventType(Enum):
    # Capture source lifecycle
    CAPTURE_ACQUIRED = auto()     # data: source (str)
    CAPTURE_LOST = auto()         # data: error (str)

    # Per-frame results
    FRAME_PROCESSED = auto()      # data: frame (int), faces (int), fps (float)
    DETECTION_EMPTY = auto()      # data: frame (int)
    FRAME_RESIZED = auto()        # data: width (int), height (int)
    FACE_UPDATED = auto()         # data: face_id (str), surfaces (int)

    # Geometry lifecycle
    SURFACE_CREATED = auto()      # data: face_id (str), feature_key (str), triangles (int)
    FACE_DROPPED = auto()         # data: face_id (str)


class EventBus:
    """Simple publish/subscribe event system."""

    def __init__(self):
        self._handlers: dict[EventType, list[Callable]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        handlers = self._handlers[event_type]
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: EventType, **data: Any) -> None:
        for handler in list(self._handlers[event_type]):
            handler(**data)

    def clear(self) -> None:
        self._handlers.clear()
