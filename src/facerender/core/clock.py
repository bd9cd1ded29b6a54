"""Frame clock: per-frame delta time and a smoothed frames-per-second figure."""

import time

from facerender.constants import FPS_SMOOTHING, MAX_DELTA_TIME


class FrameClock:
    """Tracks elapsed time between processed frames."""

    def __init__(self, smoothing: float = FPS_SMOOTHING):
        self.smoothing = smoothing
        self.fps: float = 0.0
        self._last_time = time.perf_counter()

    def tick(self) -> float:
        """Return seconds since the previous tick (clamped) and update ``fps``."""
        now = time.perf_counter()
        dt = min(now - self._last_time, MAX_DELTA_TIME)
        self._last_time = now
        if dt > 0.0:
            instant = 1.0 / dt
            if self.fps == 0.0:
                self.fps = instant
            else:
                self.fps = self.smoothing * self.fps + (1.0 - self.smoothing) * instant
        return dt

    def reset(self) -> None:
        self._last_time = time.perf_counter()
        self.fps = 0.0
