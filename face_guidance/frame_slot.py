from __future__ import annotations
from typing import Optional
import threading

from .types import Frame


class FrameSlot:
    """Single-slot, latest-wins handoff between the frame source and the worker.

    Publishing over an unclaimed frame releases the older one; frames are
    dropped, never queued. Neither side ever waits on the other.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._available = threading.Condition(self._lock)
        self._pending: Optional[Frame] = None
        self._closed = False
        self.published = 0
        self.dropped = 0

    def publish(self, frame: Frame) -> None:
        with self._lock:
            if self._closed:
                superseded = frame
            else:
                superseded, self._pending = self._pending, frame
                self.published += 1
                self._available.notify()
            if superseded is not None:
                self.dropped += 1
        # Release outside the lock; callbacks may re-enter the source.
        if superseded is not None:
            superseded.release()

    def claim(self) -> Optional[Frame]:
        with self._lock:
            frame, self._pending = self._pending, None
            return frame

    def wait_for_frame(self, timeout: float) -> bool:
        """Park until a frame is pending, the slot closes, or `timeout` passes."""
        with self._available:
            if self._pending is None and not self._closed:
                self._available.wait(timeout)
            return self._pending is not None

    def wake(self) -> None:
        with self._available:
            self._available.notify_all()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        with self._lock:
            self._closed = True
            frame, self._pending = self._pending, None
            self._available.notify_all()
        if frame is not None:
            frame.release()
