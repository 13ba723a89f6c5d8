from __future__ import annotations
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .types import BoundingBox, Frame
from .errors import DetectionError


class PerformanceMode(Enum):
    FAST = "fast"
    ACCURATE = "accurate"


@dataclass(frozen=True)
class DetectorOptions:
    """Opaque detector tuning handed to the capability at construction."""
    performance_mode: PerformanceMode = PerformanceMode.FAST
    min_detection_confidence: float = 0.5


class IFaceDetector:
    """Interface for face detection capabilities.

    `detect` maps an image plus its rotation to face boxes in upright pixel
    coordinates, in the detector's own order.
    """

    def detect(self, image, rotation: int) -> Sequence[BoundingBox]:
        raise NotImplementedError

    def close(self) -> None:
        pass


class FaceDetectorAdapter:
    """Runs a face detection capability on one frame and delivers a future.

    - Executes on the injected executor; inline when none is given
    - Exactly one outcome per call: a list of boxes or a DetectionError
    - Never releases the frame, that stays with the caller
    """

    def __init__(self, detector: IFaceDetector, executor: Optional[Executor] = None):
        self.detector = detector
        self.executor = executor

    def detect(self, frame: Frame) -> "Future[List[BoundingBox]]":
        if self.executor is None:
            future: Future = Future()
            try:
                future.set_result(self._run(frame))
            except DetectionError as e:
                future.set_exception(e)
            return future
        try:
            return self.executor.submit(self._run, frame)
        except RuntimeError as e:
            # Executor already shut down
            future = Future()
            future.set_exception(DetectionError(e))
            return future

    def _run(self, frame: Frame) -> List[BoundingBox]:
        try:
            boxes = self.detector.detect(frame.image, frame.rotation)
            boxes = [] if boxes is None else list(boxes)
            if not all(isinstance(box, BoundingBox) for box in boxes):
                raise TypeError(f"detector returned non-box items: {boxes!r}")
        except Exception as e:
            raise DetectionError(e) from e
        return boxes
