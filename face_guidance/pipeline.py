from __future__ import annotations
from concurrent.futures import CancelledError
from enum import Enum
from typing import Callable, List, Optional
import threading
import time

from .classifier import CenteringClassifier
from .detection import FaceDetectorAdapter
from .errors import DetectionError
from .frame_slot import FrameSlot
from .logger import EventLogger
from .monitor import PerformanceMonitor
from .sink import GuidanceSink
from .types import BoundingBox, CenterTarget, CycleStats, GuidanceCycle, GuidanceDecision, NoFaceDetected


class PipelineState(Enum):
    IDLE = "idle"
    FRAME_CLAIMED = "frame_claimed"
    DETECTING = "detecting"
    CLASSIFYING = "classifying"
    PUBLISHED = "published"


def _direct(fn: Callable[[], None]) -> None:
    fn()


class GuidancePipeline:
    """Dedicated worker orchestrating claim → detect → classify → publish → release.

    Exactly one frame is in flight at a time: the worker does not claim again
    until the previous frame has been released, so decisions reach the sink in
    claim order. Detection failures are downgraded to NoFaceDetected.
    """

    def __init__(
        self,
        slot: FrameSlot,
        detector: FaceDetectorAdapter,
        target: CenterTarget,
        sink: GuidanceSink,
        classifier: Optional[CenteringClassifier] = None,
        perf_monitor: Optional[PerformanceMonitor] = None,
        logger: Optional[EventLogger] = None,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        idle_wait_s: float = 0.05,
        on_cycle: Optional[Callable[[GuidanceCycle], None]] = None,
    ):
        self.slot = slot
        self.detector = detector
        self.target = target
        self.sink = sink
        self.classifier = classifier or CenteringClassifier()
        self.perf = perf_monitor or PerformanceMonitor()
        self.log = logger or EventLogger()
        self.dispatch = dispatch or _direct
        self.idle_wait_s = float(idle_wait_s)
        # Called through `dispatch` with every finished cycle, e.g. to draw its boxes
        self.on_cycle = on_cycle
        self.state = PipelineState.IDLE
        self._running = False
        self._worker: Optional[threading.Thread] = None
        self._lifecycle_lock = threading.Lock()

    # --- Worker lifecycle ---
    def start(self) -> None:
        with self._lifecycle_lock:
            if self._worker is not None:
                return
            if self.slot.closed:
                raise RuntimeError("pipeline cannot restart after stop(); build a new one")
            self._running = True
            self._worker = threading.Thread(target=self._worker_loop, name="guidance-worker", daemon=True)
            self._worker.start()
        self.log.info("guidance pipeline started")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Drain the in-flight cycle, stop the worker and release any pending frame."""
        with self._lifecycle_lock:
            worker, self._worker = self._worker, None
            self._running = False
        self.slot.wake()
        if worker is not None:
            worker.join(timeout=timeout)
            if worker.is_alive():
                self.log.warning("guidance worker did not stop within timeout")
        self.slot.close()
        self.log.info(f"guidance pipeline stopped: {self.perf.summary()}")

    @property
    def running(self) -> bool:
        return self._running

    def __enter__(self) -> "GuidancePipeline":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    def _worker_loop(self):
        while self._running and not self.slot.closed:
            try:
                if self.run_cycle() is None:
                    self.slot.wait_for_frame(self.idle_wait_s)
            except Exception as e:
                self.log.error(f"pipeline error: {e!r}")
                self.state = PipelineState.IDLE
                time.sleep(0.1)

    # --- One cycle ---
    def run_cycle(self) -> Optional[GuidanceCycle]:
        frame = self.slot.claim()
        if frame is None:
            return None

        t_total0 = time.time()
        stats = CycleStats()
        boxes: List[BoundingBox] = []
        error: Optional[DetectionError] = None
        self.state = PipelineState.FRAME_CLAIMED
        try:
            # 1) Detect
            self.state = PipelineState.DETECTING
            t0 = time.time()
            try:
                boxes = self.detector.detect(frame).result()
            except DetectionError as e:
                error = e
            except CancelledError as e:
                error = DetectionError(e, "detection cancelled")
            except Exception as e:
                error = DetectionError(e)
            finally:
                stats.t_detect_ms = (time.time() - t0) * 1000.0
            if error is not None:
                self.log.error(f"detection error on frame {frame.frame_id}: {error}")

            # 2) Classify
            self.state = PipelineState.CLASSIFYING
            t0 = time.time()
            if error is not None:
                decision: GuidanceDecision = NoFaceDetected()
            else:
                width, height = frame.upright_size
                decision = self.classifier.classify(boxes, self.target.for_frame(width, height))
            stats.t_classify_ms = (time.time() - t0) * 1000.0

            # 3) Publish
            t0 = time.time()
            self._publish(decision)
            stats.t_publish_ms = (time.time() - t0) * 1000.0
            self.state = PipelineState.PUBLISHED
        finally:
            frame.release()
            self.state = PipelineState.IDLE

        stats.t_total_ms = (time.time() - t_total0) * 1000.0
        cycle = GuidanceCycle(frame_id=frame.frame_id, decision=decision, boxes=boxes, error=error, stats=stats)
        self.perf.record(cycle)
        if self.on_cycle is not None:
            self._dispatch(lambda: self.on_cycle(cycle), "cycle hook")
        return cycle

    def _publish(self, decision: GuidanceDecision) -> None:
        self._dispatch(lambda: self.sink.update(decision), "guidance sink")

    def _dispatch(self, fn: Callable[[], None], what: str) -> None:
        def deliver():
            try:
                fn()
            except Exception as e:
                self.log.error(f"{what} error: {e!r}")

        try:
            self.dispatch(deliver)
        except Exception as e:
            # e.g. the UI loop is already gone
            self.log.error(f"{what} dispatch error: {e!r}")
