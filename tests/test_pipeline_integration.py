from concurrent.futures import Future, ThreadPoolExecutor
import threading
import time

import numpy as np
import pytest

from face_guidance import (
    BoundingBox,
    CenterTarget,
    Centered,
    Directional,
    EventLogger,
    FaceDetectorAdapter,
    Frame,
    FrameSlot,
    GuidancePipeline,
    GuidanceSink,
    Horizontal,
    IFaceDetector,
    NoFaceDetected,
    PipelineState,
    Vertical,
)


class ScriptedDetector(IFaceDetector):
    """Returns boxes (or raises) per frame, keyed by the image payload."""

    def __init__(self, script=None, default=()):
        self.script = script or {}
        self.default = list(default)
        self.seen = []

    def detect(self, image, rotation):
        self.seen.append(image)
        outcome = self.script.get(image, self.default)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSink(GuidanceSink):
    def __init__(self):
        super().__init__()
        self.decisions = []

    def render(self, decision):
        self.decisions.append(decision)


class EventLog:
    """Shared ordered record of publishes and releases."""

    def __init__(self):
        self.events = []
        self.lock = threading.Lock()

    def add(self, event):
        with self.lock:
            self.events.append(event)


def box_at(cx, cy):
    return BoundingBox(cx - 20, cy - 20, cx + 20, cy + 20)


def make_frame(frame_id, log=None, width=1280, height=720, rotation=0):
    def on_release(frame):
        if log is not None:
            log.add(("release", frame.frame_id))
    return Frame(image=frame_id, width=width, height=height, rotation=rotation,
                 on_release=on_release, frame_id=frame_id)


def make_pipeline(detector, sink=None, executor=None, ui_lines=None, **kwargs):
    target = CenterTarget(width=1280, height=720, offset_x=-120, offset_y=30, tolerance=0.1)
    logger = EventLogger(ui_logger=ui_lines.append if ui_lines is not None else None)
    return GuidancePipeline(
        slot=FrameSlot(),
        detector=FaceDetectorAdapter(detector, executor),
        target=target,
        sink=sink or RecordingSink(),
        logger=logger,
        **kwargs,
    )


def test_run_cycle_on_empty_slot_returns_none():
    pipe = make_pipeline(ScriptedDetector())
    assert pipe.run_cycle() is None
    assert pipe.state == PipelineState.IDLE


def test_cycle_publishes_decision_then_releases_frame():
    log = EventLog()
    sink = RecordingSink()
    pipe = make_pipeline(ScriptedDetector(script={1: [box_at(520, 390)]}), sink=sink)
    original_render = sink.render
    sink.render = lambda d: (log.add(("publish", d)), original_render(d))

    pipe.slot.publish(make_frame(1, log))
    cycle = pipe.run_cycle()

    assert cycle.decision == Centered()
    assert cycle.error is None
    assert log.events == [("publish", Centered()), ("release", 1)]
    assert sink.last_decision == Centered()
    assert pipe.state == PipelineState.IDLE


def test_no_face_and_directional_decisions():
    sink = RecordingSink()
    detector = ScriptedDetector(script={1: [], 2: [box_at(100, 390)]})
    pipe = make_pipeline(detector, sink=sink)
    for frame_id in (1, 2):
        pipe.slot.publish(make_frame(frame_id))
        pipe.run_cycle()
    assert sink.decisions == [NoFaceDetected(), Directional(Horizontal.LEFT, Vertical.UP)]


def test_detector_failure_downgrades_to_no_face_and_releases():
    log = EventLog()
    ui_lines = []
    sink = RecordingSink()
    pipe = make_pipeline(ScriptedDetector(script={1: RuntimeError("boom")}), sink=sink, ui_lines=ui_lines)
    frame = make_frame(1, log)
    pipe.slot.publish(frame)

    cycle = pipe.run_cycle()

    assert cycle.decision == NoFaceDetected()
    assert cycle.error is not None and isinstance(cycle.error.cause, RuntimeError)
    assert frame.released
    assert log.events == [("release", 1)]
    assert sink.decisions == [NoFaceDetected()]
    assert any("detection error" in line for line in ui_lines)
    assert pipe.perf.summary()["detection_errors"] == 1


def test_sink_failure_does_not_leak_the_frame():
    class BrokenSink(GuidanceSink):
        def render(self, decision):
            raise RuntimeError("widget destroyed")

    pipe = make_pipeline(ScriptedDetector(default=[box_at(520, 390)]), sink=BrokenSink())
    frame = make_frame(1)
    pipe.slot.publish(frame)
    assert pipe.run_cycle().decision == Centered()
    assert frame.released


def test_classifies_against_upright_frame_size():
    sink = RecordingSink()
    # Portrait after rotation: 720x1280; adjusted center (240, 670)
    pipe = make_pipeline(ScriptedDetector(default=[box_at(240, 670)]), sink=sink)
    pipe.slot.publish(make_frame(1, rotation=90))
    pipe.run_cycle()
    assert sink.decisions == [Centered()]


def test_dispatch_marshals_sink_updates():
    pending = []
    sink = RecordingSink()
    pipe = make_pipeline(ScriptedDetector(default=[box_at(520, 390)]), sink=sink, dispatch=pending.append)
    pipe.slot.publish(make_frame(1))
    pipe.run_cycle()
    # Nothing rendered until the owning context drains its queue
    assert sink.decisions == []
    for call in pending:
        call()
    assert sink.decisions == [Centered()]


def test_worker_publishes_one_decision_per_claimed_frame():
    log = EventLog()
    sink = RecordingSink()
    n = 50
    pipe = make_pipeline(ScriptedDetector(default=[box_at(520, 390)]), sink=sink, idle_wait_s=0.01)
    original_render = sink.render
    sink.render = lambda d: (log.add(("publish", d)), original_render(d))
    frames = [make_frame(i, log) for i in range(1, n + 1)]

    pipe.start()
    for frame in frames:
        pipe.slot.publish(frame)
        time.sleep(0.001)
    deadline = time.time() + 5.0
    while pipe.slot.published - pipe.slot.dropped > len(sink.decisions) and time.time() < deadline:
        time.sleep(0.01)
    pipe.stop()

    releases = [e[1] for e in log.events if e[0] == "release"]
    publishes = [e for e in log.events if e[0] == "publish"]
    # Every frame released exactly once: claimed ones after their publish, the rest dropped
    assert sorted(releases) == list(range(1, n + 1))
    assert all(f.released for f in frames)
    claimed = n - pipe.slot.dropped
    assert len(publishes) == claimed == pipe.perf.summary()["cycles"]
    # Each publish is immediately followed by the release of its frame
    for i, event in enumerate(log.events):
        if event[0] == "publish":
            assert log.events[i + 1][0] == "release"


def test_stop_drains_in_flight_cycle_and_releases_pending():
    started = threading.Event()
    proceed = threading.Event()

    class SlowDetector(IFaceDetector):
        def detect(self, image, rotation):
            started.set()
            proceed.wait(timeout=2.0)
            return [box_at(520, 390)]

    sink = RecordingSink()
    with ThreadPoolExecutor(max_workers=1) as executor:
        pipe = make_pipeline(SlowDetector(), sink=sink, executor=executor, idle_wait_s=0.01)
        in_flight = make_frame(1)
        pipe.start()
        pipe.slot.publish(in_flight)
        assert started.wait(timeout=2.0)
        pending = make_frame(2)
        pipe.slot.publish(pending)

        stopper = threading.Thread(target=pipe.stop)
        stopper.start()
        time.sleep(0.05)
        assert not in_flight.released
        proceed.set()
        stopper.join(timeout=5.0)

    assert in_flight.released and pending.released
    assert sink.decisions == [Centered()]
    assert pipe.running is False


def test_unusable_detector_output_still_publishes_no_face():
    sink = RecordingSink()
    raw = np.array([[500, 370, 540, 410], [80, 80, 120, 120]])
    pipe = make_pipeline(ScriptedDetector(script={1: raw}), sink=sink)
    frame = make_frame(1)
    pipe.slot.publish(frame)

    cycle = pipe.run_cycle()

    assert cycle.decision == NoFaceDetected()
    assert cycle.error is not None
    assert isinstance(cycle.error.cause, TypeError)
    assert sink.decisions == [NoFaceDetected()]
    assert frame.released


def test_unexpected_future_exception_is_downgraded():
    class LeakyAdapter:
        def detect(self, frame):
            future = Future()
            future.set_exception(ValueError("not a DetectionError"))
            return future

    sink = RecordingSink()
    pipe = make_pipeline(ScriptedDetector(), sink=sink)
    pipe.detector = LeakyAdapter()
    frame = make_frame(1)
    pipe.slot.publish(frame)

    cycle = pipe.run_cycle()

    assert isinstance(cycle.error.cause, ValueError)
    assert sink.decisions == [NoFaceDetected()]
    assert frame.released


def test_cycle_hook_receives_boxes_through_dispatch():
    pending = []
    cycles = []
    face = box_at(100, 390)
    pipe = make_pipeline(ScriptedDetector(default=[face]), dispatch=pending.append, on_cycle=cycles.append)
    pipe.slot.publish(make_frame(1))
    pipe.run_cycle()
    assert cycles == []
    for call in pending:
        call()
    assert len(cycles) == 1
    assert cycles[0].boxes == [face]
    assert cycles[0].decision == Directional(Horizontal.LEFT, Vertical.UP)


def test_worker_exits_when_slot_is_closed():
    pipe = make_pipeline(ScriptedDetector(), idle_wait_s=0.01)
    pipe.start()
    worker = pipe._worker
    pipe.slot.close()
    worker.join(timeout=2.0)
    assert not worker.is_alive()
    pipe.stop()


def test_restart_after_stop_is_refused():
    pipe = make_pipeline(ScriptedDetector(), idle_wait_s=0.01)
    pipe.start()
    pipe.stop()
    with pytest.raises(RuntimeError):
        pipe.start()


def test_array_of_boxes_from_detector_is_classified():
    sink = RecordingSink()
    boxes = np.array([box_at(520, 390), box_at(100, 100)], dtype=object)
    pipe = make_pipeline(ScriptedDetector(script={1: boxes}), sink=sink)
    pipe.slot.publish(make_frame(1))

    cycle = pipe.run_cycle()

    assert cycle.error is None
    assert sink.decisions == [Centered()]
