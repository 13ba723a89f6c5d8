"""
Face Centering Guidance - Main Application
Camera preview with live "move left / move down" guidance for a single face
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional
import argparse
import logging
import queue
import time

import customtkinter as ctk
from customtkinter import CTkImage
import cv2
from PIL import Image

from config import Config
from video_capture import VideoCapture, fit_size, rotate_upright
from face_guidance import (
    ConsoleGuidanceSink,
    EventLogger,
    FaceDetectorAdapter,
    FrameSlot,
    GuidanceCycle,
    GuidanceDecision,
    GuidancePipeline,
    GuidanceSink,
    IFaceDetector,
    PerformanceMonitor,
)
from face_guidance.overlay import draw_guidance_overlay

# Configure appearance
ctk.set_appearance_mode("dark")
ctk.set_default_color_theme("blue")

CENTERED_HEX = "#2ECC71"
OFF_CENTER_HEX = "#E74C3C"


class GuidanceSession:
    """Owns the capture thread, detector executor and pipeline for one run."""

    def __init__(self, config: Config, sink: GuidanceSink, logger: EventLogger,
                 dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
                 detector: Optional[IFaceDetector] = None,
                 on_cycle: Optional[Callable[[GuidanceCycle], None]] = None):
        self.config = config
        self.log = logger
        self.slot = FrameSlot()
        self.target = config.center_target()
        video_cfg = dict(config.get('video'))
        video_cfg.update(config.get('analysis'))
        self.video = VideoCapture(video_cfg, self.slot, logger=logger)
        if detector is None:
            from face_detection import MediaPipeFaceDetector
            detector = MediaPipeFaceDetector(config.detector_options(), config.get('detector', 'model_path'))
        self.detector = detector
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="face-detector")
        self.perf = PerformanceMonitor()
        self.pipeline = GuidancePipeline(
            slot=self.slot,
            detector=FaceDetectorAdapter(detector, self.executor),
            target=self.target,
            sink=sink,
            perf_monitor=self.perf,
            logger=logger,
            dispatch=dispatch,
            idle_wait_s=float(config.get('pipeline', 'idle_wait_ms') or 50) / 1000.0,
            on_cycle=on_cycle,
        )

    def start(self) -> bool:
        self.pipeline.start()
        if not self.video.start():
            self.log.error("camera unavailable; guidance paused")
            return False
        return True

    def stop(self) -> None:
        self.video.release()
        self.pipeline.stop(timeout=float(self.config.get('pipeline', 'stop_timeout_s') or 5.0))
        self.executor.shutdown(wait=True)
        self.detector.close()


class OverlayGuidanceSink(GuidanceSink):
    """Instruction label + status colour; must be updated on the Tk thread."""

    def __init__(self, label: ctk.CTkLabel):
        super().__init__()
        self.label = label

    def render(self, decision: GuidanceDecision) -> None:
        color = CENTERED_HEX if decision.is_centered else OFF_CENTER_HEX
        self.label.configure(text=decision.message, text_color=color)


class FaceGuidanceApp(ctk.CTk):
    """Main application GUI"""

    def __init__(self, config: Config, logger: EventLogger):
        super().__init__()
        self.config = config
        self.log = logger
        self.running = True

        # Window setup
        self.title("Face Centering Guidance")
        self.geometry("1000x720")
        self.protocol("WM_DELETE_WINDOW", self.on_closing)

        # Calls marshalled from the worker, drained on the Tk thread
        self.ui_calls: "queue.Queue[Callable[[], None]]" = queue.Queue()

        self.setup_gui()
        self.sink = OverlayGuidanceSink(self.instructions_label)
        # Boxes of the last finished cycle, updated on the Tk thread
        self.last_boxes = []
        self.session = GuidanceSession(config, self.sink, logger, dispatch=self.ui_calls.put_nowait,
                                       on_cycle=self.on_cycle)
        if not self.session.start():
            self.instructions_label.configure(text="Could not start the camera.", text_color=OFF_CENTER_HEX)

        self.update_gui()

    def setup_gui(self):
        self.video_label = ctk.CTkLabel(self, text="Waiting for camera...")
        self.video_label.pack(padx=10, pady=10, fill="both", expand=True)
        self.instructions_label = ctk.CTkLabel(self, text="", font=ctk.CTkFont(size=22, weight="bold"))
        self.instructions_label.pack(pady=(0, 6))
        self.status_label = ctk.CTkLabel(self, text="Status: starting")
        self.status_label.pack(pady=(0, 10))

    def update_gui(self):
        """Drain guidance updates and redraw the preview"""
        if not self.running:
            return

        while True:
            try:
                call = self.ui_calls.get_nowait()
            except queue.Empty:
                break
            call()

        frame = self.session.video.latest_preview()
        if frame is not None:
            self.display_frame(frame)

        status = self.session.video.get_status()
        perf = self.session.perf.summary()
        self.status_label.configure(
            text=(f"Status: {'connected' if status['connected'] else 'no camera'} | "
                  f"FPS: {status['fps_measured']:.1f} | Detect: {perf['avg_detect_ms']:.1f} ms | "
                  f"Dropped: {status['frames_dropped']} | Detector errors: {perf['detection_errors']}")
        )

        self.after(int(self.config.get('display', 'refresh_ms') or 33), self.update_gui)

    def display_frame(self, frame):
        """Display frame in GUI"""
        frame = rotate_upright(frame, self.session.video.rotation)
        frame = draw_guidance_overlay(
            frame, self.session.target, self.sink.last_decision, boxes=self.last_boxes,
            tint_alpha=float(self.config.get('display', 'tint_alpha') or 0.0),
        )
        height, width = frame.shape[:2]
        new_width, new_height = fit_size(width, height, int(self.config.get('display', 'max_width')),
                                         int(self.config.get('display', 'max_height')))
        if (new_width, new_height) != (width, height):
            frame = cv2.resize(frame, (new_width, new_height))

        image = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
        photo = CTkImage(image, size=(new_width, new_height))
        self.video_label.configure(image=photo, text="")
        self.video_label.image = photo  # Keep reference

    def on_cycle(self, cycle: GuidanceCycle):
        self.last_boxes = cycle.boxes

    def on_closing(self):
        """Handle window closing"""
        self.running = False
        self.session.stop()
        self.log.close()
        self.destroy()


def run_headless(config: Config, logger: EventLogger) -> int:
    """Run the pipeline with console guidance until Ctrl+C."""
    session = GuidanceSession(config, ConsoleGuidanceSink(logger), logger)
    if not session.start():
        session.stop()
        return 1
    try:
        while True:
            time.sleep(5.0)
            logger.debug(f"perf: {session.perf.summary()}")
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received; stopping...")
    finally:
        session.stop()
        logger.close()
    return 0


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description="Face centering guidance")
    parser.add_argument("--config", type=str, default=None, help="JSON file overriding default settings")
    parser.add_argument("--headless", action="store_true", help="Print guidance to the console, no window")
    parser.add_argument("--verbose", action="store_true", help="Echo debug logs to console")
    parser.add_argument("--log-file", type=str, default=None, help="Path to session log file")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s - %(levelname)s - %(message)s')
    logger = EventLogger(log_file_path=args.log_file)

    config = Config()
    if args.config:
        config.load(args.config)

    if args.headless:
        raise SystemExit(run_headless(config, logger))

    app = FaceGuidanceApp(config, logger)
    try:
        app.mainloop()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received; closing application...")
        app.on_closing()


if __name__ == "__main__":
    main()
