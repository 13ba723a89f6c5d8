from typing import Optional, Tuple, Dict, Any
import itertools
import threading
import time

import cv2
import numpy as np

from face_guidance import EventLogger, Frame, FrameSlot


class VideoCapture:
    """OpenCV capture feeding the analysis FrameSlot and the preview.

    Expects cfg keys: capture_index, width, height, fps, rotation.
    Every captured image is published as a Frame (the slot keeps only the
    latest); the preview reads its own copy and never waits on analysis.
    """

    def __init__(self, cfg: Dict[str, Any], slot: FrameSlot, logger: Optional[EventLogger] = None,
                 reinit_fail_threshold: int = 30):
        self.index = int(cfg.get('capture_index', 0))
        self.width = int(cfg.get('width', 1280))
        self.height = int(cfg.get('height', 720))
        self.target_fps = float(cfg.get('fps', 30))
        self.rotation = int(cfg.get('rotation', 0))
        self.slot = slot
        self.log = logger or EventLogger(name="face_guidance.capture")
        # Reopen the device after N consecutive read failures
        self.reinit_fail_threshold = int(reinit_fail_threshold)

        # Runtime state
        self.cap: Optional[cv2.VideoCapture] = None
        self._running = False
        self._capture_thread: Optional[threading.Thread] = None
        self._preview_lock = threading.Lock()
        self._preview: Optional[np.ndarray] = None
        self._ids = itertools.count(1)
        self._fps_count = 0
        self._fps_start = time.time()
        self._fps_measured = 0.0
        self._fail_count = 0
        self._reinit_attempts = 0
        self.in_flight = 0
        self._in_flight_lock = threading.Lock()

    def start(self) -> bool:
        """Open the camera and start the capture thread; False if it cannot be opened."""
        if not self._open_capture():
            self.log.error(f"could not open camera index {self.index}")
            return False
        self._running = True
        self._capture_thread = threading.Thread(target=self._capture_loop, name="capture", daemon=True)
        self._capture_thread.start()
        self.log.info(f"camera {self.index} opened at {self.width}x{self.height}")
        return True

    def _open_capture(self) -> bool:
        cap = cv2.VideoCapture(self.index)
        if not cap or not cap.isOpened():
            return False
        # Some backends ignore these; frames report their real size anyway
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(self.width))
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(self.height))
        cap.set(cv2.CAP_PROP_FPS, float(self.target_fps))
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)
        self._close_capture()
        self.cap = cap
        self._fail_count = 0
        return True

    def _close_capture(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None

    def _capture_loop(self):
        while self._running:
            cap = self.cap
            try:
                ok, image = cap.read() if cap is not None else (False, None)
            except (cv2.error, AttributeError) as e:
                self.log.debug(f"camera read error: {e}")
                ok, image = False, None
            if not ok or image is None:
                self._fail_count += 1
                if not self._running:
                    break
                if self._fail_count >= self.reinit_fail_threshold:
                    self._reinit_attempts += 1
                    self.log.warning(f"camera read failing, reopening (attempt {self._reinit_attempts})")
                    if not self._open_capture():
                        self._fail_count = 0
                        time.sleep(0.5)
                else:
                    time.sleep(0.01)
                continue

            self._fail_count = 0
            self._tick_fps()
            with self._preview_lock:
                self._preview = image
            self.slot.publish(self.make_frame(image))

    def make_frame(self, image: np.ndarray) -> Frame:
        height, width = image.shape[:2]
        with self._in_flight_lock:
            self.in_flight += 1
        return Frame(
            image=image,
            width=width,
            height=height,
            rotation=self.rotation,
            on_release=self._on_release,
            frame_id=next(self._ids),
        )

    def _on_release(self, frame: Frame) -> None:
        with self._in_flight_lock:
            self.in_flight -= 1

    def _tick_fps(self) -> None:
        self._fps_count += 1
        now = time.time()
        elapsed = now - self._fps_start
        if elapsed >= 1.0:
            self._fps_measured = self._fps_count / elapsed
            self._fps_count = 0
            self._fps_start = now

    def latest_preview(self) -> Optional[np.ndarray]:
        with self._preview_lock:
            return self._preview

    def get_status(self) -> Dict[str, Any]:
        return {
            'connected': bool(self.cap is not None and self.cap.isOpened()),
            'resolution': (self.width, self.height),
            'fps_target': self.target_fps,
            'fps_measured': self._fps_measured,
            'fail_count': self._fail_count,
            'reinit_attempts': self._reinit_attempts,
            'frames_dropped': self.slot.dropped,
            'frames_in_flight': self.in_flight,
        }

    def release(self) -> None:
        self._running = False
        if self._capture_thread is not None:
            self._capture_thread.join(timeout=0.5)
            self._capture_thread = None
        self._close_capture()


def rotate_upright(image: np.ndarray, rotation: int) -> np.ndarray:
    """Rotate a sensor image clockwise by `rotation` degrees."""
    if rotation == 90:
        return cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    if rotation == 180:
        return cv2.rotate(image, cv2.ROTATE_180)
    if rotation == 270:
        return cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
    return image


def fit_size(width: int, height: int, max_width: int, max_height: int) -> Tuple[int, int]:
    """Scale (width, height) down to fit the display box, keeping aspect."""
    if width <= max_width and height <= max_height:
        return width, height
    scale = min(max_width / width, max_height / height)
    return max(1, int(width * scale)), max(1, int(height * scale))
