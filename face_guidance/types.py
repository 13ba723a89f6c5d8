from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union
import threading
import time

from .errors import FrameReleaseError, InvalidDimensions, InvalidTolerance, DetectionError

VALID_ROTATIONS = (0, 90, 180, 270)


@dataclass(eq=False)
class Frame:
    """One captured image owned by exactly one consumer at a time.

    The owner must call `release()` exactly once; the optional `on_release`
    callback gives the source its buffer back.
    """
    image: object  # OpenCV BGR frame (np.ndarray)
    width: int
    height: int
    rotation: int = 0
    on_release: Optional[Callable[["Frame"], None]] = None
    frame_id: int = 0
    timestamp: float = field(default_factory=time.time)
    _released: bool = field(default=False, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        if int(self.width) <= 0 or int(self.height) <= 0:
            raise InvalidDimensions(f"frame size must be positive, got {self.width}x{self.height}")
        if self.rotation not in VALID_ROTATIONS:
            raise ValueError(f"rotation must be one of {VALID_ROTATIONS}, got {self.rotation}")

    @property
    def released(self) -> bool:
        return self._released

    @property
    def upright_size(self) -> Tuple[int, int]:
        """(width, height) once the rotation is applied."""
        if self.rotation in (90, 270):
            return self.height, self.width
        return self.width, self.height

    def release(self) -> None:
        with self._lock:
            if self._released:
                raise FrameReleaseError(f"frame {self.frame_id} released twice")
            self._released = True
        if self.on_release is not None:
            self.on_release(self)


@dataclass(frozen=True)
class BoundingBox:
    """Face rectangle in upright frame pixel coordinates."""
    left: int
    top: int
    right: int
    bottom: int
    score: Optional[float] = None

    def __post_init__(self):
        if self.right < self.left or self.bottom < self.top:
            raise ValueError(f"malformed box: {self}")

    @property
    def width(self) -> int:
        return self.right - self.left

    @property
    def height(self) -> int:
        return self.bottom - self.top

    @property
    def center(self) -> Tuple[int, int]:
        return (self.left + self.right) // 2, (self.top + self.bottom) // 2


@dataclass(frozen=True)
class CenterTarget:
    """Target region: frame center shifted by an offset, widened by a tolerance."""
    width: int
    height: int
    offset_x: int = 0
    offset_y: int = 0
    tolerance: float = 0.1  # fraction of width/height

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InvalidDimensions(f"target size must be positive, got {self.width}x{self.height}")
        if not (0.0 < self.tolerance < 1.0):
            raise InvalidTolerance(f"tolerance must be in (0, 1), got {self.tolerance}")

    @property
    def adjusted_center(self) -> Tuple[int, int]:
        return self.width // 2 + self.offset_x, self.height // 2 + self.offset_y

    @property
    def tolerance_px(self) -> Tuple[float, float]:
        return self.width * self.tolerance, self.height * self.tolerance

    def for_frame(self, width: int, height: int) -> "CenterTarget":
        if (width, height) == (self.width, self.height):
            return self
        return replace(self, width=width, height=height)

    def bounds(self) -> Tuple[int, int, int, int]:
        """Tolerance rectangle as (left, top, right, bottom)."""
        ax, ay = self.adjusted_center
        tx, ty = self.tolerance_px
        return int(ax - tx), int(ay - ty), int(ax + tx), int(ay + ty)


class Horizontal(Enum):
    LEFT = "left"
    RIGHT = "right"


class Vertical(Enum):
    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class Centered:
    is_centered = True

    @property
    def message(self) -> str:
        return "Face centered!"


@dataclass(frozen=True)
class Directional:
    horizontal: Horizontal
    vertical: Vertical
    is_centered = False

    @property
    def message(self) -> str:
        return f"Move face {self.horizontal.value} and move {self.vertical.value}"


@dataclass(frozen=True)
class NoFaceDetected:
    is_centered = False

    @property
    def message(self) -> str:
        return "No face detected"


GuidanceDecision = Union[Centered, Directional, NoFaceDetected]


@dataclass
class CycleStats:
    """Timing metrics for each stage of one pipeline cycle."""
    t_detect_ms: float = 0.0
    t_classify_ms: float = 0.0
    t_publish_ms: float = 0.0
    t_total_ms: float = 0.0


@dataclass
class GuidanceCycle:
    """Aggregated output from one pipeline cycle."""
    frame_id: int
    decision: GuidanceDecision
    boxes: List[BoundingBox]
    error: Optional[DetectionError]
    stats: CycleStats
