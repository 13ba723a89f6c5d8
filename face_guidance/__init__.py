"""
face_guidance package
Latest-frame face centering pipeline: frame slot → detector → classifier → sink.
"""

from .types import (
    BoundingBox,
    CenterTarget,
    Centered,
    CycleStats,
    Directional,
    Frame,
    GuidanceCycle,
    GuidanceDecision,
    Horizontal,
    NoFaceDetected,
    Vertical,
)
from .errors import (
    DetectionError,
    FrameReleaseError,
    GuidanceConfigError,
    InvalidDimensions,
    InvalidTolerance,
)
from .logger import EventLogger
from .frame_slot import FrameSlot
from .detection import DetectorOptions, FaceDetectorAdapter, IFaceDetector, PerformanceMode
from .classifier import CenteringClassifier, classify
from .monitor import PerformanceMonitor
from .sink import ConsoleGuidanceSink, GuidanceSink
from .pipeline import GuidancePipeline, PipelineState

__all__ = [
    "BoundingBox",
    "CenterTarget",
    "Centered",
    "CycleStats",
    "Directional",
    "Frame",
    "GuidanceCycle",
    "GuidanceDecision",
    "Horizontal",
    "NoFaceDetected",
    "Vertical",
    "DetectionError",
    "FrameReleaseError",
    "GuidanceConfigError",
    "InvalidDimensions",
    "InvalidTolerance",
    "EventLogger",
    "FrameSlot",
    "DetectorOptions",
    "FaceDetectorAdapter",
    "IFaceDetector",
    "PerformanceMode",
    "CenteringClassifier",
    "classify",
    "PerformanceMonitor",
    "ConsoleGuidanceSink",
    "GuidanceSink",
    "GuidancePipeline",
    "PipelineState",
]
