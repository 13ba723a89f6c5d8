from typing import Optional


class DetectionError(Exception):
    """Raised when the face detector fails on a frame."""

    def __init__(self, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.cause = cause
        super().__init__(message or f"face detection failed: {cause}")


class GuidanceConfigError(ValueError):
    """Raised when centering configuration or frame geometry is invalid."""


class InvalidDimensions(GuidanceConfigError):
    """Raised when a frame or target has a non-positive width or height."""


class InvalidTolerance(GuidanceConfigError):
    """Raised when the centering tolerance is outside (0, 1)."""


class FrameReleaseError(RuntimeError):
    """Raised when a frame is released more than once."""
