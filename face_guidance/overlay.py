from __future__ import annotations
from typing import Optional, Sequence, Tuple

import cv2
import numpy as np

from .types import BoundingBox, CenterTarget, GuidanceDecision

CENTERED_COLOR = (0, 255, 0)
OFF_CENTER_COLOR = (0, 0, 255)
TARGET_COLOR = (200, 200, 200)


def status_color(decision: Optional[GuidanceDecision]) -> Tuple[int, int, int]:
    """BGR colour for the overlay tint and text."""
    if decision is not None and decision.is_centered:
        return CENTERED_COLOR
    return OFF_CENTER_COLOR


def draw_guidance_overlay(
    frame: np.ndarray,
    target: CenterTarget,
    decision: Optional[GuidanceDecision],
    boxes: Sequence[BoundingBox] = (),
    tint_alpha: float = 0.25,
) -> np.ndarray:
    """Return a copy of `frame` with the target region, face box and guidance text."""
    display = frame.copy()
    height, width = display.shape[:2]
    target = target.for_frame(width, height)
    color = status_color(decision)

    if decision is not None and tint_alpha > 0.0:
        tint = np.empty_like(display)
        tint[:] = color
        cv2.addWeighted(tint, tint_alpha, display, 1.0 - tint_alpha, 0.0, dst=display)

    left, top, right, bottom = target.bounds()
    cv2.rectangle(display, (max(0, left), max(0, top)), (min(width - 1, right), min(height - 1, bottom)),
                  TARGET_COLOR, 2, cv2.LINE_AA)
    ax, ay = target.adjusted_center
    cv2.drawMarker(display, (ax, ay), TARGET_COLOR, markerType=cv2.MARKER_CROSS, markerSize=14, thickness=2)

    if boxes:
        box = boxes[0]
        cv2.rectangle(display, (box.left, box.top), (box.right, box.bottom), color, 2)
        cv2.circle(display, box.center, 5, color, -1)

    if decision is not None:
        cv2.putText(display, decision.message, (20, 40), cv2.FONT_HERSHEY_SIMPLEX, 0.9, color, 2)
    return display
