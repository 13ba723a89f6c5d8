from __future__ import annotations
from typing import Optional, Sequence

from .types import (
    BoundingBox,
    CenterTarget,
    Centered,
    Directional,
    GuidanceDecision,
    Horizontal,
    NoFaceDetected,
    Vertical,
)


class CenteringClassifier:
    """Decides whether a face sits inside the target region.

    Stateless: the decision depends only on the boxes and the target.
    - Only the first box is considered
    - Horizontal guidance follows the face side of the frame center
    - Vertical guidance is inverted: a face in the upper half is told to move
      down, a face in the lower half (or on the midline) to move up
    """

    def classify(self, boxes: Optional[Sequence[BoundingBox]], target: CenterTarget) -> GuidanceDecision:
        return classify(boxes, target)


def classify(boxes: Optional[Sequence[BoundingBox]], target: CenterTarget) -> GuidanceDecision:
    if not boxes:
        return NoFaceDetected()

    cx, cy = boxes[0].center
    ax, ay = target.adjusted_center
    tx, ty = target.tolerance_px

    if abs(cx - ax) < tx and abs(cy - ay) < ty:
        return Centered()

    horizontal = Horizontal.LEFT if cx < target.width // 2 else Horizontal.RIGHT
    vertical = Vertical.UP if cy >= target.height // 2 else Vertical.DOWN
    return Directional(horizontal=horizontal, vertical=vertical)
