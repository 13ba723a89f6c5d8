"""
Face Detection Module
Uses MediaPipe face detection as the opaque detector capability
"""

from typing import List, Optional

import cv2
import mediapipe as mp
import numpy as np

from face_guidance import BoundingBox, DetectorOptions, IFaceDetector, PerformanceMode
from video_capture import rotate_upright


class MediaPipeFaceDetector(IFaceDetector):
    """MediaPipe face detector returning boxes in upright pixel coordinates.

    FAST uses the short-range model, ACCURATE the full-range one. Installs
    without `mp.solutions` fall back to the Tasks API, which needs a
    `.tflite` model path.
    """

    def __init__(self, options: DetectorOptions, model_path: Optional[str] = None):
        self.options = options
        self.use_legacy = False
        try:
            face_detection = mp.solutions.face_detection
        except AttributeError:
            face_detection = None

        if face_detection is not None:
            self.detector = face_detection.FaceDetection(
                model_selection=0 if options.performance_mode == PerformanceMode.FAST else 1,
                min_detection_confidence=options.min_detection_confidence,
            )
            self.use_legacy = True
        else:
            if not model_path:
                raise RuntimeError("this mediapipe build has no mp.solutions; set detector.model_path")
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision

            self.detector = vision.FaceDetector.create_from_options(
                vision.FaceDetectorOptions(
                    base_options=mp_tasks.BaseOptions(model_asset_path=model_path),
                    min_detection_confidence=options.min_detection_confidence,
                )
            )

    def detect(self, image: np.ndarray, rotation: int) -> List[BoundingBox]:
        upright = rotate_upright(image, rotation)
        rgb = cv2.cvtColor(upright, cv2.COLOR_BGR2RGB)
        h, w = rgb.shape[:2]
        boxes: List[BoundingBox] = []

        if self.use_legacy:
            results = self.detector.process(rgb)
            for detection in results.detections or []:
                rel = detection.location_data.relative_bounding_box
                left = int(rel.xmin * w)
                top = int(rel.ymin * h)
                boxes.append(BoundingBox(
                    left=left,
                    top=top,
                    right=left + max(0, int(rel.width * w)),
                    bottom=top + max(0, int(rel.height * h)),
                    score=float(detection.score[0]) if detection.score else None,
                ))
        else:
            results = self.detector.detect(mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb))
            for detection in results.detections:
                bbox = detection.bounding_box
                boxes.append(BoundingBox(
                    left=int(bbox.origin_x),
                    top=int(bbox.origin_y),
                    right=int(bbox.origin_x) + max(0, int(bbox.width)),
                    bottom=int(bbox.origin_y) + max(0, int(bbox.height)),
                    score=float(detection.categories[0].score) if detection.categories else None,
                ))
        return boxes

    def close(self) -> None:
        if self.detector is not None:
            self.detector.close()
            self.detector = None
