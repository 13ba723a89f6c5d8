from typing import Any, Dict, Optional
import copy
import json

from face_guidance import CenterTarget, DetectorOptions, PerformanceMode


class Config:
    """Minimal config shim providing nested dict access via get/set.

    Defaults chosen to run out-of-the-box with a 720p front camera. Values are
    read once when the pipeline is built; changing them afterwards has no
    effect on a running pipeline.
    """

    def __init__(self):
        self._cfg: Dict[str, Dict[str, Any]] = {
            'video': {
                'capture_index': 0,
                'fps': 30,
                'rotation': 0,        # degrees the sensor image must turn to be upright
            },
            'analysis': {
                # Analysis stream resolution, independent of the preview size
                'width': 1280,
                'height': 720,
            },
            'target': {
                'offset_x': -120,
                'offset_y': 30,
                'tolerance': 0.1,
            },
            'detector': {
                'performance_mode': 'fast',   # fast | accurate
                'min_detection_confidence': 0.5,
                'model_path': None,           # only needed without mp.solutions
            },
            'pipeline': {
                'idle_wait_ms': 50,
                'stop_timeout_s': 5.0,
            },
            'display': {
                'refresh_ms': 33,
                'max_width': 960,
                'max_height': 540,
                'tint_alpha': 0.25,
            },
        }

    def get(self, section: str, key: str = None):
        sec = self._cfg.get(section, {})
        if key is None:
            return sec
        return sec.get(key)

    def set(self, section: str, key: str, value: Any) -> None:
        self._cfg.setdefault(section, {})[key] = value

    def load(self, path: str) -> None:
        """Merge a JSON file of {section: {key: value}} over the defaults."""
        with open(path, 'r', encoding='utf-8') as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"config root must be an object: {path}")
        for section, values in data.items():
            if not isinstance(values, dict):
                raise ValueError(f"config section '{section}' must be an object")
            for key, value in values.items():
                self.set(section, key, value)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return copy.deepcopy(self._cfg)

    # --- Immutable views used to build the pipeline ---
    def center_target(self, width: Optional[int] = None, height: Optional[int] = None) -> CenterTarget:
        return CenterTarget(
            width=int(width if width is not None else self.get('analysis', 'width')),
            height=int(height if height is not None else self.get('analysis', 'height')),
            offset_x=int(self.get('target', 'offset_x') or 0),
            offset_y=int(self.get('target', 'offset_y') or 0),
            tolerance=float(self.get('target', 'tolerance')),
        )

    def detector_options(self) -> DetectorOptions:
        mode = str(self.get('detector', 'performance_mode') or 'fast').lower()
        return DetectorOptions(
            performance_mode=PerformanceMode(mode),
            min_detection_confidence=float(self.get('detector', 'min_detection_confidence') or 0.5),
        )
