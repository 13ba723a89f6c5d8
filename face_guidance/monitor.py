from __future__ import annotations
import threading
from collections import deque

from .types import CycleStats, Directional, GuidanceCycle


class PerformanceMonitor:
    """Tracks cycle timing and decision counts for debugging and tuning."""

    def __init__(self, history_len: int = 200):
        self.detect_ms = deque(maxlen=history_len)
        self.classify_ms = deque(maxlen=history_len)
        self.publish_ms = deque(maxlen=history_len)
        self.total_ms = deque(maxlen=history_len)
        self.counts = {
            "cycles": 0,
            "centered": 0,
            "directional": 0,
            "no_face": 0,
            "detection_errors": 0,
        }
        self._lock = threading.Lock()

    def record(self, cycle: GuidanceCycle):
        stats: CycleStats = cycle.stats
        with self._lock:
            self.detect_ms.append(stats.t_detect_ms)
            self.classify_ms.append(stats.t_classify_ms)
            self.publish_ms.append(stats.t_publish_ms)
            self.total_ms.append(stats.t_total_ms)
            self.counts["cycles"] += 1
            if cycle.error is not None:
                self.counts["detection_errors"] += 1
            if cycle.decision.is_centered:
                self.counts["centered"] += 1
            elif isinstance(cycle.decision, Directional):
                self.counts["directional"] += 1
            else:
                self.counts["no_face"] += 1

    def summary(self) -> dict:
        def avg(q):
            return float(sum(q) / len(q)) if q else 0.0
        with self._lock:
            out = {
                "avg_detect_ms": avg(self.detect_ms),
                "avg_classify_ms": avg(self.classify_ms),
                "avg_publish_ms": avg(self.publish_ms),
                "avg_total_ms": avg(self.total_ms),
            }
            out.update(self.counts)
        return out
