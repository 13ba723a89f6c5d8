from __future__ import annotations
from typing import Optional

from .types import GuidanceDecision
from .logger import EventLogger


class GuidanceSink:
    """Receives one decision per pipeline cycle and keeps the last one shown.

    `update` is the single entry point; subclasses render in `render`. Sinks
    with thread affinity expect the pipeline's dispatcher to call `update`
    from their own context.
    """

    def __init__(self):
        self.last_decision: Optional[GuidanceDecision] = None

    def update(self, decision: GuidanceDecision) -> None:
        self.last_decision = decision
        self.render(decision)

    def render(self, decision: GuidanceDecision) -> None:
        raise NotImplementedError


class ConsoleGuidanceSink(GuidanceSink):
    """Logs the guidance text whenever the decision changes."""

    def __init__(self, logger: Optional[EventLogger] = None):
        super().__init__()
        self.log = logger or EventLogger(name="face_guidance.sink")
        self._shown: Optional[GuidanceDecision] = None

    def render(self, decision: GuidanceDecision) -> None:
        if decision == self._shown:
            return
        self._shown = decision
        self.log.info(f"guidance: {decision.message}")
