"""
Temporal smoothing of detection confidence and emotions.
"""
from __future__ import annotations

from facesignal.models import AnalysisState, Detection, EmotionVector


class TemporalAggregator:
    """
    Running summary of successful detections.

    Empty (frame_count == 0): the first detection is taken as-is.
    Tracking: every scalar becomes (previous + incoming) / 2, so each update
    halves the weight of all earlier samples. This is not a cumulative mean.
    Ticks without a face do not reach the aggregator.
    """

    def __init__(self):
        self._state = AnalysisState()

    @property
    def state(self) -> AnalysisState:
        return self._state

    @property
    def tracking(self) -> bool:
        return self._state.frame_count > 0

    def update(self, detection: Detection) -> AnalysisState:
        incoming = detection.expressions or EmotionVector()
        prev = self._state
        if prev.frame_count == 0:
            state = AnalysisState(
                frame_count=1,
                confidence_level=detection.score,
                emotions=incoming,
            )
        else:
            state = AnalysisState(
                frame_count=prev.frame_count + 1,
                confidence_level=(prev.confidence_level + detection.score) / 2,
                emotions=prev.emotions.averaged_with(incoming),
            )
        self._state = state
        return state

    def reset(self) -> None:
        self._state = AnalysisState()
