"""
Outward reporting of the smoothed analysis state.
"""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from facesignal.models import AnalysisState

logger = logging.getLogger(__name__)

StateSink = Callable[[AnalysisState], None]


class StateReporter:
    """Pushes every update to all registered sinks, unbuffered."""

    def __init__(self, sink: Optional[StateSink] = None):
        self._sinks: List[StateSink] = []
        self.last: Optional[AnalysisState] = None
        if sink is not None:
            self.register(sink)

    def register(self, sink: StateSink) -> Callable[[], None]:
        """Add a sink; returns a callable that removes it again."""
        self._sinks.append(sink)

        def _unregister():
            if sink in self._sinks:
                self._sinks.remove(sink)

        return _unregister

    def publish(self, state: AnalysisState) -> None:
        self.last = state
        for sink in list(self._sinks):
            try:
                sink(state)
            except Exception:
                logger.exception(f"[reporter] sink {sink!r} failed")
