"""Zoomable timeline and the gesture-driven time-range selector."""

from gifforge.timeline.gestures import GesturePhase, GestureState, Handle
from gifforge.timeline.selector import TimeRangeSelector
from gifforge.timeline.viewport import ViewportWindow

__all__ = ["GesturePhase", "GestureState", "Handle", "TimeRangeSelector", "ViewportWindow"]
