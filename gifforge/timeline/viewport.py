"""Viewport window over a timeline: zoom, pan, fit and coordinate mapping.

A viewport is a normalized ``[view_start, view_end]`` slice of ``[0, 1]``
paired with ``zoom_level == 1 / (view_end - view_start)``.
"""

import math
from dataclasses import dataclass

MIN_ZOOM = 1.0
MAX_ZOOM = 16.0
PAN_STEP = 0.25
FOCUS_PADDING = 0.2

# Percent positions for markers outside the visible window.
OFFSCREEN_BEFORE = -10.0
OFFSCREEN_AFTER = 110.0

_EPS = 1e-9


@dataclass(frozen=True)
class ViewportWindow:
    view_start: float = 0.0
    view_end: float = 1.0
    zoom_level: float = 1.0

    @property
    def width(self) -> float:
        return self.view_end - self.view_start

    @property
    def is_full(self) -> bool:
        return self.zoom_level <= MIN_ZOOM

    def contains(self, fraction: float) -> bool:
        return self.view_start - _EPS <= fraction <= self.view_end + _EPS

    def to_dict(self) -> dict:
        return {"view_start": self.view_start, "view_end": self.view_end, "zoom_level": self.zoom_level}


FULL_VIEW = ViewportWindow()


def window_at(zoom_level: float, anchor: float, focal: float) -> ViewportWindow:
    """Window of the given zoom that puts absolute fraction *anchor* at relative *focal*."""
    zoom_level = min(MAX_ZOOM, max(MIN_ZOOM, zoom_level))
    if zoom_level <= MIN_ZOOM:
        return FULL_VIEW
    width = 1.0 / zoom_level
    start = anchor - focal * width
    start = min(1.0 - width, max(0.0, start))
    return ViewportWindow(view_start=start, view_end=start + width, zoom_level=zoom_level)


def zoom(view: ViewportWindow, factor: float, focal: float = 0.5) -> ViewportWindow:
    """Scale the zoom level by *factor*, keeping the time under *focal* in place.

    *focal* is a position inside the current window, 0 = left edge, 1 = right edge.
    """
    if factor <= 0:
        raise ValueError("factor must be positive")
    focal = min(1.0, max(0.0, focal))
    anchor = view.view_start + focal * view.width
    return window_at(view.zoom_level * factor, anchor, focal)


def pan(view: ViewportWindow, direction: int) -> ViewportWindow:
    """Shift the window by a quarter of its width; no-op when fully zoomed out."""
    if view.is_full or direction == 0:
        return view
    step = PAN_STEP * view.width * (1 if direction > 0 else -1)
    start = min(1.0 - view.width, max(0.0, view.view_start + step))
    return ViewportWindow(view_start=start, view_end=start + view.width, zoom_level=view.zoom_level)


def fit(start: float, end: float, duration: float) -> ViewportWindow:
    """Smallest allowed window containing ``[start, end]`` plus padding."""
    if not (math.isfinite(duration) and duration > 0) or end <= start:
        return FULL_VIEW
    span = end - start
    pad = min(FOCUS_PADDING * span, FOCUS_PADDING * duration)
    lo = max(0.0, start - pad) / duration
    hi = min(duration, end + pad) / duration
    width = hi - lo
    if width >= 1.0:
        return FULL_VIEW
    if width < 1.0 / MAX_ZOOM:
        # Too narrow to show at max zoom: widen around the selection's centre.
        width = 1.0 / MAX_ZOOM
        centre = (start + end) / 2.0 / duration
        lo = min(1.0 - width, max(0.0, centre - width / 2.0))
        hi = lo + width
    return ViewportWindow(view_start=lo, view_end=hi, zoom_level=1.0 / width)


def time_to_percent(t: float, duration: float, view: ViewportWindow) -> float:
    """Position of time *t* across the visible window, 0-100.

    Times outside the window map to off-screen sentinels rather than being
    clamped onto the edge.
    """
    if not (math.isfinite(duration) and duration > 0) or not math.isfinite(t):
        return 0.0
    fraction = t / duration
    if not view.contains(fraction):
        return OFFSCREEN_BEFORE if fraction < view.view_start else OFFSCREEN_AFTER
    return (fraction - view.view_start) / view.width * 100.0


def percent_to_time(percent: float, duration: float, view: ViewportWindow) -> float:
    """Inverse of :func:`time_to_percent`, with *percent* clamped to [0, 100]."""
    if not (math.isfinite(duration) and duration > 0) or not math.isfinite(percent):
        return 0.0
    percent = min(100.0, max(0.0, percent))
    return (view.view_start + percent / 100.0 * view.width) * duration
