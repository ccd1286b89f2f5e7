"""Time-range selector: pointer gestures and viewport state mapped to a selection."""

import logging
import math
import threading
import time
from dataclasses import replace
from typing import Callable

from gifforge.config import Settings
from gifforge.models import TimeRange, duration_known
from gifforge.timeline import viewport as vp
from gifforge.timeline.gestures import (
    HANDLE_HIT_SLOP,
    LONG_PRESS_DELAY,
    LONG_PRESS_SPAN,
    MOVE_THRESHOLD,
    Cancellable,
    GesturePhase,
    GestureState,
    Handle,
    Scheduler,
    ThreadingScheduler,
)

logger = logging.getLogger(__name__)

TimeSelectCallback = Callable[[float, float], None]
MetadataCallback = Callable[[float, int, int], None]


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


class TimeRangeSelector:
    """Owns playhead, selection and viewport for one video source.

    Until the source duration is known (finite and positive) every mutating
    call is a no-op. ``on_time_select(start, end)`` fires on every committed
    selection change; viewport changes never fire it.

    Pointer positions are ``client_x`` pixels, mapped through the track
    geometry set with :meth:`set_track` and the current viewport.
    """

    def __init__(
        self,
        on_time_select: TimeSelectCallback | None = None,
        on_metadata: MetadataCallback | None = None,
        *,
        settings: Settings | None = None,
        scheduler: Scheduler | None = None,
        clock: Callable[[], float] = time.monotonic,
        track_left: float = 0.0,
        track_width: float = 1000.0,
    ) -> None:
        self.settings = settings or Settings()
        self._on_time_select = on_time_select
        self._on_metadata = on_metadata
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._lock = threading.RLock()
        self._timer: Cancellable | None = None
        self._timer_generation = 0
        self.set_track(track_left, track_width)
        self._reset()

    def _reset(self) -> None:
        self._duration = math.nan
        self._width = 0
        self._height = 0
        self._start = 0.0
        self._end = 0.0
        self._current_time = 0.0
        self._viewport = vp.FULL_VIEW
        self._gesture = GestureState()
        self._metadata_reported = False

    # -- read-only state ---------------------------------------------------

    @property
    def ready(self) -> bool:
        return duration_known(self._duration)

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def start(self) -> float:
        return self._start

    @property
    def end(self) -> float:
        return self._end

    @property
    def selection(self) -> TimeRange:
        return TimeRange(start=self._start, end=self._end)

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def viewport(self) -> vp.ViewportWindow:
        return self._viewport

    @property
    def zoom_level(self) -> float:
        return self._viewport.zoom_level

    @property
    def gesture(self) -> GestureState:
        return self._gesture

    @property
    def max_gif_duration(self) -> float:
        return self.settings.max_gif_duration

    # -- source lifecycle --------------------------------------------------

    def replace_source(self) -> None:
        """Forget everything about the previous source."""
        with self._lock:
            self._cancel_timer()
            self._reset()

    def on_metadata_loaded(self, duration: float, width: int, height: int) -> None:
        with self._lock:
            if self._metadata_reported:
                logger.debug("Metadata already loaded for this source; ignoring")
                return
            self._metadata_reported = True
            self._width = width
            self._height = height
            if duration_known(duration):
                self._duration = float(duration)
                self._viewport = vp.FULL_VIEW
                self._current_time = 0.0
                self._commit(0.0, min(self.settings.default_span, self.max_gif_duration, self._duration))
            else:
                logger.debug(f"Unusable duration {duration!r}; selector stays inert")
                self._duration = math.nan
            if self._on_metadata:
                self._on_metadata(self._duration if self.ready else 0.0, width, height)

    def set_track(self, left: float, width: float) -> None:
        """Pixel geometry of the timeline track."""
        if not (math.isfinite(width) and width > 0) or not math.isfinite(left):
            raise ValueError("track width must be positive and left finite")
        self._track_left = left
        self._track_width = width

    # -- coordinate mapping --------------------------------------------------

    def time_to_percent(self, t: float) -> float:
        return vp.time_to_percent(t, self._duration, self._viewport)

    def percent_to_time(self, percent: float) -> float:
        return vp.percent_to_time(percent, self._duration, self._viewport)

    def time_at(self, client_x: float) -> float:
        percent = (client_x - self._track_left) / self._track_width * 100.0
        return self.percent_to_time(percent)

    def selection_percent(self) -> dict | None:
        """Left/width of the visible part of the selection bar, or None when off-screen."""
        if not self.ready:
            return None
        lo = max(self._start, self._viewport.view_start * self._duration)
        hi = min(self._end, self._viewport.view_end * self._duration)
        if hi <= lo:
            return None
        left = self.time_to_percent(lo)
        return {"left": left, "width": self.time_to_percent(hi) - left}

    def time_markers(self, count: int = 11) -> list[tuple[float, float]]:
        """Evenly spaced ``(percent, time)`` labels across the visible window."""
        if not self.ready:
            return []
        count = max(2, min(count, math.ceil(self._duration) + 1))
        return [
            (pct, self.percent_to_time(pct))
            for pct in (i * 100.0 / (count - 1) for i in range(count))
        ]

    # -- playhead and selection --------------------------------------------

    def seek(self, t: float) -> None:
        with self._lock:
            if not self.ready or not math.isfinite(t):
                return
            self._current_time = _clamp(t, 0.0, self._duration)

    def set_selection(self, start: float, end: float) -> None:
        with self._lock:
            if not self.ready or not (math.isfinite(start) and math.isfinite(end)):
                return
            eps = self._min_span()
            new_start = _clamp(start, 0.0, self._duration - eps)
            new_end = _clamp(end, new_start + eps, min(self._duration, new_start + self.max_gif_duration))
            self._commit(new_start, new_end)

    def quick_select(self, span: float) -> None:
        """Select ``[0, span]``, capped by the maximum GIF length and duration."""
        with self._lock:
            if not self.ready or not (math.isfinite(span) and span > 0):
                return
            self._commit(0.0, min(span, self.max_gif_duration, self._duration))

    def reset_selection(self) -> None:
        with self._lock:
            if not self.ready:
                return
            self._current_time = 0.0
            self._commit(0.0, min(self.settings.default_span, self.max_gif_duration, self._duration))

    # -- pointer gestures ---------------------------------------------------

    def begin_press(self, pointer_id: int, client_x: float, handle: Handle | None = None) -> None:
        with self._lock:
            if not self.ready or not math.isfinite(client_x):
                return
            if self._gesture.captured:
                logger.debug(f"Pointer {pointer_id} ignored; {self._gesture.pointer_id} is captured")
                return

            if handle is not None:
                handle = Handle(handle)
            now = self._clock()
            press_time = self.time_at(client_x)
            previous = self._gesture
            pressed = GestureState(
                pointer_id=pointer_id,
                origin_x=client_x,
                origin_time=press_time,
                pressed_at=now,
            )

            if handle is None and previous.is_double_tap(now, client_x):
                handle = Handle.SELECTION
            elif handle is None:
                handle = self._hit_handle(client_x)

            if handle is Handle.SELECTION:
                self._gesture = pressed.dragging(Handle.SELECTION, drag_offset=press_time - self._start)
            elif handle is not None:
                self._gesture = pressed.dragging(handle)
            else:
                self._gesture = replace(pressed, phase=GesturePhase.ARMED_LONG_PRESS)
                self._arm_timer()
            logger.debug(f"Press {pointer_id} at {client_x:.1f}px -> {self._gesture.phase.value}")

    def move_press(self, client_x: float, pointer_id: int | None = None) -> None:
        with self._lock:
            g = self._gesture
            if not self.ready or not g.captured or not math.isfinite(client_x):
                return
            if pointer_id is not None and pointer_id != g.pointer_id:
                return

            if g.phase is GesturePhase.ARMED_LONG_PRESS:
                if not g.moved and abs(client_x - g.origin_x) > MOVE_THRESHOLD:
                    self._cancel_timer()
                    self._gesture = replace(g, moved=True)
                return
            if g.phase is not GesturePhase.DRAGGING:
                return

            t = self.time_at(client_x)
            eps = self._min_span()
            if g.handle is Handle.START:
                new_start = _clamp(t, max(0.0, self._end - self.max_gif_duration), self._end - eps)
                self._commit(new_start, self._end)
                self._current_time = new_start
            elif g.handle is Handle.END:
                new_end = _clamp(t, self._start + eps, min(self._duration, self._start + self.max_gif_duration))
                self._commit(self._start, new_end)
                self._current_time = new_end
            else:
                span = self._end - self._start
                new_start = _clamp(t - g.drag_offset, 0.0, max(0.0, self._duration - span))
                self._commit(new_start, new_start + span)
                self._current_time = new_start

    def end_press(self, pointer_id: int | None = None) -> None:
        with self._lock:
            g = self._gesture
            if not g.captured or (pointer_id is not None and pointer_id != g.pointer_id):
                return
            self._cancel_timer()
            plain_press = g.phase is GesturePhase.ARMED_LONG_PRESS
            if plain_press:
                self.seek(g.origin_time)
            self._gesture = g.released(tapped=plain_press and not g.moved)

    def cancel_press(self, pointer_id: int | None = None) -> None:
        """Pointer cancel: drop the gesture without seeking."""
        with self._lock:
            g = self._gesture
            if pointer_id is not None and g.captured and pointer_id != g.pointer_id:
                return
            self._cancel_timer()
            self._gesture = GestureState()

    def _fire_long_press(self, generation: int) -> None:
        with self._lock:
            if generation != self._timer_generation:
                return
            g = self._gesture
            if g.phase is not GesturePhase.ARMED_LONG_PRESS or not self.ready:
                return
            self._timer = None
            span = min(LONG_PRESS_SPAN, self.max_gif_duration, self._duration)
            start = _clamp(g.origin_time, 0.0, self._duration - span)
            self._commit(start, start + span)
            self._current_time = start
            self._gesture = g.dragging(Handle.END)
            logger.debug(f"Long press started a selection at {start:.2f}s")

    def _arm_timer(self) -> None:
        self._cancel_timer()
        generation = self._timer_generation
        self._timer = self._scheduler.call_later(
            LONG_PRESS_DELAY, lambda: self._fire_long_press(generation)
        )

    def _cancel_timer(self) -> None:
        # Bumping the generation also disarms a callback already in flight.
        self._timer_generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _hit_handle(self, client_x: float) -> Handle | None:
        best: Handle | None = None
        best_distance = HANDLE_HIT_SLOP
        for handle, t in ((Handle.START, self._start), (Handle.END, self._end)):
            if not self._viewport.contains(t / self._duration):
                continue
            percent = self.time_to_percent(t)
            x = self._track_left + percent / 100.0 * self._track_width
            distance = abs(client_x - x)
            if distance <= best_distance:
                best, best_distance = handle, distance
        return best

    # -- viewport -------------------------------------------------------------

    def zoom_in(self, focal: float = 0.5) -> None:
        with self._lock:
            if self.ready:
                self._viewport = vp.zoom(self._viewport, 2.0, focal)

    def zoom_out(self, focal: float = 0.5) -> None:
        with self._lock:
            if self.ready:
                self._viewport = vp.zoom(self._viewport, 0.5, focal)

    def pan(self, direction: int | str) -> None:
        """Shift the view; *direction* is -1/1 or ``"left"``/``"right"``."""
        if isinstance(direction, str):
            direction = {"left": -1, "right": 1}.get(direction.lower(), 0)
        with self._lock:
            if self.ready:
                self._viewport = vp.pan(self._viewport, direction)

    def focus_on_selection(self) -> None:
        with self._lock:
            if self.ready:
                self._viewport = vp.fit(self._start, self._end, self._duration)

    # -- internals ------------------------------------------------------------

    def _min_span(self) -> float:
        return min(self.settings.min_span, self._duration / 2.0)

    def _commit(self, start: float, end: float) -> None:
        if start == self._start and end == self._end:
            return
        self._start = start
        self._end = end
        if self._on_time_select:
            self._on_time_select(start, end)

    def snapshot(self) -> dict:
        """Plain-data view of the whole selector state."""
        with self._lock:
            return {
                "ready": self.ready,
                "duration": self._duration if self.ready else None,
                "width": self._width,
                "height": self._height,
                "start": self._start,
                "end": self._end,
                "current_time": self._current_time,
                "viewport": self._viewport.to_dict(),
                "gesture": self._gesture.phase.value,
                "handle": self._gesture.handle.value if self._gesture.handle else None,
                "selection_percent": self.selection_percent(),
                "playhead_percent": self.time_to_percent(self._current_time) if self.ready else None,
            }
