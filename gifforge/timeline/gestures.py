"""Gesture state for the timeline: one captured pointer at a time."""

import threading
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Protocol

LONG_PRESS_DELAY = 0.45
DOUBLE_TAP_INTERVAL = 0.3
DOUBLE_TAP_DISTANCE = 30.0
MOVE_THRESHOLD = 12.0
LONG_PRESS_SPAN = 1.0
HANDLE_HIT_SLOP = 10.0


class Handle(str, Enum):
    START = "start"
    END = "end"
    SELECTION = "selection"


class GesturePhase(str, Enum):
    IDLE = "idle"
    ARMED_LONG_PRESS = "armed_long_press"
    DRAGGING = "dragging"
    DOUBLE_TAP_ARMED = "double_tap_armed"


@dataclass(frozen=True)
class GestureState:
    """Tagged gesture state plus the bookkeeping of the captured pointer.

    ``handle`` is only set while DRAGGING. ``last_tap_*`` survive into
    DOUBLE_TAP_ARMED so the next press can be recognised as a double tap.
    """

    phase: GesturePhase = GesturePhase.IDLE
    handle: Handle | None = None
    pointer_id: int | None = None
    origin_x: float = 0.0
    origin_time: float = 0.0
    pressed_at: float = 0.0
    drag_offset: float = 0.0
    moved: bool = False
    last_tap_at: float | None = None
    last_tap_x: float = 0.0

    @property
    def captured(self) -> bool:
        return self.pointer_id is not None

    def dragging(self, handle: Handle, drag_offset: float = 0.0) -> "GestureState":
        return replace(self, phase=GesturePhase.DRAGGING, handle=handle, drag_offset=drag_offset)

    def released(self, tapped: bool) -> "GestureState":
        """State after the pointer lifts; a plain tap arms double-tap detection."""
        if tapped:
            return GestureState(
                phase=GesturePhase.DOUBLE_TAP_ARMED,
                last_tap_at=self.pressed_at,
                last_tap_x=self.origin_x,
            )
        return GestureState()

    def is_double_tap(self, now: float, client_x: float) -> bool:
        if self.phase is not GesturePhase.DOUBLE_TAP_ARMED or self.last_tap_at is None:
            return False
        return (
            now - self.last_tap_at <= DOUBLE_TAP_INTERVAL
            and abs(client_x - self.last_tap_x) <= DOUBLE_TAP_DISTANCE
        )


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, fn: Callable[[], None]) -> Cancellable: ...


class ThreadingScheduler:
    """Runs callbacks on ``threading.Timer`` threads."""

    def call_later(self, delay: float, fn: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, fn)
        timer.daemon = True
        timer.start()
        return timer
