"""Monotonic progress reporting for long-running encodes."""

import threading
from typing import Callable

ProgressCallback = Callable[[float], None]


class ProgressTracker:
    """Turns noisy per-pass fractions into a bounded, non-decreasing stream.

    Values are clamped to [0, 1], never go backwards, and are only emitted
    when they advance by at least *step* (so at most ``1/step + 1`` updates).
    After :meth:`finish` or :meth:`fail` nothing else is emitted.
    """

    def __init__(self, callback: ProgressCallback | None = None, step: float = 0.01) -> None:
        self._callback = callback
        self._step = step
        self._value = 0.0
        self._emitted = -1.0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def value(self) -> float:
        return self._value

    @property
    def closed(self) -> bool:
        return self._closed

    def report(self, value: float) -> None:
        with self._lock:
            if self._closed:
                return
            value = min(1.0, max(self._value, value))
            self._value = value
            if value - self._emitted < self._step:
                return
            self._emitted = value
        if self._callback:
            self._callback(value)

    def stage(self, base: float, span: float) -> ProgressCallback:
        """Return a callback that maps a pass's [0,1] onto [base, base+span]."""
        def cb(frac: float) -> None:
            self.report(base + min(1.0, max(0.0, frac)) * span)
        return cb

    def finish(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._value = 1.0
            self._emitted = 1.0
            self._closed = True
        if self._callback:
            self._callback(1.0)

    def fail(self) -> None:
        with self._lock:
            self._closed = True
