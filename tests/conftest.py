"""Shared test fixtures."""

from pathlib import Path

import pytest

from gifforge.config import Settings
from gifforge.models import ProbeResult
from gifforge.timeline import TimeRangeSelector

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeTimer:
    def __init__(self, delay, fn):
        self.delay = delay
        self.fn = fn
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Collects timers instead of starting threads; tests fire them by hand."""

    def __init__(self):
        self.timers: list[FakeTimer] = []

    def call_later(self, delay, fn):
        timer = FakeTimer(delay, fn)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def fire_all(self):
        for timer in self.pending:
            timer.fn()


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_probe(duration: float = 120.0, width: int = 1920, height: int = 1080) -> ProbeResult:
    return ProbeResult(
        duration=duration,
        width=width,
        height=height,
        fps=30.0,
        codec_video="h264",
    )


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def selections() -> list[tuple[float, float]]:
    return []


@pytest.fixture
def selector(scheduler, clock, selections) -> TimeRangeSelector:
    """A selector on a 1000px track, not yet given metadata."""
    return TimeRangeSelector(
        on_time_select=lambda s, e: selections.append((s, e)),
        settings=Settings(),
        scheduler=scheduler,
        clock=clock,
        track_left=0.0,
        track_width=1000.0,
    )


@pytest.fixture
def loaded(selector) -> TimeRangeSelector:
    """A selector for a 100 s video at 1000px: 1px == 0.1s at full view."""
    selector.on_metadata_loaded(100.0, 1920, 1080)
    return selector
