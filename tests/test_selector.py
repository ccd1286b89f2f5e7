"""Tests for the gesture-driven time-range selector."""

import math
import random

import pytest

from gifforge.config import Settings
from gifforge.timeline import GesturePhase, Handle, TimeRangeSelector
from gifforge.timeline.gestures import LONG_PRESS_DELAY


# ---------------------------------------------------------------------------
# Metadata and source lifecycle
# ---------------------------------------------------------------------------

class TestMetadata:
    def test_initial_selection_and_viewport(self, loaded, selections):
        assert loaded.ready
        assert (loaded.start, loaded.end) == (0.0, 3.0)
        assert selections == [(0.0, 3.0)]
        assert loaded.viewport.view_start == 0.0
        assert loaded.viewport.view_end == 1.0
        assert loaded.zoom_level == 1.0

    def test_short_video_caps_default_span(self, selector):
        selector.on_metadata_loaded(2.0, 640, 360)
        assert (selector.start, selector.end) == (0.0, 2.0)

    def test_default_span_capped_by_max_gif_duration(self, scheduler, clock):
        sel = TimeRangeSelector(settings=Settings(max_gif_duration=1.5), scheduler=scheduler, clock=clock)
        sel.on_metadata_loaded(60.0, 640, 360)
        assert sel.end == 1.5

    def test_on_metadata_fires_once_per_source(self, scheduler, clock):
        calls = []
        sel = TimeRangeSelector(
            on_metadata=lambda d, w, h: calls.append((d, w, h)),
            scheduler=scheduler,
            clock=clock,
        )
        sel.on_metadata_loaded(30.0, 640, 360)
        sel.on_metadata_loaded(45.0, 1280, 720)
        assert calls == [(30.0, 640, 360)]
        assert sel.duration == 30.0

        sel.replace_source()
        sel.on_metadata_loaded(45.0, 1280, 720)
        assert calls[-1] == (45.0, 1280, 720)

    def test_replace_source_resets_everything(self, loaded, scheduler):
        loaded.set_selection(20, 25)
        loaded.zoom_in()
        loaded.begin_press(1, 700)
        timer = scheduler.pending[0]

        loaded.replace_source()

        assert not loaded.ready
        assert (loaded.start, loaded.end) == (0.0, 0.0)
        assert loaded.zoom_level == 1.0
        assert loaded.gesture.phase is GesturePhase.IDLE
        assert timer.cancelled


class TestUnknownDuration:
    @pytest.mark.parametrize("duration", [math.nan, 0.0, -5.0, math.inf])
    def test_every_mutation_is_a_noop(self, selector, selections, scheduler, duration):
        selector.on_metadata_loaded(duration, 640, 360)
        assert not selector.ready

        selector.seek(5)
        selector.set_selection(1, 2)
        selector.quick_select(3)
        selector.reset_selection()
        selector.begin_press(1, 500)
        selector.move_press(600)
        selector.end_press()
        selector.zoom_in()
        selector.zoom_out()
        selector.pan("right")
        selector.focus_on_selection()

        assert selections == []
        assert scheduler.timers == []
        for value in (selector.start, selector.end, selector.current_time,
                      selector.viewport.view_start, selector.viewport.view_end):
            assert not math.isnan(value)
            assert value >= 0
        assert (selector.start, selector.end) == (0.0, 0.0)
        assert selector.zoom_level == 1.0

    def test_metadata_callback_reports_zero_duration(self, scheduler, clock):
        calls = []
        sel = TimeRangeSelector(on_metadata=lambda d, w, h: calls.append(d), scheduler=scheduler, clock=clock)
        sel.on_metadata_loaded(math.nan, 640, 360)
        assert calls == [0.0]


# ---------------------------------------------------------------------------
# Seeking and direct selection
# ---------------------------------------------------------------------------

class TestSeek:
    def test_clamps_into_duration(self, loaded):
        loaded.seek(-5)
        assert loaded.current_time == 0.0
        loaded.seek(500)
        assert loaded.current_time == 100.0

    def test_does_not_touch_selection(self, loaded, selections):
        loaded.seek(42)
        assert loaded.current_time == 42
        assert selections == [(0.0, 3.0)]

    def test_ignores_nan(self, loaded):
        loaded.seek(10)
        loaded.seek(math.nan)
        assert loaded.current_time == 10


class TestSetSelection:
    def test_caps_span_at_max_gif_duration(self, loaded):
        loaded.set_selection(-5, 50)
        assert (loaded.start, loaded.end) == (0.0, 10.0)

    def test_clamps_at_end_of_video(self, loaded):
        loaded.set_selection(99.99, 200)
        assert loaded.start == pytest.approx(99.9)
        assert loaded.end == 100.0

    def test_inverted_range_gets_minimum_span(self, loaded):
        loaded.set_selection(20, 10)
        assert loaded.start == 20
        assert loaded.end == pytest.approx(20.1)

    def test_quick_select(self, loaded):
        loaded.quick_select(5)
        assert (loaded.start, loaded.end) == (0.0, 5.0)
        loaded.quick_select(60)
        assert (loaded.start, loaded.end) == (0.0, 10.0)

    def test_reset_selection(self, loaded):
        loaded.set_selection(40, 45)
        loaded.seek(41)
        loaded.reset_selection()
        assert (loaded.start, loaded.end) == (0.0, 3.0)
        assert loaded.current_time == 0.0

    def test_unchanged_selection_does_not_notify(self, loaded, selections):
        loaded.set_selection(0, 3)
        assert selections == [(0.0, 3.0)]


# ---------------------------------------------------------------------------
# Press / long press / tap
# ---------------------------------------------------------------------------

class TestPlainTap:
    def test_release_without_drag_seeks(self, loaded, scheduler):
        loaded.begin_press(1, 500)
        assert loaded.gesture.phase is GesturePhase.ARMED_LONG_PRESS
        assert len(scheduler.pending) == 1
        assert scheduler.pending[0].delay == LONG_PRESS_DELAY

        loaded.end_press()

        assert loaded.current_time == pytest.approx(50.0)
        assert scheduler.pending == []
        assert loaded.gesture.phase is GesturePhase.DOUBLE_TAP_ARMED
        assert not loaded.gesture.captured

    def test_move_past_threshold_cancels_long_press(self, loaded, scheduler, selections):
        loaded.begin_press(1, 500)
        loaded.move_press(520)
        assert scheduler.pending == []

        loaded.end_press()
        # Still a plain seek to where the pointer went down.
        assert loaded.current_time == pytest.approx(50.0)
        assert selections == [(0.0, 3.0)]
        assert loaded.gesture.phase is GesturePhase.IDLE

    def test_small_move_keeps_long_press_armed(self, loaded, scheduler):
        loaded.begin_press(1, 500)
        loaded.move_press(508)
        assert len(scheduler.pending) == 1

    def test_cancel_drops_gesture_without_seeking(self, loaded, scheduler):
        loaded.begin_press(1, 500)
        loaded.cancel_press()
        assert scheduler.pending == []
        assert loaded.current_time == 0.0
        assert loaded.gesture.phase is GesturePhase.IDLE


class TestLongPress:
    def test_starts_new_selection_then_drags_end(self, loaded, scheduler, selections):
        loaded.begin_press(1, 500)
        scheduler.fire_all()

        assert (loaded.start, loaded.end) == (pytest.approx(50.0), pytest.approx(51.0))
        assert loaded.gesture.phase is GesturePhase.DRAGGING
        assert loaded.gesture.handle is Handle.END

        loaded.move_press(540)
        assert loaded.end == pytest.approx(54.0)
        loaded.end_press()

        assert loaded.gesture.phase is GesturePhase.IDLE
        assert selections[-1] == (pytest.approx(50.0), pytest.approx(54.0))

    def test_near_end_of_video_stays_inside(self, loaded, scheduler):
        loaded.begin_press(1, 999)
        scheduler.fire_all()
        assert loaded.start == pytest.approx(99.0)
        assert loaded.end == pytest.approx(100.0)

    def test_stale_timer_after_release_is_ignored(self, loaded, scheduler, selections):
        loaded.begin_press(1, 500)
        timer = scheduler.timers[0]
        loaded.end_press()
        timer.fn()  # fires anyway, as a racing thread timer could
        assert selections == [(0.0, 3.0)]
        assert loaded.gesture.phase is GesturePhase.DOUBLE_TAP_ARMED

    def test_stale_timer_after_cancel_is_ignored(self, loaded, scheduler, selections):
        loaded.begin_press(1, 500)
        timer = scheduler.timers[0]
        loaded.cancel_press()
        loaded.begin_press(1, 700)
        timer.fn()
        assert selections == [(0.0, 3.0)]
        assert loaded.gesture.phase is GesturePhase.ARMED_LONG_PRESS


class TestDoubleTap:
    def test_second_tap_drags_whole_selection(self, loaded, clock):
        loaded.begin_press(1, 500)
        loaded.end_press()
        clock.advance(0.2)
        loaded.begin_press(1, 510)

        g = loaded.gesture
        assert g.phase is GesturePhase.DRAGGING
        assert g.handle is Handle.SELECTION
        assert g.drag_offset == pytest.approx(51.0)

        loaded.move_press(600)
        assert loaded.start == pytest.approx(9.0)
        assert loaded.end == pytest.approx(12.0)

    def test_too_slow_is_a_new_press(self, loaded, clock, scheduler):
        loaded.begin_press(1, 500)
        loaded.end_press()
        clock.advance(0.5)
        loaded.begin_press(1, 505)
        assert loaded.gesture.phase is GesturePhase.ARMED_LONG_PRESS
        assert len(scheduler.pending) == 1

    def test_too_far_is_a_new_press(self, loaded, clock):
        loaded.begin_press(1, 500)
        loaded.end_press()
        clock.advance(0.1)
        loaded.begin_press(1, 540)
        assert loaded.gesture.phase is GesturePhase.ARMED_LONG_PRESS

    def test_selection_drag_keeps_span_and_stays_in_bounds(self, loaded, clock):
        loaded.set_selection(40, 43)
        loaded.begin_press(1, 415)
        loaded.end_press()
        clock.advance(0.1)
        loaded.begin_press(1, 415)
        assert loaded.gesture.drag_offset == pytest.approx(1.5)

        loaded.move_press(1000)
        assert (loaded.start, loaded.end) == (pytest.approx(97.0), pytest.approx(100.0))
        loaded.move_press(-300)
        assert (loaded.start, loaded.end) == (pytest.approx(0.0), pytest.approx(3.0))


class TestHandleDrag:
    def test_press_on_start_handle_drags_start(self, loaded):
        loaded.begin_press(1, 2)
        assert loaded.gesture.handle is Handle.START

        loaded.move_press(20)
        assert loaded.start == pytest.approx(2.0)
        assert loaded.current_time == pytest.approx(2.0)

        loaded.move_press(100)
        assert loaded.start == pytest.approx(2.9)
        assert loaded.end == 3.0

    def test_end_drag_limited_by_max_gif_duration(self, loaded):
        loaded.begin_press(1, 30)
        assert loaded.gesture.handle is Handle.END

        loaded.move_press(500)
        assert loaded.end == pytest.approx(10.0)
        loaded.move_press(0)
        assert loaded.end == pytest.approx(0.1)

    def test_start_drag_keeps_span_under_max(self, loaded):
        loaded.set_selection(50, 55)
        loaded.begin_press(1, 500)
        assert loaded.gesture.handle is Handle.START
        loaded.move_press(0)
        assert loaded.start == pytest.approx(45.0)
        assert loaded.end - loaded.start <= loaded.max_gif_duration

    def test_explicit_handle_overrides_hit_test(self, loaded):
        loaded.begin_press(1, 800, handle="end")
        assert loaded.gesture.handle is Handle.END

    def test_handles_off_screen_are_not_hit(self, loaded):
        loaded.set_selection(50, 53)
        loaded.zoom_in(0.0)  # view is now [0, 0.5]
        loaded.zoom_in(0.0)  # view is now [0, 0.25]
        loaded.begin_press(1, 995)
        assert loaded.gesture.phase is GesturePhase.ARMED_LONG_PRESS


class TestSinglePointer:
    def test_second_pointer_is_ignored(self, loaded, scheduler):
        loaded.begin_press(1, 500)
        loaded.begin_press(2, 700)
        assert loaded.gesture.pointer_id == 1
        assert len(scheduler.timers) == 1

        loaded.move_press(700, pointer_id=2)
        assert len(scheduler.pending) == 1

        loaded.end_press(pointer_id=2)
        assert loaded.gesture.captured

        loaded.end_press(pointer_id=1)
        assert not loaded.gesture.captured

    def test_new_pointer_accepted_after_release(self, loaded):
        loaded.begin_press(1, 500)
        loaded.end_press()
        loaded.begin_press(2, 800)
        assert loaded.gesture.pointer_id == 2


# ---------------------------------------------------------------------------
# Viewport
# ---------------------------------------------------------------------------

class TestViewport:
    def test_viewport_changes_do_not_notify(self, loaded, selections):
        loaded.zoom_in()
        loaded.pan("right")
        loaded.zoom_out()
        loaded.focus_on_selection()
        assert selections == [(0.0, 3.0)]

    def test_pointer_mapping_follows_zoom(self, loaded):
        loaded.zoom_in(0.5)
        assert loaded.viewport.view_start == pytest.approx(0.25)
        assert loaded.time_at(0) == pytest.approx(25.0)
        assert loaded.time_at(1000) == pytest.approx(75.0)
        assert loaded.time_to_percent(10) == -10.0
        assert loaded.time_to_percent(90) == 110.0
        assert loaded.time_to_percent(50) == pytest.approx(50.0)

    def test_end_drag_while_zoomed(self, loaded):
        loaded.set_selection(30, 32)
        loaded.zoom_in(0.5)
        # end handle at 32s -> (0.32-0.25)/0.5 = 14% -> 140px
        loaded.begin_press(1, 140)
        assert loaded.gesture.handle is Handle.END
        loaded.move_press(200)
        assert loaded.end == pytest.approx(35.0)

    def test_pan_string_directions(self, loaded):
        loaded.zoom_in()
        loaded.pan("right")
        assert loaded.viewport.view_start == pytest.approx(0.375)
        loaded.pan("left")
        assert loaded.viewport.view_start == pytest.approx(0.25)

    @pytest.mark.parametrize("start,end", [(0, 3), (40, 43), (97, 100), (20, 30)])
    def test_focus_contains_selection(self, loaded, start, end):
        loaded.set_selection(start, end)
        loaded.focus_on_selection()
        view = loaded.viewport
        assert view.view_start <= start / 100.0 + 1e-9
        assert view.view_end >= end / 100.0 - 1e-9
        assert 1.0 <= view.zoom_level <= 16.0
        assert 0 <= loaded.time_to_percent(start) <= 100
        assert 0 <= loaded.time_to_percent(end) <= 100

    def test_selection_percent_and_markers(self, loaded):
        loaded.set_selection(40, 50)
        assert loaded.selection_percent() == {"left": pytest.approx(40.0), "width": pytest.approx(10.0)}
        markers = loaded.time_markers()
        assert len(markers) == 11
        assert markers[0] == (0.0, 0.0)
        assert markers[-1] == (100.0, pytest.approx(100.0))

    def test_selection_percent_off_screen(self, loaded):
        loaded.set_selection(80, 85)
        loaded.zoom_in(0.0)
        assert loaded.selection_percent() is None

    def test_snapshot(self, loaded):
        snap = loaded.snapshot()
        assert snap["ready"] is True
        assert snap["duration"] == 100.0
        assert snap["start"] == 0.0
        assert snap["end"] == 3.0
        assert snap["gesture"] == "idle"
        assert snap["viewport"]["zoom_level"] == 1.0


# ---------------------------------------------------------------------------
# Invariants under arbitrary input
# ---------------------------------------------------------------------------

class TestInvariants:
    @pytest.mark.parametrize("seed", range(5))
    def test_selection_always_valid(self, scheduler, clock, seed):
        rng = random.Random(seed)
        duration = rng.uniform(0.5, 300.0)
        sel = TimeRangeSelector(scheduler=scheduler, clock=clock)
        sel.on_metadata_loaded(duration, 1280, 720)

        for step in range(300):
            op = rng.choice(["select", "press", "move", "release", "zoom_in", "zoom_out", "pan", "focus", "fire"])
            x = rng.uniform(-200, 1200)
            if op == "select":
                a = rng.uniform(-10, duration + 10)
                sel.set_selection(a, a + rng.uniform(-5, 60))
            elif op == "press":
                sel.begin_press(1, x)
            elif op == "move":
                sel.move_press(x)
            elif op == "release":
                sel.end_press()
            elif op == "zoom_in":
                sel.zoom_in(rng.random())
            elif op == "zoom_out":
                sel.zoom_out(rng.random())
            elif op == "pan":
                sel.pan(rng.choice([-1, 1]))
            elif op == "focus":
                sel.focus_on_selection()
            else:
                scheduler.fire_all()
            clock.advance(rng.uniform(0.0, 0.5))

            assert 0.0 <= sel.start < sel.end <= duration + 1e-9
            assert sel.end - sel.start <= sel.max_gif_duration + 1e-9
            assert 0.0 <= sel.viewport.view_start < sel.viewport.view_end <= 1.0 + 1e-9
            assert sel.zoom_level == pytest.approx(1.0 / sel.viewport.width)
