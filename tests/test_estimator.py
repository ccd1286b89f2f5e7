"""Tests for size estimation and the budget check."""

import math

import pytest

from gifforge.estimator import DEFAULT_BUDGET_BYTES, estimate, even, scaled_dimensions, validate
from gifforge.manifest import ALLOWED_FPS, QualityTier, ScalePreset


class TestScaledDimensions:
    def test_landscape_cap(self):
        assert scaled_dimensions(1920, 1080, "480") == (854, 480)

    def test_portrait_caps_longer_side(self):
        assert scaled_dimensions(1080, 1920, ScalePreset.P720) == (720, 1280)

    def test_small_source_not_upscaled(self):
        assert scaled_dimensions(640, 360, "720") == (640, 360)

    def test_original_rounds_to_even(self):
        w, h = scaled_dimensions(853, 479, "original")
        assert w % 2 == 0 and h % 2 == 0

    def test_even_never_below_two(self):
        assert even(0.4) == 2
        assert even(7) == 8


class TestEstimate:
    def test_formula(self):
        est = estimate(1920, 1080, 3.0, 15, "high", "480")
        # 854x480 px * 2.0 bits * 15 fps * 3 s / 8 * 1.2
        assert est.predicted_bytes == pytest.approx(5533920, abs=1)

    def test_deterministic(self):
        assert estimate(1280, 720, 4.0, 12, "medium", "360") == estimate(1280, 720, 4.0, 12, "medium", "360")

    @pytest.mark.parametrize("quality", list(QualityTier))
    def test_monotonic_in_fps(self, quality):
        sizes = [estimate(1280, 720, 3.0, fps, quality, "480").predicted_bytes for fps in ALLOWED_FPS]
        assert sizes == sorted(sizes)

    @pytest.mark.parametrize("quality", list(QualityTier))
    def test_monotonic_in_duration(self, quality):
        sizes = [estimate(1280, 720, d, 10, quality, "original").predicted_bytes for d in (0.1, 1, 2.5, 5, 10)]
        assert sizes == sorted(sizes)

    @pytest.mark.parametrize("scale", list(ScalePreset))
    def test_monotonic_in_resolution(self, scale):
        sources = [(320, 180), (640, 360), (1280, 720), (1920, 1080), (3840, 2160)]
        sizes = [estimate(w, h, 3.0, 15, "high", scale).predicted_bytes for w, h in sources]
        assert sizes == sorted(sizes)

    def test_monotonic_across_presets(self):
        order = ["240", "360", "480", "720", "original"]
        sizes = [estimate(3840, 2160, 3.0, 15, "low", s).predicted_bytes for s in order]
        assert sizes == sorted(sizes)

    def test_lower_tier_is_smaller(self):
        low, medium, high = (estimate(1280, 720, 3.0, 15, q, "480").predicted_bytes for q in ("low", "medium", "high"))
        assert low < medium < high

    @pytest.mark.parametrize("duration", [0.0, -1.0, math.nan])
    def test_empty_duration_predicts_zero(self, duration):
        assert estimate(1280, 720, duration, 15, "high", "480").predicted_bytes == 0

    def test_label(self):
        label = estimate(1920, 1080, 3.0, 15, "high", "480").label()
        assert label == "3.7MB - 6.9MB"


class TestValidate:
    def test_within_budget(self):
        check = validate(1000, budget_bytes=2000)
        assert check.within_budget is True
        assert check.actual_bytes == 1000
        assert check.budget_bytes == 2000

    def test_over_budget(self):
        assert validate(2001, budget_bytes=2000).within_budget is False

    def test_boundary_counts_as_within(self):
        assert validate(2000, budget_bytes=2000).within_budget is True

    def test_default_budget(self):
        assert validate(1).budget_bytes == DEFAULT_BUDGET_BYTES
