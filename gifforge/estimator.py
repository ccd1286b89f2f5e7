"""Output size prediction and the size budget check."""

import math

from gifforge.manifest import BITS_PER_PIXEL, MAX_DIMENSIONS, QualityTier, ScalePreset
from gifforge.models import BudgetCheck, SizeEstimate

DEFAULT_BUDGET_BYTES = 10 * 1024 * 1024
OVERHEAD_FACTOR = 1.2


def even(value: float) -> int:
    """Round to the nearest even pixel count, never below 2."""
    return max(2, int(round(value / 2.0)) * 2)


def scaled_dimensions(width: int, height: int, scale: ScalePreset | str) -> tuple[int, int]:
    """Apply a scale preset's cap on the longer side, keeping aspect ratio."""
    cap = MAX_DIMENSIONS[ScalePreset(scale)]
    longest = max(width, height)
    if cap is None or longest <= cap:
        return even(width), even(height)
    ratio = cap / longest
    return even(width * ratio), even(height * ratio)


def estimate(
    width: int,
    height: int,
    duration: float,
    fps: int,
    quality: QualityTier | str,
    scale: ScalePreset | str,
    overhead_factor: float = OVERHEAD_FACTOR,
) -> SizeEstimate:
    """Predict the GIF size for a conversion.

    Deterministic and monotonically non-decreasing in fps, duration and
    effective (scaled) resolution for a fixed quality tier.
    """
    if width <= 0 or height <= 0 or fps <= 0 or not math.isfinite(duration) or duration <= 0:
        return SizeEstimate(predicted_bytes=0)
    scaled_w, scaled_h = scaled_dimensions(width, height, scale)
    pixels = scaled_w * scaled_h
    bpp = BITS_PER_PIXEL[QualityTier(quality)]
    predicted = math.ceil(pixels * bpp * fps * duration / 8 * overhead_factor)
    return SizeEstimate(predicted_bytes=predicted)


def validate(actual_bytes: int, budget_bytes: int = DEFAULT_BUDGET_BYTES) -> BudgetCheck:
    """Compare an artifact size against the budget. Informational only."""
    return BudgetCheck(
        within_budget=actual_bytes <= budget_bytes,
        actual_bytes=actual_bytes,
        budget_bytes=budget_bytes,
    )
