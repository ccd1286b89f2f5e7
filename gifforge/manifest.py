"""JSON manifest schema, the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from gifforge.models import TimeRange


class QualityTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ScalePreset(str, Enum):
    ORIGINAL = "original"
    P720 = "720"
    P480 = "480"
    P360 = "360"
    P240 = "240"


ALLOWED_FPS: tuple[int, ...] = (8, 10, 12, 15)

COLOR_COUNTS: dict[QualityTier, int] = {
    QualityTier.LOW: 64,
    QualityTier.MEDIUM: 128,
    QualityTier.HIGH: 256,
}

# Calibration constants, re-tune per encoder.
BITS_PER_PIXEL: dict[QualityTier, float] = {
    QualityTier.LOW: 1.2,
    QualityTier.MEDIUM: 1.6,
    QualityTier.HIGH: 2.0,
}

# Cap on the longer side; None keeps the source size.
MAX_DIMENSIONS: dict[ScalePreset, int | None] = {
    ScalePreset.ORIGINAL: None,
    ScalePreset.P720: 1280,
    ScalePreset.P480: 854,
    ScalePreset.P360: 640,
    ScalePreset.P240: 426,
}


@dataclass(frozen=True)
class EncodingProfile:
    """The closed set of knobs a user can turn for a conversion."""

    quality: QualityTier = QualityTier.HIGH
    fps: int = 15
    scale: ScalePreset = ScalePreset.ORIGINAL

    def __post_init__(self) -> None:
        # Accept plain strings for the enum fields, reject anything off-table.
        object.__setattr__(self, "quality", _coerce(QualityTier, self.quality, "quality"))
        object.__setattr__(self, "scale", _coerce(ScalePreset, self.scale, "scale"))
        if isinstance(self.fps, bool) or self.fps not in ALLOWED_FPS:
            raise ValueError(f"fps must be one of {ALLOWED_FPS}, got {self.fps!r}")

    @property
    def colors(self) -> int:
        return COLOR_COUNTS[self.quality]

    @classmethod
    def from_dict(cls, data: dict) -> "EncodingProfile":
        defaults = cls()
        fps = data.get("fps", defaults.fps)
        if isinstance(fps, str) and fps.isdigit():
            fps = int(fps)
        return cls(
            quality=data.get("quality", defaults.quality),
            fps=fps,
            scale=data.get("scale", defaults.scale),
        )

    def to_dict(self) -> dict:
        return {"quality": self.quality.value, "fps": self.fps, "scale": self.scale.value}


def _coerce(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"{name} must be one of: {allowed} (got {value!r})") from None


@dataclass
class Manifest:
    """Top-level conversion manifest."""

    input: Path
    output: Path
    selection: TimeRange
    version: str = "1"
    profile: EncodingProfile = field(default_factory=EncodingProfile)


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    for key in ("input", "output", "start", "end"):
        if key not in data:
            raise ValueError("Manifest must contain 'input', 'output', 'start' and 'end' fields")

    profile = EncodingProfile.from_dict(data["profile"]) if "profile" in data else EncodingProfile()

    return Manifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]),
        selection=TimeRange(start=float(data["start"]), end=float(data["end"])),
        profile=profile,
    )
