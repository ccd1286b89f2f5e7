"""Shared data types used across GifForge."""

import math
from dataclasses import dataclass, field, replace
from pathlib import Path

from gifforge.errors import SizeBudgetExceeded


@dataclass
class TimeRange:
    """A start/end time pair in seconds."""

    start: float
    end: float

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass
class ProbeResult:
    """Metadata extracted from a media file via ffprobe."""

    duration: float
    width: int
    height: int
    fps: float
    codec_video: str


def duration_known(duration: float) -> bool:
    """True once a duration is finite and positive."""
    return math.isfinite(duration) and duration > 0


@dataclass(frozen=True)
class VideoSource:
    """A source video on disk plus its (possibly not yet probed) metadata."""

    path: Path
    duration: float = math.nan
    width: int = 0
    height: int = 0

    @property
    def metadata_known(self) -> bool:
        return duration_known(self.duration) and self.width > 0 and self.height > 0

    def with_metadata(self, probe: ProbeResult) -> "VideoSource":
        return replace(self, duration=probe.duration, width=probe.width, height=probe.height)

    @classmethod
    def from_bytes(cls, data: bytes, directory: Path, suffix: str = ".mp4") -> "VideoSource":
        """Write raw upload bytes to *directory* so ffmpeg can read them."""
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"source{suffix}"
        path.write_bytes(data)
        return cls(path=path)


@dataclass(frozen=True)
class SizeEstimate:
    """Predicted output size in bytes."""

    predicted_bytes: int

    def label(self) -> str:
        """Human-readable range, +/-30% around the prediction."""
        return f"{_format_size(self.predicted_bytes * 0.7)} - {_format_size(self.predicted_bytes * 1.3)}"


@dataclass(frozen=True)
class BudgetCheck:
    """Outcome of comparing an artifact size to the size budget."""

    within_budget: bool
    actual_bytes: int
    budget_bytes: int


@dataclass
class TranscodeResult:
    """A finished GIF and how it was produced."""

    data: bytes
    width: int
    height: int
    fps: int
    colors: int
    duration: float
    budget: BudgetCheck
    content_type: str = "image/gif"
    attempts: int = 1
    warnings: list[str] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def frame_count(self) -> int:
        return max(1, round(self.fps * self.duration))

    @property
    def budget_error(self) -> SizeBudgetExceeded | None:
        if self.budget.within_budget:
            return None
        return SizeBudgetExceeded(self.budget.actual_bytes, self.budget.budget_bytes)

    def raise_for_budget(self) -> None:
        """Raise SizeBudgetExceeded for callers that want a hard size limit."""
        err = self.budget_error
        if err is not None:
            raise err


def _format_size(num_bytes: float) -> str:
    if num_bytes > 1024 * 1024:
        return f"{num_bytes / (1024 * 1024):.1f}MB"
    return f"{num_bytes / 1024:.0f}KB"
