"""FFmpeg/ffprobe subprocess helpers."""

import json
import logging
import math
import re
import shutil
import subprocess
from pathlib import Path
from typing import Callable

from gifforge.errors import EngineInitError, TranscodeFailure, UnsupportedSourceError
from gifforge.models import ProbeResult

logger = logging.getLogger(__name__)

# stderr fragments that mean the input itself is unusable, not the encode.
_UNSUPPORTED_MARKERS = (
    "Invalid data found when processing input",
    "could not find codec parameters",
    "Decoder (codec",
    "does not contain any stream",
    "Output file #0 does not contain any stream",
    "moov atom not found",
)

_TIME_RE = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def check_ffmpeg() -> None:
    """Raise EngineInitError if ffmpeg/ffprobe are not on PATH."""
    for cmd in ("ffmpeg", "ffprobe"):
        if shutil.which(cmd) is None:
            raise EngineInitError(f"{cmd} not found on PATH")


def probe(input_path: Path) -> ProbeResult:
    """Extract video metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True)
        data = json.loads(result.stdout)
    except subprocess.CalledProcessError as e:
        raise UnsupportedSourceError(f"ffprobe could not read {input_path}") from e
    except json.JSONDecodeError as e:
        raise UnsupportedSourceError(f"ffprobe returned unreadable output for {input_path}") from e

    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
    )
    if video_stream is None:
        raise UnsupportedSourceError(f"No video stream found in {input_path}")

    try:
        width = int(video_stream["width"])
        height = int(video_stream["height"])
    except (KeyError, TypeError, ValueError) as e:
        raise UnsupportedSourceError(f"No usable frame size in {input_path}") from e
    if width <= 0 or height <= 0:
        raise UnsupportedSourceError(f"No usable frame size in {input_path}")

    raw_duration = data.get("format", {}).get("duration") or video_stream.get("duration")
    return ProbeResult(
        duration=_parse_number(raw_duration, math.nan),
        width=width,
        height=height,
        fps=_parse_rate(video_stream.get("r_frame_rate")),
        codec_video=video_stream.get("codec_name", "unknown"),
    )


def _parse_number(raw, default: float) -> float:
    try:
        return float(raw)
    except (TypeError, ValueError):
        return default


def _parse_rate(raw) -> float:
    """``"30000/1001"`` -> 29.97; anything unparseable (``"N/A"``, ``"0/0"``) -> 0.0."""
    num, _, den = str(raw).partition("/")
    numerator = _parse_number(num, 0.0)
    denominator = _parse_number(den, 0.0) if den else 1.0
    if not denominator or not math.isfinite(numerator / denominator):
        return 0.0
    return numerator / denominator


def scale_filter(width: int, height: int) -> str:
    return f"scale={width}:{height}:flags=lanczos"


def build_palette_command(
    input_path: Path,
    palette_path: Path,
    start: float,
    duration: float,
    fps: int,
    width: int,
    height: int,
    colors: int,
) -> list[str]:
    """First pass: sample the range and compute an optimal fixed-size palette."""
    return [
        "ffmpeg", "-y", "-nostdin", "-hide_banner",
        "-ss", f"{start:.3f}",
        "-t", f"{duration:.3f}",
        "-i", str(input_path),
        "-vf", f"fps={fps},{scale_filter(width, height)},palettegen=max_colors={colors}",
        str(palette_path),
    ]


def build_encode_command(
    input_path: Path,
    palette_path: Path,
    output_path: Path,
    start: float,
    duration: float,
    fps: int,
    width: int,
    height: int,
) -> list[str]:
    """Second pass: re-sample the same frames and map them onto the palette."""
    return [
        "ffmpeg", "-y", "-nostdin", "-hide_banner",
        "-ss", f"{start:.3f}",
        "-t", f"{duration:.3f}",
        "-i", str(input_path),
        "-i", str(palette_path),
        "-lavfi", f"fps={fps},{scale_filter(width, height)}[x];[x][1:v]paletteuse=dither=bayer",
        "-loop", "0",
        str(output_path),
    ]


def parse_progress_time(line: str) -> float | None:
    """Return the ``time=`` position of an ffmpeg stats line, in seconds."""
    m = _TIME_RE.search(line)
    if not m:
        return None
    hours, minutes, seconds = m.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def is_unsupported_source(stderr: str) -> bool:
    return any(marker in stderr for marker in _UNSUPPORTED_MARKERS)


def run_ffmpeg(
    cmd: list[str],
    duration: float,
    on_progress: Callable[[float], None] | None = None,
    on_start: Callable[[subprocess.Popen], None] | None = None,
) -> None:
    """Run an ffmpeg command, reporting [0,1] progress parsed from stderr.

    *on_start* receives the live process so callers can terminate it.
    Raises UnsupportedSourceError when stderr shows the input is undecodable,
    TranscodeFailure for any other non-zero exit.
    """
    logger.info(f"Running ffmpeg: {' '.join(cmd)}")

    process = subprocess.Popen(
        cmd,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.PIPE,
        text=True,
        errors="replace",
    )
    if on_start:
        on_start(process)

    stderr_lines: list[str] = []
    if process.stderr:
        for line in process.stderr:
            stderr_lines.append(line)
            position = parse_progress_time(line)
            if position is not None and on_progress and duration > 0:
                on_progress(min(1.0, position / duration))

    return_code = process.wait()
    if return_code != 0:
        stderr = "".join(stderr_lines)
        logger.error(f"ffmpeg failed with code {return_code}: {stderr[-500:]}")
        if is_unsupported_source(stderr):
            raise UnsupportedSourceError(f"ffmpeg could not decode the input (rc={return_code})")
        raise TranscodeFailure(f"ffmpeg failed with exit code {return_code}", stderr=stderr)

    if on_progress:
        on_progress(1.0)
