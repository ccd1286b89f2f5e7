#!/usr/bin/env python3
"""Generate a synthetic test video for GifForge conversion testing.

Produces a ~20-second 640x360 video with a moving test pattern followed by
alternating solid colors, so palette generation has something to chew on:
  0-8s   testsrc2 pattern
  8-12s  red
  12-16s green
  16-20s blue
"""

import subprocess
import sys
from pathlib import Path


def generate_test_video(output: Path, size: str = "640x360", rate: int = 30) -> None:
    output.parent.mkdir(parents=True, exist_ok=True)

    video_filter = (
        f"testsrc2=s={size}:d=8:r={rate}[v0];"
        f"color=c=red:s={size}:d=4:r={rate}[v1];"
        f"color=c=green:s={size}:d=4:r={rate}[v2];"
        f"color=c=blue:s={size}:d=4:r={rate}[v3];"
        "[v0][v1][v2][v3]concat=n=4:v=1:a=0,format=yuv420p[vout]"
    )

    cmd = [
        "ffmpeg", "-y",
        "-filter_complex", video_filter,
        "-map", "[vout]",
        "-c:v", "libx264",
        str(output),
    ]
    subprocess.run(cmd, check=True, capture_output=True)
    print(f"Generated: {output}")


if __name__ == "__main__":
    out = Path(sys.argv[1]) if len(sys.argv) > 1 else Path("tests/fixtures/synthetic.mp4")
    generate_test_video(out)
