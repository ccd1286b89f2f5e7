"""Thin CLI entry point: builds a Manifest and calls the engine."""

import argparse
import sys
from pathlib import Path

from gifforge import ffutil
from gifforge.config import Settings, setup_logging
from gifforge.engine import TranscodeEngine
from gifforge.errors import TranscodeError
from gifforge.manifest import ALLOWED_FPS, EncodingProfile, Manifest, QualityTier, ScalePreset, load_manifest
from gifforge.models import TimeRange, VideoSource


def _add_profile_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--start", type=float, default=0.0, help="Selection start (seconds)")
    p.add_argument("--end", type=float, default=3.0, help="Selection end (seconds)")
    p.add_argument("--quality", choices=[q.value for q in QualityTier], default="high", help="Quality tier")
    p.add_argument("--fps", type=int, choices=ALLOWED_FPS, default=15, help="Output frame rate")
    p.add_argument("--scale", choices=[s.value for s in ScalePreset], default="original", help="Scale preset")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gifforge",
        description="GifForge: turn a range of a video into a size-budgeted GIF.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    parser.add_argument("--budget", type=int, default=None, help="Size budget in bytes")
    sub = parser.add_subparsers(dest="command")

    conv = sub.add_parser("convert", help="Convert a video range to GIF")
    conv.add_argument("video", nargs="?", type=Path, help="Input video file")
    conv.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    conv.add_argument("--output", "-o", type=Path, help="Output GIF path")
    _add_profile_args(conv)

    est = sub.add_parser("estimate", help="Predict the GIF size without encoding")
    est.add_argument("video", type=Path, help="Input video file")
    _add_profile_args(est)

    serve = sub.add_parser("serve", help="Launch the web UI")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    setup_logging(args.verbose)
    settings = Settings.from_env(budget_bytes=args.budget)

    if args.command == "serve":
        from gifforge.web import create_app
        app = create_app(settings=settings)
        print(f"GifForge web UI: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
        return

    engine = TranscodeEngine(settings=settings)

    if args.command == "estimate":
        profile = EncodingProfile(quality=args.quality, fps=args.fps, scale=args.scale)
        try:
            source = VideoSource(path=args.video).with_metadata(ffutil.probe(args.video))
        except TranscodeError as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        est = engine.estimate(source, TimeRange(start=args.start, end=args.end), profile)
        print(f"Estimated size: {est.label()} ({est.predicted_bytes} bytes)")
        print(f"Budget: {settings.budget_bytes} bytes")
        return

    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video:
        m = Manifest(
            input=args.video,
            output=args.output or args.video.with_suffix(".gif"),
            selection=TimeRange(start=args.start, end=args.end),
            profile=EncodingProfile(quality=args.quality, fps=args.fps, scale=args.scale),
        )
    else:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(frac: float) -> None:
        print(f"\r  [{frac:4.0%}] encoding", end="", flush=True)

    try:
        result = engine.transcode(VideoSource(path=m.input), m.selection, m.profile, on_progress=on_progress)
    except TranscodeError as e:
        print(f"\nError: {e}", file=sys.stderr)
        sys.exit(1)

    m.output.write_bytes(result.data)
    print()
    print(f"Done! Output: {m.output}")
    print(f"  {result.width}x{result.height} @ {result.fps} fps, {result.duration:.1f}s")
    print(f"  Size: {result.size} bytes ({result.attempts} attempt(s))")
    for warning in result.warnings:
        print(f"  Warning: {warning}")


if __name__ == "__main__":
    main()
