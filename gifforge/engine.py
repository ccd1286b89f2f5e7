"""Transcoding engine: turns a selection and a profile into a size-budgeted GIF."""

import logging
import math
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable

from gifforge import ffutil
from gifforge.config import Settings
from gifforge.errors import InvalidRangeError, TranscodeCancelled, TranscodeError, TranscodeFailure
from gifforge.estimator import estimate, even, scaled_dimensions, validate
from gifforge.manifest import EncodingProfile
from gifforge.models import SizeEstimate, TimeRange, TranscodeResult, VideoSource, duration_known
from gifforge.progress import ProgressCallback, ProgressTracker
from gifforge.runtime import FFmpegRuntime

logger = logging.getLogger(__name__)

# Share of the [0,1] progress range given to each pass.
_FIRST_ATTEMPT = ((0.0, 0.35), (0.35, 0.5))
_FALLBACK_ATTEMPT = ((0.85, 0.05), (0.9, 0.09))


@dataclass(frozen=True)
class EncodePlan:
    """Concrete encoder parameters for one two-pass attempt."""

    start: float
    duration: float
    fps: int
    width: int
    height: int
    colors: int

    def fallback(self, fps: int, colors: int) -> "EncodePlan":
        """The one-shot aggressive plan: low fps, half size, minimum palette."""
        return replace(
            self,
            fps=fps,
            width=even(self.width / 2),
            height=even(self.height / 2),
            colors=colors,
        )


class CancelToken:
    """Best-effort cancellation shared between a job and its running ffmpeg."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._process: subprocess.Popen | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()
        with self._lock:
            process = self._process
        if process is not None and process.poll() is None:
            logger.info("Cancelling running ffmpeg process")
            process.terminate()

    def attach(self, process: subprocess.Popen) -> None:
        with self._lock:
            self._process = process
        if self.cancelled and process.poll() is None:
            process.terminate()

    def detach(self) -> None:
        with self._lock:
            self._process = None

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise TranscodeCancelled("transcode cancelled")


class TranscodeJob:
    """Handle on a queued or running transcode: poll progress, wait, cancel."""

    def __init__(self, future: Future, tracker: ProgressTracker, token: CancelToken) -> None:
        self._future = future
        self._tracker = tracker
        self._token = token

    def progress(self) -> float:
        return self._tracker.value

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> TranscodeResult:
        return self._future.result(timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout)

    def cancel(self) -> bool:
        """Cancel the job. Returns False if it had already finished."""
        if self._future.done():
            return False
        self._token.cancel()
        self._future.cancel()
        return True

    def add_done_callback(self, fn: Callable[["TranscodeJob"], None]) -> None:
        self._future.add_done_callback(lambda _f: fn(self))


class TranscodeEngine:
    """Two-pass palette GIF encoder with a single lossy fallback pass.

    All encodes go through one shared :class:`FFmpegRuntime`; its session lock
    plus the single-worker queue used by :meth:`submit` keep them serialized.
    """

    def __init__(self, runtime: FFmpegRuntime | None = None, settings: Settings | None = None) -> None:
        self.settings = settings or Settings()
        self.runtime = runtime or FFmpegRuntime(self.settings.work_dir)
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def effective_duration(self, selection: TimeRange, source_duration: float = math.nan) -> float:
        start = max(0.0, selection.start)
        span = min(selection.end - start, self.settings.hard_max_duration)
        if duration_known(source_duration):
            span = min(span, source_duration - start)
        if not math.isfinite(span):
            return 0.0
        return span

    def plan(self, source: VideoSource, selection: TimeRange, profile: EncodingProfile) -> EncodePlan:
        """Resolve the first-attempt encoder parameters. Needs probed metadata."""
        duration = self.effective_duration(selection, source.duration)
        if duration <= 0:
            raise InvalidRangeError(
                f"Invalid time range {selection.start:.3f}-{selection.end:.3f}s"
            )
        width, height = scaled_dimensions(source.width, source.height, profile.scale)
        return EncodePlan(
            start=max(0.0, selection.start),
            duration=duration,
            fps=profile.fps,
            width=width,
            height=height,
            colors=profile.colors,
        )

    def estimate(self, source: VideoSource, selection: TimeRange, profile: EncodingProfile) -> SizeEstimate:
        return estimate(
            source.width,
            source.height,
            self.effective_duration(selection, source.duration),
            profile.fps,
            profile.quality,
            profile.scale,
            overhead_factor=self.settings.overhead_factor,
        )

    def transcode(
        self,
        source: VideoSource,
        selection: TimeRange,
        profile: EncodingProfile,
        on_progress: ProgressCallback | None = None,
        cancel: CancelToken | None = None,
    ) -> TranscodeResult:
        """Encode *selection* of *source* and return the finished GIF.

        Blocks until done; use :meth:`submit` from interactive code.
        """
        return self._run(source, selection, profile, ProgressTracker(on_progress), cancel or CancelToken())

    def submit(
        self,
        source: VideoSource,
        selection: TimeRange,
        profile: EncodingProfile,
        on_progress: ProgressCallback | None = None,
    ) -> TranscodeJob:
        """Queue a transcode and return immediately with a job handle."""
        tracker = ProgressTracker(on_progress)
        token = CancelToken()
        future = self._get_executor().submit(self._run, source, selection, profile, tracker, token)
        return TranscodeJob(future, tracker, token)

    def shutdown(self, wait: bool = True) -> None:
        with self._executor_lock:
            if self._executor is not None:
                self._executor.shutdown(wait=wait, cancel_futures=True)
                self._executor = None

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="gifforge-encode")
            return self._executor

    def _run(
        self,
        source: VideoSource,
        selection: TimeRange,
        profile: EncodingProfile,
        tracker: ProgressTracker,
        token: CancelToken,
    ) -> TranscodeResult:
        try:
            # Fail fast on an empty range before touching ffmpeg.
            if self.effective_duration(selection, source.duration) <= 0:
                raise InvalidRangeError(
                    f"Invalid time range {selection.start:.3f}-{selection.end:.3f}s"
                )
            token.raise_if_cancelled()

            with self.runtime.session() as scratch:
                if not source.metadata_known:
                    source = source.with_metadata(ffutil.probe(source.path))
                plan = self.plan(source, selection, profile)
                if plan.duration < selection.end - selection.start:
                    logger.info(
                        f"Clamped selection of {selection.end - selection.start:.2f}s "
                        f"to {plan.duration:.2f}s"
                    )

                data = self._two_pass(source, plan, scratch / "first", tracker, _FIRST_ATTEMPT, token)
                check = validate(len(data), self.settings.budget_bytes)
                attempts = 1
                if not check.within_budget:
                    logger.warning(
                        f"GIF is {check.actual_bytes} bytes, over the {check.budget_bytes} byte "
                        f"budget; re-encoding at {self.settings.fallback_fps} fps"
                    )
                    plan = plan.fallback(self.settings.fallback_fps, self.settings.fallback_colors)
                    data = self._two_pass(source, plan, scratch / "fallback", tracker, _FALLBACK_ATTEMPT, token)
                    check = validate(len(data), self.settings.budget_bytes)
                    attempts = 2

            result = TranscodeResult(
                data=data,
                width=plan.width,
                height=plan.height,
                fps=plan.fps,
                colors=plan.colors,
                duration=plan.duration,
                budget=check,
                attempts=attempts,
            )
            if not check.within_budget:
                result.warnings.append(str(result.budget_error))
                logger.warning(f"Returning oversized GIF: {result.budget_error}")
        except BaseException:
            tracker.fail()
            raise

        logger.info(
            f"Encoded {result.width}x{result.height} @ {result.fps}fps, "
            f"{result.size} bytes in {attempts} attempt(s)"
        )
        tracker.finish()
        return result

    def _two_pass(
        self,
        source: VideoSource,
        plan: EncodePlan,
        workdir: Path,
        tracker: ProgressTracker,
        stages: tuple[tuple[float, float], tuple[float, float]],
        token: CancelToken,
    ) -> bytes:
        workdir.mkdir(parents=True, exist_ok=True)
        palette_path = workdir / "palette.png"
        output_path = workdir / "out.gif"
        (palette_base, palette_span), (encode_base, encode_span) = stages

        palette_cmd = ffutil.build_palette_command(
            source.path, palette_path, plan.start, plan.duration,
            plan.fps, plan.width, plan.height, plan.colors,
        )
        encode_cmd = ffutil.build_encode_command(
            source.path, palette_path, output_path, plan.start, plan.duration,
            plan.fps, plan.width, plan.height,
        )

        for cmd, on_progress in (
            (palette_cmd, tracker.stage(palette_base, palette_span)),
            (encode_cmd, tracker.stage(encode_base, encode_span)),
        ):
            token.raise_if_cancelled()
            try:
                ffutil.run_ffmpeg(cmd, plan.duration, on_progress=on_progress, on_start=token.attach)
            except TranscodeError as e:
                if token.cancelled:
                    raise TranscodeCancelled("transcode cancelled") from e
                raise
            finally:
                token.detach()
        token.raise_if_cancelled()

        if not output_path.exists() or output_path.stat().st_size == 0:
            raise TranscodeFailure("ffmpeg produced no output")
        return output_path.read_bytes()
