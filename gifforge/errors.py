"""Error taxonomy for the transcoding engine."""


class TranscodeError(RuntimeError):
    """Base class for everything the engine can raise."""


class InvalidRangeError(TranscodeError, ValueError):
    """The requested selection has no positive duration after clamping."""


class UnsupportedSourceError(TranscodeError):
    """The input could not be probed or decoded by ffmpeg."""


class EngineInitError(TranscodeError):
    """ffmpeg could not be made ready. Fatal for the rest of the session."""


class TranscodeFailure(TranscodeError):
    """ffmpeg exited non-zero in the middle of an encode.

    Attributes:
        stderr: full ffmpeg stderr, kept for debugging.
    """

    def __init__(self, message: str, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stderr = stderr

    def __str__(self) -> str:
        base = super().__str__()
        if not self.stderr:
            return base
        lines = self.stderr.strip().splitlines()
        tail = lines[-20:]
        return f"{base}\n--- ffmpeg stderr (last {len(tail)} lines) ---\n" + "\n".join(tail)


class TranscodeCancelled(TranscodeError):
    """The job was cancelled before it finished."""


class SizeBudgetExceeded(TranscodeError):
    """The artifact is larger than the size budget even after the fallback encode.

    Never raised by the engine itself; attached to the result instead.
    """

    def __init__(self, actual_bytes: int, budget_bytes: int) -> None:
        super().__init__(
            f"GIF is {actual_bytes} bytes, over the {budget_bytes} byte budget"
        )
        self.actual_bytes = actual_bytes
        self.budget_bytes = budget_bytes
