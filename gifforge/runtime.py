"""Lazily-initialized handle on the ffmpeg runtime.

One handle is shared by every conversion in a process. Access goes through
:meth:`FFmpegRuntime.session`, which holds a lock for the whole call so two
encodes never interleave.
"""

import logging
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from gifforge import ffutil
from gifforge.errors import EngineInitError

logger = logging.getLogger(__name__)


class FFmpegRuntime:
    """Owns the ffmpeg availability check and the scratch area for encodes."""

    def __init__(self, work_dir: Path | None = None) -> None:
        self._work_dir = work_dir
        self._lock = threading.Lock()
        self._init_lock = threading.Lock()
        self._ready = False
        self._init_error: EngineInitError | None = None

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def ensure_ready(self) -> None:
        """Initialize on first use. A failed init is remembered and re-raised."""
        with self._init_lock:
            if self._ready:
                return
            if self._init_error is not None:
                raise self._init_error
            try:
                ffutil.check_ffmpeg()
                if self._work_dir is not None:
                    self._work_dir.mkdir(parents=True, exist_ok=True)
            except EngineInitError as e:
                self._init_error = e
                logger.error(f"ffmpeg runtime unavailable: {e}")
                raise
            except OSError as e:
                self._init_error = EngineInitError(f"cannot create work dir {self._work_dir}: {e}")
                logger.error(str(self._init_error))
                raise self._init_error from e
            self._ready = True
            logger.info("ffmpeg runtime ready")

    @contextmanager
    def session(self) -> Iterator[Path]:
        """Hold the runtime exclusively and yield a fresh scratch directory.

        The directory and everything written to it is removed on exit,
        including partial files from a failed encode.
        """
        with self._lock:
            self.ensure_ready()
            with tempfile.TemporaryDirectory(prefix="gifforge_", dir=self._work_dir) as tmp:
                yield Path(tmp)
