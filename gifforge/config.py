"""Runtime settings with environment-variable overrides.

Precedence::

    CLI option > environment variable > default
"""

import logging
import math
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path

logger = logging.getLogger(__name__)

ENV_MAX_GIF_DURATION = "GIFFORGE_MAX_GIF_DURATION"
ENV_HARD_MAX_DURATION = "GIFFORGE_HARD_MAX_DURATION"
ENV_BUDGET_BYTES = "GIFFORGE_BUDGET_BYTES"
ENV_WORK_DIR = "GIFFORGE_WORK_DIR"
ENV_STORE_DIR = "GIFFORGE_STORE_DIR"

_ENV_FIELDS = {
    ENV_MAX_GIF_DURATION: "max_gif_duration",
    ENV_HARD_MAX_DURATION: "hard_max_duration",
    ENV_BUDGET_BYTES: "budget_bytes",
    ENV_WORK_DIR: "work_dir",
    ENV_STORE_DIR: "store_dir",
}


@dataclass(frozen=True)
class Settings:
    """Tunable constants for the selector and the transcoding engine."""

    # Selection
    default_span: float = 3.0
    max_gif_duration: float = 10.0
    min_span: float = 0.1

    # Engine
    hard_max_duration: float = 10.0
    budget_bytes: int = 10 * 1024 * 1024
    fallback_fps: int = 8
    fallback_colors: int = 32
    overhead_factor: float = 1.2

    work_dir: Path | None = None
    store_dir: Path | None = None

    def __post_init__(self) -> None:
        for f in fields(self):
            _check_field(f.name, getattr(self, f.name))

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides) -> "Settings":
        """Build settings from ``GIFFORGE_*`` variables, then apply *overrides*."""
        env = os.environ if environ is None else environ
        types = {f.name: f.type for f in fields(cls)}
        values: dict = {}
        for var, name in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or raw.strip() == "":
                continue
            value = _parse(var, raw.strip(), types[name])
            try:
                _check_field(name, value)
            except ValueError as e:
                raise ValueError(f"{var}: {e}") from None
            values[name] = value
            logger.debug(f"{var}={raw} -> {name}")
        settings = cls(**values)
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return replace(settings, **overrides) if overrides else settings


_POSITIVE_FLOATS = ("default_span", "max_gif_duration", "hard_max_duration", "min_span", "overhead_factor")
_POSITIVE_INTS = ("budget_bytes", "fallback_fps", "fallback_colors")


def _check_field(name: str, value) -> None:
    # NaN and inf are rejected too.
    if name in _POSITIVE_FLOATS and not (math.isfinite(value) and value > 0):
        raise ValueError(f"{name} must be a positive finite number, got {value!r}")
    if name in _POSITIVE_INTS and value <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")


def _parse(var: str, raw: str, type_):
    try:
        if type_ in (float, "float"):
            return float(raw)
        if type_ in (int, "int"):
            return int(raw)
    except ValueError:
        raise ValueError(f"{var} must be a number, got {raw!r}") from None
    return Path(raw).expanduser()


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging for the CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
