"""Hand-off of finished GIFs to storage."""

import json
import logging
import re
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass
class GifMetadata:
    """Descriptive metadata stored alongside a GIF."""

    original_name: str
    duration: float
    width: int
    height: int
    file_size: int = 0
    content_type: str = "image/gif"


class UploadGateway(Protocol):
    def store(self, data: bytes, metadata: GifMetadata) -> str:
        """Persist *data* and return a reference to it."""
        ...


class LocalGateway:
    """Stores each GIF as ``<ref>.gif`` with a ``<ref>.json`` metadata sidecar."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def store(self, data: bytes, metadata: GifMetadata) -> str:
        if not data:
            raise ValueError("refusing to store an empty GIF")
        self.root.mkdir(parents=True, exist_ok=True)
        ref = uuid.uuid4().hex
        metadata.file_size = len(data)
        (self.root / f"{ref}.gif").write_bytes(data)
        (self.root / f"{ref}.json").write_text(json.dumps(asdict(metadata), indent=2))
        logger.info(f"Stored {len(data)} bytes as {ref}")
        return ref

    def path_for(self, ref: str) -> Path:
        if not re.fullmatch(r"[0-9a-f]{32}", ref):
            raise ValueError(f"Malformed reference: {ref!r}")
        return self.root / f"{ref}.gif"

    def load_metadata(self, ref: str) -> GifMetadata:
        meta = json.loads(self.path_for(ref).with_suffix(".json").read_text())
        return GifMetadata(**meta)


def download_name(original_name: str, duration: float) -> str:
    """``clip.mp4`` and 2.5s -> ``clip-2500ms.gif``."""
    stem = Path(original_name).stem or "output"
    return f"{stem}-{round(duration * 1000)}ms.gif"
