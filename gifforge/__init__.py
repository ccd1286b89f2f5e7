"""GifForge: pick a range of a video on a zoomable timeline, get a size-budgeted GIF."""

__version__ = "0.1.0"
