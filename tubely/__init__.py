"""Video-sharing HTTP API with SQLite storage, asset helpers and ffmpeg video helpers."""

__version__ = "0.1.0"

__all__ = ["__version__"]