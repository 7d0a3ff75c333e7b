"""Naming, locating and classifying stored media assets."""

from __future__ import annotations

import base64
import os
import secrets

IMAGE_MIME_TYPES = frozenset({"image/jpeg", "image/png"})

_RANDOM_ID_BYTES = 32


def ensure_assets_dir(assets_root: str | os.PathLike[str]) -> None:
    """Create the assets directory if it does not exist yet."""
    if not os.path.exists(assets_root):
        os.mkdir(assets_root, 0o755)


def get_asset_path(media_type: str) -> str:
    """Return a fresh random file name carrying the extension for ``media_type``."""
    raw = secrets.token_bytes(_RANDOM_ID_BYTES)
    asset_id = base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")
    return f"{asset_id}{media_type_to_ext(media_type)}"


def get_asset_disk_path(assets_root: str | os.PathLike[str], asset_path: str) -> str:
    """Return where an asset lives on disk."""
    return os.path.join(assets_root, asset_path)


def get_asset_url(port: str | int, asset_path: str) -> str:
    """Return the URL the server exposes an asset under."""
    return f"http://localhost:{port}/assets/{asset_path}"


def media_type_to_ext(media_type: str) -> str:
    """Map a ``type/subtype`` media type to a file extension, ``.bin`` otherwise."""
    parts = media_type.split("/")
    if len(parts) != 2:
        return ".bin"
    return "." + parts[1]


def is_image(mime_type: str) -> bool:
    """Tell whether the MIME type is an accepted image type."""
    return mime_type in IMAGE_MIME_TYPES