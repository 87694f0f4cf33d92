"""Helpers for audio/image references (remote URLs vs. on-device files)."""

from __future__ import annotations

import base64
import mimetypes
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

REMOTE_SCHEMES = ("http", "https")
LOCAL_SCHEMES = ("file",)


def is_remote_url(ref: Optional[str]) -> bool:
    """True for ``http(s)://host/...`` references."""

    if not ref:
        return False
    parsed = urlparse(ref.strip())
    return parsed.scheme.lower() in REMOTE_SCHEMES and bool(parsed.netloc)


def is_url_shaped(ref: Optional[str]) -> bool:
    """True for remote URLs and ``file://`` URLs with a path."""

    if not ref or not ref.strip():
        return False
    if is_remote_url(ref):
        return True
    parsed = urlparse(ref.strip())
    return parsed.scheme.lower() in LOCAL_SCHEMES and bool(parsed.path)


def local_path(ref: Optional[str]) -> Optional[Path]:
    """Return the filesystem path for ``file://`` URLs or bare paths."""

    if not ref or is_remote_url(ref):
        return None
    parsed = urlparse(ref.strip())
    if parsed.scheme.lower() in LOCAL_SCHEMES:
        return Path(unquote(parsed.path))
    if parsed.scheme and len(parsed.scheme) > 1:
        return None
    return Path(ref.strip()).expanduser()


def guess_media_type(path: Path, default: str) -> str:
    media_type, _ = mimetypes.guess_type(path.name)
    return media_type or default


def to_data_url(path: Path, default_media_type: str = "image/jpeg") -> str:
    """Inline a local image as a base64 ``data:`` URL."""

    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{guess_media_type(path, default_media_type)};base64,{encoded}"
