"""Object-store key and identifier helpers."""

import re
import secrets
import time
from typing import Optional
from urllib.parse import unquote

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")
_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


def epoch_ms() -> int:
    return int(time.time() * 1000)


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_BASE36) for _ in range(length))


def new_event_id(now_ms: Optional[int] = None) -> str:
    """``evento-<epoch ms>-<9 base36 chars>``."""
    return f"evento-{now_ms or epoch_ms()}-{_random_suffix()}"


def new_photo_id(now_ms: Optional[int] = None) -> str:
    return f"photo-{now_ms or epoch_ms()}-{_random_suffix()}"


def sanitize_filename(filename: str) -> str:
    """Replace anything outside ``[A-Za-z0-9.-]`` with ``_``."""
    cleaned = _UNSAFE_CHARS.sub("_", filename.rsplit("/", 1)[-1].rsplit("\\", 1)[-1])
    return cleaned or "photo"


def event_prefix(event_id: str) -> str:
    return f"{event_id}/"


def event_photo_key(event_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    """Structure: ``{event_id}/{epoch ms}-{sanitized filename}``."""
    return f"{event_prefix(event_id)}{now_ms or epoch_ms()}-{sanitize_filename(filename)}"


def event_thumbnail_key(event_id: str, content_type: str) -> str:
    ext = CONTENT_TYPE_EXTENSIONS.get(content_type, ".jpg")
    return f"{event_prefix(event_id)}thumbnail{ext}"


def key_from_url(url: str, event_id: str) -> Optional[str]:
    """Recover an object key from a stored URL, if it points under the event's prefix."""
    marker = f"/{event_prefix(event_id)}"
    path = url.split("?", 1)[0]
    index = path.find(marker)
    if index < 0:
        return None
    return unquote(path[index + 1:])
