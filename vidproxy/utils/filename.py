import re
import time
import unicodedata

# \t through \r are left out so WHITESPACE folds them into a single space
ILLEGAL_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x08\x0e-\x1f\x7f]')
WHITESPACE = re.compile(r'\s+')


def sanitize_filename(name: str, max_bytes: int = 180) -> str:
    """Strip characters illegal on common filesystems and collapse whitespace.

    The result is capped to ``max_bytes`` of UTF-8 so that a title plus a
    request token and extension stays under the usual 255 byte limit.
    May return an empty string; callers substitute :func:`fallback_stem`.
    """
    name = unicodedata.normalize("NFC", name or "")
    name = ILLEGAL_CHARS.sub('', name)
    name = WHITESPACE.sub(' ', name).strip()

    encoded = name.encode("utf-8")
    if len(encoded) > max_bytes:
        name = encoded[:max_bytes].decode("utf-8", errors="ignore").strip()

    return name


def fallback_stem(video_id: str) -> str:
    """Stable id plus millisecond timestamp, used when a title sanitizes to nothing"""
    return f"video_{sanitize_filename(video_id) or 'unknown'}_{int(time.time() * 1000)}"
