from typing import Optional


def format_duration(seconds: Optional[float]) -> str:
    """Render seconds as M:SS (minutes are not wrapped into hours)"""
    try:
        total = int(seconds or 0)
    except (TypeError, ValueError):
        total = 0
    total = max(total, 0)
    minutes, secs = divmod(total, 60)
    return f"{minutes}:{secs:02d}"


def format_views(count: Optional[int]) -> str:
    if not count:
        return "N/A"
    try:
        return f"{int(count):,}"
    except (TypeError, ValueError):
        return "N/A"


def format_quality(height: Optional[int]) -> str:
    if not height:
        return "N/A"
    return f"{height}p"


def format_size(num_bytes: int) -> str:
    return f"{num_bytes / 1024 / 1024:.2f} MB"
