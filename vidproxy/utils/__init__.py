from .filename import fallback_stem, sanitize_filename
from .humanize import format_duration, format_quality, format_size, format_views

__all__ = [
    "fallback_stem",
    "format_duration",
    "format_quality",
    "format_size",
    "format_views",
    "sanitize_filename",
]
