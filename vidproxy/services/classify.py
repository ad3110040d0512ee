"""Map raw yt-dlp failure text onto stable, user-facing classifications.

Both tables are plain data so they can be exercised without a subprocess.
"""
from typing import Tuple
from vidproxy.core.errors import AllFallbacksExhaustedError, StrategyExhaustedError, VidProxyError

# Evaluated in order against the lower-cased message; first match wins.
ERROR_CLASSIFICATIONS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("not a bot", "bot detection"), "bot_detected"),
    (("video unavailable", "private video"), "unavailable"),
    (("sign in to confirm", "age"), "age_restricted"),
    (("this video is not available", "removed"), "removed"),
    (("network", "timeout", "timed out", "connection"), "network"),
    (("no video formats", "format"), "unsupported_format"),
    (("executable not found", "could not be started"), "tool_failure"),
)

DEFAULT_CLASSIFICATION = "processing"

# Case-sensitive substrings that reroute a primary failure to the mirrors.
FALLBACK_SIGNATURES: Tuple[str, ...] = ("bot", "Sign in to confirm", "age")


def failure_text(error: BaseException) -> str:
    """
    Text to match against the tables: our message plus yt-dlp's stderr.

    Details added on our side (paths, filename prefixes, probe lists) are
    left out, so a title can never decide the classification. A fallback
    failure is described by the primary error that caused the reroute.
    """
    if isinstance(error, AllFallbacksExhaustedError) and error.__cause__ is not None:
        return failure_text(error.__cause__)
    if isinstance(error, StrategyExhaustedError):
        return failure_text(error.last_error)
    if isinstance(error, VidProxyError):
        stderr = getattr(error, "stderr", None)
        return f"{error.message}: {stderr}" if stderr else error.message
    return str(error)


def normalize_message(message: str) -> str:
    return " ".join((message or "").split()).lower()


def classify_error(message: str) -> str:
    normalized = normalize_message(message)
    for phrases, classification in ERROR_CLASSIFICATIONS:
        if any(phrase in normalized for phrase in phrases):
            return classification
    return DEFAULT_CLASSIFICATION


def should_fallback(message: str) -> bool:
    return any(signature in (message or "") for signature in FALLBACK_SIGNATURES)
