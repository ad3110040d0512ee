from typing import List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit
from vidproxy.config.settings import config


def _ranked_languages(accept_language: str) -> List[str]:
    """Primary language subtags ordered by q weight, header order breaking ties"""
    ranked: List[Tuple[float, int, str]] = []
    for position, item in enumerate(accept_language.split(",")):
        tag, _, params = item.partition(";")
        code = tag.strip().split("-")[0].lower()
        if not code:
            continue
        weight = 1.0
        params = params.strip()
        if params.startswith("q="):
            try:
                weight = float(params[2:])
            except ValueError:
                weight = 0.0
        if weight > 0:
            ranked.append((-weight, position, code))
    return [code for _, _, code in sorted(ranked)]


def get_locale(accept_language: Optional[str] = None) -> str:
    """Best supported locale for an Accept-Language header"""
    for code in _ranked_languages(accept_language or ""):
        if code in config.i18n.supported_locales:
            return code
    return config.i18n.default_locale


def safe_url_for_log(url: str) -> str:
    """URL without fragment; the query string only survives at DEBUG"""
    try:
        parts = urlsplit(url or "")
    except ValueError:
        return "invalid_url"
    query = parts.query if config.logging.level == "DEBUG" else ""
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, ""))
