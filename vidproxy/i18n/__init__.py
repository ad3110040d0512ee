import json
import logging
import os
from functools import partial
from typing import Any, Callable, Dict, Optional
from vidproxy.config.settings import config

logger = logging.getLogger(__name__)

LOCALES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "locales")
FALLBACK_LOCALE = "en"


def _lookup(catalog: Dict[str, Any], key: str) -> Optional[str]:
    node: Any = catalog
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


class I18n:
    """
    User-facing messages, one JSON catalog per locale.

    Keys are dotted paths ("error.invalid_url"). A key missing from the
    requested locale resolves through the default locale, then English,
    and finally comes back unchanged.
    """

    def __init__(self, locales_dir: str = LOCALES_DIR, default_locale: Optional[str] = None):
        self.default_locale = default_locale or config.i18n.default_locale
        self.catalogs: Dict[str, Dict[str, Any]] = self._load(locales_dir)

    @staticmethod
    def _load(locales_dir: str) -> Dict[str, Dict[str, Any]]:
        catalogs: Dict[str, Dict[str, Any]] = {}
        if not os.path.isdir(locales_dir):
            logger.warning(f"Locales directory not found at {locales_dir}")
            return catalogs

        for filename in sorted(os.listdir(locales_dir)):
            code, ext = os.path.splitext(filename)
            if ext != ".json":
                continue
            try:
                with open(os.path.join(locales_dir, filename), encoding="utf-8") as f:
                    catalogs[code] = json.load(f)
            except (OSError, ValueError) as e:
                logger.error(f"Could not load locale {code}: {e}")
        return catalogs

    def get(self, key: str, locale: Optional[str] = None, **kwargs) -> str:
        for code in (locale, self.default_locale, FALLBACK_LOCALE):
            message = _lookup(self.catalogs.get(code or "", {}), key)
            if message is None:
                continue
            try:
                return message.format(**kwargs)
            except (KeyError, IndexError):
                return message
        return key

    def for_locale(self, locale: Optional[str]) -> Callable[..., str]:
        """``get`` bound to one locale, used as ``_`` in route handlers"""
        return partial(self.get, locale=locale)


i18n = I18n()
