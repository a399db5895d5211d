"""
src/i18n/translator.py
───────────────────────
Simple translation engine using JSON locale files.

Usage:
    from src.i18n.translator import t, set_lang

    t("alerts.poor-health.title")                  # → "Poor Health Status"
    t("alerts.poor-health.title", "sw")            # → "Hali Duni ya Afya"
    t("alerts.high-mortality.message", batch="B1", rate=12.5)
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from config.settings import settings

_LOCALES_DIR = Path(__file__).parent / "locales"
SUPPORTED_LANGS = ("en", "sw")
_FALLBACK_LANG = "en"
_current_lang: str = settings.DEFAULT_LANG if settings.DEFAULT_LANG in SUPPORTED_LANGS else _FALLBACK_LANG


@lru_cache(maxsize=4)
def _load_locale(lang: str) -> dict:
    path = _LOCALES_DIR / f"{lang}.json"
    if not path.exists():
        path = _LOCALES_DIR / f"{_FALLBACK_LANG}.json"
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _resolve(locale: dict, key: str) -> str | None:
    node: dict | str = locale
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node if isinstance(node, str) else None


def set_lang(lang: str) -> None:
    """Set the active language (module-level default)."""
    global _current_lang
    _current_lang = lang if lang in SUPPORTED_LANGS else _FALLBACK_LANG


def t(key: str, lang: str | None = None, **params) -> str:
    """
    Translate a dot-separated key and fill its {placeholders}.

    Args:
        key: Dot-separated path, e.g. "alerts.poor-fcr.title"
        lang: Language override; uses module default if None
        **params: Values substituted with str.format

    Returns:
        Translated string; the English text when the key is missing in
        `lang`, or the key itself if not found at all.
    """
    text = _resolve(_load_locale(lang or _current_lang), key)
    if text is None:
        text = _resolve(_load_locale(_FALLBACK_LANG), key)
    if text is None:
        return key
    return text.format(**params) if params else text


def get_lang() -> str:
    return _current_lang
