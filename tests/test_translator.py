"""
tests/test_translator.py
────────────────────────
Tests for the locale lookup.
"""

import json
from pathlib import Path

import pytest

from src.i18n import translator
from src.i18n.translator import get_lang, set_lang, t

LOCALES = Path(translator.__file__).parent / "locales"


def _flatten(node: dict, prefix: str = "") -> set[str]:
    keys = set()
    for k, v in node.items():
        path = f"{prefix}{k}"
        keys |= _flatten(v, path + ".") if isinstance(v, dict) else {path}
    return keys


class TestTranslate:
    def test_english(self):
        assert t("alerts.poor-health.title", "en") == "Poor Health Status"

    def test_swahili(self):
        assert t("alerts.poor-health.title", "sw") == "Hali Duni ya Afya"

    def test_placeholders_filled(self):
        text = t("alerts.high-mortality.message", "en", batch="Batch A", rate=12.345, limit=10)
        assert text.startswith("Batch A mortality is at 12.3%")

    def test_missing_key_returns_key(self):
        assert t("alerts.nope.title", "en") == "alerts.nope.title"

    def test_unknown_language_falls_back(self):
        assert t("alerts.poor-health.title", "fr") == "Poor Health Status"


class TestSetLang:
    def test_unsupported_language_falls_back_to_english(self):
        previous = get_lang()
        try:
            set_lang("xx")
            assert get_lang() == "en"
            set_lang("sw")
            assert t("alerts.poor-fcr.title") == "Ubadilishaji Duni wa Chakula"
        finally:
            set_lang(previous)


class TestLocaleFiles:
    @pytest.mark.parametrize("lang", ["sw"])
    def test_same_keys_as_english(self, lang):
        with open(LOCALES / "en.json", encoding="utf-8") as f:
            en = _flatten(json.load(f))
        with open(LOCALES / f"{lang}.json", encoding="utf-8") as f:
            other = _flatten(json.load(f))
        assert en == other
