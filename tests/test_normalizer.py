"""
tests/test_normalizer.py
────────────────────────
Tests for report field normalization.
"""

import pytest

from src.data.models import ReportType
from src.data.normalizer import (
    QuantityKind,
    coerce,
    extract_deaths,
    normalize_fields,
)


class TestSynonyms:
    @pytest.mark.parametrize("key", ["mortalityCount", "deathCount", "death_count", "mortality_count"])
    def test_every_death_synonym_is_accepted(self, key):
        fields = normalize_fields(ReportType.MORTALITY, {key: 7})
        assert fields.has("deaths")
        assert fields.get("deaths") == 7

    @pytest.mark.parametrize("key", ["feedAmount", "feedUsed", "quantity_used", "feed_consumed"])
    def test_every_feed_synonym_is_accepted(self, key):
        fields = normalize_fields(ReportType.FEED, {key: "12.5"})
        assert fields.get("feed_amount") == 12.5

    def test_first_non_empty_synonym_wins(self):
        fields = normalize_fields(ReportType.MORTALITY, {"mortalityCount": "", "deathCount": 4})
        assert fields.get("deaths") == 4

    def test_unknown_keys_are_ignored(self):
        fields = normalize_fields(ReportType.FEED, {"feedAmount": 3, "notes": "ok"})
        assert "notes" not in fields.values


class TestDefaults:
    def test_missing_quantity_defaults_to_zero(self):
        fields = normalize_fields(ReportType.DAILY, {})
        assert fields.get("deaths") == 0
        assert fields.get("feed_amount") == 0.0
        assert not fields.has("deaths")

    def test_unparseable_number_is_not_present(self):
        fields = normalize_fields(ReportType.MORTALITY, {"mortalityCount": "lots"})
        assert fields.get("deaths") == 0
        assert fields.missing_required() == ["deaths"]

    def test_non_finite_amount_is_not_present(self):
        fields = normalize_fields(ReportType.FEED, {"feedAmount": "nan"})
        assert not fields.has("feed_amount")

    def test_none_fields_never_raise(self):
        fields = normalize_fields(ReportType.HEALTH, None)
        assert fields.present == frozenset()

    def test_required_fields_per_kind(self):
        assert normalize_fields(ReportType.VACCINATION, {}).missing_required() == ["vaccinations"]
        assert normalize_fields(ReportType.DAILY, {}).missing_required() == []
        assert normalize_fields(ReportType.EMERGENCY, {}).missing_required() == []


class TestCoerce:
    def test_count_truncates(self):
        assert coerce("12.9", QuantityKind.COUNT) == (12, True)

    @pytest.mark.parametrize("raw", ["no", "false", "None", "0", "", "n"])
    def test_false_flag_words(self, raw):
        assert coerce(raw, QuantityKind.FLAG) == (False, True)

    @pytest.mark.parametrize("raw", ["yes", "true", "Newcastle", True])
    def test_true_flags(self, raw):
        assert coerce(raw, QuantityKind.FLAG)[0] is True

    def test_string_becomes_single_item_list(self):
        assert coerce("coughing", QuantityKind.LIST) == (["coughing"], True)

    def test_list_drops_blank_items(self):
        assert coerce(["a", " ", "b"], QuantityKind.LIST) == (["a", "b"], True)

    def test_label_is_stripped(self):
        assert coerce("  Good ", QuantityKind.LABEL) == ("Good", True)


class TestExtractDeaths:
    def test_reads_any_synonym(self):
        assert extract_deaths({"death_count": "25"}) == 25

    def test_absent_is_zero(self):
        assert extract_deaths({"temperature": 31}) == 0
        assert extract_deaths(None) == 0
