"""
src/data/normalizer.py
──────────────────────
Field normalization for submitted reports.

Field staff submit reports from several forms and app versions, so the
same quantity arrives under different keys ("mortalityCount", "deathCount",
"death_count", ...). Every quantity has one canonical name and a fixed list
of accepted synonyms; each report kind declares which quantities it reads
and which of them are required.

normalize_fields() never raises: missing or unparseable values fall back to
the quantity's default and are simply not marked as present.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from src.data.models import ReportType


class QuantityKind(str, Enum):
    COUNT = "count"      # whole birds / doses
    AMOUNT = "amount"    # kg, °C, %, hours
    LABEL = "label"      # free text or select option
    FLAG = "flag"        # yes / no
    LIST = "list"        # list of observations


@dataclass(frozen=True)
class Quantity:
    name: str
    kind: QuantityKind
    synonyms: tuple[str, ...]


# ── Synonym table ─────────────────────────────────────────────────────────────

QUANTITIES: dict[str, Quantity] = {
    q.name: q
    for q in (
        Quantity("deaths", QuantityKind.COUNT,
                 ("mortalityCount", "deathCount", "death_count", "mortality_count")),
        Quantity("feed_amount", QuantityKind.AMOUNT,
                 ("feedAmount", "feedUsed", "quantity_used", "feed_consumed")),
        Quantity("vaccinations", QuantityKind.COUNT,
                 ("vaccinationCount", "vaccinations", "vaccination_count")),
        Quantity("average_weight", QuantityKind.AMOUNT,
                 ("averageWeight", "average_weight", "currentWeight", "current_weight")),
        Quantity("temperature", QuantityKind.AMOUNT, ("temperature", "temperature_avg")),
        Quantity("humidity", QuantityKind.AMOUNT, ("humidity", "humidity_avg")),
        Quantity("overall_health", QuantityKind.LABEL,
                 ("overallHealth", "overall_health", "healthStatus", "health_status")),
        Quantity("disease_detected", QuantityKind.FLAG, ("diseaseDetected", "disease_detected")),
        Quantity("medication_given", QuantityKind.FLAG, ("medicationGiven", "medication_given")),
        Quantity("health_issues", QuantityKind.LIST, ("healthIssues", "health_issues")),
        Quantity("vaccination_type", QuantityKind.LABEL,
                 ("vaccinationType", "vaccine_type", "vaccine_name")),
        Quantity("ventilation_status", QuantityKind.LABEL,
                 ("ventilationStatus", "ventilation_status")),
        Quantity("lighting_hours", QuantityKind.AMOUNT, ("lightingHours", "lighting_hours")),
    )
}


@dataclass(frozen=True)
class ReportSchema:
    reads: tuple[str, ...]
    required: tuple[str, ...] = ()


# ── Per-kind schema ───────────────────────────────────────────────────────────

REPORT_SCHEMAS: dict[ReportType, ReportSchema] = {
    ReportType.MORTALITY: ReportSchema(reads=("deaths",), required=("deaths",)),
    ReportType.DAILY: ReportSchema(
        reads=("deaths", "feed_amount", "average_weight", "overall_health",
               "temperature", "humidity"),
    ),
    ReportType.HEALTH: ReportSchema(
        reads=("temperature", "humidity", "disease_detected", "medication_given",
               "health_issues"),
    ),
    ReportType.FEED: ReportSchema(
        reads=("feed_amount", "average_weight"), required=("feed_amount",)),
    ReportType.VACCINATION: ReportSchema(
        reads=("vaccinations", "vaccination_type"), required=("vaccinations",)),
    ReportType.ENVIRONMENT: ReportSchema(
        reads=("temperature", "humidity", "ventilation_status", "lighting_hours")),
    ReportType.EQUIPMENT: ReportSchema(reads=()),
    ReportType.EMERGENCY: ReportSchema(reads=()),
}

_FALSE_WORDS = {"", "no", "false", "none", "0", "n"}


@dataclass(frozen=True)
class NormalizedFields:
    report_type: ReportType
    values: dict[str, Any] = field(default_factory=dict)
    present: frozenset[str] = frozenset()

    def has(self, name: str) -> bool:
        return name in self.present

    def get(self, name: str) -> Any:
        if name in self.values:
            return self.values[name]
        return _default(QUANTITIES[name].kind)

    def missing_required(self) -> list[str]:
        return [name for name in REPORT_SCHEMAS[self.report_type].required if name not in self.present]


# ── Coercion helpers ──────────────────────────────────────────────────────────

def _default(kind: QuantityKind) -> Any:
    if kind == QuantityKind.COUNT:
        return 0
    if kind == QuantityKind.AMOUNT:
        return 0.0
    if kind == QuantityKind.FLAG:
        return False
    if kind == QuantityKind.LIST:
        return []
    return ""


def _to_float(raw: Any) -> float | None:
    if isinstance(raw, bool):
        return float(raw)
    try:
        value = float(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def coerce(raw: Any, kind: QuantityKind) -> tuple[Any, bool]:
    """
    Coerce a raw field value to its quantity kind.

    Returns:
        (value, parsed) where parsed is False when the default was used.
    """
    if kind == QuantityKind.COUNT:
        value = _to_float(raw)
        return (int(value), True) if value is not None else (0, False)
    if kind == QuantityKind.AMOUNT:
        value = _to_float(raw)
        return (value, True) if value is not None else (0.0, False)
    if kind == QuantityKind.FLAG:
        if isinstance(raw, bool):
            return raw, True
        return str(raw).strip().lower() not in _FALSE_WORDS, True
    if kind == QuantityKind.LIST:
        if isinstance(raw, (list, tuple)):
            return [str(item) for item in raw if str(item).strip()], True
        text = str(raw).strip()
        return ([text] if text else []), True
    return str(raw).strip(), True


def _lookup(raw: Mapping[str, Any], quantity: Quantity) -> Any:
    """First synonym carrying a non-empty value, or None."""
    for key in quantity.synonyms:
        value = raw.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            continue
        return value
    return None


# ── Public API ────────────────────────────────────────────────────────────────

def normalize_fields(report_type: ReportType, raw: Mapping[str, Any] | None) -> NormalizedFields:
    """Map a raw field set onto the canonical quantities read by `report_type`."""
    raw = raw or {}
    values: dict[str, Any] = {}
    present: set[str] = set()

    for name in REPORT_SCHEMAS[report_type].reads:
        quantity = QUANTITIES[name]
        found = _lookup(raw, quantity)
        if found is None:
            values[name] = _default(quantity.kind)
            continue
        value, parsed = coerce(found, quantity.kind)
        values[name] = value
        if parsed:
            present.add(name)

    return NormalizedFields(report_type=report_type, values=values, present=frozenset(present))


def extract_deaths(raw: Mapping[str, Any] | None) -> int:
    """Death count carried by any report kind (0 when absent)."""
    value = _lookup(raw or {}, QUANTITIES["deaths"])
    if value is None:
        return 0
    return coerce(value, QuantityKind.COUNT)[0]
