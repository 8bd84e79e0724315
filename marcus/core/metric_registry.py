"""Marcus — Canonical Metric Registry.

Defines the canonical set of metrics every platform is normalized into and
how each one is classified. The comparator walks this registry, so a metric
added here is compared for every platform without further changes.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Tuple


class MetricType(str, Enum):
    """How a metric is categorised."""

    VOLUME = "volume"  # Raw counts: impressions, clicks
    COST = "cost"  # Monetary: spend
    REVENUE = "revenue"  # Income: conversion value
    CONVERSION = "conversion"  # Possibly fractional attributed conversions
    DERIVED = "derived"  # Computed from base fields: ctr, roas


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: MetricType
    unit: str = ""
    description: str = ""


# ─────────────────────────────────────────────
# BASE METRICS — Summed across raw rows
# ─────────────────────────────────────────────

BASE_METRICS: Dict[str, MetricDefinition] = {
    "impressions": MetricDefinition(
        "impressions", MetricType.VOLUME, "count", "Number of times ads were shown"
    ),
    "clicks": MetricDefinition("clicks", MetricType.VOLUME, "count", "Total clicks"),
    "spend": MetricDefinition(
        "spend", MetricType.COST, "currency", "Total amount spent"
    ),
    "conversions": MetricDefinition(
        "conversions",
        MetricType.CONVERSION,
        "count",
        "Attributed conversions (may be fractional)",
    ),
    "revenue": MetricDefinition(
        "revenue", MetricType.REVENUE, "currency", "Total conversion value"
    ),
}


# ─────────────────────────────────────────────
# DERIVED METRICS — Pure functions of the base metrics
# ─────────────────────────────────────────────

DERIVED_METRICS: Dict[str, MetricDefinition] = {
    "ctr": MetricDefinition("ctr", MetricType.DERIVED, "%", "Clicks / Impressions"),
    "avg_cpc": MetricDefinition(
        "avg_cpc", MetricType.DERIVED, "currency", "Spend / Clicks"
    ),
    "conversion_rate": MetricDefinition(
        "conversion_rate", MetricType.DERIVED, "%", "Conversions / Clicks"
    ),
    "roas": MetricDefinition("roas", MetricType.DERIVED, "ratio", "Revenue / Spend"),
    "cost_per_conversion": MetricDefinition(
        "cost_per_conversion", MetricType.DERIVED, "currency", "Spend / Conversions"
    ),
    "revenue_per_impression": MetricDefinition(
        "revenue_per_impression",
        MetricType.DERIVED,
        "currency",
        "Revenue / Impressions",
    ),
}


# ─────────────────────────────────────────────
# LOOKUPS
# ─────────────────────────────────────────────

ALL_METRICS = {**BASE_METRICS, **DERIVED_METRICS}

# Field order used for percent-change comparisons
COMPARABLE_FIELDS: Tuple[str, ...] = tuple(ALL_METRICS)

