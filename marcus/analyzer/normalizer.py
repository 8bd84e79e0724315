"""Marcus — Metric Normalizer.

Sums platform result rows into one ``CanonicalMetricSnapshot``. Rows are
plain mappings whose keys are named by a ``RowSchema``; adapters flatten
their platform payloads into that shape first.
"""

from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping

from marcus.models.metrics import CanonicalMetricSnapshot, DateWindow, Platform, ZERO

MICROS_PER_UNIT = Decimal("1000000")


@dataclass(frozen=True)
class RowSchema:
    """Which row key feeds which canonical field."""

    impressions: str = "impressions"
    clicks: str = "clicks"
    cost: str = "cost_micros"
    conversions: str = "conversions"
    revenue: str = "conversions_value"
    cost_in_micros: bool = True


# Google Ads reports cost in micro-units of the account currency
GOOGLE_ADS_ROW = RowSchema()

# Platforms that report spend in native currency units (Meta, canonical rows)
NATIVE_ROW = RowSchema(cost="spend", revenue="revenue", cost_in_micros=False)


def _safe_decimal(value: Any) -> Decimal:
    """Convert a raw value to a non-negative Decimal, defaulting to zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not result.is_finite() or result < 0:
        return ZERO
    return result


def _safe_int(value: Any) -> int:
    return int(_safe_decimal(value))


def normalize(
    rows: Iterable[Any],
    window: DateWindow,
    platform: Platform,
    schema: RowSchema = GOOGLE_ADS_ROW,
) -> CanonicalMetricSnapshot:
    """Sum ``rows`` into a canonical snapshot.

    Missing, null or non-numeric fields count as zero, negative values are
    clamped to zero and rows that are not mappings are skipped. An empty
    input yields a zero snapshot. Inputs are never mutated.
    """
    impressions = 0
    clicks = 0
    cost = ZERO
    conversions = ZERO
    revenue = ZERO

    for row in rows or ():
        if not isinstance(row, Mapping):
            continue
        impressions += _safe_int(row.get(schema.impressions))
        clicks += _safe_int(row.get(schema.clicks))
        cost += _safe_decimal(row.get(schema.cost))
        conversions += _safe_decimal(row.get(schema.conversions))
        revenue += _safe_decimal(row.get(schema.revenue))

    spend = cost / MICROS_PER_UNIT if schema.cost_in_micros else cost

    return CanonicalMetricSnapshot(
        platform=platform,
        window=window,
        impressions=impressions,
        clicks=clicks,
        spend=spend,
        conversions=conversions,
        revenue=revenue,
    )


def group_by_hour(rows: Iterable[Any], hour_key: str = "hour") -> Dict[int, List[Mapping]]:
    """Bucket rows by integer hour, dropping rows without a valid 0–23 hour."""
    buckets: Dict[int, List[Mapping]] = defaultdict(list)
    for row in rows or ():
        if not isinstance(row, Mapping):
            continue
        try:
            hour = int(row.get(hour_key))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            continue
        if 0 <= hour <= 23:
            buckets[hour].append(row)
    return dict(buckets)
