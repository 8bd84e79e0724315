"""Marcus — Comparator.

Compares a current snapshot against a baseline snapshot of the same platform
and produces a percent change for every registered metric.
"""

from decimal import Decimal
from typing import Dict, List, Union

from marcus.core.errors import InvalidArgument
from marcus.core.metric_registry import COMPARABLE_FIELDS
from marcus.models.metrics import CanonicalMetricSnapshot, ComparisonResult

Number = Union[int, float, Decimal]

# Returned when the baseline is zero and the current value is positive
NEW_GROWTH_SENTINEL = 100.0


def percent_change(current: Number, baseline: Number) -> float:
    """Percent change from ``baseline`` to ``current``.

    A zero baseline has no meaningful percentage: growth from nothing is
    reported as the ``NEW_GROWTH_SENTINEL`` (100) and anything else as 0.
    """
    cur = Decimal(str(current))
    base = Decimal(str(baseline))
    if base == 0:
        return NEW_GROWTH_SENTINEL if cur > 0 else 0.0
    return float((cur - base) / base * 100)


def compare(
    current: CanonicalMetricSnapshot, baseline: CanonicalMetricSnapshot
) -> ComparisonResult:
    """Percent change per metric between two snapshots of one platform."""
    if current.platform != baseline.platform:
        raise InvalidArgument(
            f"cannot compare {current.platform.value} against {baseline.platform.value}"
        )

    changes: Dict[str, float] = {}
    new_growth: List[str] = []
    for field in COMPARABLE_FIELDS:
        cur = getattr(current, field)
        base = getattr(baseline, field)
        changes[field] = percent_change(cur, base)
        if base == 0 and cur > 0:
            new_growth.append(field)

    return ComparisonResult(
        platform=current.platform,
        current=current,
        baseline=baseline,
        changes=changes,
        new_growth_fields=new_growth,
    )
