"""Marcus — Google Ads REST Row Flattener.

The REST API returns nested camelCase rows::

    {"segments": {"hour": 13},
     "metrics": {"impressions": "1000", "clicks": "50",
                 "costMicros": "25000000", "conversions": 5.0,
                 "conversionsValue": 500.0}}

(int64 values arrive as strings). These are flattened into the flat
snake_case keys of ``GOOGLE_ADS_ROW``; numeric coercion is left to the
normalizer.
"""

from typing import Any, Dict, List, Mapping, Optional


def _pick(source: Mapping[str, Any], *keys: str) -> Any:
    """First present key wins; camelCase (REST) before snake_case (gRPC/JSON)."""
    for key in keys:
        if key in source:
            return source[key]
    return None


def flatten_row(row: Any) -> Optional[Dict[str, Any]]:
    """Flatten one result row; returns None for rows that are not objects."""
    if not isinstance(row, Mapping):
        return None
    metrics = row.get("metrics")
    segments = row.get("segments")
    metrics = metrics if isinstance(metrics, Mapping) else {}
    segments = segments if isinstance(segments, Mapping) else {}
    return {
        "date": segments.get("date"),
        "hour": segments.get("hour"),
        "impressions": metrics.get("impressions"),
        "clicks": metrics.get("clicks"),
        "cost_micros": _pick(metrics, "costMicros", "cost_micros"),
        "conversions": metrics.get("conversions"),
        "conversions_value": _pick(metrics, "conversionsValue", "conversions_value"),
    }


def flatten_rows(rows: List[Any]) -> List[Dict[str, Any]]:
    flat = (flatten_row(r) for r in rows or [])
    return [r for r in flat if r is not None]


def extract_customer(row: Any) -> Dict[str, str]:
    """Pull identity fields out of a ``customer`` result row."""
    customer = row.get("customer") if isinstance(row, Mapping) else None
    if not isinstance(customer, Mapping):
        return {}
    return {
        "id": str(_pick(customer, "id") or ""),
        "name": str(_pick(customer, "descriptiveName", "descriptive_name") or ""),
        "currency": str(_pick(customer, "currencyCode", "currency_code") or ""),
        "timezone": str(_pick(customer, "timeZone", "time_zone") or ""),
    }
