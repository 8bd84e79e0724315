"""Marcus — Meta Insight Row Flattener.

Converts raw Graph API insight rows into flat ``NATIVE_ROW`` mappings.
Meta reports spend in account currency units, so no micro conversion applies.
"""

from typing import Any, Dict, List, Mapping, Optional

HOURLY_BREAKDOWN = "hourly_stats_aggregated_by_advertiser_time_zone"

# Meta reports the same purchase under several action types; the first one
# present wins so purchases are not double counted.
PURCHASE_ACTION_TYPES = (
    "omni_purchase",
    "purchase",
    "offsite_conversion.fb_pixel_purchase",
)


def _action_value(actions: Any) -> Optional[Any]:
    """Value of the highest-priority purchase action in an actions list."""
    if not isinstance(actions, list):
        return None
    by_type = {
        a.get("action_type"): a.get("value")
        for a in actions
        if isinstance(a, Mapping)
    }
    for action_type in PURCHASE_ACTION_TYPES:
        if action_type in by_type:
            return by_type[action_type]
    return None


def parse_hour(value: Any) -> Optional[int]:
    """``"13:00:00 - 13:59:59"`` → 13."""
    if not isinstance(value, str) or len(value) < 2:
        return None
    try:
        return int(value[:2])
    except ValueError:
        return None


def flatten_insight_row(row: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(row, Mapping):
        return None
    return {
        "date": row.get("date_start"),
        "hour": parse_hour(row.get(HOURLY_BREAKDOWN)),
        "impressions": row.get("impressions"),
        "clicks": row.get("clicks"),
        "spend": row.get("spend"),
        "conversions": _action_value(row.get("actions")),
        "revenue": _action_value(row.get("action_values")),
    }


def flatten_insights(rows: List[Any]) -> List[Dict[str, Any]]:
    flat = (flatten_insight_row(r) for r in rows or [])
    return [r for r in flat if r is not None]
