"""Marcus — Google Ads GAQL Queries.

All queries are read-only. Metric queries are scoped to the customer resource
so the totals cover every campaign in the account.
"""

from datetime import date

from marcus.models.metrics import DateWindow

METRIC_COLUMNS = (
    "metrics.impressions",
    "metrics.clicks",
    "metrics.cost_micros",
    "metrics.conversions",
    "metrics.conversions_value",
)

IDENTITY_QUERY = (
    "SELECT customer.id, customer.descriptive_name, "
    "customer.currency_code, customer.time_zone "
    "FROM customer LIMIT 1"
)


def window_query(window: DateWindow) -> str:
    """Account totals for every day in ``window``."""
    return (
        f"SELECT {', '.join(METRIC_COLUMNS)} "
        "FROM customer "
        f"WHERE segments.date BETWEEN '{window.start.isoformat()}' "
        f"AND '{window.end.isoformat()}'"
    )


def hourly_query(day: date) -> str:
    """Account totals for ``day`` segmented by hour of day."""
    return (
        f"SELECT {', '.join(METRIC_COLUMNS)}, segments.hour "
        "FROM customer "
        f"WHERE segments.date = '{day.isoformat()}' "
        "ORDER BY segments.hour ASC"
    )

ACTIVE_CAMPAIGNS_QUERY = (
    "SELECT campaign.id FROM campaign WHERE campaign.status = 'ENABLED'"
)
