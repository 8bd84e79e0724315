"""Marcus — Performance Alerts.

Flags a snapshot whose derived rates cross fixed thresholds:
- CTR below 1% over more than 1000 impressions
- CPC above 5 (account currency) over more than 10 clicks
- ROAS below 1.5 over more than 5 conversions
"""

from decimal import Decimal
from typing import List

from marcus.core.logging import get_logger
from marcus.models.metrics import Alert, CanonicalMetricSnapshot

logger = get_logger("analyzer.alerts")

# Thresholds
LOW_CTR_PCT = Decimal("1.0")
HIGH_CPC = Decimal("5.0")
LOW_ROAS = Decimal("1.5")

# Minimum volume before a rate is trusted
MIN_IMPRESSIONS = 1000
MIN_CLICKS = 10
MIN_CONVERSIONS = Decimal("5")


def evaluate_alerts(snapshot: CanonicalMetricSnapshot) -> List[Alert]:
    """Threshold alerts for one snapshot, in CTR, CPC, ROAS order."""
    alerts: List[Alert] = []

    if snapshot.impressions > MIN_IMPRESSIONS and snapshot.ctr < LOW_CTR_PCT:
        alerts.append(
            Alert(
                metric="ctr",
                value=snapshot.ctr,
                threshold=LOW_CTR_PCT,
                message=(
                    f"Low CTR detected ({snapshot.ctr:.2f}%). "
                    "Consider optimizing ad creatives."
                ),
            )
        )

    if snapshot.clicks > MIN_CLICKS and snapshot.avg_cpc > HIGH_CPC:
        alerts.append(
            Alert(
                metric="avg_cpc",
                value=snapshot.avg_cpc,
                threshold=HIGH_CPC,
                message=(
                    f"High CPC detected ({snapshot.avg_cpc:.2f}). "
                    "Review keyword bids and targeting."
                ),
            )
        )

    if snapshot.conversions > MIN_CONVERSIONS and snapshot.roas < LOW_ROAS:
        alerts.append(
            Alert(
                metric="roas",
                severity="error",
                value=snapshot.roas,
                threshold=LOW_ROAS,
                message=(
                    f"Low ROAS detected ({snapshot.roas:.2f}). "
                    "Immediate optimization recommended."
                ),
            )
        )

    if alerts:
        logger.info(
            f"{len(alerts)} performance alert(s): {', '.join(a.metric for a in alerts)}",
            extra={"platform": snapshot.platform.value},
        )
    return alerts
