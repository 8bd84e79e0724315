from datetime import date
from decimal import Decimal

from marcus.analyzer.alerts import evaluate_alerts
from marcus.models.metrics import CanonicalMetricSnapshot, DateWindow, Platform

WINDOW = DateWindow.single_day(date(2024, 5, 1))


def _snap(**totals):
    return CanonicalMetricSnapshot(platform=Platform.GOOGLE_ADS, window=WINDOW, **totals)


def test_weak_rates_on_real_volume_fire_every_alert():
    snap = _snap(
        impressions=5000,
        clicks=20,
        spend=Decimal("200"),
        conversions=Decimal("6"),
        revenue=Decimal("120"),
    )

    alerts = evaluate_alerts(snap)

    by_metric = {a.metric: a for a in alerts}
    assert list(by_metric) == ["ctr", "avg_cpc", "roas"]
    assert by_metric["ctr"].message.startswith("Low CTR detected (0.40%)")
    assert by_metric["ctr"].severity == "warning"
    assert by_metric["avg_cpc"].value == 10
    assert by_metric["avg_cpc"].message.startswith("High CPC detected (10.00)")
    assert by_metric["roas"].severity == "error"
    assert by_metric["roas"].threshold == Decimal("1.5")
    assert by_metric["roas"].message.startswith("Low ROAS detected (0.60)")


def test_low_volume_never_alerts():
    snap = _snap(
        impressions=1000,
        clicks=5,
        spend=Decimal("100"),
        conversions=Decimal("5"),
        revenue=Decimal("10"),
    )
    assert evaluate_alerts(snap) == []


def test_healthy_snapshot_has_no_alerts():
    snap = _snap(
        impressions=10000,
        clicks=300,
        spend=Decimal("150"),
        conversions=Decimal("30"),
        revenue=Decimal("900"),
    )
    assert evaluate_alerts(snap) == []


def test_zero_snapshot_has_no_alerts():
    assert evaluate_alerts(CanonicalMetricSnapshot.zero(Platform.META_ADS, WINDOW)) == []
