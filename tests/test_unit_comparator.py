from datetime import date
from decimal import Decimal

import pytest

from marcus.analyzer.comparator import compare, percent_change
from marcus.core.errors import InvalidArgument
from marcus.core.metric_registry import COMPARABLE_FIELDS
from marcus.models.metrics import CanonicalMetricSnapshot, DateWindow, Platform

CURRENT = DateWindow.single_day(date(2024, 5, 2))
BASELINE = CURRENT.previous()


def _snap(platform=Platform.GOOGLE_ADS, window=CURRENT, **totals):
    return CanonicalMetricSnapshot(platform=platform, window=window, **totals)


def test_percent_change_basics():
    assert percent_change(0, 0) == 0
    assert percent_change(7, 0) == 100
    assert percent_change(50, 100) == -50
    assert percent_change(150, 100) == 50
    assert percent_change(Decimal("0.1"), Decimal("0.1")) == 0


def test_compare_growth_from_nothing():
    result = compare(_snap(spend=Decimal("25")), _snap(window=BASELINE, spend=0))
    assert result.changes["spend"] == 100
    assert "spend" in result.new_growth_fields
    assert "impressions" not in result.new_growth_fields


def test_compare_zero_against_zero():
    result = compare(_snap(), _snap(window=BASELINE))
    assert result.changes["spend"] == 0
    assert result.new_growth_fields == []


def test_compare_covers_every_field():
    current = _snap(impressions=1000, clicks=50, spend=Decimal("25"))
    baseline = _snap(window=BASELINE, impressions=2000, clicks=50, spend=Decimal("50"))
    result = compare(current, baseline)
    assert set(result.changes) == set(COMPARABLE_FIELDS)
    assert result.changes["impressions"] == -50
    assert result.changes["clicks"] == 0
    assert result.changes["ctr"] == 100
    assert result.changes["avg_cpc"] == -50


def test_compare_rejects_mismatched_platforms():
    with pytest.raises(InvalidArgument):
        compare(_snap(), _snap(platform=Platform.META_ADS, window=BASELINE))
