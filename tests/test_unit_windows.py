from datetime import date

import pytest
from pydantic import ValidationError

from marcus.core.errors import InvalidArgument
from marcus.models.metrics import DateWindow, resolve_window

TODAY = date(2024, 5, 15)


def test_previous_window_has_equal_length():
    window = DateWindow(start=date(2024, 5, 8), end=date(2024, 5, 14))
    prev = window.previous()
    assert prev.start == date(2024, 5, 1)
    assert prev.end == date(2024, 5, 7)
    assert prev.days == window.days == 7


def test_window_rejects_reversed_dates():
    with pytest.raises(ValidationError):
        DateWindow(start=date(2024, 5, 2), end=date(2024, 5, 1))


def test_window_rejects_unknown_timezone():
    with pytest.raises(ValidationError):
        DateWindow.single_day(TODAY, timezone="Mars/Olympus")


def test_presets():
    assert resolve_window(today=TODAY) == DateWindow.single_day(TODAY)
    yesterday = resolve_window("yesterday", today=TODAY)
    assert yesterday.start == yesterday.end == date(2024, 5, 14)
    last_7d = resolve_window("last_7d", today=TODAY)
    assert (last_7d.start, last_7d.end) == (date(2024, 5, 8), date(2024, 5, 14))
    this_month = resolve_window("this_month", today=TODAY)
    assert (this_month.start, this_month.end) == (date(2024, 5, 1), TODAY)


def test_explicit_dates_win_over_preset():
    window = resolve_window(
        "last_30d", start_date="2024-01-01", end_date="2024-01-31", today=TODAY
    )
    assert (window.start, window.end) == (date(2024, 1, 1), date(2024, 1, 31))


def test_resolve_window_keeps_timezone():
    window = resolve_window("today", timezone="Asia/Kolkata", today=TODAY)
    assert window.timezone == "Asia/Kolkata"


@pytest.mark.parametrize(
    "kwargs",
    [
        {"date_range": "last_century"},
        {"timezone": "Nowhere/Special"},
        {"start_date": "2024-02-10", "end_date": "2024-02-01"},
    ],
)
def test_resolve_window_invalid_arguments(kwargs):
    with pytest.raises(InvalidArgument):
        resolve_window(today=TODAY, **kwargs)
