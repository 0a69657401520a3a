from datetime import date, datetime

import pytest

from vendorpay.services.date_engine import DayWindow, today_window, week_window, window_from


def test_today_window_is_half_open() -> None:
    window = today_window(date(2026, 3, 10))
    assert window == DayWindow(start=date(2026, 3, 10), end=date(2026, 3, 11))
    assert window.contains(date(2026, 3, 10))
    assert window.contains(datetime(2026, 3, 10, 23, 59, 59))
    assert not window.contains(date(2026, 3, 11))
    assert not window.contains(datetime(2026, 3, 11, 0, 0))
    assert not window.contains(None)


def test_week_window_spans_seven_days_from_midnight() -> None:
    window = week_window(date(2026, 12, 28))
    assert window.start_at == datetime(2026, 12, 28, 0, 0)
    assert window.end_at == datetime(2027, 1, 4, 0, 0)
    assert window.contains(date(2027, 1, 3))
    assert not window.contains(date(2027, 1, 4))
    assert not window.contains(date(2026, 12, 27))


def test_window_requires_positive_span() -> None:
    with pytest.raises(ValueError):
        window_from(date(2026, 1, 1), 0)
