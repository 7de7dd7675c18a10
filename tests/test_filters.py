from datetime import date

import pytest

from analytics.filters import (
    DEFAULT_TOP_N,
    MAX_TOP_N,
    DateRange,
    normalize_filters,
    previous_month_range,
    previous_period,
)


def test_no_dates_defaults_to_previous_month(reference_date):
    f = normalize_filters({}, reference_date=reference_date)
    assert f.date_range == DateRange(date(2025, 9, 1), date(2025, 9, 30))
    assert f.top_n == DEFAULT_TOP_N
    assert f.locations == []


def test_previous_month_wraps_year():
    assert previous_month_range(date(2026, 1, 10)) == DateRange(date(2025, 12, 1), date(2025, 12, 31))


def test_all_time_is_unbounded():
    f = normalize_filters({"all_time": True, "start_date": "2025-01-01"})
    assert f.date_range == DateRange()
    assert f.date_range.label() == "All time"
    assert previous_period(f.date_range) is None


def test_reversed_dates_are_swapped():
    f = normalize_filters({"start_date": "2025-10-31", "end_date": "2025-10-01"})
    assert f.date_range == DateRange(date(2025, 10, 1), date(2025, 10, 31))


def test_open_ended_range_keeps_single_bound():
    f = normalize_filters({"start_date": "2025-10-01"})
    assert f.date_range.start == date(2025, 10, 1)
    assert f.date_range.end is None
    assert not f.date_range.bounded


@pytest.mark.parametrize("raw,expected", [(0, 1), (-3, 1), (500, MAX_TOP_N), ("7", 7), ("abc", DEFAULT_TOP_N), (None, DEFAULT_TOP_N)])
def test_top_n_is_clamped(raw, expected):
    assert normalize_filters({"top_n": raw}).top_n == expected


def test_all_tokens_and_blanks_are_dropped():
    f = normalize_filters(
        {
            "locations": ["All Locations", " Kwality House ", ""],
            "categories": "All Categories",
            "payment_methods": ["UPI", None],
        }
    )
    assert f.locations == ["Kwality House"]
    assert f.categories == []
    assert f.payment_methods == ["UPI"]


def test_previous_period_has_equal_length():
    prev = previous_period(DateRange(date(2025, 10, 1), date(2025, 10, 31)))
    assert prev == DateRange(date(2025, 8, 31), date(2025, 9, 30))


def test_label():
    assert DateRange(date(2025, 10, 1), date(2025, 10, 31)).label() == "2025-10-01 – 2025-10-31"
