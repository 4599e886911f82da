from datetime import date

import pytest

from budgetsync.domain import ALL_DAYS, WEEKDAYS, WEEKENDS, Expense
from budgetsync.periods import (
    by_category,
    days_in_month,
    days_remaining,
    in_month_of,
    is_valid_month_key,
    month_key,
    parse_date,
    remaining_days_by_type,
    shift_month,
)


def test_days_in_month_handles_leap_years():
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 4) == 30


def test_days_remaining_counts_today():
    assert days_remaining(date(2024, 4, 10)) == 21
    assert days_remaining(date(2024, 4, 30)) == 1


def test_remaining_days_by_type_april_2024():
    # 2024-04-10 is a Wednesday
    ref = date(2024, 4, 10)
    assert remaining_days_by_type(ref, WEEKDAYS) == 15
    assert remaining_days_by_type(ref, WEEKENDS) == 6
    assert remaining_days_by_type(ref, ALL_DAYS) == 21


@pytest.mark.parametrize("ref", [
    date(2024, 1, 1), date(2024, 2, 29), date(2024, 4, 13),
    date(2024, 6, 30), date(2025, 3, 15), date(2025, 12, 31),
])
def test_weekdays_plus_weekends_is_all(ref):
    assert (
        remaining_days_by_type(ref, WEEKDAYS) + remaining_days_by_type(ref, WEEKENDS)
        == remaining_days_by_type(ref, ALL_DAYS)
    )


def test_last_day_excluded_by_type_gives_zero():
    # 2024-04-30 is a Tuesday
    assert remaining_days_by_type(date(2024, 4, 30), WEEKENDS) == 0
    assert remaining_days_by_type(date(2024, 4, 30), WEEKDAYS) == 1


def test_unknown_day_type_counts_nothing():
    assert remaining_days_by_type(date(2024, 4, 10), "holidays") == 0


def test_month_key_validation():
    assert month_key(date(2024, 3, 9)) == "2024-03"
    assert is_valid_month_key("2024-01")
    assert not is_valid_month_key("2024-13")
    assert not is_valid_month_key("2024-00")
    assert not is_valid_month_key("2024-1")
    assert not is_valid_month_key("garbage-key")
    assert not is_valid_month_key(None)
    assert not is_valid_month_key("2024-01\n")
    assert not is_valid_month_key("２０２４-01")


def test_shift_month_crosses_years():
    assert shift_month("2024-01", -1) == "2023-12"
    assert shift_month("2024-12", 1) == "2025-01"
    assert shift_month("2024-05", 0) == "2024-05"


def test_parse_date_rejects_garbage():
    assert parse_date("2024-04-10") == date(2024, 4, 10)
    assert parse_date("10/04/2024") is None
    assert parse_date(None) is None
    assert parse_date("20240410") is None
    assert parse_date("2024-04-10\n") is None


def test_filters():
    e1 = Expense("e1", "c1", 100, "", "2024-04-02")
    e2 = Expense("e2", "c2", 100, "", "2024-05-02")
    e3 = Expense("e3", "c1", 100, "", "not a date")
    expenses = [e1, e2, e3]

    assert list(filter(in_month_of(date(2024, 4, 20)), expenses)) == [e1]
    assert list(filter(by_category("c1"), expenses)) == [e1, e3]
