import calendar
import re
from datetime import date, timedelta
from typing import Optional

from budgetsync.domain import ALL_DAYS, WEEKDAYS, WEEKENDS, Expense

MONTH_KEY_RE = re.compile(r"[0-9]{4}-[0-9]{2}")
ISO_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

_DAY_TYPE_LABELS = {
    WEEKDAYS: "Weekdays only",
    WEEKENDS: "Weekends only",
    ALL_DAYS: "Every day",
}


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def days_remaining(ref: date) -> int:
    """Calendar days left in ref's month, today included."""
    return days_in_month(ref.year, ref.month) - ref.day + 1


def remaining_days_by_type(ref: date, day_type: str) -> int:
    """Count the days from ref (inclusive) to month end that match day_type."""
    last = days_in_month(ref.year, ref.month)
    count = 0
    for day in range(ref.day, last + 1):
        weekday = date(ref.year, ref.month, day).weekday()  # Mon=0 .. Sun=6
        if day_type == WEEKDAYS:
            if weekday < 5:
                count += 1
        elif day_type == WEEKENDS:
            if weekday >= 5:
                count += 1
        elif day_type == ALL_DAYS:
            count += 1
    return count


def day_type_label(day_type: str) -> str:
    return _DAY_TYPE_LABELS.get(day_type, day_type)


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def is_valid_month_key(key) -> bool:
    if not isinstance(key, str) or not MONTH_KEY_RE.fullmatch(key):
        return False
    return 1 <= int(key[5:7]) <= 12


def shift_month(key: str, months: int) -> str:
    year, month = int(key[:4]), int(key[5:7])
    index = year * 12 + (month - 1) + months
    return f"{index // 12:04d}-{index % 12 + 1:02d}"


def parse_date(value: str) -> Optional[date]:
    """Parse a strict YYYY-MM-DD string; anything else is None."""
    if not isinstance(value, str) or not ISO_DATE_RE.fullmatch(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def add_days(ref: date, days: int) -> date:
    return ref + timedelta(days=days)


def in_month_of(ref: date):
    def _filter(e: Expense) -> bool:
        d = parse_date(e.date)
        return d is not None and d.year == ref.year and d.month == ref.month

    return _filter


def by_category(cat_id: str):
    def _filter(e: Expense) -> bool:
        return e.category_id == cat_id

    return _filter
