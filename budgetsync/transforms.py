from dataclasses import replace
from typing import Any, Mapping, Tuple

from budgetsync.domain import DAY_CALCULATION_TYPES, Category, Expense, MonthlyData
from budgetsync.errors import CategoryNotFound, ExpenseNotFound
from budgetsync.functional import find_category, find_expense
from budgetsync.periods import parse_date

# Fields a caller may change; ids, category links and spent stay store-owned.
EXPENSE_UPDATABLE = frozenset({"amount", "description", "date"})
CATEGORY_UPDATABLE = frozenset({"name", "budget", "icon", "day_calculation_type"})


def _adjust_spent(
    cats: Tuple[Category, ...], cat_id: str, delta: int
) -> Tuple[Category, ...]:
    return tuple(
        replace(c, spent=c.spent + delta) if c.id == cat_id else c
        for c in cats
    )


def check_amount(value: Any, field: str = "amount") -> int:
    # bool is an int subclass but never a valid amount
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"{field} must be a non-negative integer, got {value!r}")
    return value


def check_day_type(value: Any) -> str:
    if value not in DAY_CALCULATION_TYPES:
        raise ValueError(f"Unknown day calculation type {value!r}")
    return value


def check_date(value: Any) -> str:
    if parse_date(value) is None:
        raise ValueError(f"date must be YYYY-MM-DD, got {value!r}")
    return value


def check_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{field} must be a string, got {value!r}")
    return value


def _checked(updates: Mapping[str, Any], allowed: frozenset, kind: str) -> dict:
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"Cannot update {kind} field(s): {', '.join(sorted(unknown))}")
    changes = dict(updates)
    for money in ("amount", "budget"):
        if money in changes:
            check_amount(changes[money], money)
    if "day_calculation_type" in changes:
        check_day_type(changes["day_calculation_type"])
    if "date" in changes:
        check_date(changes["date"])
    for text in ("description", "name", "icon"):
        if text in changes:
            check_text(changes[text], text)
    return changes


def add_expense(month: MonthlyData, expense: Expense, key: str = "") -> MonthlyData:
    check_amount(expense.amount)
    check_date(expense.date)
    check_text(expense.description, "description")
    find_category(month.categories, expense.category_id).or_raise(CategoryNotFound(expense.category_id, key))
    return MonthlyData(
        categories=_adjust_spent(month.categories, expense.category_id, expense.amount),
        expenses=month.expenses + (expense,),
    )


def update_expense(
    month: MonthlyData, expense_id: str, updates: Mapping[str, Any], key: str = ""
) -> MonthlyData:
    old = find_expense(month.expenses, expense_id).or_raise(ExpenseNotFound(expense_id, key))
    changes = _checked(updates, EXPENSE_UPDATABLE, "expense")
    new = replace(old, **changes)

    cats = month.categories
    if "amount" in changes:
        cats = _adjust_spent(cats, old.category_id, new.amount - old.amount)

    return MonthlyData(
        categories=cats,
        expenses=tuple(new if e.id == expense_id else e for e in month.expenses),
    )


def delete_expense(month: MonthlyData, expense_id: str) -> MonthlyData:
    old = find_expense(month.expenses, expense_id).get_or_else(None)
    if old is None:
        return month
    return MonthlyData(
        categories=_adjust_spent(month.categories, old.category_id, -old.amount),
        expenses=tuple(e for e in month.expenses if e.id != expense_id),
    )


def add_category(month: MonthlyData, category: Category) -> MonthlyData:
    check_amount(category.budget, "budget")
    check_day_type(category.day_calculation_type)
    check_text(category.name, "name")
    check_text(category.icon, "icon")
    if find_category(month.categories, category.id).is_some():
        raise ValueError(f"Category with ID {category.id} already exists")
    # a fresh category owns no expenses yet
    return replace(month, categories=month.categories + (replace(category, spent=0),))


def update_category(
    month: MonthlyData, cat_id: str, updates: Mapping[str, Any], key: str = ""
) -> MonthlyData:
    find_category(month.categories, cat_id).or_raise(CategoryNotFound(cat_id, key))
    changes = _checked(updates, CATEGORY_UPDATABLE, "category")
    return replace(
        month,
        categories=tuple(replace(c, **changes) if c.id == cat_id else c for c in month.categories),
    )


def delete_category(month: MonthlyData, cat_id: str, key: str = "") -> MonthlyData:
    find_category(month.categories, cat_id).or_raise(CategoryNotFound(cat_id, key))
    return MonthlyData(
        categories=tuple(c for c in month.categories if c.id != cat_id),
        expenses=tuple(e for e in month.expenses if e.category_id != cat_id),
    )


def recompute_spent(month: MonthlyData) -> MonthlyData:
    """Rebuild every category's spent from the expenses of the bucket."""
    totals: dict = {}
    for e in month.expenses:
        totals[e.category_id] = totals.get(e.category_id, 0) + e.amount
    return replace(
        month,
        categories=tuple(replace(c, spent=totals.get(c.id, 0)) for c in month.categories),
    )


def spent_is_consistent(month: MonthlyData) -> bool:
    return recompute_spent(month) == month
