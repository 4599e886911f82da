"""Month-over-month comparison of two buckets.

Categories are matched by name because each month bucket creates its own
category ids.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from budgetsync.domain import MonthlyData

DEFAULT_ICON = "📊"


@dataclass(frozen=True)
class MonthStats:
    total_budget: int
    total_spent: int
    remaining: int
    utilization_rate: float
    category_count: int
    expense_count: int
    avg_expense_amount: float


@dataclass(frozen=True)
class CategoryComparison:
    category_name: str
    icon: str
    current_spent: int
    compare_spent: int
    change: int
    change_percent: float
    trend: str


@dataclass(frozen=True)
class OverallComparison:
    current: MonthStats
    compare: MonthStats
    spent_change: int
    spent_change_percent: float
    budget_change: int
    budget_change_percent: float
    utilization_change: float
    expense_count_change: int


@dataclass(frozen=True)
class MonthComparison:
    overall: OverallComparison
    per_category: List[CategoryComparison]


def _change_percent(current: float, previous: float) -> float:
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def _trend(change: float) -> str:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "same"


def calculate_month_stats(data: MonthlyData) -> MonthStats:
    total_budget = sum(c.budget for c in data.categories)
    total_spent = sum(e.amount for e in data.expenses)
    expense_count = len(data.expenses)
    return MonthStats(
        total_budget=total_budget,
        total_spent=total_spent,
        remaining=total_budget - total_spent,
        utilization_rate=total_spent / total_budget * 100 if total_budget > 0 else 0.0,
        category_count=len(data.categories),
        expense_count=expense_count,
        avg_expense_amount=total_spent / expense_count if expense_count > 0 else 0.0,
    )


def compare_categories(current: MonthlyData, compare: MonthlyData) -> List[CategoryComparison]:
    names = list(dict.fromkeys([c.name for c in current.categories] + [c.name for c in compare.categories]))
    rows = []
    for name in names:
        cur = next((c for c in current.categories if c.name == name), None)
        old = next((c for c in compare.categories if c.name == name), None)
        current_spent = cur.spent if cur else 0
        compare_spent = old.spent if old else 0
        change = current_spent - compare_spent
        rows.append(CategoryComparison(
            category_name=name,
            icon=(cur and cur.icon) or (old and old.icon) or DEFAULT_ICON,
            current_spent=current_spent,
            compare_spent=compare_spent,
            change=change,
            change_percent=_change_percent(current_spent, compare_spent),
            trend=_trend(change),
        ))
    # largest swings first; sorted() keeps first-seen order among ties
    return sorted(rows, key=lambda r: abs(r.change), reverse=True)


def compare_months(current: MonthlyData, compare: MonthlyData) -> MonthComparison:
    cur, old = calculate_month_stats(current), calculate_month_stats(compare)
    overall = OverallComparison(
        current=cur,
        compare=old,
        spent_change=cur.total_spent - old.total_spent,
        spent_change_percent=_change_percent(cur.total_spent, old.total_spent),
        budget_change=cur.total_budget - old.total_budget,
        budget_change_percent=_change_percent(cur.total_budget, old.total_budget),
        utilization_change=cur.utilization_rate - old.utilization_rate,
        expense_count_change=cur.expense_count - old.expense_count,
    )
    return MonthComparison(overall=overall, per_category=compare_categories(current, compare))


def comparison_available(months: Iterable[str]) -> bool:
    return len(set(months)) >= 2


def default_compare_month(months: Iterable[str], current_month: str) -> Optional[str]:
    """Most recent month other than the current one, else the current month."""
    ordered = sorted(set(months), reverse=True)
    return next((m for m in ordered if m != current_month), current_month if ordered else None)
