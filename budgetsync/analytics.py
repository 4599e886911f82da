"""Budget analytics: burn rate, exhaustion projection, category risk, trends.

Every function here is pure. Date-relative figures are computed against an
explicit ``ref`` date, which defaults to today only when the caller omits it.
"""

import math
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from budgetsync.domain import Category, Expense
from budgetsync.functional import pipe
from budgetsync.periods import (
    add_days,
    by_category,
    days_in_month,
    days_remaining,
    in_month_of,
    remaining_days_by_type,
)

ON_TRACK_TOLERANCE = 1.1
TREND_THRESHOLD = 10.0

LOW, MEDIUM, HIGH = "low", "medium", "high"

MSG_OVER_BUDGET = "Over budget. Cut back on spending or revisit the budget."
MSG_APPROACHING = "More than 80% of the budget is used. Watch the remaining spending."
MSG_ON_PACE_TO_EXCEED = "At the current pace this category will exceed its budget."
MSG_SURPLUS = "There is room in this budget. Consider redistributing it to other categories."
MSG_ON_TRACK = "On track and within budget."

REASON_INCREASE = "Spending is over budget; increasing the budget is recommended."
REASON_DECREASE = "This budget has slack; consider moving some of it to other categories."
REASON_OPTIMIZE = "Optimising the spending pattern would make this budget more efficient."


@dataclass(frozen=True)
class BudgetAnalysis:
    total_budget: int
    total_spent: int
    total_remaining: int
    daily_average: float
    days_remaining: int
    burn_rate: float
    projected_end_date: Optional[str]
    savings_rate: float
    budget_efficiency: float


@dataclass(frozen=True)
class CategoryAnalysis:
    category_id: str
    name: str
    icon: str
    budget: int
    spent: int
    remaining: int
    efficiency: float
    daily_average: float
    days_remaining: int
    projected_total: float
    is_on_track: bool
    recommendation: str
    risk_level: str
    expense_count: int


@dataclass(frozen=True)
class SpendingPattern:
    average_daily: float
    average_weekly: float
    peak_spending_day: str
    most_expensive_category: str
    spending_trend: str
    seasonality: float


@dataclass(frozen=True)
class BudgetRecommendation:
    type: str
    category_id: str
    current_amount: int
    suggested_amount: int
    reason: str
    impact: float


def _today() -> date:
    return date.today()


def current_month_expenses(expenses: Iterable[Expense], ref: date) -> List[Expense]:
    return list(filter(in_month_of(ref), expenses))


def calculate_budget_analysis(
    categories: Sequence[Category],
    expenses: Sequence[Expense],
    ref: Optional[date] = None,
) -> BudgetAnalysis:
    ref = ref or _today()

    total_budget = sum(c.budget for c in categories)
    total_spent = sum(c.spent for c in categories)
    total_remaining = total_budget - total_spent

    month_days = days_in_month(ref.year, ref.month)
    days_passed = ref.day
    remaining_days = days_remaining(ref)

    daily_average = total_remaining / remaining_days if remaining_days > 0 else 0.0
    actual_daily = total_spent / days_passed if days_passed > 0 else 0.0
    burn_rate = total_spent / total_budget * 100 if total_budget > 0 else 0.0

    projected_end_date = None
    if actual_daily > 0 and total_remaining > 0:
        days_until_exhausted = total_remaining / actual_daily
        projected_end_date = add_days(ref, math.floor(days_until_exhausted)).isoformat()

    savings_rate = total_remaining / total_budget * 100 if total_budget > 0 else 0.0

    expected_by_now = days_passed / month_days * total_budget
    efficiency = total_spent / expected_by_now * 100 if expected_by_now > 0 else 0.0

    return BudgetAnalysis(
        total_budget=total_budget,
        total_spent=total_spent,
        total_remaining=total_remaining,
        daily_average=daily_average,
        days_remaining=remaining_days,
        burn_rate=burn_rate,
        projected_end_date=projected_end_date,
        savings_rate=savings_rate,
        budget_efficiency=efficiency,
    )


def _classify(efficiency: float, projected_total: float, budget: int, days_passed: int, month_days: int):
    # first match wins
    if efficiency > 100:
        return HIGH, MSG_OVER_BUDGET
    if efficiency > 80:
        return MEDIUM, MSG_APPROACHING
    if projected_total > budget:
        return MEDIUM, MSG_ON_PACE_TO_EXCEED
    if efficiency < 50 and days_passed > month_days * 0.5:
        return LOW, MSG_SURPLUS
    return LOW, MSG_ON_TRACK


def calculate_category_analysis(
    category: Category,
    expenses: Sequence[Expense],
    ref: Optional[date] = None,
) -> CategoryAnalysis:
    """Per-category mirror of :func:`calculate_budget_analysis`.

    Remaining days follow the category's day-calculation type, so a
    weekdays-only category projects over the remaining weekdays only.
    """
    ref = ref or _today()
    own = pipe(
        expenses,
        lambda es: filter(in_month_of(ref), es),
        lambda es: filter(by_category(category.id), es),
        list,
    )

    remaining = category.budget - category.spent
    efficiency = category.spent / category.budget * 100 if category.budget > 0 else 0.0

    month_days = days_in_month(ref.year, ref.month)
    days_passed = ref.day
    remaining_days = remaining_days_by_type(ref, category.day_calculation_type)
    daily_average = remaining / remaining_days if remaining_days > 0 else 0.0

    actual_daily = category.spent / days_passed if days_passed > 0 else 0.0
    projected_total = category.spent + actual_daily * remaining_days

    expected_by_now = days_passed / month_days * category.budget
    is_on_track = category.spent <= expected_by_now * ON_TRACK_TOLERANCE

    risk_level, recommendation = _classify(
        efficiency, projected_total, category.budget, days_passed, month_days
    )

    return CategoryAnalysis(
        category_id=category.id,
        name=category.name,
        icon=category.icon,
        budget=category.budget,
        spent=category.spent,
        remaining=remaining,
        efficiency=efficiency,
        daily_average=daily_average,
        days_remaining=remaining_days,
        projected_total=projected_total,
        is_on_track=is_on_track,
        recommendation=recommendation,
        risk_level=risk_level,
        expense_count=len(own),
    )


def category_daily_allowance(category: Category, ref: Optional[date] = None) -> int:
    """Rounded amount per remaining active day, 0 once over budget."""
    ref = ref or _today()
    remaining = category.budget - category.spent
    remaining_days = remaining_days_by_type(ref, category.day_calculation_type)
    if remaining > 0 and remaining_days > 0:
        return round(remaining / remaining_days)
    return 0


def _first_max(totals: pd.Series) -> str:
    # idxmax keeps the first of equal maxima; zero totals never win
    if totals.empty or totals.max() <= 0:
        return ""
    return str(totals.idxmax())


def _spending_trend(month_expenses: List[Expense]) -> str:
    if len(month_expenses) < 3:
        return "stable"
    ordered = sorted(month_expenses, key=lambda e: e.date)
    half = len(ordered) // 2
    first = [e.amount for e in ordered[:half]]
    second = [e.amount for e in ordered[half:]]
    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)
    if first_avg == 0:
        return "increasing" if second_avg > 0 else "stable"
    difference = (second_avg - first_avg) / first_avg * 100
    if difference > TREND_THRESHOLD:
        return "increasing"
    if difference < -TREND_THRESHOLD:
        return "decreasing"
    return "stable"


def calculate_spending_pattern(expenses: Sequence[Expense], ref: Optional[date] = None) -> SpendingPattern:
    ref = ref or _today()
    month_expenses = current_month_expenses(expenses, ref)
    if not month_expenses:
        return SpendingPattern(0.0, 0.0, "", "", "stable", 0.0)

    frame = pd.DataFrame(
        {
            "date": [e.date for e in month_expenses],
            "category_id": [e.category_id for e in month_expenses],
            "amount": [e.amount for e in month_expenses],
        }
    )
    daily_totals = frame.groupby("date", sort=False)["amount"].sum()
    category_totals = frame.groupby("category_id", sort=False)["amount"].sum()

    total_amount = float(frame["amount"].sum())
    average_daily = total_amount / len(daily_totals)

    values = daily_totals.to_numpy(dtype=float)
    mean = values.mean()
    seasonality = float(np.std(values) / mean * 100) if mean > 0 else 0.0

    return SpendingPattern(
        average_daily=average_daily,
        average_weekly=average_daily * 7,
        peak_spending_day=_first_max(daily_totals),
        most_expensive_category=_first_max(category_totals),
        spending_trend=_spending_trend(month_expenses),
        seasonality=seasonality,
    )


def generate_budget_recommendations(
    categories: Sequence[Category],
    expenses: Sequence[Expense],
    ref: Optional[date] = None,
) -> List[BudgetRecommendation]:
    ref = ref or _today()
    recommendations: List[BudgetRecommendation] = []

    for category in categories:
        analysis = calculate_category_analysis(category, expenses, ref)
        projected = analysis.projected_total

        if analysis.efficiency > 100:
            recommendations.append(BudgetRecommendation(
                type="increase",
                category_id=category.id,
                current_amount=category.budget,
                suggested_amount=math.ceil(projected * 1.1),
                reason=REASON_INCREASE,
                impact=projected - category.budget,
            ))
        elif analysis.efficiency < 50 and projected < category.budget * 0.7:
            suggested = math.ceil(projected * 1.2)
            recommendations.append(BudgetRecommendation(
                type="decrease",
                category_id=category.id,
                current_amount=category.budget,
                suggested_amount=suggested,
                reason=REASON_DECREASE,
                impact=category.budget - suggested,
            ))
        elif analysis.risk_level == MEDIUM:
            suggested = math.ceil(projected * 1.05)
            recommendations.append(BudgetRecommendation(
                type="optimize",
                category_id=category.id,
                current_amount=category.budget,
                suggested_amount=suggested,
                reason=REASON_OPTIMIZE,
                impact=abs(category.budget - suggested),
            ))

    return recommendations
