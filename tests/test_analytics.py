import math
from datetime import date

import pytest

from budgetsync.analytics import (
    HIGH,
    LOW,
    MEDIUM,
    MSG_APPROACHING,
    MSG_ON_PACE_TO_EXCEED,
    MSG_ON_TRACK,
    MSG_OVER_BUDGET,
    MSG_SURPLUS,
    calculate_budget_analysis,
    calculate_category_analysis,
    calculate_spending_pattern,
    category_daily_allowance,
    generate_budget_recommendations,
)
from budgetsync.domain import WEEKDAYS, WEEKENDS, Category, Expense

APR_10 = date(2024, 4, 10)
APR_20 = date(2024, 4, 20)


def make_cat(budget, spent, id="c1", day_type="all"):
    return Category(id=id, name="Food", budget=budget, spent=spent, icon="🍙", day_calculation_type=day_type)


def make_exp(id, cat_id, amount, day):
    return Expense(id=id, category_id=cat_id, amount=amount, description="", date=day)


def test_budget_analysis_ten_days_into_thirty_day_month():
    res = calculate_budget_analysis([make_cat(10000, 4000)], [], APR_10)

    assert res.total_budget == 10000
    assert res.total_spent == 4000
    assert res.total_remaining == 6000
    assert res.burn_rate == pytest.approx(40.0)
    assert res.budget_efficiency == pytest.approx(120.0)
    assert res.days_remaining == 21
    assert res.daily_average == pytest.approx(6000 / 21)
    assert res.savings_rate == pytest.approx(60.0)
    # 400/day leaves 15 days of budget
    assert res.projected_end_date == "2024-04-25"


def test_budget_analysis_with_no_categories_is_all_zero():
    res = calculate_budget_analysis([], [], APR_10)

    assert res.total_budget == 0
    assert res.burn_rate == 0.0
    assert res.savings_rate == 0.0
    assert res.budget_efficiency == 0.0
    assert res.projected_end_date is None


def test_budget_analysis_no_projection_once_exhausted():
    res = calculate_budget_analysis([make_cat(1000, 1500)], [], APR_10)
    assert res.total_remaining == -500
    assert res.projected_end_date is None


def test_category_over_budget_is_high_risk():
    res = calculate_category_analysis(make_cat(2000, 2100), [], APR_10)
    assert res.efficiency == pytest.approx(105.0)
    assert res.risk_level == HIGH
    assert res.recommendation == MSG_OVER_BUDGET


def test_category_approaching_budget_is_medium():
    res = calculate_category_analysis(make_cat(10000, 8500), [], APR_10)
    assert res.risk_level == MEDIUM
    assert res.recommendation == MSG_APPROACHING


def test_category_on_pace_to_exceed():
    res = calculate_category_analysis(make_cat(10000, 5000), [], APR_10)
    # 500/day over 21 remaining days
    assert res.projected_total == pytest.approx(15500)
    assert res.risk_level == MEDIUM
    assert res.recommendation == MSG_ON_PACE_TO_EXCEED
    assert not res.is_on_track


def test_category_surplus_late_in_month():
    res = calculate_category_analysis(make_cat(10000, 1000), [], APR_20)
    assert res.risk_level == LOW
    assert res.recommendation == MSG_SURPLUS


def test_category_on_track():
    res = calculate_category_analysis(make_cat(10000, 2000), [], APR_10)
    assert res.risk_level == LOW
    assert res.recommendation == MSG_ON_TRACK
    assert res.is_on_track


def test_category_days_follow_day_type():
    res = calculate_category_analysis(make_cat(15000, 0, day_type=WEEKDAYS), [], APR_10)
    assert res.days_remaining == 15
    assert res.daily_average == pytest.approx(1000.0)


def test_category_zero_days_remaining_has_zero_daily_average():
    # 2024-04-30 is a Tuesday, so no weekend days are left
    cat = make_cat(10000, 2000, day_type=WEEKENDS)
    res = calculate_category_analysis(cat, [], date(2024, 4, 30))

    assert res.days_remaining == 0
    assert res.daily_average == 0.0
    assert not math.isnan(res.projected_total)
    assert category_daily_allowance(cat, date(2024, 4, 30)) == 0


def test_category_zero_budget():
    res = calculate_category_analysis(make_cat(0, 0), [], APR_10)
    assert res.efficiency == 0.0


def test_category_expense_count_only_this_month_and_category():
    expenses = [
        make_exp("e1", "c1", 100, "2024-04-01"),
        make_exp("e2", "c1", 100, "2024-04-05"),
        make_exp("e3", "c2", 100, "2024-04-05"),
        make_exp("e4", "c1", 100, "2024-03-31"),
    ]
    res = calculate_category_analysis(make_cat(1000, 200), expenses, APR_10)
    assert res.expense_count == 2


def test_daily_allowance_rounds():
    cat = make_cat(10000, 0)
    assert category_daily_allowance(cat, APR_10) == round(10000 / 21)
    assert category_daily_allowance(make_cat(1000, 1200), APR_10) == 0


def test_spending_pattern():
    expenses = [
        make_exp("e1", "c1", 1000, "2024-04-01"),
        make_exp("e2", "c2", 3000, "2024-04-01"),
        make_exp("e3", "c1", 2000, "2024-04-03"),
        make_exp("e4", "c1", 9999, "2024-05-01"),
    ]
    res = calculate_spending_pattern(expenses, APR_10)

    assert res.average_daily == pytest.approx(3000.0)
    assert res.average_weekly == pytest.approx(21000.0)
    assert res.peak_spending_day == "2024-04-01"
    # c1 and c2 tie at 3000; the first seen wins
    assert res.most_expensive_category == "c1"
    assert res.spending_trend == "increasing"
    assert res.seasonality == pytest.approx(100 / 3)


def test_spending_pattern_decreasing_trend():
    expenses = [
        make_exp("e1", "c1", 3000, "2024-04-01"),
        make_exp("e2", "c1", 1000, "2024-04-02"),
        make_exp("e3", "c1", 1000, "2024-04-03"),
    ]
    assert calculate_spending_pattern(expenses, APR_10).spending_trend == "decreasing"


def test_spending_pattern_few_expenses_is_stable():
    expenses = [make_exp("e1", "c1", 100, "2024-04-01"), make_exp("e2", "c1", 900, "2024-04-02")]
    assert calculate_spending_pattern(expenses, APR_10).spending_trend == "stable"


def test_spending_pattern_empty_month():
    res = calculate_spending_pattern([make_exp("e1", "c1", 100, "2024-03-01")], APR_10)
    assert res.average_daily == 0.0
    assert res.peak_spending_day == ""
    assert res.most_expensive_category == ""
    assert res.spending_trend == "stable"


def test_recommendation_increase_when_over_budget():
    cat = make_cat(2000, 2100)
    recs = generate_budget_recommendations([cat], [], APR_10)
    projected = calculate_category_analysis(cat, [], APR_10).projected_total

    assert len(recs) == 1
    assert recs[0].type == "increase"
    assert recs[0].current_amount == 2000
    assert recs[0].suggested_amount == math.ceil(projected * 1.1)
    assert recs[0].impact == pytest.approx(projected - 2000)


def test_recommendation_decrease_when_underused():
    cat = make_cat(10000, 1000)
    recs = generate_budget_recommendations([cat], [], APR_20)
    projected = calculate_category_analysis(cat, [], APR_20).projected_total

    assert [r.type for r in recs] == ["decrease"]
    assert recs[0].suggested_amount == math.ceil(projected * 1.2)
    assert recs[0].impact == 10000 - recs[0].suggested_amount


def test_recommendation_optimize_for_medium_risk():
    recs = generate_budget_recommendations([make_cat(10000, 5000)], [], APR_10)
    assert [r.type for r in recs] == ["optimize"]
    assert recs[0].suggested_amount == math.ceil(15500 * 1.05)


def test_no_recommendation_when_on_track():
    assert generate_budget_recommendations([make_cat(10000, 3000)], [], APR_10) == []
