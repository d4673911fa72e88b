from datetime import date

import pytest

import analytics
from models import Budget, BudgetCategory, Category, Transaction, TransactionType


def txn(amount_cents: int, on: date, category: Category = Category.uncategorized):
    return Transaction(
        amount_cents=amount_cents,
        description="test",
        date=on,
        category=category,
        type=TransactionType.income if amount_cents > 0 else TransactionType.expense,
    )


def budget(category: BudgetCategory, amount_cents: int, spent_cents: int = 0):
    item = Budget(
        category=category,
        amount_cents=amount_cents,
        month="2024-01",
        year=2024,
        spent_cents=spent_cents,
    )
    item.recompute_derived()
    return item


def test_totals_and_category_breakdown_for_salary_and_groceries() -> None:
    transactions = [
        txn(100_000, date(2024, 1, 5), Category.salary),
        txn(-20_000, date(2024, 1, 10), Category.food_dining),
    ]

    totals = analytics.compute_totals(transactions)
    assert totals.income_cents == 100_000
    assert totals.expense_cents == 20_000
    assert totals.net_cents == 80_000
    assert totals.savings_rate == pytest.approx(80.0)
    assert totals.is_healthy

    shares = analytics.category_distribution(transactions, TransactionType.expense)
    assert [(s.category, s.total_cents, s.percentage) for s in shares] == [
        ("Food & Dining", 20_000, 100.0)
    ]


def test_empty_input_yields_zeroes() -> None:
    totals = analytics.compute_totals([])
    assert totals.net_cents == 0
    assert totals.average_income_cents == 0.0
    assert totals.average_expense_cents == 0.0
    assert totals.savings_rate == 0.0
    assert not totals.is_healthy

    assert analytics.category_analysis([]) == []
    assert analytics.monthly_breakdown([]) == []
    trend = analytics.spending_trend([])
    assert trend.percentage == 0.0
    assert trend.direction == "stable"

    comparison = analytics.compare_budgets([], [])
    assert comparison.rows == []
    assert comparison.total_variance_cents == 0


def test_category_analysis_sorts_by_spend_and_keeps_first_seen_order_on_ties() -> None:
    transactions = [
        txn(-5_000, date(2024, 1, 1), Category.travel),
        txn(-5_000, date(2024, 1, 2), Category.shopping),
        txn(-10_000, date(2024, 1, 3), Category.housing),
        txn(30_000, date(2024, 1, 4), Category.salary),
    ]

    stats = analytics.category_analysis(transactions)
    assert [s.name for s in stats] == ["Housing", "Travel", "Shopping", "Salary"]
    assert stats[0].percentage == 50.0
    assert stats[-1].income_cents == 30_000
    assert stats[-1].percentage == 0.0


def test_missing_category_is_grouped_as_uncategorized() -> None:
    item = txn(-1_000, date(2024, 1, 1))
    item.category = None

    stats = analytics.category_analysis([item])
    assert stats[0].name == "Uncategorized"


def test_monthly_breakdown_is_newest_first_with_trend() -> None:
    transactions = [
        txn(-10_000, date(2024, 1, 15)),
        txn(-15_000, date(2024, 3, 2)),
        txn(50_000, date(2024, 3, 1), Category.salary),
        txn(-5_000, date(2023, 12, 31)),
    ]

    months = analytics.monthly_breakdown(transactions)
    assert [m.key for m in months] == ["2024-03", "2024-01", "2023-12"]
    assert months[0].label == "March 2024"
    assert months[0].net_cents == 35_000
    assert months[0].count == 2

    trend = analytics.spending_trend(months)
    # (15000 - 5000) / 5000
    assert trend.percentage == 200.0
    assert trend.direction == "increasing"
    assert trend.months_analyzed == 3


def test_trend_is_zero_when_oldest_month_has_no_expenses() -> None:
    transactions = [
        txn(10_000, date(2024, 1, 15), Category.salary),
        txn(-2_000, date(2024, 2, 15)),
    ]

    trend = analytics.spending_trend(analytics.monthly_breakdown(transactions))
    assert trend.percentage == 0.0
    assert trend.direction == "stable"


def test_monthly_expenses_chart_always_has_twelve_entries() -> None:
    transactions = [
        txn(-1_000, date(2024, 2, 1)),
        txn(-3_000, date(2024, 2, 20)),
        txn(-9_000, date(2023, 2, 20)),
        txn(40_000, date(2024, 2, 1), Category.salary),
    ]

    months = analytics.monthly_expenses_for_year(transactions, 2024)
    assert len(months) == 12
    assert months[1].expense_cents == 4_000
    assert months[1].count == 2
    assert months[1].average_cents == 2_000
    assert months[0].average_cents == 0.0

    highest, lowest = analytics.highest_and_lowest(months)
    assert highest.month_number == 2
    assert lowest.month_number == 1


def test_income_distribution_percentages_sum_to_100() -> None:
    transactions = [
        txn(30_000, date(2024, 1, 1), Category.salary),
        txn(10_000, date(2024, 1, 2), Category.freelance),
        txn(-9_999, date(2024, 1, 3), Category.food_dining),
    ]

    shares = analytics.category_distribution(transactions, TransactionType.income)
    assert [s.category for s in shares] == ["Salary", "Freelance"]
    assert sum(s.percentage for s in shares) == 100.0


def test_trailing_month_totals_zero_fill_missing_months() -> None:
    months = [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
    transactions = [txn(-1_200, date(2024, 2, 9)), txn(-500, date(2023, 2, 9))]

    totals = analytics.trailing_month_totals(transactions, months)
    assert [t.short_label for t in totals] == ["Jan 2024", "Feb 2024", "Mar 2024"]
    assert [t.expense_cents for t in totals] == [0, 1_200, 0]


def test_comparison_flags_unbudgeted_spend() -> None:
    budgets = [budget(BudgetCategory.food_dining, 30_000)]
    expenses = [
        txn(-20_000, date(2024, 1, 10), Category.food_dining),
        txn(-4_000, date(2024, 1, 12), Category.entertainment),
    ]

    comparison = analytics.compare_budgets(budgets, expenses)
    food, fun = comparison.rows
    assert food.category == "Food & Dining"
    assert food.variance_cents == 10_000
    assert not food.is_over_budget

    assert fun.category == "Entertainment"
    assert fun.budgeted_cents == 0
    assert fun.variance_cents == -4_000
    assert fun.variance_percentage == -100.0
    assert fun.percentage_used == 100.0
    assert fun.is_over_budget

    assert comparison.total_budgeted_cents == 30_000
    assert comparison.total_actual_cents == 24_000
    assert comparison.over_budget_categories == ["Entertainment"]
    assert comparison.under_budget_categories == ["Food & Dining"]


def test_budget_totals_and_under_budget_threshold() -> None:
    budgets = [
        budget(BudgetCategory.food_dining, 10_000, spent_cents=9_000),
        budget(BudgetCategory.travel, 10_000, spent_cents=1_000),
        budget(BudgetCategory.shopping, 10_000, spent_cents=12_000),
    ]

    totals = analytics.budget_totals(budgets)
    assert totals.budget_cents == 30_000
    assert totals.spent_cents == 22_000
    assert totals.remaining_cents == 8_000
    assert not totals.is_over_budget
    assert analytics.under_budget_categories(budgets) == ["Travel"]


def test_budget_messages_follow_thresholds() -> None:
    assert analytics.budget_status_message(101, 100) == "You're over budget this month!"
    assert (
        analytics.budget_status_message(81, 100)
        == "You're approaching your budget limit."
    )
    assert analytics.budget_status_message(80, 100) == "Great job staying within budget!"

    assert (
        analytics.total_budget_message(-1, 100)
        == "You're over your total budget this month!"
    )
    assert (
        analytics.total_budget_message(9, 100)
        == "You're close to your total budget limit."
    )
    assert (
        analytics.total_budget_message(10, 100)
        == "Great job staying within your total budget!"
    )


def test_spending_tips() -> None:
    totals = analytics.Totals(
        income_cents=100_000, expense_cents=90_000, income_count=1, expense_count=3
    )
    top = analytics.CategoryShare(
        category="Housing", total_cents=60_000, count=1, percentage=66.666
    )

    tips = analytics.spending_tips(totals, top)
    assert tips == [
        "Consider increasing your savings rate to at least 20%",
        "Your expenses are high relative to income - review spending",
        "Housing accounts for 66.7% of expenses - consider reducing",
        "Great job maintaining positive cash flow!",
    ]
