"""In-memory aggregation over transaction and budget snapshots.

Every function here is pure: it reads the records it is given and returns
plain dataclasses holding integer cents and full-precision floats. Rounding
for display happens in the report layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Iterable, Optional, Sequence

from models import Budget, Category, Transaction, TransactionType
from periods import long_month_label, month_key, short_month_label

RECENT_MONTHS = 6
BUDGET_WARNING_RATIO = 0.8
TOTAL_BUDGET_CLOSE_RATIO = 0.1
HEALTHY_SAVINGS_RATE = 20.0
HIGH_EXPENSE_RATIO = 0.8
DOMINANT_CATEGORY_PERCENT = 30.0
UNBUDGETED_VARIANCE_PERCENTAGE = -100.0
UNBUDGETED_PERCENTAGE_USED = 100.0


def _ratio_percent(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def _label(value) -> str:
    if not value:
        return Category.uncategorized.value
    return getattr(value, "value", value)


def _category_name(txn: Transaction) -> str:
    return _label(txn.category)


@dataclass(frozen=True)
class Totals:
    income_cents: int
    expense_cents: int
    income_count: int
    expense_count: int

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents

    @property
    def average_income_cents(self) -> float:
        return self.income_cents / self.income_count if self.income_count else 0.0

    @property
    def average_expense_cents(self) -> float:
        return self.expense_cents / self.expense_count if self.expense_count else 0.0

    @property
    def savings_rate(self) -> float:
        return _ratio_percent(self.net_cents, self.income_cents)

    @property
    def is_healthy(self) -> bool:
        return self.net_cents > 0 and self.savings_rate > HEALTHY_SAVINGS_RATE


def compute_totals(transactions: Iterable[Transaction]) -> Totals:
    income = 0
    expenses = 0
    income_count = 0
    expense_count = 0
    for txn in transactions:
        if txn.amount_cents > 0:
            income += txn.amount_cents
            income_count += 1
        elif txn.amount_cents < 0:
            expenses += txn.amount_cents
            expense_count += 1
    return Totals(
        income_cents=income,
        expense_cents=abs(expenses),
        income_count=income_count,
        expense_count=expense_count,
    )


@dataclass
class CategoryStats:
    name: str
    count: int = 0
    total_cents: int = 0
    income_cents: int = 0
    expense_cents: int = 0
    percentage: float = 0.0


def category_analysis(transactions: Iterable[Transaction]) -> list[CategoryStats]:
    """Per-category counts and sub-totals, largest spend first.

    ``percentage`` is the category's share of all expenses. Ties keep the
    order in which categories were first seen.
    """
    groups: dict[str, CategoryStats] = {}
    for txn in transactions:
        name = _category_name(txn)
        stats = groups.get(name)
        if stats is None:
            stats = groups[name] = CategoryStats(name=name)
        stats.count += 1
        stats.total_cents += txn.amount_cents
        if txn.amount_cents > 0:
            stats.income_cents += txn.amount_cents
        else:
            stats.expense_cents += abs(txn.amount_cents)

    total_spent = sum(stats.expense_cents for stats in groups.values())
    for stats in groups.values():
        stats.percentage = _ratio_percent(stats.expense_cents, total_spent)
    return sorted(groups.values(), key=lambda s: s.expense_cents, reverse=True)


@dataclass
class MonthStats:
    key: str
    year: int
    month: int
    income_cents: int = 0
    expense_cents: int = 0
    count: int = 0

    @property
    def net_cents(self) -> int:
        return self.income_cents - self.expense_cents

    @property
    def label(self) -> str:
        return long_month_label(self.year, self.month)

    @property
    def short_label(self) -> str:
        return short_month_label(self.year, self.month)

    def add(self, txn: Transaction) -> None:
        self.count += 1
        if txn.amount_cents > 0:
            self.income_cents += txn.amount_cents
        else:
            self.expense_cents += abs(txn.amount_cents)


def monthly_breakdown(transactions: Iterable[Transaction]) -> list[MonthStats]:
    """Group by calendar month, newest month first."""
    months: dict[str, MonthStats] = {}
    for txn in transactions:
        key = month_key(txn.date)
        stats = months.get(key)
        if stats is None:
            stats = months[key] = MonthStats(
                key=key, year=txn.date.year, month=txn.date.month
            )
        stats.add(txn)
    return sorted(months.values(), key=lambda m: m.key, reverse=True)


@dataclass(frozen=True)
class Trend:
    percentage: float
    months_analyzed: int

    @property
    def direction(self) -> str:
        if self.percentage > 0:
            return "increasing"
        if self.percentage < 0:
            return "decreasing"
        return "stable"


def spending_trend(
    months: Sequence[MonthStats], window: int = RECENT_MONTHS
) -> Trend:
    """Expense change from the oldest to the newest of the latest ``window`` months.

    ``months`` must be ordered newest first, as returned by
    :func:`monthly_breakdown`.
    """
    recent = list(months[:window])
    if len(recent) < 2:
        return Trend(percentage=0.0, months_analyzed=len(recent))
    newest = recent[0].expense_cents
    oldest = recent[-1].expense_cents
    percentage = (newest - oldest) / oldest * 100 if oldest else 0.0
    return Trend(percentage=percentage, months_analyzed=len(recent))


def trailing_month_totals(
    transactions: Iterable[Transaction], month_starts: Sequence[date]
) -> list[MonthStats]:
    """Zero-filled totals for each given month, in the order given."""
    window = {
        month_key(start): MonthStats(
            key=month_key(start), year=start.year, month=start.month
        )
        for start in month_starts
    }
    for txn in transactions:
        stats = window.get(month_key(txn.date))
        if stats is not None:
            stats.add(txn)
    return [window[month_key(start)] for start in month_starts]


@dataclass
class MonthlyExpense:
    month_number: int
    expense_cents: int = 0
    count: int = 0

    @property
    def average_cents(self) -> float:
        return self.expense_cents / self.count if self.count else 0.0


def monthly_expenses_for_year(
    transactions: Iterable[Transaction], year: int
) -> list[MonthlyExpense]:
    """Expense totals for all twelve months of ``year``, zero-filled."""
    months = [MonthlyExpense(month_number=number) for number in range(1, 13)]
    for txn in transactions:
        if txn.amount_cents >= 0 or txn.date.year != year:
            continue
        entry = months[txn.date.month - 1]
        entry.expense_cents += abs(txn.amount_cents)
        entry.count += 1
    return months


def highest_and_lowest(
    months: Sequence[MonthlyExpense],
) -> tuple[MonthlyExpense, MonthlyExpense]:
    highest = months[0]
    lowest = months[0]
    for entry in months[1:]:
        if entry.expense_cents > highest.expense_cents:
            highest = entry
        if entry.expense_cents < lowest.expense_cents:
            lowest = entry
    return highest, lowest


@dataclass
class CategoryShare:
    category: str
    total_cents: int = 0
    count: int = 0
    percentage: float = 0.0


def category_distribution(
    transactions: Iterable[Transaction],
    transaction_type: TransactionType = TransactionType.expense,
) -> list[CategoryShare]:
    """Share of the absolute total per category for one side of the ledger."""
    wanted_income = transaction_type == TransactionType.income
    shares: dict[str, CategoryShare] = {}
    for txn in transactions:
        if (txn.amount_cents > 0) != wanted_income:
            continue
        name = _category_name(txn)
        share = shares.get(name)
        if share is None:
            share = shares[name] = CategoryShare(category=name)
        share.total_cents += abs(txn.amount_cents)
        share.count += 1

    grand_total = sum(share.total_cents for share in shares.values())
    for share in shares.values():
        share.percentage = _ratio_percent(share.total_cents, grand_total)
    return sorted(shares.values(), key=lambda s: s.total_cents, reverse=True)


def spending_by_category(transactions: Iterable[Transaction]) -> dict[str, int]:
    """Absolute expense totals keyed by category, in first-seen order."""
    spent: dict[str, int] = {}
    for txn in transactions:
        if txn.amount_cents >= 0:
            continue
        name = _category_name(txn)
        spent[name] = spent.get(name, 0) + abs(txn.amount_cents)
    return spent


@dataclass(frozen=True)
class ComparisonRow:
    category: str
    budgeted_cents: int
    actual_cents: int
    variance_cents: int
    variance_percentage: float
    is_over_budget: bool
    percentage_used: float


@dataclass
class BudgetComparison:
    rows: list[ComparisonRow] = field(default_factory=list)
    total_budgeted_cents: int = 0
    total_actual_cents: int = 0

    @property
    def total_variance_cents(self) -> int:
        return self.total_budgeted_cents - self.total_actual_cents

    @property
    def over_budget_categories(self) -> list[str]:
        return [row.category for row in self.rows if row.is_over_budget]

    @property
    def under_budget_categories(self) -> list[str]:
        return [
            row.category
            for row in self.rows
            if not row.is_over_budget and row.variance_cents > 0
        ]


def compare_budgets(
    budgets: Sequence[Budget], expenses: Iterable[Transaction]
) -> BudgetComparison:
    """Budget-vs-actual rows for one month.

    ``expenses`` are the month's transactions; only negative amounts count.
    Categories with spend but no budget get a row with a zero budget,
    ``variance_percentage`` of -100 and ``is_over_budget`` set.
    """
    actual_by_category = spending_by_category(expenses)
    comparison = BudgetComparison()
    budgeted_names: set[str] = set()

    for budget in budgets:
        name = _label(budget.category)
        budgeted_names.add(name)
        actual = actual_by_category.get(name, 0)
        variance = budget.amount_cents - actual
        comparison.rows.append(
            ComparisonRow(
                category=name,
                budgeted_cents=budget.amount_cents,
                actual_cents=actual,
                variance_cents=variance,
                variance_percentage=_ratio_percent(variance, budget.amount_cents),
                is_over_budget=actual > budget.amount_cents,
                percentage_used=_ratio_percent(actual, budget.amount_cents),
            )
        )
        comparison.total_budgeted_cents += budget.amount_cents

    for name, actual in actual_by_category.items():
        if name in budgeted_names:
            continue
        comparison.rows.append(
            ComparisonRow(
                category=name,
                budgeted_cents=0,
                actual_cents=actual,
                variance_cents=-actual,
                variance_percentage=UNBUDGETED_VARIANCE_PERCENTAGE,
                is_over_budget=True,
                percentage_used=UNBUDGETED_PERCENTAGE_USED,
            )
        )

    comparison.total_actual_cents = sum(actual_by_category.values())
    return comparison


@dataclass(frozen=True)
class BudgetTotals:
    budget_cents: int
    spent_cents: int
    remaining_cents: int

    @property
    def percentage_used(self) -> float:
        return _ratio_percent(self.spent_cents, self.budget_cents)

    @property
    def is_over_budget(self) -> bool:
        return self.spent_cents > self.budget_cents


def budget_totals(budgets: Iterable[Budget]) -> BudgetTotals:
    budget_cents = 0
    spent_cents = 0
    remaining_cents = 0
    for budget in budgets:
        budget_cents += budget.amount_cents
        spent_cents += budget.spent_cents
        remaining_cents += budget.remaining_cents
    return BudgetTotals(
        budget_cents=budget_cents,
        spent_cents=spent_cents,
        remaining_cents=remaining_cents,
    )


def under_budget_categories(budgets: Iterable[Budget]) -> list[str]:
    return [
        _label(budget.category)
        for budget in budgets
        if not budget.is_over_budget
        and budget.percentage_used < BUDGET_WARNING_RATIO * 100
    ]


# Insight messages


def budget_status_message(spent_cents: int, budget_cents: int) -> str:
    if spent_cents > budget_cents:
        return "You're over budget this month!"
    if spent_cents > budget_cents * BUDGET_WARNING_RATIO:
        return "You're approaching your budget limit."
    return "Great job staying within budget!"


def total_budget_message(total_variance_cents: int, total_budgeted_cents: int) -> str:
    if total_variance_cents < 0:
        return "You're over your total budget this month!"
    if total_variance_cents < total_budgeted_cents * TOTAL_BUDGET_CLOSE_RATIO:
        return "You're close to your total budget limit."
    return "Great job staying within your total budget!"


def total_budget_recommendation(total_variance_cents: int) -> str:
    if total_variance_cents < 0:
        return "Consider reviewing your spending habits and adjusting budgets."
    return "Keep up the good work with your budget management!"


def cash_flow_recommendation(net_cents: int) -> str:
    if net_cents > 0:
        return "Great job! You're maintaining positive cash flow."
    return "Consider reviewing your expenses to improve your financial health."


def dashboard_recommendation(net_cents: int) -> str:
    if net_cents > 0:
        return "Great job! You're maintaining positive cash flow."
    return "Consider reviewing your expenses to improve financial health."


def spending_tips(
    totals: Totals, top_category: Optional[CategoryShare]
) -> list[str]:
    tips: list[str] = []
    if totals.savings_rate < HEALTHY_SAVINGS_RATE:
        tips.append("Consider increasing your savings rate to at least 20%")
    if totals.expense_cents > totals.income_cents * HIGH_EXPENSE_RATIO:
        tips.append("Your expenses are high relative to income - review spending")
    if top_category is not None and top_category.percentage > DOMINANT_CATEGORY_PERCENT:
        tips.append(
            f"{top_category.category} accounts for {top_category.percentage:.1f}% "
            "of expenses - consider reducing"
        )
    if totals.net_cents > 0:
        tips.append("Great job maintaining positive cash flow!")
    return tips
