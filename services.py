from __future__ import annotations

import calendar
import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import analytics
from models import Budget, Category, Transaction, TransactionType
from money import format_signed_amount, from_cents, round_half_up
from periods import MonthPeriod, local_today, month_end, month_start, trailing_months
from schemas import (
    BudgetIn,
    BudgetUpdate,
    TransactionIn,
    TransactionUpdate,
    check_type_matches_amount,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
RECENT_TRANSACTIONS = 5

SORT_COLUMNS = {
    "date": Transaction.date,
    "amount": Transaction.amount_cents,
    "category": Transaction.category,
    "description": Transaction.description,
    "type": Transaction.type,
    "createdAt": Transaction.created_at,
    "updatedAt": Transaction.updated_at,
}


class NotFoundError(ValueError):
    pass


@dataclass(frozen=True)
class TransactionFilters:
    category: Optional[Category] = None
    type: Optional[TransactionType] = None


@dataclass(frozen=True)
class PageRequest:
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort_by: str = "date"
    sort_order: str = "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def percent(value: float) -> float:
    return round_half_up(value, 1)


class TransactionService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, data: TransactionIn) -> Transaction:
        txn = Transaction(
            amount_cents=data.amount_cents,
            description=data.description,
            date=data.date,
            category=data.category or Category.uncategorized,
            type=data.type,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: id={txn.id} amount_cents={txn.amount_cents} "
            f"category={txn.category.value}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.session.get(Transaction, transaction_id)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionUpdate) -> Transaction:
        txn = self.get(transaction_id)
        changes = data.changes()
        amount_cents = changes.get("amount_cents", txn.amount_cents)
        txn_type = changes.get("type", txn.type)
        check_type_matches_amount(txn_type, amount_cents)

        for attr, value in changes.items():
            setattr(txn, attr, value)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_updated: id={txn.id} fields={','.join(sorted(changes))}"
        )
        return txn

    def delete(self, transaction_id: int) -> Transaction:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()
        logger.info(f"transaction_deleted: id={transaction_id}")
        return txn

    def delete_all(self) -> int:
        result = self.session.execute(delete(Transaction))
        self.session.commit()
        return int(result.rowcount or 0)

    def _filtered(self, stmt, filters: TransactionFilters):
        if filters.category:
            stmt = stmt.where(Transaction.category == filters.category)
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        return stmt

    def list(
        self, filters: TransactionFilters, page: PageRequest
    ) -> tuple[list[Transaction], int]:
        column = SORT_COLUMNS.get(page.sort_by)
        if column is None:
            raise ValueError(
                "Invalid sort field. Choose from: " + ", ".join(SORT_COLUMNS)
            )
        ordering = column.desc() if page.sort_order == "desc" else column.asc()
        tiebreak = Transaction.id.desc() if page.sort_order == "desc" else Transaction.id.asc()
        stmt = (
            self._filtered(select(Transaction), filters)
            .order_by(ordering, tiebreak)
            .offset(page.offset)
            .limit(page.limit)
        )
        items = self.session.scalars(stmt).all()
        total = int(
            self.session.execute(
                self._filtered(select(func.count(Transaction.id)), filters)
            ).scalar_one()
            or 0
        )
        return list(items), total

    def all(self) -> list[Transaction]:
        stmt = select(Transaction).order_by(Transaction.id.asc())
        return list(self.session.scalars(stmt).all())

    def recent(self, limit: int = RECENT_TRANSACTIONS) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def expenses_between(
        self, start: date, end: date, *, category: Optional[str] = None
    ) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .where(
                Transaction.amount_cents < 0,
                Transaction.date.between(start, end),
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        if category:
            stmt = stmt.where(Transaction.category == Category(category))
        return list(self.session.scalars(stmt).all())


class BudgetService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget:
            raise NotFoundError("Budget not found")
        return budget

    def list_for_month(self, month: str, year: int) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.month == month, Budget.year == year)
            .order_by(Budget.category.asc(), Budget.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def for_period(self, period: MonthPeriod) -> list[Budget]:
        stmt = (
            select(Budget)
            .where(Budget.month == period.key, Budget.year == period.year)
            .order_by(Budget.id.asc())
        )
        return list(self.session.scalars(stmt).all())

    def create(self, data: BudgetIn) -> Budget:
        category = data.budget_category
        existing = self.session.scalar(
            select(Budget).where(
                Budget.category == category, Budget.month == data.month
            )
        )
        if existing:
            raise ValueError(f"Budget for {category.value} in {data.month} already exists")

        # spent is captured once here and never reconciled afterwards
        start = month_start(data.year, data.month_number)
        end = month_end(data.year, data.month_number)
        spent = TransactionService(self.session).expenses_between(
            start, end, category=category.value
        )
        spent_cents = abs(sum(txn.amount_cents for txn in spent))

        budget = Budget(
            category=category,
            amount_cents=data.amount_cents,
            month=data.month,
            year=data.year,
            spent_cents=spent_cents,
        )
        self.session.add(budget)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ValueError(
                f"Budget for {category.value} in {data.month} already exists"
            ) from exc
        self.session.refresh(budget)
        logger.info(
            f"budget_created: id={budget.id} category={category.value} "
            f"month={budget.month} spent_cents={budget.spent_cents}"
        )
        return budget

    def update_amount(self, budget_id: int, data: BudgetUpdate) -> Budget:
        budget = self.get(budget_id)
        budget.amount_cents = data.amount_cents
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_updated: id={budget.id} amount_cents={budget.amount_cents}")
        return budget

    def delete(self, budget_id: int) -> Budget:
        budget = self.get(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: id={budget_id}")
        return budget


def serialize_transaction(txn: Transaction) -> dict[str, object]:
    return {
        "id": txn.id,
        "amount": from_cents(txn.amount_cents),
        "description": txn.description,
        "date": txn.date.isoformat(),
        "category": txn.category.value,
        "type": txn.type.value,
        "createdAt": txn.created_at.isoformat() if txn.created_at else None,
        "updatedAt": txn.updated_at.isoformat() if txn.updated_at else None,
    }


def serialize_budget(budget: Budget) -> dict[str, object]:
    return {
        "id": budget.id,
        "category": budget.category.value,
        "amount": from_cents(budget.amount_cents),
        "month": budget.month,
        "year": budget.year,
        "spent": from_cents(budget.spent_cents),
        "remaining": from_cents(budget.remaining_cents),
        "percentageUsed": percent(budget.percentage_used),
        "isOverBudget": budget.is_over_budget,
        "createdAt": budget.created_at.isoformat() if budget.created_at else None,
        "updatedAt": budget.updated_at.isoformat() if budget.updated_at else None,
    }


def _category_share(share: analytics.CategoryShare) -> dict[str, object]:
    return {
        "category": share.category,
        "totalAmount": from_cents(share.total_cents),
        "count": share.count,
        "percentage": percent(share.percentage),
    }


def _monthly_expense(entry: analytics.MonthlyExpense, year: int) -> dict[str, object]:
    return {
        "month": calendar.month_abbr[entry.month_number],
        "monthNumber": entry.month_number,
        "expenses": from_cents(entry.expense_cents),
        "transactionCount": entry.count,
        "averageExpense": from_cents(entry.average_cents),
    }


class ReportService:
    """Shapes aggregation results into the JSON bodies each endpoint returns.

    Every report re-reads the full record set; nothing is cached between
    calls.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.transactions = TransactionService(session)
        self.budgets = BudgetService(session)

    def financial_update(self) -> dict[str, object]:
        all_txns = self.transactions.all()
        totals = analytics.compute_totals(all_txns)
        return {
            "totalIncome": from_cents(totals.income_cents),
            "totalExpenses": from_cents(totals.expense_cents),
            "netIncome": from_cents(totals.net_cents),
            "transactionCount": len(all_txns),
        }

    def seeded(self, count: int) -> dict[str, object]:
        all_txns = self.transactions.all()
        totals = analytics.compute_totals(all_txns)
        return {
            "seededCount": count,
            "totalTransactions": len(all_txns),
            "summary": {
                "totalIncome": from_cents(totals.income_cents),
                "totalExpenses": from_cents(totals.expense_cents),
                "netIncome": from_cents(totals.net_cents),
                "incomeCount": totals.income_count,
                "expenseCount": totals.expense_count,
            },
        }

    def transaction_listing(
        self, filters: TransactionFilters, page: PageRequest
    ) -> dict[str, object]:
        items, total = self.transactions.list(filters, page)
        total_pages = math.ceil(total / page.limit)

        all_txns = self.transactions.all()
        totals = analytics.compute_totals(all_txns)
        categories = analytics.category_analysis(all_txns)
        months = analytics.monthly_breakdown(all_txns)
        trend = analytics.spending_trend(months)

        category_rows = [
            {
                "name": stats.name,
                "totalAmount": from_cents(stats.total_cents),
                "count": stats.count,
                "income": from_cents(stats.income_cents),
                "expenses": from_cents(stats.expense_cents),
                "percentage": percent(stats.percentage),
            }
            for stats in categories
        ]
        net = from_cents(totals.net_cents)
        return {
            "transactions": [serialize_transaction(txn) for txn in items],
            "pagination": {
                "currentPage": page.page,
                "totalPages": total_pages,
                "totalTransactions": total,
                "hasNextPage": page.page < total_pages,
                "hasPrevPage": page.page > 1,
                "limit": page.limit,
            },
            "financialSummary": {
                "totalIncome": from_cents(totals.income_cents),
                "totalExpenses": from_cents(totals.expense_cents),
                "netIncome": net,
                "averageIncome": from_cents(totals.average_income_cents),
                "averageExpense": from_cents(totals.average_expense_cents),
                "totalTransactions": total,
                "incomeCount": totals.income_count,
                "expenseCount": totals.expense_count,
            },
            "categoryAnalysis": {
                "categories": category_rows,
                "topSpendingCategory": category_rows[0] if category_rows else None,
                "categoryCount": len(category_rows),
            },
            "monthlyBreakdown": [
                {
                    "month": stats.label,
                    "monthKey": stats.key,
                    "income": from_cents(stats.income_cents),
                    "expenses": from_cents(stats.expense_cents),
                    "netIncome": from_cents(stats.net_cents),
                    "count": stats.count,
                }
                for stats in months
            ],
            "trends": {
                "spendingTrend": percent(trend.percentage),
                "trendDirection": trend.direction,
                "monthsAnalyzed": trend.months_analyzed,
            },
            "insights": {
                "message": (
                    f"Net income: ${_plain_amount(net)} | {totals.income_count} income entries, "
                    f"{totals.expense_count} expense entries"
                ),
                "recommendation": analytics.cash_flow_recommendation(totals.net_cents),
                "topCategory": category_rows[0]["name"] if category_rows else "No data",
            },
        }

    def transaction_created(self, txn: Transaction) -> dict[str, object]:
        update = self.financial_update()
        is_income = txn.type == TransactionType.income
        amount = f"{abs(txn.amount_cents) / 100:.2f}"
        return {
            "transaction": serialize_transaction(txn),
            "financialUpdate": update,
            "insights": {
                "message": "Income added successfully!"
                if is_income
                else "Expense recorded successfully!",
                "impact": f"Your net income {'increased' if is_income else 'decreased'} by ${amount}",
                "recommendation": _change_recommendation(update),
            },
        }

    def transaction_updated(self, txn: Transaction) -> dict[str, object]:
        update = self.financial_update()
        return {
            "transaction": serialize_transaction(txn),
            "financialUpdate": update,
            "insights": {
                "message": "Transaction updated successfully!",
                "impact": "Your financial summary has been recalculated.",
                "recommendation": _change_recommendation(update),
            },
        }

    def transaction_deleted(self, txn: Transaction) -> dict[str, object]:
        update = self.financial_update()
        direction = "decreased" if txn.type == TransactionType.income else "increased"
        healthy = update["netIncome"] > 0
        return {
            "deletedTransaction": {
                "id": txn.id,
                "amount": from_cents(txn.amount_cents),
                "description": txn.description,
                "category": txn.category.value,
                "type": txn.type.value,
            },
            "financialUpdate": update,
            "insights": {
                "message": "Transaction deleted successfully!",
                "impact": f"Your net income {direction} by ${abs(txn.amount_cents) / 100:.2f}",
                "deletedCategory": txn.category.value,
                "recommendation": "Your financial health remains positive!"
                if healthy
                else "Consider adding more income sources or reducing expenses.",
            },
        }

    def dashboard(self, today: Optional[date] = None) -> dict[str, object]:
        today = today or local_today()
        all_txns = self.transactions.all()
        totals = analytics.compute_totals(all_txns)
        shares = analytics.category_distribution(all_txns, TransactionType.expense)
        trend_months = analytics.trailing_month_totals(
            all_txns, trailing_months(today, analytics.RECENT_MONTHS)
        )
        top = shares[0] if shares else None
        return {
            "summary": {
                "totalIncome": from_cents(totals.income_cents),
                "totalExpenses": from_cents(totals.expense_cents),
                "netIncome": from_cents(totals.net_cents),
                "totalTransactions": len(all_txns),
                "incomeCount": totals.income_count,
                "expenseCount": totals.expense_count,
            },
            "categoryBreakdown": [_category_share(share) for share in shares],
            "recentTransactions": [
                {
                    **serialize_transaction(txn),
                    "formattedAmount": format_signed_amount(txn.amount_cents),
                }
                for txn in self.transactions.recent()
            ],
            "monthlyTrend": [
                {
                    "month": stats.short_label,
                    "income": from_cents(stats.income_cents),
                    "expenses": from_cents(stats.expense_cents),
                    "netIncome": from_cents(stats.net_cents),
                }
                for stats in trend_months
            ],
            "insights": {
                "topSpendingCategory": top.category if top else "No data",
                "averageMonthlyExpense": from_cents(
                    totals.expense_cents / analytics.RECENT_MONTHS
                ),
                "savingsRate": percent(totals.savings_rate),
                "recommendation": analytics.dashboard_recommendation(totals.net_cents),
                "isHealthy": totals.is_healthy,
                "tips": analytics.spending_tips(totals, top),
            },
        }

    def monthly_expenses_chart(self, year: int) -> dict[str, object]:
        months = analytics.monthly_expenses_for_year(self.transactions.all(), year)
        rows = [_monthly_expense(entry, year) for entry in months]
        highest, lowest = analytics.highest_and_lowest(months)
        total_cents = sum(entry.expense_cents for entry in months)
        return {
            "year": year,
            "monthlyData": rows,
            "summary": {
                "totalYearlyExpenses": from_cents(total_cents),
                "averageMonthlyExpenses": from_cents(total_cents / 12),
                "highestExpenseMonth": rows[highest.month_number - 1],
                "lowestExpenseMonth": rows[lowest.month_number - 1],
            },
        }

    def category_pie(self, transaction_type: TransactionType) -> dict[str, object]:
        all_txns = self.transactions.all()
        shares = analytics.category_distribution(all_txns, transaction_type)
        rows = [_category_share(share) for share in shares]
        return {
            "type": transaction_type.value,
            "categories": rows,
            "summary": {
                "totalAmount": from_cents(sum(share.total_cents for share in shares)),
                "totalTransactions": sum(share.count for share in shares),
                "categoryCount": len(rows),
                "topCategory": rows[0] if rows else None,
            },
        }

    def budget_overview(self, period: MonthPeriod) -> dict[str, object]:
        budgets = self.budgets.list_for_month(period.key, period.year)
        totals = analytics.budget_totals(budgets)
        return {
            "month": period.key,
            "year": period.year,
            "budgets": [serialize_budget(budget) for budget in budgets],
            "summary": {
                "totalBudget": from_cents(totals.budget_cents),
                "totalSpent": from_cents(totals.spent_cents),
                "totalRemaining": from_cents(totals.remaining_cents),
                "percentageUsed": percent(totals.percentage_used),
                "isOverBudget": totals.is_over_budget,
            },
            "insights": {
                "message": analytics.budget_status_message(
                    totals.spent_cents, totals.budget_cents
                ),
                "overBudgetCategories": [
                    budget.category.value for budget in budgets if budget.is_over_budget
                ],
                "underBudgetCategories": analytics.under_budget_categories(budgets),
            },
        }

    def budget_created(self, budget: Budget) -> dict[str, object]:
        spent = f"{budget.spent_cents / 100:.2f}"
        return {
            "budget": serialize_budget(budget),
            "insights": {
                "message": f"Warning: You've already spent ${spent} in {budget.category.value} this month"
                if budget.is_over_budget
                else f"Budget set successfully. You've spent ${spent} so far.",
                "recommendation": "Consider increasing your budget or reducing expenses."
                if budget.is_over_budget
                else "Great job setting a budget!",
            },
        }

    def budget_updated(self, budget: Budget) -> dict[str, object]:
        remaining = f"{abs(budget.remaining_cents) / 100:.2f}"
        return {
            "budget": serialize_budget(budget),
            "insights": {
                "message": f"Budget updated. You're currently over budget by ${remaining}"
                if budget.is_over_budget
                else f"Budget updated. You have ${remaining} remaining.",
                "recommendation": "Consider reducing expenses in this category."
                if budget.is_over_budget
                else "Great job managing your budget!",
            },
        }

    def budget_comparison(self, period: MonthPeriod) -> dict[str, object]:
        budgets = self.budgets.for_period(period)
        expenses = self.transactions.expenses_between(period.start, period.end)
        comparison = analytics.compare_budgets(budgets, expenses)
        variance = comparison.total_variance_cents
        return {
            "month": period.key,
            "year": period.year,
            "comparison": [
                {
                    "category": row.category,
                    "budgeted": from_cents(row.budgeted_cents),
                    "actual": from_cents(row.actual_cents),
                    "variance": from_cents(row.variance_cents),
                    "variancePercentage": percent(row.variance_percentage),
                    "isOverBudget": row.is_over_budget,
                    "percentageUsed": percent(row.percentage_used),
                }
                for row in comparison.rows
            ],
            "summary": {
                "totalBudgeted": from_cents(comparison.total_budgeted_cents),
                "totalActual": from_cents(comparison.total_actual_cents),
                "totalVariance": from_cents(variance),
                "overBudgetCategories": comparison.over_budget_categories,
                "underBudgetCategories": comparison.under_budget_categories,
            },
            "insights": {
                "message": analytics.total_budget_message(
                    variance, comparison.total_budgeted_cents
                ),
                "recommendation": analytics.total_budget_recommendation(variance),
            },
        }


def _change_recommendation(update: dict[str, object]) -> str:
    if update["netIncome"] > 0:
        return "Great job maintaining positive cash flow!"
    return "Consider reviewing your expenses to improve financial health."


def _plain_amount(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return "0" if text == "-0" else text
