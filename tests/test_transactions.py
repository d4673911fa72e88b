from datetime import date

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from models import Category, TransactionType
from schemas import TransactionIn, TransactionUpdate
from services import (
    NotFoundError,
    PageRequest,
    ReportService,
    TransactionFilters,
    TransactionService,
)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def create(session, amount, on: date, category: str = "Food & Dining", **extra):
    return TransactionService(session).create(
        TransactionIn(
            amount=amount, description="  Lunch  ", date=on, category=category, **extra
        )
    )


def test_create_derives_type_and_stores_cents() -> None:
    session = make_session()
    txn = create(session, "-12.345", date(2024, 1, 3))

    assert txn.amount_cents == -1235
    assert txn.type == TransactionType.expense
    assert txn.description == "Lunch"
    assert txn.category == Category.food_dining


def test_update_checks_type_against_stored_amount() -> None:
    session = make_session()
    service = TransactionService(session)
    txn = create(session, "-20", date(2024, 1, 3))

    with pytest.raises(ValueError, match="Income transactions must have positive amounts."):
        service.update(txn.id, TransactionUpdate(type="income"))

    updated = service.update(txn.id, TransactionUpdate(amount="45.5"))
    assert updated.amount_cents == 4550
    assert updated.type == TransactionType.income

    renamed = service.update(txn.id, TransactionUpdate(description="Bonus"))
    assert renamed.description == "Bonus"
    assert renamed.amount_cents == 4550


def test_missing_transaction_raises_not_found() -> None:
    service = TransactionService(make_session())

    with pytest.raises(NotFoundError, match="Transaction not found"):
        service.get(1)
    with pytest.raises(NotFoundError):
        service.delete(1)


def test_list_filters_sorts_and_pages() -> None:
    session = make_session()
    create(session, "-10", date(2024, 1, 1))
    create(session, "-30", date(2024, 1, 2))
    create(session, "-20", date(2024, 1, 3), category="Travel")
    create(session, "100", date(2024, 1, 4), category="Salary")

    service = TransactionService(session)
    items, total = service.list(
        TransactionFilters(type=TransactionType.expense),
        PageRequest(page=1, limit=2, sort_by="amount", sort_order="asc"),
    )
    assert total == 3
    assert [t.amount_cents for t in items] == [-3000, -2000]

    items, total = service.list(
        TransactionFilters(category=Category.food_dining), PageRequest()
    )
    assert total == 2
    assert [t.date for t in items] == [date(2024, 1, 2), date(2024, 1, 1)]

    with pytest.raises(ValueError, match="Invalid sort field"):
        service.list(TransactionFilters(), PageRequest(sort_by="password"))


def test_transaction_listing_report() -> None:
    session = make_session()
    create(session, "1000", date(2024, 1, 5), category="Salary")
    create(session, "-200", date(2024, 1, 10))
    create(session, "-300", date(2024, 2, 10), category="Housing")

    report = ReportService(session).transaction_listing(
        TransactionFilters(), PageRequest(limit=2)
    )

    assert report["pagination"] == {
        "currentPage": 1,
        "totalPages": 2,
        "totalTransactions": 3,
        "hasNextPage": True,
        "hasPrevPage": False,
        "limit": 2,
    }
    summary = report["financialSummary"]
    assert summary["totalIncome"] == 1000.0
    assert summary["totalExpenses"] == 500.0
    assert summary["netIncome"] == 500.0
    assert summary["averageExpense"] == 250.0

    categories = report["categoryAnalysis"]["categories"]
    assert [c["name"] for c in categories] == ["Housing", "Food & Dining", "Salary"]
    assert categories[0]["percentage"] == 60.0
    assert report["categoryAnalysis"]["topSpendingCategory"]["name"] == "Housing"

    assert [m["monthKey"] for m in report["monthlyBreakdown"]] == ["2024-02", "2024-01"]
    assert report["monthlyBreakdown"][1]["month"] == "January 2024"
    assert report["trends"] == {
        "spendingTrend": 50.0,
        "trendDirection": "increasing",
        "monthsAnalyzed": 2,
    }
    assert report["insights"]["message"] == (
        "Net income: $500 | 1 income entries, 2 expense entries"
    )
    assert report["insights"]["topCategory"] == "Housing"


def test_dashboard_trailing_window_and_recent_transactions() -> None:
    session = make_session()
    create(session, "2000", date(2024, 6, 1), category="Salary")
    create(session, "-500", date(2024, 6, 2), category="Housing")
    create(session, "-100", date(2024, 5, 20))
    create(session, "-50", date(2023, 12, 20))

    dashboard = ReportService(session).dashboard(today=date(2024, 6, 15))

    assert [m["month"] for m in dashboard["monthlyTrend"]] == [
        "Jan 2024",
        "Feb 2024",
        "Mar 2024",
        "Apr 2024",
        "May 2024",
        "Jun 2024",
    ]
    assert dashboard["monthlyTrend"][-1]["netIncome"] == 1500.0
    assert dashboard["monthlyTrend"][0]["expenses"] == 0.0

    recent = dashboard["recentTransactions"]
    assert len(recent) == 4
    assert recent[0]["formattedAmount"] == "-$500.00"
    assert recent[1]["formattedAmount"] == "+$2000.00"

    insights = dashboard["insights"]
    assert insights["topSpendingCategory"] == "Housing"
    assert insights["averageMonthlyExpense"] == 108.33
    assert insights["savingsRate"] == 67.5
    assert insights["isHealthy"] is True
    assert insights["recommendation"] == (
        "Great job! You're maintaining positive cash flow."
    )


def test_dashboard_and_listing_word_negative_cash_flow_differently() -> None:
    session = make_session()
    create(session, "-5", date(2024, 6, 2))

    reports = ReportService(session)
    dashboard = reports.dashboard(today=date(2024, 6, 15))
    assert dashboard["insights"]["recommendation"] == (
        "Consider reviewing your expenses to improve financial health."
    )
    assert dashboard["insights"]["isHealthy"] is False

    listing = reports.transaction_listing(TransactionFilters(), PageRequest())
    assert listing["insights"]["recommendation"] == (
        "Consider reviewing your expenses to improve your financial health."
    )


def test_monthly_chart_and_category_pie() -> None:
    session = make_session()
    create(session, "-10", date(2024, 3, 1))
    create(session, "-30", date(2024, 3, 9), category="Travel")
    create(session, "400", date(2024, 3, 9), category="Salary")
    create(session, "100", date(2024, 4, 9), category="Gifts")

    reports = ReportService(session)
    chart = reports.monthly_expenses_chart(2024)
    assert len(chart["monthlyData"]) == 12
    march = chart["monthlyData"][2]
    assert march == {
        "month": "Mar",
        "monthNumber": 3,
        "expenses": 40.0,
        "transactionCount": 2,
        "averageExpense": 20.0,
    }
    assert chart["summary"]["highestExpenseMonth"]["monthNumber"] == 3
    assert chart["summary"]["lowestExpenseMonth"]["monthNumber"] == 1
    assert chart["summary"]["averageMonthlyExpenses"] == 3.33

    pie = reports.category_pie(TransactionType.income)
    assert pie["type"] == "income"
    assert [c["category"] for c in pie["categories"]] == ["Salary", "Gifts"]
    assert pie["summary"]["totalAmount"] == 500.0
    assert pie["summary"]["topCategory"]["percentage"] == 80.0
