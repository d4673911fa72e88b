import datetime as dt
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class Category(str, Enum):
    food_dining = "Food & Dining"
    transportation = "Transportation"
    shopping = "Shopping"
    entertainment = "Entertainment"
    healthcare = "Healthcare"
    housing = "Housing"
    utilities = "Utilities"
    education = "Education"
    travel = "Travel"
    salary = "Salary"
    freelance = "Freelance"
    investment = "Investment"
    gifts = "Gifts"
    other = "Other"
    uncategorized = "Uncategorized"


INCOME_CATEGORIES = (
    Category.salary,
    Category.freelance,
    Category.investment,
    Category.gifts,
)


class BudgetCategory(str, Enum):
    food_dining = Category.food_dining.value
    transportation = Category.transportation.value
    shopping = Category.shopping.value
    entertainment = Category.entertainment.value
    healthcare = Category.healthcare.value
    housing = Category.housing.value
    utilities = Category.utilities.value
    education = Category.education.value
    travel = Category.travel.value
    other = Category.other.value


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


CATEGORY_ENUM = SAEnum(
    Category,
    name="category",
    values_callable=_enum_values,
    validate_strings=True,
)
BUDGET_CATEGORY_ENUM = SAEnum(
    BudgetCategory,
    name="budgetcategory",
    values_callable=_enum_values,
    validate_strings=True,
)


class TimestampMixin:
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=dt.datetime.utcnow, nullable=False
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    category: Mapped[Category] = mapped_column(
        CATEGORY_ENUM, nullable=False, default=Category.uncategorized
    )
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )

    __table_args__ = (
        Index("ix_transactions_date", "date"),
        Index("ix_transactions_category", "category"),
        Index("ix_transactions_type", "type"),
        CheckConstraint("amount_cents != 0", name="ck_transactions_amount_nonzero"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[BudgetCategory] = mapped_column(
        BUDGET_CATEGORY_ENUM, nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    spent_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    remaining_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    percentage_used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_over_budget: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
        CheckConstraint("spent_cents >= 0", name="ck_budget_spent_positive"),
        UniqueConstraint("category", "month", name="uq_budget_category_month"),
        Index("ix_budget_year_month", "year", "month"),
    )

    def recompute_derived(self) -> None:
        spent = self.spent_cents or 0
        self.spent_cents = spent
        self.remaining_cents = self.amount_cents - spent
        self.percentage_used = (
            spent / self.amount_cents * 100 if self.amount_cents > 0 else 0.0
        )
        self.is_over_budget = spent > self.amount_cents


@event.listens_for(Budget, "before_insert")
@event.listens_for(Budget, "before_update")
def _budget_before_persist(_mapper, _connection, target: Budget) -> None:
    target.recompute_derived()
