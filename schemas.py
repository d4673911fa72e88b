import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models import BudgetCategory, Category, TransactionType
from money import AmountTooLargeError, to_cents
from periods import local_today, parse_month_number

DESCRIPTION_MAX_LENGTH = 200
SEED_MAX_COUNT = 100

INVALID_DATE_MESSAGE = "Invalid date format. Please use YYYY-MM-DD format."
INVALID_TYPE_MESSAGE = "Type must be either 'income' or 'expense'."
INVALID_CATEGORY_MESSAGE = "Invalid category. Please choose from: " + ", ".join(
    member.value for member in Category
)


def parse_transaction_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(INVALID_DATE_MESSAGE)
    raw = value.strip()
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise ValueError(INVALID_DATE_MESSAGE) from exc


def check_date_not_in_future(value: date) -> None:
    if value > local_today():
        raise ValueError("Transaction date cannot be in the future.")


def check_type_matches_amount(txn_type: TransactionType, amount_cents: int) -> None:
    if txn_type == TransactionType.income and amount_cents < 0:
        raise ValueError("Income transactions must have positive amounts.")
    if txn_type == TransactionType.expense and amount_cents > 0:
        raise ValueError("Expense transactions should have negative amounts.")


def type_for_amount(amount_cents: int) -> TransactionType:
    return TransactionType.income if amount_cents > 0 else TransactionType.expense


class _TransactionFields(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    date: Optional[dt.date] = None
    category: Optional[Category] = None
    type: Optional[TransactionType] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, bool):
            raise ValueError("Amount must be a number.")
        try:
            to_cents(value)
        except AmountTooLargeError:
            raise
        except ValueError as exc:
            raise ValueError("Amount must be a number.") from exc
        return Decimal(str(value).strip())

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        return parse_transaction_date(value)

    @field_validator("category", mode="before")
    @classmethod
    def _check_category(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            value = value.strip()
        try:
            return Category(value)
        except ValueError as exc:
            raise ValueError(INVALID_CATEGORY_MESSAGE) from exc

    @field_validator("type", mode="before")
    @classmethod
    def _check_type(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            return TransactionType(value)
        except ValueError as exc:
            raise ValueError(INVALID_TYPE_MESSAGE) from exc

    @property
    def amount_cents(self) -> Optional[int]:
        if self.amount is None:
            return None
        return to_cents(self.amount)


class TransactionIn(_TransactionFields):
    """Payload for creating a transaction.

    ``type`` is derived from the amount's sign when omitted and ``category``
    falls back to ``Uncategorized``.
    """

    @model_validator(mode="after")
    def _check_rules(self) -> "TransactionIn":
        if not self.amount_cents:
            raise ValueError("Amount is required and cannot be zero.")
        if self.description is None or not self.description.strip():
            raise ValueError("Description is required.")
        self.description = self.description.strip()
        if len(self.description) > DESCRIPTION_MAX_LENGTH:
            raise ValueError("Description too long")
        if self.date is None:
            raise ValueError("Date is required.")
        check_date_not_in_future(self.date)
        if self.type is None:
            self.type = type_for_amount(self.amount_cents)
        check_type_matches_amount(self.type, self.amount_cents)
        if self.category is None:
            self.category = Category.uncategorized
        return self


class TransactionUpdate(_TransactionFields):
    """Partial update: only fields present in the payload are applied."""

    @model_validator(mode="after")
    def _check_rules(self) -> "TransactionUpdate":
        if self.amount is not None and self.amount_cents == 0:
            raise ValueError("Amount cannot be zero.")
        if self.description is not None:
            self.description = self.description.strip()
            if not self.description:
                raise ValueError("Description cannot be empty.")
            if len(self.description) > DESCRIPTION_MAX_LENGTH:
                raise ValueError("Description too long")
        if self.date is not None:
            check_date_not_in_future(self.date)
        if self.type is None and self.amount is not None:
            self.type = type_for_amount(self.amount_cents)
        if self.type is not None and self.amount is not None:
            check_type_matches_amount(self.type, self.amount_cents)
        return self

    def changes(self) -> dict[str, Any]:
        values: dict[str, Any] = {}
        if self.amount is not None:
            values["amount_cents"] = self.amount_cents
        if self.description is not None:
            values["description"] = self.description
        if self.date is not None:
            values["date"] = self.date
        if self.category is not None:
            values["category"] = self.category
        if self.type is not None:
            values["type"] = self.type
        return values


class BudgetIn(BaseModel):
    category: Any = None
    amount: Optional[Decimal] = None
    month: Optional[str] = None
    year: Optional[int] = Field(default=None, ge=1, le=9999)

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            to_cents(value)
        except AmountTooLargeError:
            raise
        except ValueError as exc:
            raise ValueError("Budget amount must be a number") from exc
        return Decimal(str(value).strip())

    @model_validator(mode="after")
    def _check_rules(self) -> "BudgetIn":
        if not self.category or not self.amount or not self.month or not self.year:
            raise ValueError("Category, amount, month, and year are required")
        if self.amount_cents <= 0:
            raise ValueError("Budget amount must be greater than zero")
        parse_month_number(self.month)
        if not isinstance(self.category, str):
            raise ValueError("Please select a valid category")
        try:
            BudgetCategory(self.category.strip())
        except ValueError as exc:
            raise ValueError("Please select a valid category") from exc
        return self

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount) if self.amount is not None else 0

    @property
    def budget_category(self) -> BudgetCategory:
        return BudgetCategory(self.category.strip())

    @property
    def month_number(self) -> int:
        return parse_month_number(self.month)


class BudgetUpdate(BaseModel):
    amount: Optional[Decimal] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        try:
            to_cents(value)
        except AmountTooLargeError:
            raise
        except ValueError as exc:
            raise ValueError("Budget amount must be greater than zero") from exc
        return Decimal(str(value).strip())

    @model_validator(mode="after")
    def _check_rules(self) -> "BudgetUpdate":
        if self.amount is None or self.amount_cents <= 0:
            raise ValueError("Budget amount must be greater than zero")
        return self

    @property
    def amount_cents(self) -> int:
        return to_cents(self.amount) if self.amount is not None else 0


class SeedIn(BaseModel):
    count: int = Field(default=20, ge=1)

    @field_validator("count")
    @classmethod
    def _check_count(cls, value: int) -> int:
        if value > SEED_MAX_COUNT:
            raise ValueError(
                f"Maximum {SEED_MAX_COUNT} transactions allowed per request"
            )
        return value
