import argparse
import logging
import random
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from database import init_db, session_scope
from models import INCOME_CATEGORIES, Category, Transaction, TransactionType
from periods import local_today
from schemas import SEED_MAX_COUNT
from services import TransactionService

logger = logging.getLogger(__name__)

SEED_WINDOW_DAYS = 180
INCOME_PROBABILITY = 0.3

EXPENSE_CATEGORIES = tuple(
    member
    for member in Category
    if member not in INCOME_CATEGORIES and member != Category.uncategorized
)

EXPENSE_DESCRIPTIONS = (
    "Grocery shopping",
    "Restaurant dinner",
    "Gas station",
    "Public transport",
    "Online shopping",
    "Movie tickets",
    "Doctor visit",
    "Course fees",
    "Rent payment",
    "Electricity bill",
    "Car insurance",
    "Coffee shop",
    "Gym membership",
    "Phone bill",
    "Vacation trip",
)

INCOME_DESCRIPTIONS = (
    "Monthly salary",
    "Freelance project",
    "Business income",
    "Investment returns",
    "Bonus payment",
    "Side hustle",
    "Consulting fee",
    "Rental income",
    "Dividend payment",
    "Birthday gift",
)


def random_transaction(rng: random.Random, today) -> Transaction:
    txn_date = today - timedelta(days=rng.randrange(SEED_WINDOW_DAYS))
    if rng.random() < INCOME_PROBABILITY:
        return Transaction(
            amount_cents=rng.randint(1000, 9999) * 100,
            description=rng.choice(INCOME_DESCRIPTIONS),
            date=txn_date,
            category=rng.choice(INCOME_CATEGORIES),
            type=TransactionType.income,
        )
    return Transaction(
        amount_cents=-rng.randint(10, 499) * 100,
        description=rng.choice(EXPENSE_DESCRIPTIONS),
        date=txn_date,
        category=rng.choice(EXPENSE_CATEGORIES),
        type=TransactionType.expense,
    )


def seed_transactions(
    session: Session, count: int, rng: Optional[random.Random] = None
) -> list[Transaction]:
    """Replace every stored transaction with ``count`` random ones."""
    if count > SEED_MAX_COUNT:
        raise ValueError(f"Maximum {SEED_MAX_COUNT} transactions allowed per request")
    rng = rng or random.Random()
    today = local_today()
    removed = TransactionService(session).delete_all()
    transactions = [random_transaction(rng, today) for _ in range(count)]
    session.add_all(transactions)
    session.commit()
    logger.info(f"transactions_seeded: count={count} removed={removed}")
    return transactions


def main() -> None:
    parser = argparse.ArgumentParser(description="Fill the database with demo transactions")
    parser.add_argument("--count", type=int, default=20)
    parser.add_argument("--random-seed", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO)
    init_db()
    with session_scope() as session:
        seed_transactions(session, args.count, random.Random(args.random_seed))


if __name__ == "__main__":
    main()
