import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings

MONTH_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}$")


@dataclass(frozen=True)
class MonthPeriod:
    key: str
    year: int
    month: int
    start: date
    end: date


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def add_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) + count
    year = month_index // 12
    month = (month_index % 12) + 1
    return date(year, month, 1)


def long_month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def short_month_label(year: int, month: int) -> str:
    return f"{calendar.month_abbr[month]} {year}"


def parse_month_number(key: str) -> int:
    if not MONTH_KEY_PATTERN.match(key or ""):
        raise ValueError("Month must be in YYYY-MM format")
    month = int(key[5:7])
    if not 1 <= month <= 12:
        raise ValueError("Month must be in YYYY-MM format")
    return month


def resolve_month(
    month: Optional[str],
    year: Optional[str],
    *,
    today: Optional[date] = None,
) -> MonthPeriod:
    """Budget period for a ``month``/``year`` query pair.

    Missing values default to the current month and year independently.
    The calendar bounds use ``year`` with the month number taken from
    ``month``. A year that is not a usable calendar year falls back
    to the current one.
    """
    today = today or local_today()
    key = month or month_key(today)
    month_number = parse_month_number(key)
    target_year = today.year
    if year:
        try:
            target_year = int(year)
        except ValueError:
            target_year = today.year
    if not 1 <= target_year <= date.max.year:
        target_year = today.year
    return MonthPeriod(
        key=key,
        year=target_year,
        month=month_number,
        start=month_start(target_year, month_number),
        end=month_end(target_year, month_number),
    )


def trailing_months(today: date, count: int) -> list[date]:
    """First days of the ``count`` months ending with ``today``'s, oldest first."""
    current = today.replace(day=1)
    return [add_months(current, -offset) for offset in range(count - 1, -1, -1)]
