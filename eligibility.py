"""
Rules deciding whether a sheet row is due for a notification today.

Three rules, one per job kind:
  - anniversary: aging stock, re-announced every month on the stock-in
    day-of-month once the grace period has passed
  - deadline: tax renewals expiring within a fixed horizon (or already expired)
  - threshold: a numeric column dropping below a configured value
"""

import calendar
from datetime import date

import config


def months_elapsed(start: date, today: date) -> int:
    """Whole calendar months between two dates, ignoring day-of-month.

    Jan 31 -> Feb 1 counts as one month.
    """
    return (today.year - start.year) * 12 + (today.month - start.month)


def is_anniversary_due(
    stock_date: date,
    today: date,
    grace_months: int = config.STOCK_GRACE_MONTHS,
) -> bool:
    """True when *today* is a monthly anniversary of *stock_date*.

    Nothing is due during the first *grace_months*. A stock day that does not
    exist in the current month (e.g. the 31st in February) fires on the last
    day of the month instead.
    """
    if months_elapsed(stock_date, today) < grace_months:
        return False

    if today.day == stock_date.day:
        return True

    last_day = calendar.monthrange(today.year, today.month)[1]
    return stock_date.day > last_day and today.day == last_day


def approx_days_in_stock(elapsed_months: int) -> int:
    """Display-only day count for stock messages (30 days per month)."""
    return elapsed_months * 30


def days_until(expiry: date, today: date) -> int:
    """Calendar days from *today* to *expiry*; negative once expired."""
    return (expiry - today).days


def is_deadline_due(
    expiry: date,
    today: date,
    horizon_days: int = config.TAX_DEADLINE_DAYS,
) -> bool:
    return days_until(expiry, today) <= horizon_days


def parse_number(value: object) -> float | None:
    """Read a numeric cell. Returns None for blanks and non-numeric text."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value or "").strip().replace(",", "")
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def is_below_threshold(value: float, threshold: float) -> bool:
    return value < threshold
