"""
Spreadsheet date normalization.

Date cells in the inventory and tax sheets are typed by hand, so the same
column can hold "18/7/25", "18-07-2025", "2025-07-18" or a US-style
"07/18/2025". normalize_date() tries a fixed, ordered list of layouts and
returns the first calendar-valid reading. A layout never rolls an invalid
day/month over into a different date (e.g. 31/04 is rejected, not turned
into 1 May); anything no layout accepts goes through dateutil as a last
resort.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, tzinfo

from dateutil import parser as date_parser

import config

log = logging.getLogger(__name__)


class InvalidDate(ValueError):
    """Raised when a cell value cannot be read as a calendar date."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unrecognized date value: {value!r}")
        self.value = value


@dataclass(frozen=True)
class DateLayout:
    name: str
    pattern: re.Pattern
    order: str    # field order of the regex groups, e.g. "dmy"
    render: str   # strftime format producing this layout

    def parse(self, text: str, now: datetime) -> date | None:
        match = self.pattern.fullmatch(text)
        if not match:
            return None
        fields = dict(zip(self.order, match.groups()))
        year = int(fields["y"])
        if len(fields["y"]) == 2:
            year = resolve_two_digit_year(year, now)
        try:
            return date(year, int(fields["m"]), int(fields["d"]))
        except ValueError:
            return None


def _layout(name: str, regex: str, order: str, render: str) -> DateLayout:
    return DateLayout(name, re.compile(regex), order, render)


# Tried in this order; the first calendar-valid match wins.
DATE_LAYOUTS = [
    _layout("dd/MM/yy", r"(\d{1,2})/(\d{1,2})/(\d{2})", "dmy", "%d/%m/%y"),
    _layout("dd/MM/yyyy", r"(\d{1,2})/(\d{1,2})/(\d{4})", "dmy", "%d/%m/%Y"),
    _layout("dd-MM-yy", r"(\d{1,2})-(\d{1,2})-(\d{2})", "dmy", "%d-%m-%y"),
    _layout("dd-MM-yyyy", r"(\d{1,2})-(\d{1,2})-(\d{4})", "dmy", "%d-%m-%Y"),
    _layout("yyyy-MM-dd", r"(\d{4})-(\d{1,2})-(\d{1,2})", "ymd", "%Y-%m-%d"),
    _layout("MM/dd/yyyy", r"(\d{1,2})/(\d{1,2})/(\d{4})", "mdy", "%m/%d/%Y"),
]


def resolve_two_digit_year(two_digit: int, now: datetime) -> int:
    """Place a two-digit year in the century closest to *now*.

    The window runs from 50 years back to 49 years ahead of the current year,
    so in 2026 "75" means 2075 and "76" means 1976.
    """
    year = now.year // 100 * 100 + two_digit
    if year - now.year >= 50:
        year -= 100
    elif now.year - year > 50:
        year += 100
    return year


def normalize_date(
    value: object,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> date:
    """Turn a raw sheet cell into a calendar date in the local zone.

    Args:
        value: Cell value: a string, a number (read as its string form),
            or an already-typed date/datetime.
        now: Reference instant for two-digit years. Defaults to the current
            time in *tz*.
        tz: Zone the result is expressed in. Defaults to config.LOCAL_TZ.

    Raises:
        InvalidDate: if the value is empty or no layout can read it.
    """
    tz = tz or config.LOCAL_TZ
    now = now.astimezone(tz) if now else datetime.now(tz)

    if isinstance(value, datetime):
        return value.astimezone(tz).date() if value.tzinfo else value.date()
    if isinstance(value, date):
        return value
    if value is None or isinstance(value, bool):
        raise InvalidDate(value)

    text = str(value).strip()
    if not text:
        raise InvalidDate(value)

    for layout in DATE_LAYOUTS:
        parsed = layout.parse(text, now)
        if parsed is not None:
            return parsed

    return _parse_fallback(text, now, tz)


def _parse_fallback(text: str, now: datetime, tz: tzinfo) -> date:
    default = now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    try:
        parsed = date_parser.parse(text, default=default)
    except (ValueError, OverflowError) as e:
        raise InvalidDate(text) from e

    log.debug("Parsed %r with fallback parser -> %s", text, parsed.isoformat())
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(tz)
    return parsed.date()


def format_date(value: date) -> str:
    """Render a date the way the sheets write it (dd/MM/yyyy)."""
    return value.strftime("%d/%m/%Y")
