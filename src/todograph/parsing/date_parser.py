"""Due-date expression parser.

Resolves the text after an ``@`` marker into a calendar date. Parsing is a
pure function of the expression and a reference day, so callers decide what
"today" means.

Supported forms:
    today, tomorrow, yesterday
    +3d, +2w, +1m          relative offsets
    mon, friday            next occurrence (same weekday means next week)
    jan15, december3       this year, or next year if already past
    2025-01-31             ISO date

Anything else is handed to dateparser ("next monday", "in 3 days",
"march 20"), resolved against the same reference day.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timedelta

import dateparser

_RELATIVE_PATTERN = re.compile(r"^\+(\d+)([dwm])$")
_MONTH_DAY_PATTERN = re.compile(r"^([a-z]+)(\d{1,2})$")
_ISO_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

WEEKDAYS = {
    "mon": 0,
    "monday": 0,
    "tue": 1,
    "tuesday": 1,
    "wed": 2,
    "wednesday": 2,
    "thu": 3,
    "thursday": 3,
    "fri": 4,
    "friday": 4,
    "sat": 5,
    "saturday": 5,
    "sun": 6,
    "sunday": 6,
}

MONTHS = {
    "jan": 1,
    "january": 1,
    "feb": 2,
    "february": 2,
    "mar": 3,
    "march": 3,
    "apr": 4,
    "april": 4,
    "may": 5,
    "jun": 6,
    "june": 6,
    "jul": 7,
    "july": 7,
    "aug": 8,
    "august": 8,
    "sep": 9,
    "september": 9,
    "oct": 10,
    "october": 10,
    "nov": 11,
    "november": 11,
    "dec": 12,
    "december": 12,
}


def add_months(start: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _next_weekday(today: date, weekday: int) -> date:
    days_ahead = (weekday - today.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return today + timedelta(days=days_ahead)


def _month_day(today: date, month: int, day: int) -> date | None:
    for year in (today.year, today.year + 1):
        try:
            candidate = date(year, month, day)
        except ValueError:
            continue
        if candidate >= today:
            return candidate
    return None


def _fallback_parse(text: str, today: date) -> date | None:
    parsed = dateparser.parse(
        text,
        settings={
            "PREFER_DATES_FROM": "future",
            "RELATIVE_BASE": datetime.combine(today, time()),
        },
    )
    return parsed.date() if parsed else None


def parse_date(expression: str, today: date | None = None) -> date | None:
    """Resolve a due-date expression.

    Args:
        expression: Marker text without the leading ``@``
        today: Reference day; defaults to the current local date

    Returns:
        Resolved date, or None if the expression is not recognized
    """
    if not expression:
        return None
    today = today or date.today()
    text = expression.strip().lower()

    if text == "today":
        return today
    if text == "tomorrow":
        return today + timedelta(days=1)
    if text == "yesterday":
        return today - timedelta(days=1)

    match = _RELATIVE_PATTERN.match(text)
    if match:
        amount = int(match.group(1))
        unit = match.group(2)
        if unit == "d":
            return today + timedelta(days=amount)
        if unit == "w":
            return today + timedelta(weeks=amount)
        return add_months(today, amount)
    if text.startswith("+"):
        return None

    if text in WEEKDAYS:
        return _next_weekday(today, WEEKDAYS[text])

    match = _MONTH_DAY_PATTERN.match(text)
    if match and match.group(1) in MONTHS:
        return _month_day(today, MONTHS[match.group(1)], int(match.group(2)))

    match = _ISO_PATTERN.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    return _fallback_parse(text, today)


def format_date(value: date) -> str:
    """Format a date as the canonical ``yyyy-mm-dd`` marker text."""
    return value.isoformat()
