"""
Normalisation of user-supplied dates and times into the forms the reservation
site displays.

Dates become ISO "YYYY-MM-DD" strings resolved in the site's local timezone.
Times become the site's slot label form, "H:MM AM/PM" ("3pm" -> "3:00 PM"),
so that a slot can be found by substring match against the rendered list.
Both functions are idempotent.
"""

import re
from datetime import date, datetime, timedelta

import pytz

from courtbook.config import settings

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

DATE_FORMATS_WITH_YEAR = ["%Y-%m-%d", "%m/%d/%Y", "%B %d %Y", "%b %d %Y", "%B %d, %Y", "%b %d, %Y"]
DATE_FORMATS_WITHOUT_YEAR = ["%m/%d", "%B %d", "%b %d"]

# Any leap year; lets "Feb 29" parse before the real year is applied.
_LEAP_YEAR = 2000

_TWELVE_HOUR = re.compile(r"^(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s*m\.?$")
_TWENTY_FOUR_HOUR = re.compile(r"^(\d{1,2}):(\d{2})$")


def local_today() -> date:
    """Today's date where the courts are."""
    return datetime.now(pytz.timezone(settings.timezone)).date()


def operating_year(today: date | None = None) -> int:
    """Earliest year a booking date may fall in."""
    if settings.operating_year:
        return settings.operating_year
    return (today or local_today()).year


def _with_year(value: date, year: int) -> date:
    try:
        return value.replace(year=year)
    except ValueError:
        # Feb 29 outside a leap year
        return value.replace(year=year, day=28)


def _resolve_relative_date(value: str, today: date) -> date | None:
    if value in ("", "tomorrow"):
        return today + timedelta(days=1)
    if value == "today":
        return today
    if value in WEEKDAYS:
        days_ahead = WEEKDAYS.index(value) - today.weekday()
        if days_ahead <= 0:
            days_ahead += 7
        return today + timedelta(days=days_ahead)
    return None


def _parse_explicit_date(value: str, today: date) -> date | None:
    for fmt in DATE_FORMATS_WITH_YEAR:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    for fmt in DATE_FORMATS_WITHOUT_YEAR:
        try:
            parsed = datetime.strptime(f"{value} {_LEAP_YEAR}", f"{fmt} %Y").date()
        except ValueError:
            continue
        return _with_year(parsed, today.year)
    return None


def normalize_date(value: str | None, today: date | None = None) -> str:
    """
    Resolve a user-supplied date to "YYYY-MM-DD".

    Accepts an empty value (tomorrow), "today", "tomorrow", a weekday name (its
    next occurrence), ISO dates and common US forms such as "6/10", "6/10/2025"
    or "June 10". A date in a year before the operating year is moved into the
    operating year.

    Raises:
        ValueError: If the value is not a recognisable date.
    """
    today = today or local_today()
    text = " ".join((value or "").strip().split())

    resolved = _resolve_relative_date(text.lower(), today)
    if resolved is None:
        resolved = _parse_explicit_date(text, today)
    if resolved is None:
        raise ValueError(f"Unrecognised date: {value!r}. Use YYYY-MM-DD, 'today' or 'tomorrow'.")

    year = operating_year(today)
    if resolved.year < year:
        resolved = _with_year(resolved, year)
    return resolved.isoformat()


def normalize_time(value: str) -> str:
    """
    Convert a user-supplied time to the site's "H:MM AM/PM" form.

    Accepts "3pm", "3 PM", "3:30pm", "03:30 PM", "3:30 p.m.", 24-hour "15:30",
    "noon" and "midnight".

    Raises:
        ValueError: If the value is not a recognisable time.
    """
    text = (value or "").strip().lower()
    if text == "noon":
        return "12:00 PM"
    if text == "midnight":
        return "12:00 AM"

    match = _TWELVE_HOUR.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2) or 0)
        if not 1 <= hour <= 12 or minute > 59:
            raise ValueError(f"Invalid time: {value!r}")
        meridiem = "AM" if match.group(3) == "a" else "PM"
        return f"{hour}:{minute:02d} {meridiem}"

    match = _TWENTY_FOUR_HOUR.match(text)
    if match:
        hour = int(match.group(1))
        minute = int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError(f"Invalid time: {value!r}")
        meridiem = "AM" if hour < 12 else "PM"
        return f"{hour % 12 or 12}:{minute:02d} {meridiem}"

    raise ValueError(f"Unrecognised time: {value!r}. Use a form like '3pm' or '3:30 PM'.")


def slot_matches(normalized_time: str, slots: list[str]) -> bool:
    """Whether any displayed slot contains the normalised time."""
    return any(normalized_time in slot for slot in slots)
