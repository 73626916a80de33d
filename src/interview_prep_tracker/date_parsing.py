from __future__ import annotations

import re
from datetime import datetime, time, timedelta

import dateparser

DAYS_OF_WEEK = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)
MAX_RELATIVE_DAYS = 3650
DEFAULT_FALLBACK_DAYS = 7

_ISO_LIKE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}(?:T.*)?$")
_IN_DAYS_RE = re.compile(r"\bin\s+(-?\d+)\s+days?\b")
_WEEKDAY_RE = re.compile(r"\b(" + "|".join(DAYS_OF_WEEK) + r")\b")
_NEXT_RE = re.compile(r"\bnext\s")

DATEPARSER_SETTINGS = {
    "PREFER_DAY_OF_MONTH": "first",
    "RETURN_AS_TIMEZONE_AWARE": False,
    "PREFER_DATES_FROM": "future",
}


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def _parse_iso(raw: str) -> datetime | None:
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _parse_loose(raw: str, base: datetime) -> datetime | None:
    settings = dict(DATEPARSER_SETTINGS)
    settings["RELATIVE_BASE"] = base
    parsed = dateparser.parse(raw, languages=["en"], settings=settings)
    if parsed is None:
        return None
    return start_of_day(parsed)


def try_parse_date_input(
    date_string: str | None,
    base_date: datetime | None = None,
) -> datetime | None:
    """Parse a loose, user-provided date expression into a start-of-day datetime.

    Supported, in priority order:
    - ISO strings: ``YYYY-MM-DD`` or full ISO timestamps
    - ``today``, ``tomorrow``, ``yesterday``
    - ``in N days`` (N between 0 and 3650)
    - a weekday anywhere in the text: ``friday``, ``friday at 3pm``,
      ``next friday 10am``; today's weekday means today unless ``next``
      appears
    - anything ``dateparser`` understands relative to ``base_date``,
      e.g. ``14th feb`` or ``Feb 18th 2026``, preferring future dates

    Returns None when nothing matches.
    """
    raw = (date_string or "").strip()
    if not raw:
        return None
    base = start_of_day(base_date or datetime.now())

    if _ISO_LIKE_RE.match(raw):
        parsed_iso = _parse_iso(raw)
        if parsed_iso is not None:
            return start_of_day(parsed_iso)

    lowered = re.sub(r"\s+", " ", raw.lower())

    if lowered == "today":
        return base
    if lowered == "tomorrow":
        return base + timedelta(days=1)
    if lowered == "yesterday":
        return base - timedelta(days=1)

    in_days = _IN_DAYS_RE.search(lowered)
    if in_days:
        days = int(in_days.group(1))
        if days < 0 or days > MAX_RELATIVE_DAYS:
            return None
        return base + timedelta(days=days)

    weekday = _WEEKDAY_RE.search(lowered)
    if weekday:
        has_next = _NEXT_RE.search(lowered) is not None
        target = DAYS_OF_WEEK.index(weekday.group(1))
        days_until = target - base.weekday()
        if days_until < 0 or (days_until == 0 and has_next):
            days_until += 7
        return base + timedelta(days=days_until)

    return _parse_loose(raw, base)


def parse_date_input(date_string: str | None, base_date: datetime | None = None) -> datetime:
    """Like ``try_parse_date_input`` but falls back to a week from ``base_date``."""
    parsed = try_parse_date_input(date_string, base_date)
    if parsed is not None:
        return parsed
    return start_of_day(base_date or datetime.now()) + timedelta(days=DEFAULT_FALLBACK_DAYS)
