"""Helpers for ``YYYY-MM`` month keys."""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterator

MONTH_PATTERN = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


def is_month_key(value: str) -> bool:
    return bool(MONTH_PATTERN.match(value or ""))


def parse_month(value: str) -> date:
    """Return the first day of the month named by ``value``."""

    if not is_month_key(value):
        raise ValueError(f"Month must be in YYYY-MM format, got {value!r}")
    year, month = value.split("-")
    return date(int(year), int(month), 1)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def current_month_key(today: date | None = None) -> str:
    return month_key(today or date.today())


def month_sequence(start: date, months: int) -> Iterator[date]:
    year = start.year
    month = start.month
    for _ in range(months):
        yield date(year, month, 1)
        month += 1
        if month > 12:
            year += 1
            month = 1


def month_end(day: date) -> date:
    if day.month == 12:
        return date(day.year, 12, 31)
    next_month = date(day.year, day.month + 1, 1)
    return next_month - timedelta(days=1)


def next_month(day: date) -> date:
    return month_end(day) + timedelta(days=1)


def month_bounds(value: str) -> tuple[datetime, datetime]:
    """Half-open ``[start, end)`` datetime range covering the month."""

    first = parse_month(value)
    following = next_month(first)
    return (
        datetime(first.year, first.month, 1),
        datetime(following.year, following.month, 1),
    )


def months_between(start: date, end: date) -> int:
    """Number of calendar months from ``start`` to ``end`` inclusive."""

    if end < start:
        return 0
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def month_keys(first: str, last: str) -> list[str]:
    start = parse_month(first)
    count = months_between(start, parse_month(last))
    return [month_key(day) for day in month_sequence(start, count)]
