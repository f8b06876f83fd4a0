"""Calendar-month arithmetic shared by the validator and the simulator."""

import calendar
from datetime import date
from typing import Iterator


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    return d.replace(day=calendar.monthrange(d.year, d.month)[1])


def add_months(d: date, n: int) -> date:
    """First day of the month `n` months after the month of `d`."""
    idx = d.year * 12 + (d.month - 1) + n
    return date(idx // 12, idx % 12 + 1, 1)


def months_between(start: date, end: date) -> int:
    """Calendar months touched by [start, end], both endpoint months included."""
    if start > end:
        return 0
    return (end.year - start.year) * 12 + (end.month - start.month) + 1


def iter_month_dates(start: date, end: date) -> Iterator[date]:
    """Yield `start`, then the first day of every following month up to the month of `end`."""
    for k in range(months_between(start, end)):
        yield start if k == 0 else add_months(start, k)
