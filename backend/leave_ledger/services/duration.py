from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from fastapi import status

from leave_ledger.exceptions import AppError

_FULL_DAY = Decimal(1)
_HALF_DAY = Decimal("0.5")


def is_working_day(day: date) -> bool:
    """Monday through Friday."""
    return day.weekday() < 5


def count_leave_days(
    start_date: date,
    end_date: date,
    half_day_start: bool = False,
    half_day_end: bool = False,
) -> Decimal:
    """Count leave days in the inclusive range ``start_date``..``end_date``.

    Weekends are not counted. A half-day flag turns the first (or last)
    day into half a day when that day is a working day; a single-day request
    with either flag set is half a day.
    """
    if end_date < start_date:
        raise AppError("end_date must not be before start_date", status_code=status.HTTP_400_BAD_REQUEST)

    total = Decimal(0)
    current = start_date
    one_day = timedelta(days=1)

    while current <= end_date:
        if not is_working_day(current):
            current += one_day
            continue

        is_half = (current == start_date and half_day_start) or (current == end_date and half_day_end)
        total += _HALF_DAY if is_half else _FULL_DAY
        current += one_day

    if total <= 0:
        raise AppError("Request covers no working days", status_code=status.HTTP_400_BAD_REQUEST)

    return total
