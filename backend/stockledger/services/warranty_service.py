# Overview: Warranty window computation; pure functions, no database access.

from __future__ import annotations

import calendar
from datetime import datetime, timedelta
from typing import Optional

from ..errors import ValidationError
from stockledger.time_utils import utcnow


UNIT_DAYS = "Days"
UNIT_MONTHS = "Months"
UNIT_YEARS = "Years"
UNITS = (UNIT_DAYS, UNIT_MONTHS, UNIT_YEARS)


def _add_months(dt: datetime, months: int) -> datetime:
    # Day is clamped to the last day of the target month (Jan 31 + 1 month = Feb 28/29)
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def warranty_expiry(issue_date: datetime, period_value: int, period_unit: Optional[str] = None) -> datetime:
    """issue_date + period_value units. Unit defaults to Days."""
    unit = period_unit or UNIT_DAYS
    if unit not in UNITS:
        raise ValidationError(f"Unknown warranty unit: {unit}")
    if period_value < 0:
        raise ValidationError("Warranty period must be >= 0")

    if unit == UNIT_DAYS:
        return issue_date + timedelta(days=period_value)
    if unit == UNIT_MONTHS:
        return _add_months(issue_date, period_value)
    return _add_months(issue_date, 12 * period_value)


def is_under_warranty(
    issue_date: Optional[datetime],
    period_value: Optional[int],
    period_unit: Optional[str] = None,
    now: Optional[datetime] = None,
    *,
    void_reason: Optional[str] = None,
) -> bool:
    """
    True while now <= issue_date + period.

    A voided warranty (void_reason set) is never valid, whatever the dates say.
    No issue date or no positive period means no warranty.
    """
    if void_reason:
        return False
    if issue_date is None or not period_value or period_value <= 0:
        return False
    now = now or utcnow()
    return now <= warranty_expiry(issue_date, period_value, period_unit)
