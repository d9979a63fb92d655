"""
Recurring transaction schedule.

A recurring transaction's only schedule state is `last_posted_date`.
The next occurrence is the start date until something has been posted,
then one period after the last posted occurrence.

Monthly and yearly periods are calendar periods: Jan 31 + 1 month is
Feb 29 (or 28), never March. The clamped day then carries forward.
"""

from datetime import date
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from fintrack.models.finance import RecurringFrequency, RecurringTransactionData


_PERIODS = {
    RecurringFrequency.WEEKLY: relativedelta(weeks=1),
    RecurringFrequency.MONTHLY: relativedelta(months=1),
    RecurringFrequency.YEARLY: relativedelta(years=1),
}


def advance(day: date, frequency: RecurringFrequency) -> date:
    """One period after `day`."""
    return day + _PERIODS[frequency]


def next_due_date(rt: RecurringTransactionData) -> date:
    if rt.last_posted_date is None:
        return rt.start_date
    return advance(rt.last_posted_date, rt.frequency)


def is_expired(rt: RecurringTransactionData, due: Optional[date] = None) -> bool:
    """True once the next occurrence would fall after the end date."""
    if rt.end_date is None:
        return False
    return (due or next_due_date(rt)) > rt.end_date


def is_due(rt: RecurringTransactionData, today: date) -> bool:
    due = next_due_date(rt)
    return due <= today and not is_expired(rt, due)


def pending_due_dates(rt: RecurringTransactionData, today: date) -> list[date]:
    """Every occurrence not yet posted, up to and including `today`."""
    dates = []
    due = next_due_date(rt)
    while due <= today and not is_expired(rt, due):
        dates.append(due)
        due = advance(due, rt.frequency)
    return dates


def sort_by_due_date(items: Iterable[RecurringTransactionData]) -> list:
    """Ascending next due date; ties keep their stored order."""
    return sorted(items, key=next_due_date)
