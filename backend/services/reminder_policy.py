"""
Due-date policy for payment reminder notifications.

A pending reminder is notified only on the exact days 7, 3, 1 and 0 before
it falls due, and at most once per calendar day.
"""

from datetime import date, datetime
from typing import Optional, Union

from models import REMINDER_PENDING

NOTIFICATION_THRESHOLDS = (0, 1, 3, 7)

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_until_due(due_date: DateLike, today: DateLike) -> int:
    """Whole calendar days from today to due_date; time of day is ignored."""
    return (_as_date(due_date) - _as_date(today)).days


def sent_today(last_sent_at: Optional[datetime], today: DateLike) -> bool:
    return last_sent_at is not None and _as_date(last_sent_at) == _as_date(today)


def skip_reason(reminder, today: DateLike) -> Optional[str]:
    """Why the reminder gets no notification today, or None if one is due."""
    if reminder.status != REMINDER_PENDING:
        return "Reminder is not pending"
    days = days_until_due(reminder.due_date, today)
    if days < 0:
        return "Due date has passed"
    if days not in NOTIFICATION_THRESHOLDS:
        return "Not a notification threshold day"
    if sent_today(reminder.last_sent_at, today):
        return "Already sent today"
    return None


def is_notification_due(reminder, today: DateLike) -> bool:
    return skip_reason(reminder, today) is None
