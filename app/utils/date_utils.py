"""
Deadline arithmetic, priority classification and dashboard bucketing.

Everything here is pure: "today" and the business-day predicate are passed
in by the caller, so results only depend on the arguments.

- ``calculate_deadline_date`` — calendar-day mode counts the start date as
  day 1; working-day mode skips the start date and counts forward business
  days only.  The two modes are intentionally asymmetric.
- ``classify_priority`` — urgent / high / normal / low from the distance in
  whole calendar days between a deadline and today.
- ``display_bucket`` / ``calculate_task_summary`` / ``group_tasks_by_bucket``
  — the five dashboard buckets for pending tasks.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import date, timedelta
from typing import Any

from app.utils.constants import DISPLAY_BUCKETS, NEAR_DAYS, SOON_DAYS

BusinessDayPredicate = Callable[[date], bool]


def weekday_is_business_day(day: date) -> bool:
    """Plain Monday–Friday rule, without any holiday information."""
    return day.weekday() < 5


def add_business_days(
    start_date: date,
    days: int,
    is_business_day: BusinessDayPredicate = weekday_is_business_day,
) -> date:
    current = start_date
    added = 0
    while added < days:
        current += timedelta(days=1)
        if is_business_day(current):
            added += 1
    return current


def count_business_days_between(
    start_date: date,
    end_date: date,
    is_business_day: BusinessDayPredicate = weekday_is_business_day,
) -> int:
    """Count business days in ``(start_date, end_date]``."""
    count = 0
    current = start_date
    while current < end_date:
        current += timedelta(days=1)
        if is_business_day(current):
            count += 1
    return count


def calculate_deadline_date(
    start_date: date,
    days: int,
    is_working_days: bool = False,
    is_business_day: BusinessDayPredicate | None = None,
) -> date:
    """Compute the deadline for a period of ``days`` starting at ``start_date``.

    Args:
        start_date: First day of the period.
        days: Length of the period (>= 0).
        is_working_days: Count business days instead of calendar days.
        is_business_day: Predicate consulted in working-day mode.  Defaults to
            the plain weekday rule.

    Returns:
        Calendar mode: ``start_date + (days - 1)`` (so ``days=0`` yields the
        day before the start).  Working mode: the date on which the
        ``days``-th business day after ``start_date`` is reached.

    Raises:
        ValueError: If ``days`` is negative.
    """
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")

    if is_working_days:
        return add_business_days(
            start_date, days, is_business_day or weekday_is_business_day
        )
    return start_date + timedelta(days=days - 1)


def days_until(deadline_date: date, today: date | None = None) -> int:
    """Signed number of whole calendar days from ``today`` to ``deadline_date``."""
    return (deadline_date - (today or date.today())).days


def classify_priority(deadline_date: date, today: date | None = None) -> str:
    days_diff = days_until(deadline_date, today)
    if days_diff < 0:
        return "urgent"
    if days_diff == 0:
        return "high"
    if days_diff <= NEAR_DAYS:
        return "normal"
    return "low"


def display_bucket(deadline_date: date | None, today: date | None = None) -> str:
    """Dashboard bucket for a pending task's deadline.

    Unscheduled tasks and tasks more than 30 days out share the ``other``
    bucket.
    """
    if deadline_date is None:
        return "other"
    days_diff = days_until(deadline_date, today)
    if days_diff < 0:
        return "overdue"
    if days_diff == 0:
        return "today"
    if days_diff <= NEAR_DAYS:
        return "next7Days"
    if days_diff <= SOON_DAYS:
        return "next30Days"
    return "other"


def group_tasks_by_bucket(
    tasks: Iterable[Any], today: date | None = None
) -> dict[str, list[Any]]:
    """Partition pending tasks into the five display buckets.

    Completed tasks are left out entirely.  Each task must expose ``status``
    and ``deadline_date`` attributes.
    """
    today = today or date.today()
    buckets: dict[str, list[Any]] = {b: [] for b in DISPLAY_BUCKETS}
    for task in tasks:
        if task.status == "completed":
            continue
        buckets[display_bucket(task.deadline_date, today)].append(task)
    return buckets


def calculate_task_summary(
    tasks: Iterable[Any], today: date | None = None
) -> dict[str, int]:
    return {
        bucket: len(items)
        for bucket, items in group_tasks_by_bucket(tasks, today).items()
    }
