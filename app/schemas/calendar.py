"""Pydantic v2 schemas for the calendar / deadline preview endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.task import Priority
from app.utils.constants import MAX_PREVIEW_DAYS


class DeadlinePreviewRequest(CamelModel):
    start_date: date
    days: int = Field(..., ge=0, le=MAX_PREVIEW_DAYS)
    is_working_days: bool = False


class DeadlinePreviewResponse(CamelModel):
    """Deadline computed for a form preview; nothing is persisted.

    Attributes:
        deadline_date: Computed deadline.
        priority: Priority the deadline would get today.
        days_remaining: Calendar days from today to the deadline.
    """

    start_date: date
    days: int
    is_working_days: bool
    deadline_date: date
    priority: Priority
    days_remaining: int


class BusinessDayResponse(CamelModel):
    day: date = Field(..., alias="date")
    is_business_day: bool
    is_holiday: bool
    is_workday: bool
    holiday_name: str | None = None
    from_fallback: bool = False


class CalendarHealthResponse(CamelModel):
    api_url: str
    cached_dates: int
    lookups: int
    failures: int
    degraded: bool
    last_error: str | None = None
    last_failure_at: datetime | None = None
    last_success_at: datetime | None = None
