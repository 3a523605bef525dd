"""
Calendar router.

Mounts under ``/api/calendar`` (prefix set in ``main.py``).

Endpoints
---------
GET  /health        — Holiday gateway activity and fallback counters.
GET  /business-day  — Whether a single date is a business day (?date=2024-10-01).
POST /deadline      — Deadline + priority preview for a form; nothing is saved.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from app.schemas.calendar import (
    BusinessDayResponse,
    CalendarHealthResponse,
    DeadlinePreviewRequest,
    DeadlinePreviewResponse,
)
from app.services.calendar_service import BusinessCalendar, get_calendar
from app.utils.date_utils import calculate_deadline_date, classify_priority, days_until

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Calendar"])


@router.get(
    "/health",
    response_model=CalendarHealthResponse,
    summary="节假日服务状态",
    description=(
        "返回节假日接口的调用次数、失败次数与最近错误。"
        "degraded=true 表示最近一次查询失败，工作日计算正按普通周末规则进行。"
    ),
)
def calendar_health(
    calendar: Annotated[BusinessCalendar, Depends(get_calendar)],
) -> CalendarHealthResponse:
    return CalendarHealthResponse(**calendar.health())


@router.get(
    "/business-day",
    response_model=BusinessDayResponse,
    summary="查询某日是否为工作日",
)
def business_day(
    day: Annotated[date, Query(alias="date", description="日期，格式 yyyy-MM-dd。")],
    calendar: Annotated[BusinessCalendar, Depends(get_calendar)],
) -> BusinessDayResponse:
    """Return the calendar facts for ``day``.

    Args:
        day: Date to look up.
        calendar: Business-day gateway.

    Returns:
        Business-day flag plus the underlying holiday / mandated-workday
        facts; ``fromFallback`` is true when the remote lookup failed.
    """
    info = calendar.get_holiday_info(day)
    logger.debug("GET /calendar/business-day date=%s", day)
    return BusinessDayResponse(
        day=day,
        is_business_day=calendar.is_business_day(day),
        is_holiday=info.is_holiday,
        is_workday=info.is_workday,
        holiday_name=info.name,
        from_fallback=info.from_fallback,
    )


@router.post(
    "/deadline",
    response_model=DeadlinePreviewResponse,
    summary="截止日期预览",
    description=(
        "按自然日（开始日期计为第 1 天）或工作日（不含开始日期）计算截止日期，"
        "并给出按今天计算的优先级。不保存任何数据。"
    ),
)
def preview_deadline(
    payload: DeadlinePreviewRequest,
    calendar: Annotated[BusinessCalendar, Depends(get_calendar)],
) -> DeadlinePreviewResponse:
    deadline = calculate_deadline_date(
        payload.start_date,
        payload.days,
        payload.is_working_days,
        calendar.is_business_day,
    )
    return DeadlinePreviewResponse(
        start_date=payload.start_date,
        days=payload.days,
        is_working_days=payload.is_working_days,
        deadline_date=deadline,
        priority=classify_priority(deadline),
        days_remaining=days_until(deadline),
    )
