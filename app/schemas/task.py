"""
Pydantic v2 schemas for tasks and the dashboard summary.

``deadlineDate`` may be null (or ``""`` on input): the task has no deadline
yet, typically because a payment term is waiting on an earlier milestone.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import Field, field_serializer

from app.schemas.common import CamelModel, OptionalDate, OptionalTimestamp

Priority = Literal["urgent", "high", "normal", "low"]
TaskStatus = Literal["pending", "completed"]


class TaskCreate(CamelModel):
    """Manual task.  The deadline is computed in calendar days from
    ``start_date`` and ``deadline_days``."""

    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    start_date: date
    deadline_days: int = Field(default=7, ge=0)
    project_id: int | None = None
    project_number: str | None = None


class TaskUpdate(CamelModel):
    """Partial update; omitted fields are left unchanged.

    Changing ``start_date`` or ``deadline_days`` recomputes the deadline
    and priority.
    """

    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    start_date: date | None = None
    deadline_days: int | None = Field(default=None, ge=0)
    status: TaskStatus | None = None


class TaskResponse(CamelModel):
    id: int
    title: str
    description: str
    start_date: date
    deadline_days: int
    deadline_date: date | None
    priority: Priority
    status: TaskStatus
    project_id: int | None = None
    project_number: str | None = None
    is_project_task: bool
    governed_kind: str | None = None
    governed_key: str = ""
    created_at: datetime
    completed_at: datetime | None = None


class TaskBackup(CamelModel):
    """Task as stored in a backup file.

    Files written by older versions carry no ``governedKind``; those are
    inferred from the title on import.
    """

    id: int | None = None
    title: str = Field(..., min_length=1)
    description: str = ""
    start_date: date
    deadline_days: int = Field(default=0, ge=0)
    deadline_date: OptionalDate = None
    priority: Priority = "low"
    status: TaskStatus = "pending"
    project_id: int | None = None
    project_number: str | None = None
    is_project_task: bool = False
    governed_kind: str | None = None
    governed_key: str = ""
    created_at: OptionalTimestamp = None
    completed_at: OptionalTimestamp = None

    @field_serializer("deadline_date")
    def _serialize_deadline(self, value: date | None) -> str:
        return value.isoformat() if value else ""


class TaskSummary(CamelModel):
    """Pending-task counts per display bucket."""

    overdue: int = 0
    today: int = 0
    next7_days: int = Field(default=0, alias="next7Days")
    next30_days: int = Field(default=0, alias="next30Days")
    other: int = 0


class DashboardResponse(CamelModel):
    summary: TaskSummary
    overdue: list[TaskResponse]
    today: list[TaskResponse]
    next7_days: list[TaskResponse] = Field(alias="next7Days")
    next30_days: list[TaskResponse] = Field(alias="next30Days")
    other: list[TaskResponse]


class RefreshPrioritiesResponse(CamelModel):
    checked: int
    changed: int
