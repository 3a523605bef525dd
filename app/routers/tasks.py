"""
Tasks router.

Mounts under ``/api/tasks`` (prefix set in ``main.py``).

Endpoints
---------
GET    /                    — List tasks (?project_id=&status=&priority=).
POST   /                    — Create a manual task.
GET    /summary             — Dashboard: bucket counts and per-bucket lists.
POST   /refresh-priorities  — Re-snapshot priorities of pending tasks.
PUT    /{id}                — Update a task.
PUT    /{id}/complete       — Mark a task completed.
DELETE /{id}                — Delete a task.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.common import MessageResponse
from app.schemas.task import (
    DashboardResponse,
    Priority,
    RefreshPrioritiesResponse,
    TaskCreate,
    TaskResponse,
    TaskStatus,
    TaskUpdate,
)
from app.services import task_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Tasks"])

TaskId = Annotated[int, Path(ge=1, description="任务 ID。")]
DbSession = Annotated[Session, Depends(get_db)]

_NOT_FOUND = {404: {"description": "任务不存在。"}}


@router.get(
    "",
    response_model=list[TaskResponse],
    summary="任务列表",
    description="按截止日期升序返回任务，无截止日期的排在最后。",
)
def list_tasks(
    db: DbSession,
    project_id: Annotated[int | None, Query(ge=1, description="按项目筛选。")] = None,
    status_filter: Annotated[
        TaskStatus | None, Query(alias="status", description="pending 或 completed。")
    ] = None,
    priority: Annotated[
        Priority | None, Query(description="urgent / high / normal / low。")
    ] = None,
) -> list[TaskResponse]:
    logger.debug(
        "GET /tasks project_id=%s status=%s priority=%s",
        project_id, status_filter, priority,
    )
    return task_service.list_tasks(
        db, project_id=project_id, status_filter=status_filter, priority=priority
    )


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="创建任务",
    description="截止日期按自然日计算（开始日期计为第 1 天），优先级按今天计算。",
)
def create_task(payload: TaskCreate, db: DbSession) -> TaskResponse:
    return task_service.create_task(db, payload)


@router.get(
    "/summary",
    response_model=DashboardResponse,
    summary="任务看板",
    description=(
        "将待办任务分为 overdue / today / next7Days / next30Days / other 五组，"
        "返回各组数量与任务列表。每次请求按当天日期重新计算。"
    ),
)
def get_summary(db: DbSession) -> DashboardResponse:
    return task_service.get_dashboard(db)


@router.post(
    "/refresh-priorities",
    response_model=RefreshPrioritiesResponse,
    summary="刷新优先级",
)
def refresh_priorities(db: DbSession) -> RefreshPrioritiesResponse:
    return task_service.refresh_priorities(db)


@router.put(
    "/{task_id}",
    response_model=TaskResponse,
    summary="更新任务",
    responses=_NOT_FOUND,
)
def update_task(task_id: TaskId, payload: TaskUpdate, db: DbSession) -> TaskResponse:
    return task_service.update_task(db, task_id, payload)


@router.put(
    "/{task_id}/complete",
    response_model=TaskResponse,
    summary="完成任务",
    responses=_NOT_FOUND,
)
def complete_task(task_id: TaskId, db: DbSession) -> TaskResponse:
    return task_service.complete_task(db, task_id)


@router.delete(
    "/{task_id}",
    response_model=MessageResponse,
    summary="删除任务",
    responses=_NOT_FOUND,
)
def delete_task(task_id: TaskId, db: DbSession) -> MessageResponse:
    task_service.delete_task(db, task_id)
    return MessageResponse(message="任务已删除")
