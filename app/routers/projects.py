"""
Projects router.

Mounts under ``/api/projects`` (prefix set in ``main.py``).

Every write re-synchronises the project's derived tasks before it returns.

Endpoints
---------
GET    /                    — List projects (?year=2024).
POST   /                    — Create a project.
GET    /{id}                — Project detail.
PUT    /{id}                — Update basic fields (name/number changes propagate to tasks).
DELETE /{id}                — Delete a project and its tasks.
PUT    /{id}/award-notice   — Replace the award notice section.
PUT    /{id}/contract       — Replace the contract section.
PUT    /{id}/construction   — Replace the construction checklist.
GET    /{id}/tasks          — Tasks of the project.
GET    /{id}/markdown       — Download the Markdown report.
"""

from __future__ import annotations

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.common import MessageResponse
from app.schemas.project import (
    AwardNotice,
    ConstructionMaterial,
    Contract,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from app.schemas.task import TaskResponse
from app.services import export_service, project_service
from app.services.calendar_service import BusinessCalendar, get_calendar

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Projects"])

ProjectId = Annotated[int, Path(ge=1, description="项目 ID。")]
DbSession = Annotated[Session, Depends(get_db)]
Calendar = Annotated[BusinessCalendar, Depends(get_calendar)]

_NOT_FOUND = {404: {"description": "项目不存在。"}}


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------


@router.get("", response_model=list[ProjectResponse], summary="项目列表")
def list_projects(
    db: DbSession,
    year: Annotated[int | None, Query(description="按年度筛选。")] = None,
) -> list[ProjectResponse]:
    return project_service.list_projects(db, year=year)


@router.post(
    "",
    response_model=ProjectResponse,
    status_code=status.HTTP_201_CREATED,
    summary="创建项目",
    description=(
        "创建项目。若中标通知书已填写中标日期且合同签订天数大于 0，"
        "同时生成“签署合同”任务。"
    ),
    responses={
        404: {"description": "年度不存在。"},
        409: {"description": "该年度已存在相同项目编号。"},
        422: {"description": "付款或保险条款名称重复。"},
    },
)
def create_project(
    payload: ProjectCreate,
    db: DbSession,
    calendar: Calendar,
) -> ProjectResponse:
    logger.info("POST /projects year=%d number=%s", payload.year, payload.project_number)
    return project_service.create_project(db, payload, calendar=calendar)


# ---------------------------------------------------------------------------
# Item
# ---------------------------------------------------------------------------


@router.get(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="项目详情",
    responses=_NOT_FOUND,
)
def get_project(project_id: ProjectId, db: DbSession) -> ProjectResponse:
    return project_service.get_project(db, project_id)


@router.put(
    "/{project_id}",
    response_model=ProjectResponse,
    summary="更新项目基本信息",
    description="项目名称或编号变更会同步到该项目全部任务的标题和描述中。",
    responses={**_NOT_FOUND, 409: {"description": "该年度已存在相同项目编号。"}},
)
def update_project(
    project_id: ProjectId,
    payload: ProjectUpdate,
    db: DbSession,
    calendar: Calendar,
) -> ProjectResponse:
    return project_service.update_project(db, project_id, payload, calendar=calendar)


@router.delete(
    "/{project_id}",
    response_model=MessageResponse,
    summary="删除项目",
    responses=_NOT_FOUND,
)
def delete_project(project_id: ProjectId, db: DbSession) -> MessageResponse:
    deleted = project_service.delete_project(db, project_id)
    return MessageResponse(message="项目已删除", detail=f"同时删除 {deleted} 个任务")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@router.put(
    "/{project_id}/award-notice",
    response_model=ProjectResponse,
    summary="更新中标通知书",
    description="同步“签署合同”任务；工期变化时重新计算待办的完工申请报告任务。",
    responses=_NOT_FOUND,
)
def update_award_notice(
    project_id: ProjectId,
    payload: AwardNotice,
    db: DbSession,
    calendar: Calendar,
) -> ProjectResponse:
    return project_service.update_award_notice(db, project_id, payload, calendar=calendar)


@router.put(
    "/{project_id}/contract",
    response_model=ProjectResponse,
    summary="更新合同协议书",
    description="同步付款、履约保函与保险任务；删除的条款其任务一并删除。",
    responses={
        **_NOT_FOUND,
        422: {"description": "付款或保险条款名称重复。"},
    },
)
def update_contract(
    project_id: ProjectId,
    payload: Contract,
    db: DbSession,
    calendar: Calendar,
) -> ProjectResponse:
    return project_service.update_contract(db, project_id, payload, calendar=calendar)


@router.put(
    "/{project_id}/construction",
    response_model=ProjectResponse,
    summary="更新开工资料",
    description="同步开工资料各项任务及依赖里程碑日期的付款任务。",
    responses=_NOT_FOUND,
)
def update_construction(
    project_id: ProjectId,
    payload: ConstructionMaterial,
    db: DbSession,
    calendar: Calendar,
) -> ProjectResponse:
    return project_service.update_construction(db, project_id, payload, calendar=calendar)


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


@router.get(
    "/{project_id}/tasks",
    response_model=list[TaskResponse],
    summary="项目任务",
    responses=_NOT_FOUND,
)
def list_project_tasks(project_id: ProjectId, db: DbSession) -> list[TaskResponse]:
    return project_service.list_project_tasks(db, project_id)


@router.get(
    "/{project_id}/markdown",
    summary="导出项目报告 (Markdown)",
    response_class=Response,
    responses={
        200: {"content": {"text/markdown": {}}},
        **_NOT_FOUND,
    },
)
def export_markdown(project_id: ProjectId, db: DbSession) -> Response:
    filename, markdown = export_service.export_project_markdown(db, project_id)
    return Response(
        content=markdown,
        media_type="text/markdown; charset=utf-8",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}",
        },
    )
