"""
Years router.

Mounts under ``/api/years`` (prefix set in ``main.py``).

Endpoints
---------
GET    /      — List years, newest first.
POST   /      — Create a year bucket.
DELETE /{id}  — Delete a year and every project filed under it.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.common import MessageResponse
from app.schemas.year import YearCreate, YearResponse
from app.services import year_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Years"])


@router.get("", response_model=list[YearResponse], summary="年度列表")
def list_years(db: Annotated[Session, Depends(get_db)]) -> list[YearResponse]:
    return year_service.list_years(db)


@router.post(
    "",
    response_model=YearResponse,
    status_code=status.HTTP_201_CREATED,
    summary="创建年度",
    responses={409: {"description": "年度已存在。"}},
)
def create_year(
    payload: YearCreate,
    db: Annotated[Session, Depends(get_db)],
) -> YearResponse:
    logger.info("POST /years year=%d", payload.year)
    return year_service.create_year(db, payload)


@router.delete(
    "/{year_id}",
    response_model=MessageResponse,
    summary="删除年度",
    description="删除年度及该年度下的全部项目。此操作不可恢复；相关任务保留。",
    responses={404: {"description": "年度不存在。"}},
)
def delete_year(
    year_id: Annotated[int, Path(ge=1)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    deleted = year_service.delete_year(db, year_id)
    return MessageResponse(message="年度已删除", detail=f"同时删除 {deleted} 个项目")
