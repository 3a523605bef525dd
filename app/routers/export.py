"""
Export router.

Mounts under ``/api/export`` (prefix set in ``main.py``).

Endpoints
---------
GET /tasks.xlsx — Task list as an Excel workbook (?project_id=&status=).
"""

from __future__ import annotations

import io
import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.task import TaskStatus
from app.services import export_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Export"])

_XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get(
    "/tasks.xlsx",
    summary="导出任务清单 (Excel)",
    response_class=StreamingResponse,
    responses={200: {"content": {_XLSX_MEDIA_TYPE: {}}}},
)
def export_tasks(
    db: Annotated[Session, Depends(get_db)],
    project_id: Annotated[int | None, Query(ge=1, description="只导出该项目的任务。")] = None,
    status_filter: Annotated[
        TaskStatus | None, Query(alias="status", description="pending 或 completed。")
    ] = None,
) -> StreamingResponse:
    """Generate and stream the task workbook.

    Args:
        db: Database session.
        project_id: Optional project filter.
        status_filter: Optional status filter.

    Returns:
        A ``StreamingResponse`` with the ``.xlsx`` file attached.
    """
    logger.info("GET /export/tasks.xlsx project_id=%s status=%s", project_id, status_filter)
    file_bytes = export_service.export_tasks_excel(
        db, project_id=project_id, status_filter=status_filter
    )

    filename = f"tasks_{date.today().isoformat()}.xlsx"
    return StreamingResponse(
        io.BytesIO(file_bytes),
        media_type=_XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Content-Length": str(len(file_bytes)),
        },
    )
