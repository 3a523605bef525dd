"""
Backup router.

Mounts under ``/api/backup`` (prefix set in ``main.py``).

Endpoints
---------
GET  /         — Download all tasks, projects and years as a JSON backup.
POST /         — Upload a JSON backup; replaces all data in one transaction.
GET  /storage  — Storage usage, health status and data statistics.
"""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.database import get_db
from app.schemas.backup import ImportResult, StorageReport
from app.services import backup_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Backup"])

DbSession = Annotated[Session, Depends(get_db)]


@router.get(
    "",
    summary="导出备份",
    response_class=Response,
    responses={200: {"content": {"application/json": {}}}},
)
def download_backup(db: DbSession) -> Response:
    document = backup_service.export_backup(db)
    filename = f"bridgeco_backup_{date.today().isoformat()}.json"
    return Response(
        content=json.dumps(document, ensure_ascii=False, indent=2),
        media_type="application/json; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "",
    response_model=ImportResult,
    summary="导入备份",
    description=(
        "上传备份 JSON 文件，替换全部任务、项目和年度。"
        "文件缺少 tasks / projects / years 或内容无效时返回 400，原有数据不变。"
    ),
    responses={
        400: {"description": "文件格式不正确。"},
        500: {"description": "写入失败，已回滚。"},
    },
)
def upload_backup(
    file: Annotated[UploadFile, File(description="备份 JSON 文件。")],
    db: DbSession,
) -> ImportResult:
    raw = file.file.read()
    logger.info("POST /backup filename=%s bytes=%d", file.filename, len(raw))
    backup = backup_service.parse_backup(raw)
    return backup_service.import_backup(db, backup)


@router.get("/storage", response_model=StorageReport, summary="存储空间状态")
def storage_report(db: DbSession) -> StorageReport:
    return backup_service.get_storage_report(db)
