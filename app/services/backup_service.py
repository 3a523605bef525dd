"""
Backup service layer.

Export
------
``export_backup`` serialises the three tables into the camelCase backup
layout ``{tasks, projects, years, exportDate, storageInfo}``.  Tasks without
a deadline are written with ``deadlineDate: ""``.

Import
------
``import_backup`` runs in three stages:

1. Shape check: the payload must be a JSON object holding ``tasks``,
   ``projects`` and ``years`` lists.  Failure → HTTP 400 before the
   database is touched.
2. Validation of every record against the backup schemas → HTTP 400.  Years
   repeated by value keep their first entry.
3. One transaction that deletes all rows and inserts the backup.  Any
   storage error rolls the whole replace back (HTTP 500), so the previous
   data survives intact.

Project tasks written by versions without task identities are matched to
their governing item from the title (``签署合同 - …``, ``{term}付款 - …``,
``购买{name}保险 - …`` ...), so later reconciliation keeps finding them.

Storage statistics
------------------
Usage is measured as the length of the serialised JSON of each table,
against ``STORAGE_QUOTA_BYTES``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import HTTPException, status
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.project import Project
from app.models.task import Task
from app.models.year import Year
from app.schemas.backup import (
    BackupFile,
    DataStatistics,
    ImportResult,
    StorageHealth,
    StorageInfo,
    StorageReport,
)
from app.schemas.common import utc_now
from app.schemas.project import ProjectBackup
from app.schemas.task import TaskBackup
from app.schemas.year import YearBackup
from app.utils.constants import (
    INSURANCE_TITLE_PREFIX,
    INSURANCE_TITLE_SUFFIX,
    KIND_INSURANCE,
    KIND_PAYMENT,
    LEGACY_TITLE_HEADS,
    PAYMENT_TITLE_SUFFIX,
)

logger = logging.getLogger(__name__)

_REQUIRED_KEYS = ("tasks", "projects", "years")


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------


def _dump_tables(db: Session) -> dict[str, list[dict[str, Any]]]:
    tasks = db.query(Task).order_by(Task.id).all()
    projects = db.query(Project).order_by(Project.id).all()
    years = db.query(Year).order_by(Year.id).all()
    return {
        "tasks": [
            TaskBackup.model_validate(t).model_dump(mode="json", by_alias=True)
            for t in tasks
        ],
        "projects": [
            ProjectBackup.model_validate(p).model_dump(mode="json", by_alias=True)
            for p in projects
        ],
        "years": [
            YearBackup.model_validate(y).model_dump(mode="json", by_alias=True)
            for y in years
        ],
    }


def _storage_info(tables: dict[str, list[dict[str, Any]]]) -> StorageInfo:
    settings = get_settings()
    used = sum(
        len(json.dumps(tables[key], ensure_ascii=False)) for key in _REQUIRED_KEYS
    )
    total = settings.STORAGE_QUOTA_BYTES
    return StorageInfo(
        used=used,
        available=total - used,
        total=total,
        usage_ratio=used / total,
    )


def export_backup(db: Session) -> dict[str, Any]:
    """Build the backup document for every task, project and year."""
    tables = _dump_tables(db)
    document = {
        **tables,
        "exportDate": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "storageInfo": _storage_info(tables).model_dump(by_alias=True),
    }
    logger.info(
        "export_backup: tasks=%d projects=%d years=%d",
        len(tables["tasks"]), len(tables["projects"]), len(tables["years"]),
    )
    return document


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


def infer_task_identity(title: str) -> tuple[str, str] | None:
    """Recover ``(governed_kind, governed_key)`` from a derived task title.

    Returns ``None`` when the title does not look like a derived task.
    """
    head, sep, _ = title.partition(" - ")
    if not sep:
        return None
    if head in LEGACY_TITLE_HEADS:
        return LEGACY_TITLE_HEADS[head], ""
    if (
        head.startswith(INSURANCE_TITLE_PREFIX)
        and head.endswith(INSURANCE_TITLE_SUFFIX)
        and len(head) > len(INSURANCE_TITLE_PREFIX) + len(INSURANCE_TITLE_SUFFIX)
    ):
        return KIND_INSURANCE, head[len(INSURANCE_TITLE_PREFIX):-len(INSURANCE_TITLE_SUFFIX)]
    if head.endswith(PAYMENT_TITLE_SUFFIX) and len(head) > len(PAYMENT_TITLE_SUFFIX):
        return KIND_PAYMENT, head[: -len(PAYMENT_TITLE_SUFFIX)]
    return None


def _drop_duplicate_years(backup: BackupFile) -> BackupFile:
    """Keep the first entry of each year value; later repeats are dropped."""
    seen: set[int] = set()
    years = []
    for item in backup.years:
        if item.year in seen:
            logger.warning(
                "parse_backup: dropping duplicate year %d (id=%s)", item.year, item.id
            )
            continue
        seen.add(item.year)
        years.append(item)
    backup.years = years
    return backup


def parse_backup(raw: bytes | str) -> BackupFile:
    """Decode and validate a backup file.

    Raises:
        HTTPException 400: If the file is not JSON, lacks one of the three
            lists, or holds invalid records.
    """
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"备份文件不是有效的 JSON: {exc}",
        ) from exc

    if not isinstance(data, dict) or any(
        not isinstance(data.get(key), list) for key in _REQUIRED_KEYS
    ):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="数据格式不正确：缺少 tasks、projects 或 years。",
        )

    try:
        backup = BackupFile.model_validate(data)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"备份文件内容无效: {exc.error_count()} 处错误，"
            f"首个错误: {exc.errors()[0]['loc']} {exc.errors()[0]['msg']}",
        ) from exc

    return _drop_duplicate_years(backup)


def import_backup(db: Session, backup: BackupFile) -> ImportResult:
    """Replace all tasks, projects and years with the backup contents.

    Raises:
        HTTPException 500: If the database rejects the replace; nothing is
            changed in that case.
    """
    inferred = 0
    now = utc_now()
    try:
        db.query(Task).delete(synchronize_session=False)
        db.query(Project).delete(synchronize_session=False)
        db.query(Year).delete(synchronize_session=False)
        db.expunge_all()

        for item in backup.years:
            db.add(Year(id=item.id, year=item.year, created_at=item.created_at or now))

        for item in backup.projects:
            sections = item.model_dump(
                mode="json",
                include={"award_notice", "contract", "construction_material"},
            )
            db.add(
                Project(
                    id=item.id,
                    year=item.year,
                    project_number=item.project_number,
                    project_name=item.project_name,
                    category=item.category,
                    estimated_amount=item.estimated_amount,
                    budget_price=item.budget_price,
                    tender_date=item.tender_date,
                    created_at=item.created_at or now,
                    **sections,
                )
            )

        for item in backup.tasks:
            kind, key = item.governed_kind, item.governed_key
            if kind is None and item.is_project_task:
                identity = infer_task_identity(item.title)
                if identity is not None:
                    kind, key = identity
                    inferred += 1
            db.add(
                Task(
                    id=item.id,
                    title=item.title,
                    description=item.description,
                    start_date=item.start_date,
                    deadline_days=item.deadline_days,
                    deadline_date=item.deadline_date,
                    priority=item.priority,
                    status=item.status,
                    project_id=item.project_id,
                    project_number=item.project_number,
                    is_project_task=item.is_project_task,
                    governed_kind=kind,
                    governed_key=key,
                    created_at=item.created_at or now,
                    completed_at=item.completed_at,
                )
            )

        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("import_backup: replace failed, rolled back: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="导入数据失败，原有数据未改变。",
        ) from exc

    logger.info(
        "import_backup: tasks=%d projects=%d years=%d identities_inferred=%d",
        len(backup.tasks), len(backup.projects), len(backup.years), inferred,
    )
    return ImportResult(
        tasks=len(backup.tasks),
        projects=len(backup.projects),
        years=len(backup.years),
        identities_inferred=inferred,
    )


# ---------------------------------------------------------------------------
# Storage statistics
# ---------------------------------------------------------------------------


def get_storage_info(db: Session) -> StorageInfo:
    return _storage_info(_dump_tables(db))


def get_storage_health(info: StorageInfo) -> StorageHealth:
    settings = get_settings()
    percentage = f"{info.usage_ratio * 100:.1f}"
    if info.usage_ratio > settings.STORAGE_CRITICAL_RATIO:
        return StorageHealth(
            status="critical",
            message=f"存储空间严重不足 ({percentage}%)，请立即导出数据备份",
            info=info,
        )
    if info.usage_ratio > settings.STORAGE_WARNING_RATIO:
        return StorageHealth(
            status="warning",
            message=f"存储空间使用率较高 ({percentage}%)，建议定期导出数据备份",
            info=info,
        )
    return StorageHealth(
        status="healthy",
        message=f"存储空间充足 ({percentage}%)",
        info=info,
    )


def get_data_statistics(db: Session, info: StorageInfo) -> DataStatistics:
    project_count = db.query(Project).count()
    task_count = db.query(Task).count()
    year_count = db.query(Year).count()

    avg_project_size = info.used / (project_count or 1) or 1
    avg_task_size = info.used / (task_count or 1) or 1
    return DataStatistics(
        project_count=project_count,
        task_count=task_count,
        year_count=year_count,
        storage_size=f"{info.used / 1024:.2f} KB",
        estimated_capacity=(
            f"约可再存储 {int(info.available // avg_project_size)} 个项目或 "
            f"{int(info.available // avg_task_size)} 个任务"
        ),
    )


def get_storage_report(db: Session) -> StorageReport:
    info = get_storage_info(db)
    return StorageReport(
        health=get_storage_health(info),
        statistics=get_data_statistics(db, info),
    )
