"""
Pydantic v2 schemas for backup files and storage statistics.

The backup layout is ``{tasks, projects, years, exportDate, storageInfo}``
with camelCase keys, so files exported by the browser version of the tool
can be imported as-is.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel
from app.schemas.project import ProjectBackup
from app.schemas.task import TaskBackup
from app.schemas.year import YearBackup


class StorageInfo(CamelModel):
    """Storage usage, measured as serialized JSON size against the quota.

    Attributes:
        used: Bytes used by tasks + projects + years.
        available: Bytes left before the quota.
        total: Quota in bytes.
        usage_ratio: ``used / total``.
    """

    used: int
    available: int
    total: int
    usage_ratio: float


class StorageHealth(CamelModel):
    status: Literal["healthy", "warning", "critical"]
    message: str
    info: StorageInfo


class DataStatistics(CamelModel):
    project_count: int
    task_count: int
    year_count: int
    storage_size: str
    estimated_capacity: str


class StorageReport(CamelModel):
    health: StorageHealth
    statistics: DataStatistics


class BackupFile(CamelModel):
    tasks: list[TaskBackup]
    projects: list[ProjectBackup]
    years: list[YearBackup]
    export_date: datetime | str | None = None
    storage_info: StorageInfo | None = None


class ImportResult(CamelModel):
    tasks: int = Field(..., description="导入的任务数。")
    projects: int = Field(..., description="导入的项目数。")
    years: int = Field(..., description="导入的年度数。")
    identities_inferred: int = Field(
        0, description="根据标题推断归属的项目任务数。"
    )
