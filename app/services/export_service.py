"""
Export service layer.

Builds the downloadable reports:

- ``export_tasks_excel`` — the task list as a styled ``.xlsx`` workbook with
  the dashboard counts in a KPI row (``ExcelExporter``).
- ``export_project_markdown`` — one project as a Markdown report
  (``render_project_markdown``).

Task rows reuse ``task_service.list_tasks`` so filtering and ordering match
the task list endpoint.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from app.exporters.excel_exporter import ExcelExporter
from app.exporters.markdown_exporter import render_project_markdown
from app.models.project import Project
from app.schemas.project import ProjectResponse
from app.services import project_service, task_service
from app.utils.date_utils import calculate_task_summary, days_until

logger = logging.getLogger(__name__)

_TASK_HEADERS = [
    "ID",
    "标题",
    "项目编号",
    "项目名称",
    "优先级",
    "状态",
    "开始日期",
    "期限(天)",
    "截止日期",
    "剩余天数",
    "完成时间",
    "描述",
]
_PRIORITY_COL = 4

_STATUS_LABELS = {"pending": "待办", "completed": "已完成"}


def _task_rows(tasks: list, projects: dict[int, Project], today: date) -> list[list[Any]]:
    rows: list[list[Any]] = []
    for task in tasks:
        project = projects.get(task.project_id) if task.project_id is not None else None
        if task.project_id is not None and project is None:
            logger.warning(
                "export: task id=%d references missing project id=%d",
                task.id, task.project_id,
            )
        remaining = (
            days_until(task.deadline_date, today)
            if task.deadline_date and task.status == "pending"
            else None
        )
        rows.append([
            task.id,
            task.title,
            task.project_number or "",
            project.project_name if project else "",
            task.priority,
            _STATUS_LABELS.get(task.status, task.status),
            task.start_date.isoformat(),
            task.deadline_days,
            task.deadline_date.isoformat() if task.deadline_date else "",
            remaining,
            task.completed_at.strftime("%Y-%m-%d %H:%M") if task.completed_at else "",
            task.description,
        ])
    return rows


def export_tasks_excel(
    db: Session,
    project_id: int | None = None,
    status_filter: str | None = None,
    today: date | None = None,
) -> bytes:
    """Generate an ``.xlsx`` export of the task list.

    Args:
        db: Active SQLAlchemy session.
        project_id: Only export the tasks of this project.
        status_filter: Only export tasks with this status.
        today: Reference date for remaining days and bucket counts.

    Returns:
        Raw bytes of the ``.xlsx`` file.
    """
    today = today or date.today()
    tasks = task_service.list_tasks(db, project_id=project_id, status_filter=status_filter)
    projects = {p.id: p for p in db.query(Project).all()}

    filter_labels: dict[str, str] = {"统计日期": today.isoformat()}
    if project_id is not None:
        project = projects.get(project_id)
        filter_labels["项目"] = project.project_number if project else f"ID {project_id}"
    if status_filter is not None:
        filter_labels["状态"] = _STATUS_LABELS.get(status_filter, status_filter)

    summary = calculate_task_summary(tasks, today)
    exporter = ExcelExporter(title="任务清单", filters=filter_labels)
    exporter.add_header(num_cols=len(_TASK_HEADERS))
    exporter.add_kpi_row({
        "已逾期": summary["overdue"],
        "今天到期": summary["today"],
        "7天内": summary["next7Days"],
        "30天内": summary["next30Days"],
        "其他": summary["other"],
    })
    exporter.add_data_table(
        _TASK_HEADERS, _task_rows(tasks, projects, today), highlight_col=_PRIORITY_COL
    )
    file_bytes = exporter.finalize()

    logger.info("export_tasks_excel: rows=%d bytes=%d", len(tasks), len(file_bytes))
    return file_bytes


def export_project_markdown(db: Session, project_id: int) -> tuple[str, str]:
    """Render a project report.

    Returns:
        ``(filename, markdown)``; the filename is
        ``{projectNumber}_{projectName}.md``.

    Raises:
        HTTPException 404: If the project does not exist.
    """
    project = ProjectResponse.model_validate(project_service.get_project(db, project_id))
    markdown = render_project_markdown(project)
    filename = f"{project.project_number}_{project.project_name}.md"

    logger.info("export_project_markdown: project_id=%d chars=%d", project_id, len(markdown))
    return filename, markdown
