"""
Task service layer.

Covers manual task CRUD, the dashboard (summary counts plus per-bucket
lists) and the priority refresh.  Derived tasks are written by
``reconciliation_service``; here they are only listed, completed or
deleted on request.

Priorities are snapshots taken when a deadline is written.  The dashboard
always buckets from ``deadline_date`` and today's date, so it is correct
even when stored priorities are stale; ``refresh_priorities`` re-snapshots
them.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.project import Project
from app.models.task import Task
from app.schemas.common import utc_now
from app.schemas.task import (
    DashboardResponse,
    RefreshPrioritiesResponse,
    TaskCreate,
    TaskResponse,
    TaskSummary,
    TaskUpdate,
)
from app.utils.date_utils import (
    calculate_deadline_date,
    classify_priority,
    group_tasks_by_bucket,
)

logger = logging.getLogger(__name__)


def list_tasks(
    db: Session,
    project_id: int | None = None,
    status_filter: str | None = None,
    priority: str | None = None,
) -> list[Task]:
    query = db.query(Task)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if status_filter is not None:
        query = query.filter(Task.status == status_filter)
    if priority is not None:
        query = query.filter(Task.priority == priority)
    rows = query.order_by(Task.deadline_date.is_(None), Task.deadline_date, Task.id).all()
    logger.debug(
        "list_tasks: project_id=%s status=%s priority=%s count=%d",
        project_id, status_filter, priority, len(rows),
    )
    return rows


def get_task(db: Session, task_id: int) -> Task:
    """Return the task with ``task_id``.

    Raises:
        HTTPException 404: If no such task exists.
    """
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"任务 ID {task_id} 不存在。",
        )
    return task


def create_task(db: Session, data: TaskCreate, today: date | None = None) -> Task:
    """Create a manual task with a calendar-day deadline.

    When ``project_id`` is given without ``project_number``, the number is
    copied from the project if it still exists.  A dangling ``project_id``
    is accepted.
    """
    project_number = data.project_number
    if data.project_id is not None and project_number is None:
        project = db.query(Project).filter(Project.id == data.project_id).first()
        if project is None:
            logger.warning(
                "create_task: project_id=%d does not exist; keeping weak reference",
                data.project_id,
            )
        else:
            project_number = project.project_number

    deadline = calculate_deadline_date(data.start_date, data.deadline_days)
    task = Task(
        title=data.title,
        description=data.description,
        start_date=data.start_date,
        deadline_days=data.deadline_days,
        deadline_date=deadline,
        priority=classify_priority(deadline, today),
        status="pending",
        project_id=data.project_id,
        project_number=project_number,
        is_project_task=data.project_id is not None,
        governed_key="",
        created_at=utc_now(),
    )
    db.add(task)
    db.commit()
    db.refresh(task)

    logger.info("create_task: id=%d deadline=%s", task.id, deadline.isoformat())
    return task


def update_task(
    db: Session, task_id: int, data: TaskUpdate, today: date | None = None
) -> Task:
    """Apply a partial update.

    A new ``start_date`` or ``deadline_days`` recomputes the deadline in
    calendar days.  Setting ``status`` to ``completed`` stamps
    ``completed_at``; setting it back to ``pending`` clears it.
    """
    task = get_task(db, task_id)
    update_data = {
        name: value
        for name, value in data.model_dump(exclude_unset=True).items()
        if value is not None
    }

    for name in ("title", "description", "start_date", "deadline_days"):
        if name in update_data:
            setattr(task, name, update_data[name])

    if "start_date" in update_data or "deadline_days" in update_data:
        task.deadline_date = calculate_deadline_date(task.start_date, task.deadline_days)
        task.priority = classify_priority(task.deadline_date, today)

    new_status = update_data.get("status")
    if new_status is not None and new_status != task.status:
        task.status = new_status
        task.completed_at = utc_now() if new_status == "completed" else None

    db.commit()
    db.refresh(task)

    logger.info("update_task: id=%d fields=%s", task_id, sorted(update_data))
    return task


def complete_task(db: Session, task_id: int) -> Task:
    task = get_task(db, task_id)
    if task.status != "completed":
        task.status = "completed"
        task.completed_at = utc_now()
        db.commit()
        db.refresh(task)
        logger.info("complete_task: id=%d", task_id)
    return task


def delete_task(db: Session, task_id: int) -> None:
    task = get_task(db, task_id)
    db.delete(task)
    db.commit()
    logger.info("delete_task: id=%d", task_id)


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------


def get_dashboard(db: Session, today: date | None = None) -> DashboardResponse:
    """Bucket every pending task by deadline distance from ``today``.

    Recomputed from scratch on each call.
    """
    today = today or date.today()
    pending = (
        db.query(Task)
        .filter(Task.status == "pending")
        .order_by(Task.deadline_date.is_(None), Task.deadline_date, Task.id)
        .all()
    )
    buckets = {
        name: [TaskResponse.model_validate(t) for t in tasks]
        for name, tasks in group_tasks_by_bucket(pending, today).items()
    }
    summary = TaskSummary(**{name: len(items) for name, items in buckets.items()})

    logger.debug("get_dashboard: today=%s summary=%s", today, summary.model_dump())
    return DashboardResponse(summary=summary, **buckets)


def refresh_priorities(
    db: Session, today: date | None = None
) -> RefreshPrioritiesResponse:
    """Re-snapshot the priority of every pending task that has a deadline."""
    today = today or date.today()
    tasks = (
        db.query(Task)
        .filter(Task.status == "pending", Task.deadline_date.is_not(None))
        .all()
    )
    changed = 0
    for task in tasks:
        priority = classify_priority(task.deadline_date, today)
        if priority != task.priority:
            task.priority = priority
            changed += 1
    db.commit()

    logger.info("refresh_priorities: checked=%d changed=%d", len(tasks), changed)
    return RefreshPrioritiesResponse(checked=len(tasks), changed=changed)
