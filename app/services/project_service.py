"""
Project service layer.

All database access for ``/api/projects`` lives here.  Every write follows
the same sequence:

1. Snapshot the project as a ``ProjectResponse`` (the "previous" state).
2. Apply the change to the ORM row.
3. Run ``reconcile_project`` with the previous and new state so that the
   derived tasks follow the project.
4. Commit once, so the project row and its tasks change together.

Embedded sections are stored as JSON documents (snake_case keys, ISO dates)
produced by ``model_dump(mode="json")`` of the section schemas.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.project import Project
from app.models.task import Task
from app.models.year import Year
from app.schemas.project import (
    AwardNotice,
    ConstructionMaterial,
    Contract,
    ProjectCreate,
    ProjectResponse,
    ProjectUpdate,
)
from app.services.calendar_service import BusinessCalendar
from app.services.reconciliation_service import ReconciliationResult, reconcile_project

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _snapshot(project: Project) -> ProjectResponse:
    return ProjectResponse.model_validate(project)


def _ensure_number_free(
    db: Session, year: int, project_number: str, exclude_id: int | None = None
) -> None:
    query = db.query(Project.id).filter(
        Project.year == year,
        Project.project_number == project_number,
    )
    if exclude_id is not None:
        query = query.filter(Project.id != exclude_id)
    if query.first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{year} 年度已存在项目编号 {project_number}。",
        )


def _ensure_unique_terms(contract: Contract) -> None:
    """Reject a contract whose payment or insurance terms repeat a name.

    Raises:
        HTTPException 422: Listing the repeated names.
    """
    for terms in (contract.payment_terms, contract.insurance_terms):
        names = [term.name for term in terms]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"条款名称重复: {', '.join(duplicates)}",
            )


def _rename_title(title: str, old_name: str, new_name: str) -> str:
    # Derived titles read "{head} - {project name}"
    head, sep, tail = title.partition(" - ")
    if sep and tail == old_name:
        return f"{head}{sep}{new_name}"
    return title.replace(old_name, new_name, 1)


def _propagate_rename(
    db: Session,
    project_id: int,
    old_name: str,
    new_name: str,
    old_number: str,
    new_number: str,
) -> int:
    """Rewrite the project name / number embedded in the project's task texts.

    Returns:
        Number of tasks rewritten.
    """
    if old_name == new_name and old_number == new_number:
        return 0

    touched = 0
    for task in db.query(Task).filter(Task.project_id == project_id).all():
        title = _rename_title(task.title, old_name, new_name)
        description = task.description.replace(old_number, new_number, 1)
        if title != task.title or description != task.description:
            task.title = title
            task.description = description
            touched += 1
        if task.project_number != new_number:
            task.project_number = new_number
    db.flush()
    return touched


def _reconcile(
    db: Session,
    project: Project,
    previous: ProjectResponse | None,
    calendar: BusinessCalendar | None,
    today: date | None,
) -> ReconciliationResult:
    db.flush()
    return reconcile_project(
        db, _snapshot(project), previous, calendar=calendar, today=today
    )


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_projects(db: Session, year: int | None = None) -> list[Project]:
    query = db.query(Project)
    if year is not None:
        query = query.filter(Project.year == year)
    rows = query.order_by(Project.year.desc(), Project.id).all()
    logger.debug("list_projects: year=%s count=%d", year, len(rows))
    return rows


def get_project(db: Session, project_id: int) -> Project:
    """Return the project with ``project_id``.

    Raises:
        HTTPException 404: If no such project exists.
    """
    project = db.query(Project).filter(Project.id == project_id).first()
    if project is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"项目 ID {project_id} 不存在。",
        )
    return project


def list_project_tasks(db: Session, project_id: int) -> list[Task]:
    get_project(db, project_id)
    return (
        db.query(Task)
        .filter(Task.project_id == project_id)
        .order_by(Task.id)
        .all()
    )


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------


def create_project(
    db: Session,
    data: ProjectCreate,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> Project:
    """Create a project and its initial derived tasks.

    Args:
        db: Active SQLAlchemy session.
        data: Validated creation payload.
        calendar: Business-day gateway for working-day deadlines.
        today: Reference date for priorities (defaults to today).

    Returns:
        The persisted ``Project`` row.

    Raises:
        HTTPException 404: If the year bucket does not exist.
        HTTPException 409: If the project number is taken within the year.
        HTTPException 422: If two contract terms share a name.
    """
    _ensure_unique_terms(data.contract)
    if db.query(Year.id).filter(Year.year == data.year).first() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"年度 {data.year} 不存在，请先创建年度。",
        )
    _ensure_number_free(db, data.year, data.project_number)

    payload = data.model_dump(mode="json")
    project = Project(
        year=data.year,
        project_number=data.project_number,
        project_name=data.project_name,
        category=data.category,
        estimated_amount=data.estimated_amount,
        budget_price=data.budget_price,
        tender_date=data.tender_date,
        award_notice=payload["award_notice"],
        contract=payload["contract"],
        construction_material=payload["construction_material"],
    )
    db.add(project)
    result = _reconcile(db, project, None, calendar, today)
    db.commit()
    db.refresh(project)

    logger.info(
        "create_project: id=%d number=%s tasks_created=%d",
        project.id, project.project_number, len(result.created),
    )
    return project


def update_project(
    db: Session,
    project_id: int,
    data: ProjectUpdate,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> Project:
    """Partially update the basic fields of a project.

    A new name or number is propagated into the texts of the project's
    tasks before reconciliation runs.

    Raises:
        HTTPException 404: If the project does not exist.
        HTTPException 409: If the new number is taken within the year.
    """
    project = get_project(db, project_id)
    previous = _snapshot(project)

    # Only tender_date may be cleared
    update_data = {
        name: value
        for name, value in data.model_dump(exclude_unset=True).items()
        if value is not None or name == "tender_date"
    }
    if "project_number" in update_data:
        _ensure_number_free(
            db, project.year, update_data["project_number"], exclude_id=project.id
        )

    for name, value in update_data.items():
        setattr(project, name, value)

    renamed = _propagate_rename(
        db,
        project.id,
        previous.project_name,
        project.project_name,
        previous.project_number,
        project.project_number,
    )
    _reconcile(db, project, previous, calendar, today)
    db.commit()
    db.refresh(project)

    logger.info(
        "update_project: id=%d fields=%s tasks_renamed=%d",
        project_id, sorted(update_data), renamed,
    )
    return project


def _update_section(
    db: Session,
    project_id: int,
    section: str,
    value: AwardNotice | Contract | ConstructionMaterial,
    calendar: BusinessCalendar | None,
    today: date | None,
) -> Project:
    project = get_project(db, project_id)
    previous = _snapshot(project)

    setattr(project, section, value.model_dump(mode="json"))
    result = _reconcile(db, project, previous, calendar, today)
    db.commit()
    db.refresh(project)

    logger.info(
        "update_%s: project_id=%d created=%d updated=%d completed=%d "
        "reopened=%d deleted=%d",
        section, project_id, len(result.created), len(result.updated),
        len(result.completed), len(result.reopened), len(result.deleted),
    )
    return project


def update_award_notice(
    db: Session,
    project_id: int,
    data: AwardNotice,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> Project:
    return _update_section(db, project_id, "award_notice", data, calendar, today)


def update_contract(
    db: Session,
    project_id: int,
    data: Contract,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> Project:
    _ensure_unique_terms(data)
    return _update_section(db, project_id, "contract", data, calendar, today)


def update_construction(
    db: Session,
    project_id: int,
    data: ConstructionMaterial,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> Project:
    return _update_section(
        db, project_id, "construction_material", data, calendar, today
    )


def delete_project(db: Session, project_id: int) -> int:
    """Delete a project together with all of its tasks.

    Returns:
        Number of tasks deleted.

    Raises:
        HTTPException 404: If the project does not exist.
    """
    project = get_project(db, project_id)
    deleted = (
        db.query(Task)
        .filter(Task.project_id == project_id)
        .delete(synchronize_session=False)
    )
    db.delete(project)
    db.commit()

    logger.info(
        "delete_project: id=%d number=%s tasks_deleted=%d",
        project_id, project.project_number, deleted,
    )
    return deleted
