"""
Year service layer.

Years are grouping buckets.  Projects reference a year by value, so deleting
a year removes its projects explicitly.  Tasks of those projects are left
in place: their ``project_id`` simply stops resolving.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.models.project import Project
from app.models.year import Year
from app.schemas.year import YearCreate

logger = logging.getLogger(__name__)


def list_years(db: Session) -> list[Year]:
    return db.query(Year).order_by(Year.year.desc()).all()


def create_year(db: Session, data: YearCreate) -> Year:
    """Create a year bucket.

    Raises:
        HTTPException 409: If the year already exists.
    """
    if db.query(Year).filter(Year.year == data.year).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"年度 {data.year} 已存在。",
        )

    year = Year(year=data.year)
    db.add(year)
    db.commit()
    db.refresh(year)

    logger.info("create_year: year=%d (id=%d)", year.year, year.id)
    return year


def delete_year(db: Session, year_id: int) -> int:
    """Delete a year and every project filed under it.

    Args:
        db: Active SQLAlchemy session.
        year_id: Primary key of the year.

    Returns:
        Number of projects deleted with the year.

    Raises:
        HTTPException 404: If the year does not exist.
    """
    year = db.query(Year).filter(Year.id == year_id).first()
    if year is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"年度 ID {year_id} 不存在。",
        )

    deleted = (
        db.query(Project)
        .filter(Project.year == year.year)
        .delete(synchronize_session=False)
    )
    db.delete(year)
    db.commit()

    logger.info("delete_year: year=%d projects_deleted=%d", year.year, deleted)
    return deleted
