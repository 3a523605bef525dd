"""Year model — grouping bucket for the projects of one calendar year."""

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.sql import func

from app.database import Base


class Year(Base):
    """A year under which projects are filed.

    Projects are associated by matching ``Project.year`` to ``Year.year``
    (by value, not by foreign key), so deleting a Year has to remove its
    projects explicitly.

    Attributes:
        id: Primary key.
        year: The calendar year, e.g. 2024.  Unique.
        created_at: Record creation timestamp.
    """

    __tablename__ = "year_group"

    id = Column(Integer, primary_key=True, autoincrement=True)
    year = Column(Integer, unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)
