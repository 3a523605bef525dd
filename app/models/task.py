"""Task model — a to-do item, either entered by hand or derived from a project."""

from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import func

from app.database import Base


class Task(Base):
    """A pending or completed to-do with a computed deadline and priority.

    Derived tasks carry an explicit identity ``(project_id, governed_kind,
    governed_key)`` naming the milestone or term that governs them; the
    title and description are display text only.

    Attributes:
        id: Primary key.
        title: Display title.
        description: Display description.
        start_date: Day the deadline period starts.
        deadline_days: Length of the deadline period.
        deadline_date: Computed deadline.  ``None`` means the task has no
            deadline yet (blocked on an earlier milestone, or open-ended).
        priority: "urgent", "high", "normal" or "low", snapshotted when the
            deadline was last written.
        status: "pending" or "completed".
        project_id: Weak reference to ``Project.id`` (no FK; may dangle).
        project_number: Denormalised copy of the project's number.
        is_project_task: Whether the task belongs to a project.
        governed_kind: Kind of project item governing a derived task, or
            ``None`` for manual tasks.
        governed_key: Payment/insurance term name; empty for other kinds.
        created_at: Record creation timestamp.
        completed_at: When the task was completed.
    """

    __tablename__ = "task"
    __table_args__ = (
        Index("ix_task_identity", "project_id", "governed_kind", "governed_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=False, default="")
    start_date = Column(Date, nullable=False)
    deadline_days = Column(Integer, nullable=False, default=0)
    deadline_date = Column(Date, nullable=True, index=True)
    priority = Column(String(20), nullable=False, default="low")
    status = Column(String(20), nullable=False, default="pending", index=True)
    project_id = Column(Integer, nullable=True, index=True)
    project_number = Column(String(100), nullable=True)
    is_project_task = Column(Boolean, nullable=False, default=False)
    governed_kind = Column(String(50), nullable=True)
    governed_key = Column(String(200), nullable=False, default="")
    created_at = Column(DateTime, default=func.now(), nullable=False)
    completed_at = Column(DateTime, nullable=True)
