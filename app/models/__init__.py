"""SQLAlchemy models package.

Importing all models here ensures that SQLAlchemy's mapper registry is
populated before ``Base.metadata.create_all()`` runs.

Usage from other modules:
    from app.models import Project, Task
"""

from app.models.year import Year  # noqa: F401
from app.models.project import Project  # noqa: F401
from app.models.task import Task  # noqa: F401

__all__ = [
    "Year",
    "Project",
    "Task",
]
