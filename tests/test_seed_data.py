from datetime import date

import seed_data
from app.models.project import Project
from app.models.task import Task
from app.models.year import Year

TODAY = date(2024, 6, 14)


def _seed(db, calendar):
    seed_data.seed_year(db, TODAY)
    seed_data.seed_projects(db, calendar, TODAY)
    seed_data.seed_manual_tasks(db, TODAY)


def test_seed_populates_projects_and_derived_tasks(db, calendar):
    _seed(db, calendar)

    assert [y.year for y in db.query(Year).all()] == [2024]
    assert db.query(Project).count() == 3
    assert db.query(Task).filter(Task.governed_kind.is_not(None)).count() > 0
    assert db.query(Task).filter(Task.project_id.is_(None)).count() == 2


def test_seed_is_idempotent(db, calendar):
    _seed(db, calendar)
    counts = (db.query(Year).count(), db.query(Project).count(), db.query(Task).count())

    _seed(db, calendar)

    assert (db.query(Year).count(), db.query(Project).count(), db.query(Task).count()) == counts
