"""Year, project and task services against an in-memory database."""

from datetime import date

import pytest
from fastapi import HTTPException

from app.models.project import Project
from app.models.task import Task
from app.models.year import Year
from app.schemas.project import AwardNotice, Contract, PaymentTerm, ProjectCreate, ProjectUpdate
from app.schemas.task import TaskCreate, TaskUpdate
from app.schemas.year import YearCreate
from app.services import project_service, task_service, year_service

TODAY = date(2024, 3, 1)


def _project(db, calendar, number="GC-001", name="老城区排水改造", year=2024, **sections):
    data = ProjectCreate(
        year=year, project_number=number, project_name=name, category="工程", **sections
    )
    return project_service.create_project(db, data, calendar=calendar, today=TODAY)


@pytest.fixture()
def year_2024(db):
    return year_service.create_year(db, YearCreate(year=2024))


# ---------------------------------------------------------------------------
# Years
# ---------------------------------------------------------------------------


def test_years_listed_newest_first(db):
    for value in (2022, 2024, 2023):
        year_service.create_year(db, YearCreate(year=value))

    assert [y.year for y in year_service.list_years(db)] == [2024, 2023, 2022]


def test_duplicate_year_rejected(db, year_2024):
    with pytest.raises(HTTPException) as exc_info:
        year_service.create_year(db, YearCreate(year=2024))
    assert exc_info.value.status_code == 409


def test_delete_year_removes_its_projects_only(db, calendar, year_2024):
    year_service.create_year(db, YearCreate(year=2025))
    notice = AwardNotice(award_date=TODAY, contract_sign_days=10)
    removed_ids = {
        _project(db, calendar, number="A", award_notice=notice).id,
        _project(db, calendar, number="B", award_notice=notice).id,
    }
    kept = _project(db, calendar, number="C", year=2025)
    kept_id = kept.id

    assert year_service.delete_year(db, year_2024.id) == 2
    assert [p.id for p in db.query(Project).all()] == [kept_id]
    assert db.query(Year).count() == 1
    # Tasks of the removed projects stay behind, still pointing at them
    tasks = db.query(Task).all()
    assert len(tasks) == 2
    assert {t.project_id for t in tasks} == removed_ids
    assert all(t.title.startswith("签署合同 - ") for t in tasks)


def test_delete_missing_year(db):
    with pytest.raises(HTTPException) as exc_info:
        year_service.delete_year(db, 99)
    assert exc_info.value.status_code == 404


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


def test_create_project_requires_year(db, calendar):
    with pytest.raises(HTTPException) as exc_info:
        _project(db, calendar)
    assert exc_info.value.status_code == 404


def test_project_number_unique_within_year(db, calendar, year_2024):
    _project(db, calendar)
    with pytest.raises(HTTPException) as exc_info:
        _project(db, calendar, name="另一个项目")
    assert exc_info.value.status_code == 409


def test_project_sections_stored_as_documents(db, calendar, year_2024):
    project = _project(
        db,
        calendar,
        award_notice=AwardNotice(award_date=TODAY, winning_unit="某某建设有限公司"),
    )

    assert project.award_notice["award_date"] == "2024-03-01"
    assert project.award_notice["winning_unit"] == "某某建设有限公司"
    assert project.contract["payment_terms"] == []


def test_rename_propagates_to_task_texts(db, calendar, year_2024):
    project = _project(
        db,
        calendar,
        award_notice=AwardNotice(award_date=TODAY, contract_sign_days=10),
        contract=Contract(
            payment_terms=[
                PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=7)
            ]
        ),
    )

    project_service.update_project(
        db,
        project.id,
        ProjectUpdate(project_name="新城区排水改造", project_number="GC-009"),
        calendar=calendar,
        today=TODAY,
    )

    tasks = project_service.list_project_tasks(db, project.id)
    assert {t.title for t in tasks} == {
        "签署合同 - 新城区排水改造",
        "预付款付款 - 新城区排水改造",
    }
    assert all(t.description.startswith("项目 GC-009 ") for t in tasks)
    assert all(t.project_number == "GC-009" for t in tasks)


def test_rename_rewrites_only_the_project_part_of_titles(db, calendar, year_2024):
    project = _project(
        db,
        calendar,
        name="合同",
        award_notice=AwardNotice(award_date=TODAY, contract_sign_days=10),
    )

    project_service.update_project(
        db, project.id, ProjectUpdate(project_name="新桥"), calendar=calendar, today=TODAY
    )

    [task] = project_service.list_project_tasks(db, project.id)
    assert task.title == "签署合同 - 新桥"


def test_update_contract_rejects_repeated_term_names(db, calendar, year_2024):
    project = _project(db, calendar)
    term = PaymentTerm(name="进度款", milestone="start_application")

    with pytest.raises(HTTPException) as exc_info:
        project_service.update_contract(
            db, project.id, Contract(payment_terms=[term, term]), calendar=calendar, today=TODAY
        )
    assert exc_info.value.status_code == 422
    assert db.query(Task).count() == 0


def test_update_project_keeps_omitted_fields(db, calendar, year_2024):
    project = _project(db, calendar)

    updated = project_service.update_project(
        db, project.id, ProjectUpdate(budget_price=880000), calendar=calendar, today=TODAY
    )

    assert updated.project_name == "老城区排水改造"
    assert updated.budget_price == 880000


def test_renumber_to_taken_number_rejected(db, calendar, year_2024):
    _project(db, calendar, number="GC-001")
    other = _project(db, calendar, number="GC-002")

    with pytest.raises(HTTPException) as exc_info:
        project_service.update_project(
            db, other.id, ProjectUpdate(project_number="GC-001"), calendar=calendar
        )
    assert exc_info.value.status_code == 409


def test_delete_project_removes_its_tasks(db, calendar, year_2024):
    project = _project(
        db, calendar, award_notice=AwardNotice(award_date=TODAY, contract_sign_days=10)
    )
    manual = task_service.create_task(
        db, TaskCreate(title="整理资料", start_date=TODAY), today=TODAY
    )

    assert project_service.delete_project(db, project.id) == 1
    assert [t.id for t in db.query(Task).all()] == [manual.id]


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def test_manual_task_deadline_in_calendar_days(db):
    task = task_service.create_task(
        db,
        TaskCreate(title="提交月报", start_date=date(2024, 3, 1), deadline_days=5),
        today=TODAY,
    )

    assert task.deadline_date == date(2024, 3, 5)
    assert task.priority == "normal"
    assert task.status == "pending"
    assert task.is_project_task is False
    assert task.governed_kind is None


def test_manual_task_copies_project_number(db, calendar, year_2024):
    project = _project(db, calendar)

    task = task_service.create_task(
        db, TaskCreate(title="现场踏勘", start_date=TODAY, project_id=project.id), today=TODAY
    )

    assert task.project_number == "GC-001"
    assert task.is_project_task is True


def test_update_task_recomputes_deadline(db):
    task = task_service.create_task(
        db, TaskCreate(title="提交月报", start_date=TODAY, deadline_days=30), today=TODAY
    )

    task = task_service.update_task(
        db, task.id, TaskUpdate(deadline_days=1), today=TODAY
    )

    assert task.deadline_date == TODAY
    assert task.priority == "high"


def test_status_change_sets_and_clears_completed_at(db):
    task = task_service.create_task(db, TaskCreate(title="提交月报", start_date=TODAY))

    task = task_service.update_task(db, task.id, TaskUpdate(status="completed"))
    assert task.completed_at is not None

    task = task_service.update_task(db, task.id, TaskUpdate(status="pending"))
    assert task.completed_at is None


def test_complete_and_delete_task(db):
    task = task_service.create_task(db, TaskCreate(title="提交月报", start_date=TODAY))

    assert task_service.complete_task(db, task.id).status == "completed"
    task_service.delete_task(db, task.id)
    with pytest.raises(HTTPException) as exc_info:
        task_service.get_task(db, task.id)
    assert exc_info.value.status_code == 404


def test_list_tasks_orders_by_deadline_with_open_ended_last(db):
    db.add_all([
        Task(title="无期限", start_date=TODAY, deadline_date=None, priority="low"),
        Task(title="晚", start_date=TODAY, deadline_date=date(2024, 4, 1), priority="low"),
        Task(title="早", start_date=TODAY, deadline_date=date(2024, 3, 2), priority="normal"),
    ])
    db.commit()

    assert [t.title for t in task_service.list_tasks(db)] == ["早", "晚", "无期限"]
    assert [t.title for t in task_service.list_tasks(db, priority="low")] == ["晚", "无期限"]


def test_dashboard_buckets_pending_tasks(db):
    offsets = {"逾期": -3, "今天": 0, "本周": 5, "本月": 20, "以后": 60}
    for title, offset in offsets.items():
        task_service.create_task(
            db,
            TaskCreate(title=title, start_date=TODAY, deadline_days=offset + 1)
            if offset >= 0
            else TaskCreate(title=title, start_date=date(2024, 2, 27), deadline_days=1),
            today=TODAY,
        )
    done = task_service.create_task(db, TaskCreate(title="已完成", start_date=TODAY))
    task_service.complete_task(db, done.id)

    dashboard = task_service.get_dashboard(db, today=TODAY)

    assert dashboard.summary.model_dump(by_alias=True) == {
        "overdue": 1, "today": 1, "next7Days": 1, "next30Days": 1, "other": 1,
    }
    assert [t.title for t in dashboard.overdue] == ["逾期"]
    assert [t.title for t in dashboard.next30_days] == ["本月"]


def test_refresh_priorities_resnapshots_stale_values(db):
    task = task_service.create_task(
        db, TaskCreate(title="提交月报", start_date=TODAY, deadline_days=10), today=TODAY
    )
    assert task.priority == "low"

    result = task_service.refresh_priorities(db, today=date(2024, 3, 12))

    db.refresh(task)
    assert task.priority == "urgent"
    assert (result.checked, result.changed) == (1, 1)
