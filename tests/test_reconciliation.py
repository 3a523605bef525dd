"""Derived-task reconciliation, driven through the project service."""

from datetime import date, datetime

import pytest

from app.models.task import Task
from app.models.year import Year
from app.schemas.project import (
    AwardNotice,
    ConstructionMaterial,
    Contract,
    Insurance,
    PaymentTerm,
    ProjectCreate,
    ProjectResponse,
)
from app.services import project_service
from app.services.reconciliation_service import reconcile_project
from app.utils.constants import (
    KIND_COMPLETION_APPLICATION,
    KIND_CONTRACT_SIGN,
    KIND_INSURANCE,
    KIND_PAYMENT,
    KIND_PERFORMANCE_BOND,
    KIND_ROAD_OCCUPANCY,
    KIND_START_APPLICATION,
)
from tests.conftest import FakeCalendar

TODAY = date(2024, 3, 1)  # Friday
NAME = "滨江路桥梁维修"
NUMBER = "GC-2024-001"


@pytest.fixture(autouse=True)
def year(db):
    db.add(Year(year=2024))
    db.commit()


def _create(db, calendar, **sections):
    data = ProjectCreate(
        year=2024,
        project_number=NUMBER,
        project_name=NAME,
        category="工程",
        **sections,
    )
    return project_service.create_project(db, data, calendar=calendar, today=TODAY)


def _tasks(db, project, kind=None, key=None):
    query = db.query(Task).filter(Task.project_id == project.id)
    if kind is not None:
        query = query.filter(Task.governed_kind == kind)
    if key is not None:
        query = query.filter(Task.governed_key == key)
    return query.order_by(Task.id).all()


# ---------------------------------------------------------------------------
# Contract signing
# ---------------------------------------------------------------------------


def test_contract_sign_task_created_from_award_notice(db, calendar):
    project = _create(
        db, calendar, award_notice=AwardNotice(award_date=TODAY, contract_sign_days=30)
    )

    [task] = _tasks(db, project)
    assert task.governed_kind == KIND_CONTRACT_SIGN
    assert task.governed_key == ""
    assert task.title == f"签署合同 - {NAME}"
    assert task.start_date == TODAY
    assert task.deadline_date == date(2024, 3, 30)
    assert task.priority == "low"
    assert task.status == "pending"
    assert task.project_number == NUMBER
    assert task.is_project_task is True
    assert "（截止日期：2024-03-30）" in task.description


def test_no_contract_sign_task_without_sign_days(db, calendar):
    project = _create(db, calendar, award_notice=AwardNotice(award_date=TODAY))

    assert _tasks(db, project) == []


def test_contract_sign_task_updated_in_place(db, calendar):
    project = _create(
        db, calendar, award_notice=AwardNotice(award_date=TODAY, contract_sign_days=30)
    )
    [before] = _tasks(db, project)

    project_service.update_award_notice(
        db,
        project.id,
        AwardNotice(award_date=TODAY, contract_sign_days=5),
        calendar=calendar,
        today=TODAY,
    )

    [after] = _tasks(db, project)
    assert after.id == before.id
    assert after.deadline_days == 5
    assert after.deadline_date == date(2024, 3, 5)
    assert after.priority == "normal"


def test_contract_sign_in_working_days_skips_holidays(db):
    calendar = FakeCalendar(holidays={date(2024, 3, 5)})
    project = _create(
        db,
        calendar,
        award_notice=AwardNotice(
            award_date=TODAY, contract_sign_days=3, is_working_days=True
        ),
    )

    [task] = _tasks(db, project)
    # Mon 4, (Tue 5 holiday), Wed 6, Thu 7
    assert task.deadline_date == date(2024, 3, 7)
    assert "3 个工作日内签署合同" in task.description


def test_sign_date_completes_contract_sign_task(db, calendar):
    project = _create(
        db, calendar, award_notice=AwardNotice(award_date=TODAY, contract_sign_days=30)
    )

    project_service.update_contract(
        db, project.id, Contract(sign_date=date(2024, 3, 10)), calendar=calendar, today=TODAY
    )

    [task] = _tasks(db, project)
    assert task.status == "completed"
    assert task.completed_at == datetime(2024, 3, 10)


# ---------------------------------------------------------------------------
# Payment terms
# ---------------------------------------------------------------------------


def test_payment_blocked_until_milestone_then_unblocked(db, calendar):
    term = PaymentTerm(name="进度款", milestone="start_application", days_after_milestone=3)
    project = _create(db, calendar, contract=Contract(payment_terms=[term]))

    [task] = _tasks(db, project, KIND_PAYMENT, "进度款")
    assert task.title == f"进度款付款 - {NAME}"
    assert task.deadline_date is None
    assert task.priority == "low"
    assert task.start_date == TODAY
    assert "前置里程碑：开工申请未完成" in task.description

    project_service.update_construction(
        db,
        project.id,
        ConstructionMaterial(start_application_date=date(2024, 3, 4)),
        calendar=calendar,
        today=TODAY,
    )
    db.refresh(task)
    assert task.start_date == date(2024, 3, 4)
    assert task.deadline_date == date(2024, 3, 6)
    assert task.priority == "normal"
    assert "（截止日期：2024-03-06）" in task.description

    later = date(2024, 3, 8)
    project_service.update_construction(
        db, project.id, ConstructionMaterial(), calendar=calendar, today=later
    )
    db.refresh(task)
    assert task.deadline_date is None
    assert task.priority == "low"
    assert task.start_date == later


def test_paid_term_completes_payment_task(db, calendar):
    contract = Contract(
        sign_date=TODAY,
        payment_terms=[
            PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14),
            PaymentTerm(name="尾款", milestone="contract_sign_date", days_after_milestone=30),
        ],
    )
    project = _create(db, calendar, contract=contract)
    assert len(_tasks(db, project, KIND_PAYMENT)) == 2

    paid = contract.model_copy(
        update={
            "payment_terms": [
                contract.payment_terms[0].model_copy(
                    update={"is_paid": True, "payment_date": date(2024, 3, 12)}
                ),
                contract.payment_terms[1].model_copy(update={"is_paid": True}),
            ]
        }
    )
    project_service.update_contract(db, project.id, paid, calendar=calendar, today=TODAY)

    [advance] = _tasks(db, project, KIND_PAYMENT, "预付款")
    [final] = _tasks(db, project, KIND_PAYMENT, "尾款")
    assert advance.status == "completed"
    assert advance.completed_at == datetime(2024, 3, 12)
    assert final.status == "completed"
    assert final.completed_at is not None


def test_completed_payment_task_keeps_its_dates(db, calendar):
    term = PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14)
    project = _create(db, calendar, contract=Contract(sign_date=TODAY, payment_terms=[term]))
    paid = term.model_copy(update={"is_paid": True, "payment_date": date(2024, 3, 12)})
    project_service.update_contract(
        db, project.id, Contract(sign_date=TODAY, payment_terms=[paid]),
        calendar=calendar, today=TODAY,
    )

    # Term edited after payment: the completed task is not re-dated
    edited = term.model_copy(update={"days_after_milestone": 20})
    project_service.update_contract(
        db, project.id, Contract(sign_date=TODAY, payment_terms=[edited]),
        calendar=calendar, today=TODAY,
    )

    [task] = _tasks(db, project, KIND_PAYMENT)
    assert task.status == "completed"
    assert task.deadline_days == 14
    assert task.deadline_date == date(2024, 3, 14)
    assert task.completed_at == datetime(2024, 3, 12)


def test_removed_payment_term_deletes_its_task(db, calendar):
    terms = [
        PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14),
        PaymentTerm(name="尾款", milestone="settlement_audit", days_after_milestone=30),
    ]
    project = _create(db, calendar, contract=Contract(payment_terms=terms))

    project_service.update_contract(
        db, project.id, Contract(payment_terms=terms[:1]), calendar=calendar, today=TODAY
    )

    assert [t.governed_key for t in _tasks(db, project, KIND_PAYMENT)] == ["预付款"]


def test_payment_title_keeps_identity_after_rename(db, calendar):
    term = PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14)
    project = _create(db, calendar, contract=Contract(payment_terms=[term]))

    [task] = _tasks(db, project, KIND_PAYMENT)
    task.title = "手工改过的标题"
    db.commit()

    project_service.update_contract(
        db,
        project.id,
        Contract(sign_date=TODAY, payment_terms=[term]),
        calendar=calendar,
        today=TODAY,
    )

    [task] = _tasks(db, project, KIND_PAYMENT)
    assert task.title == "手工改过的标题"
    assert task.deadline_date == date(2024, 3, 14)


# ---------------------------------------------------------------------------
# Performance bond and insurance
# ---------------------------------------------------------------------------


def test_performance_bond_created_once_and_completed(db, calendar):
    contract = Contract(
        sign_date=date(2024, 3, 5), need_performance_bond=True, performance_bond_days=10
    )
    project = _create(db, calendar, contract=contract)

    [bond] = _tasks(db, project, KIND_PERFORMANCE_BOND)
    assert bond.title == f"提交履约保函 - {NAME}"
    assert bond.deadline_date == date(2024, 3, 14)

    project_service.update_contract(
        db,
        project.id,
        contract.model_copy(update={"performance_bond_days": 20}),
        calendar=calendar,
        today=TODAY,
    )
    assert len(_tasks(db, project, KIND_PERFORMANCE_BOND)) == 1

    project_service.update_contract(
        db,
        project.id,
        contract.model_copy(update={"performance_bond_submit_date": date(2024, 3, 9)}),
        calendar=calendar,
        today=TODAY,
    )
    [bond] = _tasks(db, project, KIND_PERFORMANCE_BOND)
    assert bond.status == "completed"
    assert bond.completed_at == datetime(2024, 3, 9)


def test_insurance_task_open_until_purchased(db, calendar):
    project = _create(
        db, calendar, contract=Contract(insurance_terms=[Insurance(name="工程一切险")])
    )

    [task] = _tasks(db, project, KIND_INSURANCE, "工程一切险")
    assert task.title == f"购买工程一切险保险 - {NAME}"
    assert task.deadline_date is None
    assert task.priority == "low"

    project_service.update_contract(
        db,
        project.id,
        Contract(
            insurance_terms=[
                Insurance(name="工程一切险", is_purchased=True, purchase_date=date(2024, 3, 6))
            ]
        ),
        calendar=calendar,
        today=TODAY,
    )
    db.refresh(task)
    assert task.status == "completed"
    assert task.completed_at == datetime(2024, 3, 6)


def test_removed_insurance_term_deletes_its_task(db, calendar):
    project = _create(
        db,
        calendar,
        contract=Contract(insurance_terms=[Insurance(name="工程一切险"), Insurance(name="雇主责任险")]),
    )

    project_service.update_contract(
        db,
        project.id,
        Contract(insurance_terms=[Insurance(name="雇主责任险")]),
        calendar=calendar,
        today=TODAY,
    )

    assert [t.governed_key for t in _tasks(db, project, KIND_INSURANCE)] == ["雇主责任险"]


def test_repeated_term_names_share_one_task(db, calendar):
    project = _create(db, calendar, contract=Contract(sign_date=TODAY))
    previous = ProjectResponse.model_validate(project)
    # Contract as restored from an older backup, names repeated
    project.contract = Contract(
        sign_date=TODAY,
        payment_terms=[
            PaymentTerm(name="进度款", milestone="contract_sign_date", days_after_milestone=3),
            PaymentTerm(name="进度款", milestone="contract_sign_date", days_after_milestone=20),
        ],
        insurance_terms=[Insurance(name="工程一切险"), Insurance(name="工程一切险")],
    ).model_dump(mode="json")
    db.flush()
    current = ProjectResponse.model_validate(project)

    reconcile_project(db, current, previous, calendar=calendar, today=TODAY)
    second = reconcile_project(db, current, current, calendar=calendar, today=TODAY)

    [payment] = _tasks(db, project, KIND_PAYMENT)
    assert payment.deadline_days == 3
    assert payment.deadline_date == date(2024, 3, 3)
    assert len(_tasks(db, project, KIND_INSURANCE)) == 1
    assert not second.changed


# ---------------------------------------------------------------------------
# Construction checklist
# ---------------------------------------------------------------------------


def test_needed_construction_item_open_until_dated(db, calendar):
    project = _create(
        db,
        calendar,
        construction_material=ConstructionMaterial(need_road_occupancy_approval=True),
    )

    [task] = _tasks(db, project, KIND_ROAD_OCCUPANCY)
    assert task.title == f"完成占道审批 - {NAME}"
    assert task.deadline_date is None

    project_service.update_construction(
        db,
        project.id,
        ConstructionMaterial(
            need_road_occupancy_approval=True,
            road_occupancy_approval_date=date(2024, 3, 7),
        ),
        calendar=calendar,
        today=TODAY,
    )
    db.refresh(task)
    assert task.status == "completed"
    assert task.completed_at == datetime(2024, 3, 7)


def test_completed_checklist_task_stays_completed(db, calendar):
    project = _create(
        db,
        calendar,
        construction_material=ConstructionMaterial(need_start_application=True),
    )
    dated = ConstructionMaterial(
        need_start_application=True, start_application_date=date(2024, 3, 5)
    )
    project_service.update_construction(db, project.id, dated, calendar=calendar, today=TODAY)
    [task] = _tasks(db, project, KIND_START_APPLICATION)
    assert task.status == "completed"
    assert task.completed_at == datetime(2024, 3, 5)

    project_service.update_construction(db, project.id, dated, calendar=calendar, today=TODAY)
    snapshot = ProjectResponse.model_validate(project)
    result = reconcile_project(db, snapshot, snapshot, calendar=calendar, today=TODAY)

    assert not result.changed
    [again] = _tasks(db, project, KIND_START_APPLICATION)
    assert again.id == task.id
    assert again.status == "completed"
    assert again.completed_at == datetime(2024, 3, 5)


def test_completion_application_lifecycle(db, calendar):
    material = ConstructionMaterial(
        need_start_application=True,
        start_application_date=TODAY,
        need_completion_application=True,
    )
    project = _create(
        db,
        calendar,
        award_notice=AwardNotice(project_duration=90),
        construction_material=material,
    )

    [task] = _tasks(db, project, KIND_COMPLETION_APPLICATION)
    assert task.title == f"完成完工申请报告 - {NAME}"
    assert task.start_date == TODAY
    assert task.deadline_date == date(2024, 5, 29)

    # Duration change re-dates the pending task
    project_service.update_award_notice(
        db, project.id, AwardNotice(project_duration=120), calendar=calendar, today=TODAY
    )
    db.refresh(task)
    assert task.deadline_days == 120
    assert task.deadline_date == date(2024, 6, 28)

    # Dated: completed
    done = material.model_copy(update={"completion_application_date": date(2024, 6, 1)})
    project_service.update_construction(db, project.id, done, calendar=calendar, today=TODAY)
    db.refresh(task)
    assert task.status == "completed"

    # Date cleared while still needed: reopened, not duplicated
    project_service.update_construction(
        db, project.id, material, calendar=calendar, today=TODAY
    )
    [reopened] = _tasks(db, project, KIND_COMPLETION_APPLICATION)
    assert reopened.id == task.id
    assert reopened.status == "pending"
    assert reopened.completed_at is None
    assert reopened.deadline_date == date(2024, 6, 28)


def test_completion_application_waits_for_start_date(db, calendar):
    project = _create(
        db,
        calendar,
        award_notice=AwardNotice(project_duration=90),
        construction_material=ConstructionMaterial(need_completion_application=True),
    )

    assert _tasks(db, project, KIND_COMPLETION_APPLICATION) == []


# ---------------------------------------------------------------------------
# Idempotence
# ---------------------------------------------------------------------------


def test_second_pass_with_same_state_writes_nothing(db, calendar):
    project = _create(
        db,
        calendar,
        award_notice=AwardNotice(award_date=TODAY, contract_sign_days=10, project_duration=60),
        contract=Contract(
            sign_date=date(2024, 3, 8),
            need_performance_bond=True,
            performance_bond_days=7,
            payment_terms=[
                PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14),
                PaymentTerm(name="尾款", milestone="acceptance_certificate", days_after_milestone=30),
            ],
            insurance_terms=[Insurance(name="工程一切险")],
        ),
        construction_material=ConstructionMaterial(
            need_road_occupancy_approval=True,
            start_application_date=date(2024, 3, 15),
            need_completion_application=True,
        ),
    )
    before = [(t.id, t.status, t.deadline_date, t.priority) for t in _tasks(db, project)]

    snapshot = ProjectResponse.model_validate(project)
    result = reconcile_project(db, snapshot, snapshot, calendar=calendar, today=TODAY)

    assert not result.changed
    assert [(t.id, t.status, t.deadline_date, t.priority) for t in _tasks(db, project)] == before
