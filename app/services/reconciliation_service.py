"""
Milestone-task reconciler.

Brings the derived tasks of one project in line with the project's current
award notice, contract and construction checklist.  Called by the project
service after every project write, with the state before and after.

Identity
--------
A derived task belongs to exactly one governed item, identified by
``(project_id, governed_kind, governed_key)``.  ``governed_key`` is the term
name for payment and insurance terms and ``""`` for everything else.  Titles
and descriptions are display text only.

Rules (applied in this order)
-----------------------------
1. Contract signing: ``award_date`` + ``contract_sign_days > 0`` keeps one
   sign task in sync (created or updated in place); ``sign_date`` completes
   it.
2. Duration change: a changed ``project_duration`` re-dates the pending
   completion-application task when a start-application date exists.
3. Payment terms: unpaid terms get a task, blocked (no deadline, ``low``)
   while the milestone date is unknown; paid terms complete it; removed
   terms lose it.  Only a pending payment task is re-dated, so a completed
   payment keeps the dates it was completed with, even if the term is edited
   afterwards.
4. Performance bond: created once, anchored at ``sign_date``; completed by
   ``performance_bond_submit_date``.
5. Insurance terms: unpurchased terms get an open-ended task; purchased
   terms complete it; removed terms lose it.
6. Construction checklist: needed-and-undated items get an open-ended task;
   a date completes it.  The completion-application item instead gets a
   real deadline (start-application date + project duration) and is
   reopened if its date is cleared while it is still needed.

Terms are matched by name.  When a contract repeats a name (older backups
can), the first term with that name governs the shared task and the others
are ignored.

Every rule is idempotent: running the reconciler twice with the same state
writes nothing the second time.  Nothing is committed here; the caller owns
the transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy.orm import Session

from app.models.task import Task
from app.schemas.common import utc_now
from app.schemas.project import PaymentTerm, ProjectResponse
from app.services.calendar_service import BusinessCalendar, get_calendar
from app.utils.constants import (
    CONSTRUCTION_MILESTONES,
    KIND_COMPLETION_APPLICATION,
    KIND_CONTRACT_SIGN,
    KIND_INSURANCE,
    KIND_PAYMENT,
    KIND_PERFORMANCE_BOND,
    MILESTONE_LABELS,
)
from app.utils.date_utils import calculate_deadline_date, classify_priority

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Ids of the tasks touched by one reconciliation pass."""

    created: list[int] = field(default_factory=list)
    updated: list[int] = field(default_factory=list)
    completed: list[int] = field(default_factory=list)
    reopened: list[int] = field(default_factory=list)
    deleted: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return any(
            (self.created, self.updated, self.completed, self.reopened, self.deleted)
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _at_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _first_by_name(terms: list) -> list:
    seen: set[str] = set()
    unique = []
    for term in terms:
        if term.name not in seen:
            seen.add(term.name)
            unique.append(term)
    return unique


def _unit(is_working_days: bool, calendar_word: str = "天") -> str:
    return "个工作日" if is_working_days else calendar_word


def milestone_dates(project: ProjectResponse) -> dict[str, date | None]:
    """Resolve each payment milestone to its date on ``project`` (or ``None``)."""
    construction = project.construction_material
    return {
        "contract_sign_date": project.contract.sign_date,
        "start_application": construction.start_application_date,
        "completion_application": construction.completion_application_date,
        "acceptance_certificate": construction.acceptance_certificate_date,
        "settlement_audit": construction.settlement_audit_date,
    }


class _Reconciler:
    """One reconciliation pass over a single project."""

    def __init__(
        self,
        db: Session,
        project: ProjectResponse,
        previous: ProjectResponse | None,
        calendar: BusinessCalendar,
        today: date,
    ) -> None:
        self.db = db
        self.project = project
        self.previous = previous
        self.calendar = calendar
        self.today = today
        self.result = ReconciliationResult()

    # -- lookups --------------------------------------------------------

    def _find(self, kind: str, key: str = "", status: str | None = None) -> Task | None:
        query = self.db.query(Task).filter(
            Task.project_id == self.project.id,
            Task.governed_kind == kind,
            Task.governed_key == key,
        )
        if status is not None:
            query = query.filter(Task.status == status)
        return query.order_by(Task.id).first()

    def _deadline(self, start: date, days: int, is_working_days: bool) -> date:
        return calculate_deadline_date(
            start, days, is_working_days, self.calendar.is_business_day
        )

    # -- writes ---------------------------------------------------------

    def _create(self, kind: str, key: str, **values) -> Task:
        task = Task(
            project_id=self.project.id,
            project_number=self.project.project_number,
            is_project_task=True,
            governed_kind=kind,
            governed_key=key,
            status="pending",
            created_at=utc_now(),
            **values,
        )
        self.db.add(task)
        self.db.flush()
        self.result.created.append(task.id)
        logger.info(
            "Created task id=%d kind=%s key=%r project_id=%d",
            task.id, kind, key, self.project.id,
        )
        return task

    def _update(self, task: Task, **values) -> bool:
        changed = {k: v for k, v in values.items() if getattr(task, k) != v}
        if not changed:
            return False
        for name, value in changed.items():
            setattr(task, name, value)
        self.db.flush()
        if task.id not in self.result.updated:
            self.result.updated.append(task.id)
        logger.info("Updated task id=%d fields=%s", task.id, sorted(changed))
        return True

    def _complete(self, task: Task | None, completed_at: datetime) -> None:
        if task is None:
            return
        task.status = "completed"
        task.completed_at = completed_at
        self.db.flush()
        self.result.completed.append(task.id)
        logger.info(
            "Completed task id=%d kind=%s at %s",
            task.id, task.governed_kind, completed_at.isoformat(),
        )

    def _delete(self, kind: str, key: str) -> None:
        tasks = (
            self.db.query(Task)
            .filter(
                Task.project_id == self.project.id,
                Task.governed_kind == kind,
                Task.governed_key == key,
            )
            .all()
        )
        for task in tasks:
            self.result.deleted.append(task.id)
            logger.info("Deleted task id=%d for removed term %r", task.id, key)
            self.db.delete(task)
        if tasks:
            self.db.flush()

    # -- rules ----------------------------------------------------------

    def run(self) -> ReconciliationResult:
        self._contract_sign()
        self._duration_change()
        self._payment_terms()
        self._performance_bond()
        self._insurance_terms()
        self._construction()
        return self.result

    def _contract_sign(self) -> None:
        notice = self.project.award_notice
        if notice.award_date and notice.contract_sign_days > 0:
            deadline = self._deadline(
                notice.award_date, notice.contract_sign_days, notice.is_working_days
            )
            values = dict(
                start_date=notice.award_date,
                deadline_days=notice.contract_sign_days,
                deadline_date=deadline,
                priority=classify_priority(deadline, self.today),
                description=(
                    f"项目 {self.project.project_number} 需要在 "
                    f"{notice.contract_sign_days} {_unit(notice.is_working_days)}"
                    f"内签署合同（截止日期：{deadline.isoformat()}）"
                ),
            )
            existing = self._find(KIND_CONTRACT_SIGN)
            if existing is None:
                self._create(
                    KIND_CONTRACT_SIGN, "",
                    title=f"签署合同 - {self.project.project_name}",
                    **values,
                )
            else:
                self._update(existing, **values)

        sign_date = self.project.contract.sign_date
        if sign_date:
            self._complete(
                self._find(KIND_CONTRACT_SIGN, status="pending"), _at_midnight(sign_date)
            )

    def _completion_values(self, start: date, duration: int) -> dict:
        deadline = self._deadline(start, duration, False)
        return dict(
            deadline_days=duration,
            deadline_date=deadline,
            priority=classify_priority(deadline, self.today),
            description=(
                f"项目 {self.project.project_number} 需要在 {duration} "
                f"天内完成完工申请报告（截止日期：{deadline.isoformat()}）"
            ),
        )

    def _duration_change(self) -> None:
        if self.previous is None:
            return
        duration = self.project.award_notice.project_duration
        if duration == self.previous.award_notice.project_duration:
            return
        start = self.project.construction_material.start_application_date
        if not start:
            return
        task = self._find(KIND_COMPLETION_APPLICATION, status="pending")
        if task is not None:
            self._update(task, **self._completion_values(start, duration))

    # payment terms

    def _payment_description(self, term: PaymentTerm, deadline: date | None) -> str:
        number = self.project.project_number
        unit = _unit(term.is_working_days, "日")
        if deadline is None:
            label = MILESTONE_LABELS[term.milestone]
            return (
                f"项目 {number} 的 {term.name} 需要在 {label}后 "
                f"{term.days_after_milestone} {unit}内付款（前置里程碑：{label}未完成）"
            )
        return (
            f"项目 {number} 的 {term.name} 需要在 {term.days_after_milestone} "
            f"{unit}后付款（截止日期：{deadline.isoformat()}）"
        )

    def _payment_terms(self) -> None:
        dates = milestone_dates(self.project)
        for term in _first_by_name(self.project.contract.payment_terms):
            if term.is_paid:
                completed_at = (
                    _at_midnight(term.payment_date) if term.payment_date else utc_now()
                )
                self._complete(
                    self._find(KIND_PAYMENT, term.name, status="pending"), completed_at
                )
                continue

            milestone_date = dates[term.milestone]
            if milestone_date:
                deadline = self._deadline(
                    milestone_date, term.days_after_milestone, term.is_working_days
                )
                values = dict(
                    start_date=milestone_date,
                    deadline_days=term.days_after_milestone,
                    deadline_date=deadline,
                    priority=classify_priority(deadline, self.today),
                    description=self._payment_description(term, deadline),
                )
            else:
                values = dict(
                    deadline_days=term.days_after_milestone,
                    deadline_date=None,
                    priority="low",
                    description=self._payment_description(term, None),
                )

            existing = self._find(KIND_PAYMENT, term.name)
            if existing is None:
                values.setdefault("start_date", self.today)
                self._create(
                    KIND_PAYMENT, term.name,
                    title=f"{term.name}付款 - {self.project.project_name}",
                    **values,
                )
            elif existing.status == "pending":
                if milestone_date is None and existing.deadline_date is None:
                    # Still blocked
                    continue
                if milestone_date is None:
                    values["start_date"] = self.today
                self._update(existing, **values)

        if self.previous is not None:
            kept = {t.name for t in self.project.contract.payment_terms}
            for term in self.previous.contract.payment_terms:
                if term.name not in kept:
                    self._delete(KIND_PAYMENT, term.name)

    def _performance_bond(self) -> None:
        contract = self.project.contract
        if (
            contract.need_performance_bond
            and contract.performance_bond_days
            and contract.sign_date
            and self._find(KIND_PERFORMANCE_BOND) is None
        ):
            deadline = self._deadline(contract.sign_date, contract.performance_bond_days, False)
            self._create(
                KIND_PERFORMANCE_BOND, "",
                title=f"提交履约保函 - {self.project.project_name}",
                description=(
                    f"项目 {self.project.project_number} 需要在 "
                    f"{contract.performance_bond_days} 天内提交履约保函"
                    f"（截止日期：{deadline.isoformat()}）"
                ),
                start_date=contract.sign_date,
                deadline_days=contract.performance_bond_days,
                deadline_date=deadline,
                priority=classify_priority(deadline, self.today),
            )

        if contract.performance_bond_submit_date:
            self._complete(
                self._find(KIND_PERFORMANCE_BOND, status="pending"),
                _at_midnight(contract.performance_bond_submit_date),
            )

    def _insurance_terms(self) -> None:
        for insurance in _first_by_name(self.project.contract.insurance_terms):
            if insurance.is_purchased:
                completed_at = (
                    _at_midnight(insurance.purchase_date)
                    if insurance.purchase_date
                    else utc_now()
                )
                self._complete(
                    self._find(KIND_INSURANCE, insurance.name, status="pending"),
                    completed_at,
                )
            elif self._find(KIND_INSURANCE, insurance.name) is None:
                self._create(
                    KIND_INSURANCE, insurance.name,
                    title=f"购买{insurance.name}保险 - {self.project.project_name}",
                    description=(
                        f"项目 {self.project.project_number} 需要购买 "
                        f"{insurance.name} 保险"
                    ),
                    start_date=self.today,
                    deadline_days=0,
                    deadline_date=None,
                    priority="low",
                )

        if self.previous is not None:
            kept = {i.name for i in self.project.contract.insurance_terms}
            for insurance in self.previous.contract.insurance_terms:
                if insurance.name not in kept:
                    self._delete(KIND_INSURANCE, insurance.name)

    # construction checklist

    def _construction(self) -> None:
        material = self.project.construction_material
        for kind, need_field, date_field, label in CONSTRUCTION_MILESTONES:
            needed = getattr(material, need_field)
            done_on = getattr(material, date_field)

            if done_on:
                self._complete(
                    self._find(kind, status="pending"), _at_midnight(done_on)
                )
            elif not needed:
                continue
            elif kind == KIND_COMPLETION_APPLICATION:
                self._completion_application()
            elif self._find(kind) is None:
                self._create(
                    kind, "",
                    title=f"完成{label} - {self.project.project_name}",
                    description=f"项目 {self.project.project_number} 需要完成{label}",
                    start_date=self.today,
                    deadline_days=0,
                    deadline_date=None,
                    priority="low",
                )

    def _completion_application(self) -> None:
        start = self.project.construction_material.start_application_date
        duration = self.project.award_notice.project_duration
        pending = self._find(KIND_COMPLETION_APPLICATION, status="pending")
        completed = self._find(KIND_COMPLETION_APPLICATION, status="completed")

        if pending is None and completed is None:
            if start and duration:
                self._create(
                    KIND_COMPLETION_APPLICATION, "",
                    title=f"完成完工申请报告 - {self.project.project_name}",
                    start_date=start,
                    **self._completion_values(start, duration),
                )
        elif pending is None and start:
            completed.status = "pending"
            completed.completed_at = None
            completed.start_date = start
            for name, value in self._completion_values(start, duration).items():
                setattr(completed, name, value)
            self.db.flush()
            self.result.reopened.append(completed.id)
            logger.info("Reopened completion-application task id=%d", completed.id)


def reconcile_project(
    db: Session,
    project: ProjectResponse,
    previous: ProjectResponse | None = None,
    calendar: BusinessCalendar | None = None,
    today: date | None = None,
) -> ReconciliationResult:
    """Create, update, complete, reopen or delete the derived tasks of ``project``.

    Args:
        db: Active SQLAlchemy session.  Changes are flushed, not committed.
        project: Project state after the write.
        previous: Project state before the write, or ``None`` for a new
            project.  Needed to detect duration changes and removed terms.
        calendar: Business-day gateway for working-day deadlines.
        today: Reference date for priorities and open-ended start dates.

    Returns:
        The ids of every task touched, grouped by transition.
    """
    result = _Reconciler(
        db,
        project,
        previous,
        calendar or get_calendar(),
        today or date.today(),
    ).run()
    if result.changed:
        logger.info(
            "Reconciled project id=%d: created=%d updated=%d completed=%d "
            "reopened=%d deleted=%d",
            project.id, len(result.created), len(result.updated),
            len(result.completed), len(result.reopened), len(result.deleted),
        )
    else:
        logger.debug("Reconciled project id=%d: no changes", project.id)
    return result
