"""Seed data script for the bid-award tracker database.

Populates the database with a demo year and a handful of projects at
different stages, so the dashboard shows tasks in every bucket.  Projects
go through ``project_service``, so their derived tasks are produced by the
same reconciliation as in the API.
The script is idempotent: it checks for existing records before inserting.

Usage (from the repository root):
    python seed_data.py
"""

from __future__ import annotations

import sys
import os
from datetime import date, timedelta

# Ensure the app package is importable when running from the repository root
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from app.database import SessionLocal, init_db  # noqa: E402
from app.models import Project, Task, Year  # noqa: E402
from app.schemas.project import (  # noqa: E402
    AwardNotice,
    ConstructionMaterial,
    Contract,
    Insurance,
    PaymentTerm,
    ProjectCreate,
)
from app.schemas.task import TaskCreate  # noqa: E402
from app.schemas.year import YearCreate  # noqa: E402
from app.services import project_service, task_service, year_service  # noqa: E402
from app.services.calendar_service import BusinessCalendar, get_calendar  # noqa: E402

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ago(days: int, today: date) -> date:
    """Shorthand for a date ``days`` before ``today``."""
    return today - timedelta(days=days)


# ---------------------------------------------------------------------------
# Seed functions
# ---------------------------------------------------------------------------


def seed_year(session, today: date) -> Year:
    """Insert the current year bucket if it does not already exist."""
    existing = session.query(Year).filter(Year.year == today.year).first()
    if existing is not None:
        print(f"  [SKIP] Year — {today.year} already exists.")
        return existing

    year = year_service.create_year(session, YearCreate(year=today.year))
    print(f"  [OK] Year — {year.year} created.")
    return year


def _demo_projects(today: date) -> list[ProjectCreate]:
    return [
        # Awarded last week, contract not signed yet
        ProjectCreate(
            year=today.year,
            project_number=f"GC-{today.year}-001",
            project_name="滨江路桥梁维修工程",
            category="工程",
            estimated_amount=2_600_000,
            budget_price=2_480_000,
            tender_date=_ago(20, today),
            award_notice=AwardNotice(
                award_date=_ago(7, today),
                contract_sign_days=10,
                is_working_days=True,
                winning_unit="市政建设集团有限公司",
                project_manager_name="王工",
                winning_price=2_395_000,
                project_duration=120,
            ),
            contract=Contract(
                payment_terms=[
                    PaymentTerm(name="预付款", milestone="contract_sign_date", days_after_milestone=14),
                    PaymentTerm(name="进度款", milestone="start_application", days_after_milestone=30),
                ],
                insurance_terms=[Insurance(name="工程一切险")],
            ),
        ),
        # Signed and under construction
        ProjectCreate(
            year=today.year,
            project_number=f"GC-{today.year}-002",
            project_name="老城区雨污分流改造",
            category="工程",
            estimated_amount=5_800_000,
            budget_price=5_650_000,
            tender_date=_ago(90, today),
            award_notice=AwardNotice(
                award_date=_ago(70, today),
                contract_sign_days=30,
                winning_unit="水务工程有限公司",
                winning_price=5_420_000,
                project_duration=90,
            ),
            contract=Contract(
                sign_date=_ago(60, today),
                need_performance_bond=True,
                performance_bond_days=7,
                performance_bond_submit_date=_ago(55, today),
                payment_terms=[
                    PaymentTerm(
                        name="预付款",
                        milestone="contract_sign_date",
                        days_after_milestone=14,
                        is_paid=True,
                        payment_date=_ago(50, today),
                    ),
                    PaymentTerm(name="进度款", milestone="start_application", days_after_milestone=60),
                    PaymentTerm(name="结算款", milestone="settlement_audit", days_after_milestone=30),
                ],
                insurance_terms=[
                    Insurance(name="工程一切险", is_purchased=True, purchase_date=_ago(58, today)),
                    Insurance(name="雇主责任险"),
                ],
            ),
            construction_material=ConstructionMaterial(
                need_road_occupancy_approval=True,
                need_start_application=True,
                start_application_date=_ago(45, today),
                need_completion_application=True,
                need_acceptance_certificate=True,
                need_settlement_audit=True,
            ),
        ),
        # Service contract, signed, first payment due today
        ProjectCreate(
            year=today.year,
            project_number=f"FW-{today.year}-003",
            project_name="园区绿化养护服务",
            category="服务",
            estimated_amount=360_000,
            budget_price=350_000,
            award_notice=AwardNotice(
                award_date=_ago(25, today),
                contract_sign_days=15,
                winning_unit="园林绿化有限公司",
                winning_price=338_000,
            ),
            contract=Contract(
                sign_date=_ago(9, today),
                payment_terms=[
                    PaymentTerm(name="首期款", milestone="contract_sign_date", days_after_milestone=10),
                ],
            ),
        ),
    ]


def seed_projects(session, calendar: BusinessCalendar, today: date) -> list[Project]:
    """Insert the demo projects of ``today.year`` if the year has none."""
    if session.query(Project).filter(Project.year == today.year).count() > 0:
        print("  [SKIP] Project — year already has projects.")
        return project_service.list_projects(session, year=today.year)

    projects = [
        project_service.create_project(session, data, calendar=calendar, today=today)
        for data in _demo_projects(today)
    ]
    print(f"  [OK] Project — {len(projects)} projects inserted.")
    return projects


def seed_manual_tasks(session, today: date) -> None:
    """Insert a couple of stand-alone tasks if there are none."""
    if session.query(Task).filter(Task.project_id.is_(None)).count() > 0:
        print("  [SKIP] Task — manual tasks already exist.")
        return

    manual = [
        TaskCreate(title="整理上月投标资料", start_date=_ago(10, today), deadline_days=5),
        TaskCreate(title="提交季度工程进度报表", start_date=today, deadline_days=20),
    ]
    for data in manual:
        task_service.create_task(session, data, today=today)
    print(f"  [OK] Task — {len(manual)} manual tasks inserted.")


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Run the complete seed process."""
    today = date.today()
    print("=" * 60)
    print("  Bid Award Tracker — Seed Data Script")
    print(f"  Year: {today.year}")
    print("=" * 60)

    init_db()
    session = SessionLocal()
    try:
        print("\n[1/3] Year...")
        seed_year(session, today)

        print("\n[2/3] Projects + derived tasks...")
        seed_projects(session, get_calendar(), today)

        print("\n[3/3] Manual tasks...")
        seed_manual_tasks(session, today)

        print("\n" + "=" * 60)
        print("  Seed completed.")
        print("=" * 60)

    except Exception as exc:
        session.rollback()
        print("\n[ERROR] Seed failed, rolled back.")
        print(f"  Detail: {exc}")
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
