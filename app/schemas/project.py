"""
Pydantic v2 schemas for projects and their embedded sections.

A project owns three sections by value: the award notice (中标通知书), the
contract (合同协议书, with payment and insurance terms) and the construction
material checklist (开工资料).  The same section models validate request
bodies, the JSON columns of the ``project`` table, and backup files.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from app.schemas.common import CamelModel, OptionalDate, OptionalTimestamp

Milestone = Literal[
    "contract_sign_date",
    "start_application",
    "completion_application",
    "acceptance_certificate",
    "settlement_audit",
]

Category = Literal["工程", "服务", "采购"]


# ---------------------------------------------------------------------------
# Embedded sections
# ---------------------------------------------------------------------------


class AwardNotice(CamelModel):
    """Award notice section.

    Attributes:
        award_date: Date the bid was awarded; anchors the contract-sign deadline.
        contract_sign_days: Days allowed to sign the contract (0 = no task).
        is_working_days: Count ``contract_sign_days`` in business days.
        winning_unit: Winning bidder.
        project_manager_name: Bidder's project manager.
        project_manager_id: Project manager's ID card number.
        winning_price: Winning bid (yuan).
        project_duration: Construction period in calendar days.
    """

    award_date: OptionalDate = None
    contract_sign_days: int = Field(default=0, ge=0)
    is_working_days: bool = False
    winning_unit: str = ""
    project_manager_name: str = ""
    project_manager_id: str = ""
    winning_price: float = 0
    project_duration: int = Field(default=0, ge=0)


class PaymentTerm(CamelModel):
    id: int | None = None
    name: str = Field(..., min_length=1, max_length=200)
    milestone: Milestone
    days_after_milestone: int = Field(default=0, ge=0)
    is_working_days: bool = False
    payment_date: OptionalDate = None
    is_paid: bool = False


class Insurance(CamelModel):
    id: int | None = None
    name: str = Field(..., min_length=1, max_length=200)
    is_purchased: bool = False
    purchase_date: OptionalDate = None


class Contract(CamelModel):
    """Contract section.

    The term name is the key that ties a term to its follow-up task.  API
    writes reject duplicate names (see ``project_service``); backup files may
    still carry them, and same-name terms then share one task.
    """

    sign_date: OptionalDate = None
    need_performance_bond: bool = False
    performance_bond_days: int | None = Field(default=None, ge=0)
    performance_bond_submit_date: OptionalDate = None
    payment_terms: list[PaymentTerm] = Field(default_factory=list)
    insurance_terms: list[Insurance] = Field(default_factory=list)


class ConstructionMaterial(CamelModel):
    """Construction checklist: a "need" flag plus a completion date per item.

    An item is done exactly when its date is set.
    """

    need_road_occupancy_approval: bool = False
    road_occupancy_approval_date: OptionalDate = None
    need_start_application: bool = False
    start_application_date: OptionalDate = None
    need_completion_application: bool = False
    completion_application_date: OptionalDate = None
    need_acceptance_certificate: bool = False
    acceptance_certificate_date: OptionalDate = None
    need_settlement_audit: bool = False
    settlement_audit_date: OptionalDate = None


# ---------------------------------------------------------------------------
# Project resource
# ---------------------------------------------------------------------------


class ProjectBase(CamelModel):
    year: int = Field(..., ge=1900, le=2200)
    project_number: str = Field(..., min_length=1, max_length=100)
    project_name: str = Field(..., min_length=1, max_length=500)
    category: Category
    estimated_amount: float = 0
    budget_price: float = 0
    tender_date: OptionalDate = None


class ProjectCreate(ProjectBase):
    award_notice: AwardNotice = Field(default_factory=AwardNotice)
    contract: Contract = Field(default_factory=Contract)
    construction_material: ConstructionMaterial = Field(
        default_factory=ConstructionMaterial
    )


class ProjectUpdate(CamelModel):
    """Partial update of the basic fields; omitted fields are left unchanged."""

    project_number: str | None = Field(default=None, min_length=1, max_length=100)
    project_name: str | None = Field(default=None, min_length=1, max_length=500)
    category: Category | None = None
    estimated_amount: float | None = None
    budget_price: float | None = None
    tender_date: OptionalDate = None


class ProjectResponse(ProjectCreate):
    id: int
    created_at: datetime


class ProjectBackup(ProjectCreate):
    """Project as stored in a backup file (ids and timestamps preserved)."""

    id: int | None = None
    created_at: OptionalTimestamp = None
