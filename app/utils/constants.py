"""
Application-wide constants for the bid-award tracker.

Defines domain enumerations, display labels and thresholds used across
routers, services, and models.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Project categories (stored with their Chinese labels, as in backups)
# ---------------------------------------------------------------------------

PROJECT_CATEGORIES: Final[list[str]] = [
    "工程",  # engineering
    "服务",  # service
    "采购",  # procurement
]

# ---------------------------------------------------------------------------
# Task priority and status
# ---------------------------------------------------------------------------

PRIORITIES: Final[list[str]] = [
    "urgent",
    "high",
    "normal",
    "low",
]

TASK_STATUSES: Final[list[str]] = [
    "pending",
    "completed",
]

# ---------------------------------------------------------------------------
# Dashboard display buckets
# ---------------------------------------------------------------------------

DISPLAY_BUCKETS: Final[list[str]] = [
    "overdue",
    "today",
    "next7Days",
    "next30Days",
    "other",
]

NEAR_DAYS: Final[int] = 7
SOON_DAYS: Final[int] = 30

# Upper bound for a deadline preview (working-day mode looks up each day)
MAX_PREVIEW_DAYS: Final[int] = 3650

# ---------------------------------------------------------------------------
# Payment milestones
# ---------------------------------------------------------------------------

MILESTONES: Final[list[str]] = [
    "contract_sign_date",
    "start_application",
    "completion_application",
    "acceptance_certificate",
    "settlement_audit",
]

MILESTONE_LABELS: Final[dict[str, str]] = {
    "contract_sign_date": "合同签署",
    "start_application": "开工申请",
    "completion_application": "完工申请",
    "acceptance_certificate": "验收证书",
    "settlement_audit": "结算审核",
}

# ---------------------------------------------------------------------------
# Derived-task identity: the project item that governs a task
# ---------------------------------------------------------------------------

KIND_CONTRACT_SIGN: Final[str] = "contract_sign"
KIND_PERFORMANCE_BOND: Final[str] = "performance_bond"
KIND_PAYMENT: Final[str] = "payment"
KIND_INSURANCE: Final[str] = "insurance"
KIND_ROAD_OCCUPANCY: Final[str] = "road_occupancy"
KIND_START_APPLICATION: Final[str] = "start_application"
KIND_COMPLETION_APPLICATION: Final[str] = "completion_application"
KIND_ACCEPTANCE_CERTIFICATE: Final[str] = "acceptance_certificate"
KIND_SETTLEMENT_AUDIT: Final[str] = "settlement_audit"

GOVERNED_KINDS: Final[list[str]] = [
    KIND_CONTRACT_SIGN,
    KIND_PERFORMANCE_BOND,
    KIND_PAYMENT,
    KIND_INSURANCE,
    KIND_ROAD_OCCUPANCY,
    KIND_START_APPLICATION,
    KIND_COMPLETION_APPLICATION,
    KIND_ACCEPTANCE_CERTIFICATE,
    KIND_SETTLEMENT_AUDIT,
]

# Construction milestones: (kind, need flag, date field, task label)
CONSTRUCTION_MILESTONES: Final[list[tuple[str, str, str, str]]] = [
    (KIND_ROAD_OCCUPANCY, "need_road_occupancy_approval", "road_occupancy_approval_date", "占道审批"),
    (KIND_START_APPLICATION, "need_start_application", "start_application_date", "开工申请报告"),
    (KIND_COMPLETION_APPLICATION, "need_completion_application", "completion_application_date", "完工申请报告"),
    (KIND_ACCEPTANCE_CERTIFICATE, "need_acceptance_certificate", "acceptance_certificate_date", "竣工验收证书"),
    (KIND_SETTLEMENT_AUDIT, "need_settlement_audit", "settlement_audit_date", "结算审核"),
]

# Title heads (text before " - ") of tasks written before tasks carried an
# identity.  Payment and insurance heads embed the term name.
LEGACY_TITLE_HEADS: Final[dict[str, str]] = {
    "签署合同": KIND_CONTRACT_SIGN,
    "提交履约保函": KIND_PERFORMANCE_BOND,
    "完成占道审批": KIND_ROAD_OCCUPANCY,
    "完成开工申请报告": KIND_START_APPLICATION,
    "完成完工申请报告": KIND_COMPLETION_APPLICATION,
    "完成竣工验收证书": KIND_ACCEPTANCE_CERTIFICATE,
    "完成结算审核": KIND_SETTLEMENT_AUDIT,
}
PAYMENT_TITLE_SUFFIX: Final[str] = "付款"
INSURANCE_TITLE_PREFIX: Final[str] = "购买"
INSURANCE_TITLE_SUFFIX: Final[str] = "保险"

# ---------------------------------------------------------------------------
# Storage health
# ---------------------------------------------------------------------------

STORAGE_STATUSES: Final[list[str]] = [
    "healthy",
    "warning",
    "critical",
]
