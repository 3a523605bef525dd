"""
Markdown project report.

Renders one project (basic info, award notice, contract terms and the
construction checklist) as a human-readable Markdown document with Chinese
labels.  The report is for reading only and is never parsed back.
"""

from __future__ import annotations

from datetime import date, datetime

from app.schemas.project import ProjectResponse
from app.utils.constants import MILESTONE_LABELS


def _yes_no(flag: bool) -> str:
    return "是" if flag else "否"


def _money(amount: float) -> str:
    return f"¥{amount:,.2f}".rstrip("0").rstrip(".")


def _fmt(value: date | datetime | None, empty: str = "") -> str:
    if value is None:
        return empty
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return value.isoformat()


def render_project_markdown(project: ProjectResponse) -> str:
    notice = project.award_notice
    contract = project.contract
    material = project.construction_material

    lines: list[str] = [
        f"# {project.project_number} - {project.project_name}",
        "",
        f"**年度:** {project.year}",
        "",
        f"**项目类别:** {project.category}",
        "",
        f"**创建时间:** {_fmt(project.created_at)}",
        "",
        "## 基本信息",
        "",
        f"- **项目编号:** {project.project_number}",
        f"- **项目名称:** {project.project_name}",
        f"- **项目类别:** {project.category}",
        f"- **预估金额:** {_money(project.estimated_amount)}",
        f"- **预算价:** {_money(project.budget_price)}",
        f"- **招标日期:** {_fmt(project.tender_date)}",
        "",
        "## 中标通知书",
        "",
        f"- **中标日期:** {_fmt(notice.award_date)}",
        f"- **合同签订天数:** {notice.contract_sign_days}天",
        f"- **是否工作日:** {_yes_no(notice.is_working_days)}",
        f"- **中标单位:** {notice.winning_unit}",
        f"- **项目经理姓名:** {notice.project_manager_name}",
        f"- **项目经理身份证号:** {notice.project_manager_id}",
        f"- **中标价格:** {_money(notice.winning_price)}",
        f"- **工期:** {notice.project_duration}天",
        "",
        "## 合同协议书",
        "",
        f"- **合同签订日期:** {_fmt(contract.sign_date, '未签订')}",
        f"- **需要履约保函:** {_yes_no(contract.need_performance_bond)}",
    ]
    if contract.need_performance_bond:
        lines.append(f"- **履约保函提交期限:** {contract.performance_bond_days or 0}天")
        if contract.performance_bond_submit_date:
            lines.append(
                f"- **履约保函提交日期:** {_fmt(contract.performance_bond_submit_date)}"
            )
    lines.append("")

    if contract.payment_terms:
        lines += ["### 付款条款", ""]
        for index, term in enumerate(contract.payment_terms, start=1):
            lines += [
                f"{index}. **{term.name}**",
                f"   - 里程碑: {MILESTONE_LABELS[term.milestone]}",
                f"   - 里程碑后天数: {term.days_after_milestone}天",
                f"   - 是否工作日: {_yes_no(term.is_working_days)}",
            ]
            if term.payment_date:
                lines.append(f"   - 付款日期: {_fmt(term.payment_date)}")
            lines += [f"   - 是否已付款: {_yes_no(term.is_paid)}", ""]

    if contract.insurance_terms:
        lines += ["### 保险条款", ""]
        for index, insurance in enumerate(contract.insurance_terms, start=1):
            lines += [
                f"{index}. **{insurance.name}**",
                f"   - 是否已购买: {_yes_no(insurance.is_purchased)}",
            ]
            if insurance.purchase_date:
                lines.append(f"   - 购买日期: {_fmt(insurance.purchase_date)}")
            lines.append("")

    lines += ["## 开工资料", ""]
    checklist = [
        ("需要道路占用审批", material.need_road_occupancy_approval, material.road_occupancy_approval_date),
        ("需要开工申请", material.need_start_application, material.start_application_date),
        ("需要完工申请", material.need_completion_application, material.completion_application_date),
        ("需要验收证书", material.need_acceptance_certificate, material.acceptance_certificate_date),
        ("需要结算审核", material.need_settlement_audit, material.settlement_audit_date),
    ]
    for label, needed, done_on in checklist:
        lines.append(f"- **{label}:** {_yes_no(needed)}")
        if done_on:
            lines.append(f"  - 日期: {_fmt(done_on)}")

    return "\n".join(lines) + "\n"
