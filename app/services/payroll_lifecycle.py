"""
PayAdjust - Payroll Lifecycle Rules

Decides which payroll operations are legal for a period's status, how
payslip statuses follow period transitions, and how a single payslip is
recalculated in place.

Period lifecycle:
    draft -> preview -> approved -> processing -> processed
    preview -> draft (admin revert, discards employee adjustments)

Payslips may be generated only while the period is draft, and
regenerated, bonused or deleted while it is draft or preview. Employees
may adjust their pension only while the period is in preview and the
adjustment deadline (if any) has not passed.

Nothing here touches the database.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from app.config import settings
from app.models.payroll import PeriodStatus, PayslipStatus
from app.services.payslip_calculator import PayslipBreakdown, calculate_payslip
from app.services.tax_calculators import TaxYearConfig, round_money, to_decimal
from app.services.tax_calculators.tax_year import Number
from app.utils.error_handling import (
    AdjustmentDeadlinePassedException,
    IllegalStateTransitionException,
    RangeViolationException,
)

logger = logging.getLogger(__name__)


MODIFIABLE_PERIOD_STATUSES: FrozenSet[PeriodStatus] = frozenset({
    PeriodStatus.DRAFT,
    PeriodStatus.PREVIEW,
})

PERIOD_TRANSITIONS: Dict[PeriodStatus, FrozenSet[PeriodStatus]] = {
    PeriodStatus.DRAFT: frozenset({PeriodStatus.PREVIEW}),
    PeriodStatus.PREVIEW: frozenset({PeriodStatus.APPROVED, PeriodStatus.DRAFT}),
    PeriodStatus.APPROVED: frozenset({PeriodStatus.PROCESSING}),
    PeriodStatus.PROCESSING: frozenset({PeriodStatus.PROCESSED}),
    PeriodStatus.PROCESSED: frozenset(),
}


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ===========================================
# STATE GATES
# ===========================================

def can_generate_payslips(period_status: PeriodStatus) -> bool:
    """Bulk generation replaces every payslip, so only drafts qualify."""
    return PeriodStatus(period_status) == PeriodStatus.DRAFT


def can_modify_payslip(period_status: PeriodStatus) -> bool:
    """Regenerate, bonus changes and deletion."""
    return PeriodStatus(period_status) in MODIFIABLE_PERIOD_STATUSES


def can_delete_period(period_status: PeriodStatus) -> bool:
    return PeriodStatus(period_status) in MODIFIABLE_PERIOD_STATUSES


def can_adjust_pension(
    period_status: PeriodStatus,
    deadline: Optional[datetime],
    now: Optional[datetime] = None,
) -> bool:
    """Employee self-service is open during preview, up to and including the deadline."""
    if PeriodStatus(period_status) != PeriodStatus.PREVIEW:
        return False
    if deadline is None:
        return True
    return _as_utc(now or utc_now()) <= _as_utc(deadline)


def ensure_can_generate_payslips(period_status: PeriodStatus) -> None:
    if not can_generate_payslips(period_status):
        logger.warning(f"Rejected payslip generation for period in status {PeriodStatus(period_status).value}")
        raise IllegalStateTransitionException(
            "Payslips can only be generated for draft payroll periods",
            current_status=PeriodStatus(period_status).value,
            operation="generate_payslips",
        )


def ensure_can_modify_payslip(period_status: PeriodStatus, operation: str = "modify_payslip") -> None:
    if not can_modify_payslip(period_status):
        logger.warning(f"Rejected {operation} for period in status {PeriodStatus(period_status).value}")
        raise IllegalStateTransitionException(
            "Payslips can only be changed while the payroll period is in draft or preview",
            current_status=PeriodStatus(period_status).value,
            operation=operation,
        )


def ensure_can_delete_period(period_status: PeriodStatus) -> None:
    if not can_delete_period(period_status):
        raise IllegalStateTransitionException(
            "Only draft or preview payroll periods can be deleted",
            current_status=PeriodStatus(period_status).value,
            operation="delete_period",
        )


def ensure_can_adjust_pension(
    period_status: PeriodStatus,
    deadline: Optional[datetime],
    now: Optional[datetime] = None,
) -> None:
    """
    Raises:
        IllegalStateTransitionException: Period is not in preview
        AdjustmentDeadlinePassedException: Preview window has closed
    """
    status = PeriodStatus(period_status)
    if status != PeriodStatus.PREVIEW:
        logger.warning(f"Rejected pension adjustment for period in status {status.value}")
        raise IllegalStateTransitionException(
            "Pension can only be adjusted while the payroll period is in preview",
            current_status=status.value,
            operation="adjust_pension",
        )
    if not can_adjust_pension(status, deadline, now):
        logger.warning(f"Rejected pension adjustment after deadline {deadline}")
        raise AdjustmentDeadlinePassedException(_as_utc(deadline))


# ===========================================
# PERIOD TRANSITIONS
# ===========================================

def can_transition(current: PeriodStatus, target: PeriodStatus) -> bool:
    return PeriodStatus(target) in PERIOD_TRANSITIONS[PeriodStatus(current)]


def ensure_period_transition(current: PeriodStatus, target: PeriodStatus) -> None:
    current, target = PeriodStatus(current), PeriodStatus(target)
    if not can_transition(current, target):
        logger.warning(f"Rejected period transition {current.value} -> {target.value}")
        raise IllegalStateTransitionException(
            f"Cannot move payroll period from {current.value} to {target.value}",
            current_status=current.value,
            operation=f"transition_to_{target.value}",
            details={
                "allowed": sorted(s.value for s in PERIOD_TRANSITIONS[current]),
            },
        )


def payslip_status_on_transition(
    target: PeriodStatus,
    current_payslip_status: PayslipStatus,
) -> PayslipStatus:
    """
    Status a payslip takes when its period moves to ``target``.

    - preview: every payslip becomes preview
    - approved: preview and adjusted payslips become approved
    - processed: every payslip becomes paid
    - draft (revert): every payslip returns to draft
    - processing: unchanged
    """
    target = PeriodStatus(target)
    current = PayslipStatus(current_payslip_status)

    if target == PeriodStatus.PREVIEW:
        return PayslipStatus.PREVIEW
    if target == PeriodStatus.APPROVED:
        if current in (PayslipStatus.PREVIEW, PayslipStatus.ADJUSTED):
            return PayslipStatus.APPROVED
        return current
    if target == PeriodStatus.PROCESSED:
        return PayslipStatus.PAID
    if target == PeriodStatus.DRAFT:
        return PayslipStatus.DRAFT
    return current


def propagate_period_status(payslips: Iterable[Any], target: PeriodStatus) -> None:
    """Apply a period transition to its payslips; a revert also discards adjustments."""
    target = PeriodStatus(target)
    for payslip in payslips:
        payslip.status = payslip_status_on_transition(target, payslip.status)
        if target == PeriodStatus.DRAFT:
            payslip.employee_adjusted = False


# ===========================================
# VALIDATION
# ===========================================

def validate_bonus(description: Optional[str], amount: Number) -> Tuple[str, Decimal]:
    """
    Returns:
        (stripped description, amount rounded to pence)
    """
    cleaned = (description or "").strip()
    if not cleaned:
        raise RangeViolationException(
            field="description",
            value=description,
            message="Bonus description is required",
        )

    value = round_money(amount)
    if value <= 0:
        raise RangeViolationException(
            field="amount",
            value=amount,
            message="Bonus amount must be greater than zero",
            minimum="0.01",
        )
    return cleaned, value


def validate_pension_percent(
    value: Number,
    minimum: Optional[Number] = None,
    maximum: Optional[Number] = None,
) -> Decimal:
    """Check an employee-chosen pension rate against the configured range."""
    low = to_decimal(settings.pension_adjustment_min if minimum is None else minimum)
    high = to_decimal(settings.pension_adjustment_max if maximum is None else maximum)
    percent = to_decimal(value)

    if percent < low or percent > high:
        raise RangeViolationException(
            field="pension_percent",
            value=value,
            message=f"Pension contribution must be between {low}% and {high}%",
            minimum=low,
            maximum=high,
        )
    return percent


# ===========================================
# RECALCULATION
# ===========================================

@dataclass(frozen=True)
class EmployeePayrollProfile:
    """Employee master data the calculator needs."""
    annual_salary: Decimal
    tax_code: str
    default_pension_percent: Decimal
    employer_pension_percent: Decimal

    @classmethod
    def from_record(cls, record: Any) -> "EmployeePayrollProfile":
        """Build from any object exposing the same attribute names."""
        return cls(
            annual_salary=to_decimal(record.annual_salary),
            tax_code=record.tax_code,
            default_pension_percent=to_decimal(record.default_pension_percent),
            employer_pension_percent=to_decimal(record.employer_pension_percent),
        )


def recalculate_payslip(
    employee: EmployeePayrollProfile,
    current_pension_percent: Optional[Number],
    *,
    preserve_adjusted_pension_rate: bool,
    total_bonus: Number = 0,
    other_additions: Number = 0,
    other_deductions: Number = 0,
    tax_year: Optional[TaxYearConfig] = None,
) -> PayslipBreakdown:
    """
    Recompute a payslip from employee master data.

    Bonus edits keep the payslip's current pension rate so an employee's
    choice survives (``preserve_adjusted_pension_rate=True``); regeneration
    resets it to the employee default.
    """
    if preserve_adjusted_pension_rate and current_pension_percent is not None:
        pension_percent = to_decimal(current_pension_percent)
    else:
        pension_percent = employee.default_pension_percent

    return calculate_payslip(
        annual_salary=employee.annual_salary,
        tax_code=employee.tax_code,
        employee_pension_percent=pension_percent,
        employer_pension_percent=employee.employer_pension_percent,
        bonus=total_bonus,
        other_additions=other_additions,
        other_deductions=other_deductions,
        tax_year=tax_year,
    )


def apply_breakdown(payslip: Any, breakdown: PayslipBreakdown) -> None:
    """Copy calculated fields onto a payslip."""
    for name, value in breakdown.payslip_fields().items():
        setattr(payslip, name, value)
