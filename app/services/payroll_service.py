"""
PayAdjust - Payroll Service

Admin-side payroll workflows for an organization:

1. Employee payroll details
   - Salary, tax code and pension defaults per member

2. Payroll periods
   - One per calendar month, draft -> preview -> approved -> processing -> processed
   - Preview may be reverted to draft (discards employee adjustments)

3. Payslips
   - Bulk generation while draft, single regeneration/deletion while draft or preview

4. Bonuses
   - Itemized per payslip; every change recalculates the payslip keeping
     the pension rate currently on it

5. Payments
   - Net pay owed per payslip and pending/processed totals (read only)

Every payslip mutation recomputes the period totals from the full payslip
set before the transaction commits.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payroll import (
    EmployeeDetails, PayrollPeriod, Payslip, PayslipBonus,
    PeriodStatus, PayslipStatus,
)
from app.services.payroll_lifecycle import (
    EmployeePayrollProfile,
    apply_breakdown,
    ensure_can_delete_period,
    ensure_can_generate_payslips,
    ensure_can_modify_payslip,
    ensure_period_transition,
    propagate_period_status,
    recalculate_payslip,
    utc_now,
    validate_bonus,
)
from app.services.period_aggregator import PeriodTotals, recompute_totals
from app.services.tax_calculators import TaxYearConfig, get_tax_year, round_money
from app.utils.error_handling import (
    BusinessRuleException,
    ConfirmationRequiredException,
    DuplicateEntryException,
    EmployeeNotFoundException,
    NotFoundException,
    PayrollPeriodNotFoundException,
    PayslipNotFoundException,
    RangeViolationException,
)

logger = logging.getLogger(__name__)


# Employee fields an admin may set
EMPLOYEE_DETAIL_FIELDS = (
    "full_name",
    "department",
    "annual_salary",
    "tax_code",
    "default_pension_percent",
    "employer_pension_percent",
    "start_date",
    "is_active",
)

# Periods whose net pay is owed or has been paid out
PAYMENT_STATUSES = (
    PeriodStatus.APPROVED,
    PeriodStatus.PROCESSING,
    PeriodStatus.PROCESSED,
)


class PayrollService:
    """
    Payroll service for managing employee payroll data and monthly periods.
    """

    def __init__(self, db: AsyncSession, tax_year: Optional[TaxYearConfig] = None):
        self.db = db
        self.tax_year = tax_year or get_tax_year()

    # ===========================================
    # EMPLOYEE PAYROLL DETAILS
    # ===========================================

    async def upsert_employee_details(
        self,
        organization_id: uuid.UUID,
        profile_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> EmployeeDetails:
        """Create or update an employee's payroll details."""
        values = {k: v for k, v in data.items() if k in EMPLOYEE_DETAIL_FIELDS and v is not None}
        if "tax_code" in values:
            values["tax_code"] = values["tax_code"].strip()

        employee = await self.get_employee_details(organization_id, profile_id)
        if employee is None:
            employee = EmployeeDetails(
                organization_id=organization_id,
                profile_id=profile_id,
                **values,
            )
            self.db.add(employee)
            logger.info(f"Created payroll details for {profile_id} in organization {organization_id}")
        else:
            for key, value in values.items():
                setattr(employee, key, value)
            logger.info(f"Updated payroll details for {profile_id} in organization {organization_id}")

        await self.db.commit()
        await self.db.refresh(employee)

        return employee

    async def get_employee_details(
        self,
        organization_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> Optional[EmployeeDetails]:
        """Get an employee's payroll details."""
        result = await self.db.execute(
            select(EmployeeDetails).where(
                and_(
                    EmployeeDetails.organization_id == organization_id,
                    EmployeeDetails.profile_id == profile_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def list_employee_details(
        self,
        organization_id: uuid.UUID,
        include_inactive: bool = False,
    ) -> List[EmployeeDetails]:
        """List employees with payroll details."""
        query = select(EmployeeDetails).where(EmployeeDetails.organization_id == organization_id)
        if not include_inactive:
            query = query.where(EmployeeDetails.is_active == True)

        result = await self.db.execute(query.order_by(EmployeeDetails.full_name))
        return list(result.scalars().all())

    async def list_active_employees(self, organization_id: uuid.UUID) -> List[EmployeeDetails]:
        """Employees included in payslip generation."""
        return await self.list_employee_details(organization_id, include_inactive=False)

    async def set_employee_active(
        self,
        organization_id: uuid.UUID,
        profile_id: uuid.UUID,
        is_active: bool,
    ) -> EmployeeDetails:
        """Deactivate or reactivate an employee."""
        employee = await self.get_employee_details(organization_id, profile_id)
        if employee is None:
            raise EmployeeNotFoundException(profile_id)

        employee.is_active = is_active
        await self.db.commit()
        await self.db.refresh(employee)

        logger.info(f"Employee {profile_id} {'reactivated' if is_active else 'deactivated'}")
        return employee

    async def _require_employee(
        self,
        organization_id: uuid.UUID,
        profile_id: uuid.UUID,
    ) -> EmployeeDetails:
        employee = await self.get_employee_details(organization_id, profile_id)
        if employee is None:
            raise EmployeeNotFoundException(profile_id)
        return employee

    # ===========================================
    # PAYROLL PERIODS
    # ===========================================

    async def create_payroll_period(
        self,
        organization_id: uuid.UUID,
        year: int,
        month: int,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> PayrollPeriod:
        """Create a draft payroll period for a calendar month."""
        if not 1 <= month <= 12:
            raise RangeViolationException(field="month", value=month, minimum=1, maximum=12)

        existing = await self.db.execute(
            select(PayrollPeriod.id).where(
                and_(
                    PayrollPeriod.organization_id == organization_id,
                    PayrollPeriod.year == year,
                    PayrollPeriod.month == month,
                )
            )
        )
        if existing.scalar_one_or_none():
            raise DuplicateEntryException("Payroll period", "month", f"{year}-{month:02d}")

        period = PayrollPeriod(
            organization_id=organization_id,
            year=year,
            month=month,
            status=PeriodStatus.DRAFT,
            created_by_id=created_by_id,
        )
        self.db.add(period)
        await self.db.commit()
        await self.db.refresh(period)

        logger.info(f"Created payroll period {year}-{month:02d} for organization {organization_id}")
        return period

    async def list_payroll_periods(self, organization_id: uuid.UUID) -> List[PayrollPeriod]:
        """List payroll periods, newest first."""
        result = await self.db.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.organization_id == organization_id)
            .order_by(PayrollPeriod.year.desc(), PayrollPeriod.month.desc())
        )
        return list(result.scalars().all())

    async def _get_period(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        with_payslips: bool = False,
        for_update: bool = False,
    ) -> PayrollPeriod:
        query = select(PayrollPeriod).where(
            and_(
                PayrollPeriod.id == period_id,
                PayrollPeriod.organization_id == organization_id,
            )
        )
        if with_payslips:
            query = query.options(
                selectinload(PayrollPeriod.payslips).selectinload(Payslip.bonuses),
                selectinload(PayrollPeriod.payslips).selectinload(Payslip.adjustments),
            )
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query.execution_options(populate_existing=True))
        period = result.scalar_one_or_none()
        if period is None:
            raise PayrollPeriodNotFoundException(period_id)
        return period

    async def get_payroll_period(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
    ) -> PayrollPeriod:
        """Get a payroll period with its payslips and bonuses."""
        return await self._get_period(organization_id, period_id, with_payslips=True)

    async def update_payroll_status(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        status: PeriodStatus,
        preview_start_date: Optional[datetime] = None,
        adjustment_deadline: Optional[datetime] = None,
        processing_date: Optional[date] = None,
        updated_by_id: Optional[uuid.UUID] = None,
        confirm: bool = False,
    ) -> PayrollPeriod:
        """
        Move a period to a new status and carry its payslips along.

        Moving to draft is a revert and needs ``confirm=True``.
        """
        target = PeriodStatus(status)
        if target == PeriodStatus.DRAFT:
            return await self.revert_to_draft(organization_id, period_id, confirm, updated_by_id)

        period = await self._get_period(organization_id, period_id, with_payslips=True, for_update=True)
        ensure_period_transition(period.status, target)

        if preview_start_date is not None:
            period.preview_start_date = preview_start_date
        if adjustment_deadline is not None:
            period.adjustment_deadline = adjustment_deadline
        if processing_date is not None:
            period.processing_date = processing_date

        previous = period.status
        period.status = target
        period.updated_by_id = updated_by_id
        propagate_period_status(period.payslips, target)

        await self.db.commit()

        logger.info(f"Payroll period {period_id} moved from {previous.value} to {target.value}")
        return await self.get_payroll_period(organization_id, period_id)

    async def revert_to_draft(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        confirm: bool = False,
        updated_by_id: Optional[uuid.UUID] = None,
    ) -> PayrollPeriod:
        """
        Revert a preview period to draft.

        Clears the preview window and discards every employee adjustment.
        """
        period = await self._get_period(organization_id, period_id, with_payslips=True, for_update=True)
        ensure_period_transition(period.status, PeriodStatus.DRAFT)

        if not confirm:
            raise ConfirmationRequiredException(
                "Revert to draft",
                "employee pension adjustments on this period will be discarded",
            )

        period.status = PeriodStatus.DRAFT
        period.preview_start_date = None
        period.adjustment_deadline = None
        period.updated_by_id = updated_by_id
        propagate_period_status(period.payslips, PeriodStatus.DRAFT)

        await self.db.commit()

        logger.info(f"Payroll period {period_id} reverted to draft")
        return await self.get_payroll_period(organization_id, period_id)

    async def delete_payroll_period(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        force: bool = False,
    ) -> None:
        """Delete a draft period, or a preview period with ``force=True``."""
        period = await self._get_period(organization_id, period_id, with_payslips=True, for_update=True)
        ensure_can_delete_period(period.status)

        if period.status == PeriodStatus.PREVIEW and not force:
            raise ConfirmationRequiredException(
                "Delete preview period",
                "employees can already see these payslips",
            )

        await self.db.delete(period)
        await self.db.commit()

        logger.info(f"Deleted payroll period {period.year}-{period.month:02d} ({period_id})")

    # ===========================================
    # PERIOD TOTALS
    # ===========================================

    async def _refresh_period_totals(self, period: PayrollPeriod) -> PeriodTotals:
        await self.db.flush()
        result = await self.db.execute(
            select(Payslip).where(Payslip.payroll_period_id == period.id)
        )
        totals = recompute_totals(result.scalars().all())
        totals.apply_to(period)
        return totals

    async def recalculate_period_totals(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
    ) -> PeriodTotals:
        """Recompute and store a period's totals from its payslips."""
        period = await self._get_period(organization_id, period_id, for_update=True)
        totals = await self._refresh_period_totals(period)
        await self.db.commit()
        return totals

    # ===========================================
    # PAYSLIPS
    # ===========================================

    async def generate_payslips(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
    ) -> int:
        """
        Replace a draft period's payslips with one fresh payslip per active employee.

        Returns:
            Number of payslips generated
        """
        period = await self._get_period(organization_id, period_id, with_payslips=True, for_update=True)
        ensure_can_generate_payslips(period.status)

        employees = await self.list_active_employees(organization_id)
        if not employees:
            raise BusinessRuleException(
                "No active employees found. Add employees with payroll details first.",
                rule="ACTIVE_EMPLOYEES_REQUIRED",
            )

        # Old rows must be gone before the unique (period, employee) rows are reinserted
        period.payslips.clear()
        await self.db.flush()

        for employee in employees:
            breakdown = recalculate_payslip(
                EmployeePayrollProfile.from_record(employee),
                None,
                preserve_adjusted_pension_rate=False,
                tax_year=self.tax_year,
            )
            payslip = Payslip(
                payroll_period_id=period.id,
                employee_id=employee.profile_id,
                status=PayslipStatus.DRAFT,
                employee_adjusted=False,
                tax_code=employee.tax_code,
                **breakdown.payslip_fields(),
            )
            period.payslips.append(payslip)

        recompute_totals(period.payslips).apply_to(period)
        await self.db.commit()

        logger.info(f"Generated {len(employees)} payslips for payroll period {period_id}")
        return len(employees)

    async def _get_payslip(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
    ) -> Payslip:
        result = await self.db.execute(
            select(Payslip)
            .join(PayrollPeriod, Payslip.payroll_period_id == PayrollPeriod.id)
            .where(
                and_(
                    Payslip.id == payslip_id,
                    PayrollPeriod.organization_id == organization_id,
                )
            )
            .options(
                selectinload(Payslip.payroll_period),
                selectinload(Payslip.bonuses),
                selectinload(Payslip.adjustments),
            )
            .execution_options(populate_existing=True)
        )
        payslip = result.scalar_one_or_none()
        if payslip is None:
            raise PayslipNotFoundException(payslip_id)
        return payslip

    async def get_payslip(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
    ) -> Payslip:
        """Get a payslip with its bonuses."""
        return await self._get_payslip(organization_id, payslip_id)

    async def regenerate_payslip(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Payslip:
        """
        Recalculate one employee's payslip from current master data.

        The employee's default pension rate replaces any adjusted rate and
        other additions/deductions are reset. Bonus records are kept.
        """
        period = await self._get_period(organization_id, period_id, for_update=True)
        ensure_can_modify_payslip(period.status, "regenerate_payslip")
        employee = await self._require_employee(organization_id, employee_id)

        result = await self.db.execute(
            select(Payslip)
            .where(
                and_(
                    Payslip.payroll_period_id == period.id,
                    Payslip.employee_id == employee_id,
                )
            )
            .options(selectinload(Payslip.bonuses))
            .execution_options(populate_existing=True)
        )
        payslip = result.scalar_one_or_none()

        if payslip is None:
            payslip = Payslip(payroll_period_id=period.id, employee_id=employee_id, bonuses=[])
            self.db.add(payslip)
        elif payslip.employee_adjusted:
            logger.warning(
                f"Regenerating payslip {payslip.id} discards the employee's adjusted "
                f"pension rate of {payslip.pension_percent}%"
            )

        total_bonus = sum((b.amount for b in payslip.bonuses), Decimal("0"))
        breakdown = recalculate_payslip(
            EmployeePayrollProfile.from_record(employee),
            payslip.pension_percent,
            preserve_adjusted_pension_rate=False,
            total_bonus=total_bonus,
            tax_year=self.tax_year,
        )
        apply_breakdown(payslip, breakdown)
        payslip.tax_code = employee.tax_code
        payslip.employee_adjusted = False
        payslip.adjustment_note = None
        payslip.status = (
            PayslipStatus.PREVIEW if period.status == PeriodStatus.PREVIEW else PayslipStatus.DRAFT
        )

        await self._refresh_period_totals(period)
        await self.db.commit()

        logger.info(f"Regenerated payslip for employee {employee_id} in period {period_id}")
        return await self._get_payslip(organization_id, payslip.id)

    async def delete_payslip(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
    ) -> None:
        """Delete a payslip from a draft or preview period."""
        payslip = await self._get_payslip(organization_id, payslip_id)
        period = payslip.payroll_period
        ensure_can_modify_payslip(period.status, "delete_payslip")

        await self.db.delete(payslip)
        await self._refresh_period_totals(period)
        await self.db.commit()

        logger.info(f"Deleted payslip {payslip_id} from period {period.id}")

    # ===========================================
    # BONUSES
    # ===========================================

    async def _recalculate_with_bonuses(
        self,
        organization_id: uuid.UUID,
        payslip: Payslip,
    ) -> None:
        """
        Recompute a payslip after its bonuses changed, keeping its pension rate.

        Salary, employer rate and tax code are re-read from the employee
        record, and the tax code snapshot is refreshed to match.
        """
        await self.db.flush()
        employee = await self._require_employee(organization_id, payslip.employee_id)

        result = await self.db.execute(
            select(func.coalesce(func.sum(PayslipBonus.amount), 0))
            .where(PayslipBonus.payslip_id == payslip.id)
        )
        total_bonus = round_money(result.scalar())

        breakdown = recalculate_payslip(
            EmployeePayrollProfile.from_record(employee),
            payslip.pension_percent,
            preserve_adjusted_pension_rate=True,
            total_bonus=total_bonus,
            other_additions=payslip.other_additions,
            other_deductions=payslip.other_deductions,
            tax_year=self.tax_year,
        )
        apply_breakdown(payslip, breakdown)
        payslip.tax_code = employee.tax_code

    async def add_bonus_to_payslip(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
        description: str,
        amount: Decimal,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> PayslipBonus:
        """Add a bonus line to one payslip."""
        description, amount = validate_bonus(description, amount)
        payslip = await self._get_payslip(organization_id, payslip_id)
        period = payslip.payroll_period
        ensure_can_modify_payslip(period.status, "add_bonus")

        bonus = PayslipBonus(
            payslip_id=payslip.id,
            description=description,
            amount=amount,
            created_by_id=created_by_id,
        )
        self.db.add(bonus)

        await self._recalculate_with_bonuses(organization_id, payslip)
        await self._refresh_period_totals(period)
        await self.db.commit()
        await self.db.refresh(bonus)

        logger.info(f"Added bonus of {amount} to payslip {payslip_id}")
        return bonus

    async def add_bonus_to_all_payslips(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
        description: str,
        amount: Decimal,
        created_by_id: Optional[uuid.UUID] = None,
    ) -> int:
        """
        Add the same bonus to every payslip in a period.

        Returns:
            Number of payslips updated
        """
        description, amount = validate_bonus(description, amount)
        period = await self._get_period(organization_id, period_id, with_payslips=True, for_update=True)
        ensure_can_modify_payslip(period.status, "add_bonus")

        payslips = list(period.payslips)
        if not payslips:
            raise BusinessRuleException(
                "No payslips found in this period",
                rule="PAYSLIPS_REQUIRED",
            )

        for payslip in payslips:
            self.db.add(PayslipBonus(
                payslip_id=payslip.id,
                description=description,
                amount=amount,
                created_by_id=created_by_id,
            ))

        for payslip in payslips:
            await self._recalculate_with_bonuses(organization_id, payslip)

        await self._refresh_period_totals(period)
        await self.db.commit()

        logger.info(f"Added bonus of {amount} to {len(payslips)} payslips in period {period_id}")
        return len(payslips)

    async def _get_bonus(
        self,
        organization_id: uuid.UUID,
        bonus_id: uuid.UUID,
    ) -> PayslipBonus:
        result = await self.db.execute(
            select(PayslipBonus)
            .join(Payslip, PayslipBonus.payslip_id == Payslip.id)
            .join(PayrollPeriod, Payslip.payroll_period_id == PayrollPeriod.id)
            .where(
                and_(
                    PayslipBonus.id == bonus_id,
                    PayrollPeriod.organization_id == organization_id,
                )
            )
            .options(selectinload(PayslipBonus.payslip).selectinload(Payslip.payroll_period))
            .execution_options(populate_existing=True)
        )
        bonus = result.scalar_one_or_none()
        if bonus is None:
            raise NotFoundException("Bonus", bonus_id)
        return bonus

    async def update_bonus(
        self,
        organization_id: uuid.UUID,
        bonus_id: uuid.UUID,
        description: str,
        amount: Decimal,
    ) -> PayslipBonus:
        """Change a bonus line and recalculate its payslip."""
        description, amount = validate_bonus(description, amount)
        bonus = await self._get_bonus(organization_id, bonus_id)
        payslip = bonus.payslip
        period = payslip.payroll_period
        ensure_can_modify_payslip(period.status, "update_bonus")

        bonus.description = description
        bonus.amount = amount

        await self._recalculate_with_bonuses(organization_id, payslip)
        await self._refresh_period_totals(period)
        await self.db.commit()
        await self.db.refresh(bonus)

        logger.info(f"Updated bonus {bonus_id} on payslip {payslip.id}")
        return bonus

    async def delete_bonus(
        self,
        organization_id: uuid.UUID,
        bonus_id: uuid.UUID,
    ) -> None:
        """Remove a bonus line and recalculate its payslip."""
        bonus = await self._get_bonus(organization_id, bonus_id)
        payslip = bonus.payslip
        period = payslip.payroll_period
        ensure_can_modify_payslip(period.status, "delete_bonus")

        await self.db.delete(bonus)

        await self._recalculate_with_bonuses(organization_id, payslip)
        await self._refresh_period_totals(period)
        await self.db.commit()

        logger.info(f"Deleted bonus {bonus_id} from payslip {payslip.id}")

    # ===========================================
    # PAYMENTS
    # ===========================================

    async def list_payment_periods(self, organization_id: uuid.UUID) -> List[PayrollPeriod]:
        """Approved, processing and processed periods, newest first."""
        result = await self.db.execute(
            select(PayrollPeriod)
            .where(
                and_(
                    PayrollPeriod.organization_id == organization_id,
                    PayrollPeriod.status.in_(PAYMENT_STATUSES),
                )
            )
            .order_by(PayrollPeriod.year.desc(), PayrollPeriod.month.desc())
        )
        return list(result.scalars().all())

    async def get_payment_overview(
        self,
        organization_id: uuid.UUID,
        period_id: uuid.UUID,
    ) -> Dict[str, Any]:
        """
        Net pay owed to each employee for a period.

        Returns:
            Dict with the period, one payment line per payslip and the
            summed net pay
        """
        period = await self._get_period(organization_id, period_id)

        result = await self.db.execute(
            select(Payslip, EmployeeDetails.full_name)
            .outerjoin(
                EmployeeDetails,
                and_(
                    EmployeeDetails.profile_id == Payslip.employee_id,
                    EmployeeDetails.organization_id == organization_id,
                ),
            )
            .where(Payslip.payroll_period_id == period.id)
            .order_by(EmployeeDetails.full_name, Payslip.employee_id)
        )

        payments = [
            {
                "payslip_id": payslip.id,
                "employee_id": payslip.employee_id,
                "full_name": full_name or "Unknown",
                "net_pay": payslip.net_pay,
                "status": payslip.status,
            }
            for payslip, full_name in result.all()
        ]

        return {
            "period": period,
            "payments": payments,
            "total_net": round_money(sum((p["net_pay"] for p in payments), Decimal("0"))),
        }

    async def get_payment_stats(
        self,
        organization_id: uuid.UUID,
        year: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Payment summary for the organization.

        Pending covers every approved period; processed covers the
        processed periods of ``year`` (default: the current year).
        """
        year = year or utc_now().year

        result = await self.db.execute(
            select(PayrollPeriod).where(
                and_(
                    PayrollPeriod.organization_id == organization_id,
                    PayrollPeriod.status.in_([PeriodStatus.APPROVED, PeriodStatus.PROCESSED]),
                )
            )
        )
        periods = list(result.scalars().all())

        pending = [p for p in periods if p.status == PeriodStatus.APPROVED]
        processed = [p for p in periods if p.status == PeriodStatus.PROCESSED and p.year == year]

        return {
            "year": year,
            "pending_total": round_money(sum((p.total_net for p in pending), Decimal("0"))),
            "pending_count": len(pending),
            "processed_total": round_money(sum((p.total_net for p in processed), Decimal("0"))),
            "processed_count": len(processed),
        }
