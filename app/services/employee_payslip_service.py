"""
PayAdjust - Employee Payslip Service

Self-service for employees: view payslips, preview the effect of a new
pension rate, and adjust the pension contribution on a payslip while its
period is in preview.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.payroll import (
    EmployeeDetails, PayrollPeriod, Payslip, PayslipAdjustment,
    PeriodStatus, PayslipStatus,
)
from app.services.payroll_lifecycle import (
    EmployeePayrollProfile,
    apply_breakdown,
    can_adjust_pension,
    ensure_can_adjust_pension,
    recalculate_payslip,
    validate_pension_percent,
)
from app.services.payslip_calculator import PayslipBreakdown
from app.services.period_aggregator import recompute_totals
from app.services.tax_calculators import TaxYearConfig, get_tax_year
from app.utils.error_handling import (
    EmployeeNotFoundException,
    PayslipNotFoundException,
)

logger = logging.getLogger(__name__)


class EmployeePayslipService:
    """Payslip access and pension adjustment for the signed-in employee."""

    def __init__(self, db: AsyncSession, tax_year: Optional[TaxYearConfig] = None):
        self.db = db
        self.tax_year = tax_year or get_tax_year()

    async def get_my_details(
        self,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Optional[EmployeeDetails]:
        """The employee's own payroll details."""
        result = await self.db.execute(
            select(EmployeeDetails).where(
                and_(
                    EmployeeDetails.organization_id == organization_id,
                    EmployeeDetails.profile_id == employee_id,
                )
            )
        )
        return result.scalar_one_or_none()

    async def get_my_payslips(
        self,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> List[Payslip]:
        """All of the employee's payslips, newest period first."""
        result = await self.db.execute(
            select(Payslip)
            .join(PayrollPeriod, Payslip.payroll_period_id == PayrollPeriod.id)
            .where(
                and_(
                    PayrollPeriod.organization_id == organization_id,
                    Payslip.employee_id == employee_id,
                )
            )
            .options(
                selectinload(Payslip.payroll_period),
                selectinload(Payslip.bonuses),
            )
            .order_by(PayrollPeriod.year.desc(), PayrollPeriod.month.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_current_payslip(
        self,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Optional[Payslip]:
        """The payslip open for preview, otherwise the most recent one."""
        payslips = await self.get_my_payslips(organization_id, employee_id)
        for payslip in payslips:
            if payslip.payroll_period.status == PeriodStatus.PREVIEW:
                return payslip
        return payslips[0] if payslips else None

    async def get_payslip_history(
        self,
        organization_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> List[Dict[str, Any]]:
        """Compact per-month summary for history views."""
        payslips = await self.get_my_payslips(organization_id, employee_id)
        return [
            {
                "id": p.id,
                "year": p.payroll_period.year,
                "month": p.payroll_period.month,
                "status": p.status,
                "net_pay": p.net_pay,
            }
            for p in payslips
        ]

    async def _get_own_payslip(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
        employee_id: uuid.UUID,
        for_update: bool = False,
    ) -> Optional[Payslip]:
        query = (
            select(Payslip)
            .join(PayrollPeriod, Payslip.payroll_period_id == PayrollPeriod.id)
            .where(
                and_(
                    Payslip.id == payslip_id,
                    Payslip.employee_id == employee_id,
                    PayrollPeriod.organization_id == organization_id,
                )
            )
            .options(
                selectinload(Payslip.payroll_period),
                selectinload(Payslip.bonuses),
            )
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()

        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    def _breakdown_at_rate(
        self,
        payslip: Payslip,
        employee: EmployeeDetails,
        pension_percent: Decimal,
    ) -> PayslipBreakdown:
        # Same gross composition and tax code snapshot, new employee rate
        profile = EmployeePayrollProfile(
            annual_salary=payslip.base_salary * 12,
            tax_code=payslip.tax_code,
            default_pension_percent=pension_percent,
            employer_pension_percent=employee.employer_pension_percent,
        )
        return recalculate_payslip(
            profile,
            payslip.pension_percent,
            preserve_adjusted_pension_rate=False,
            total_bonus=payslip.bonus,
            other_additions=payslip.other_additions,
            other_deductions=payslip.other_deductions,
            tax_year=self.tax_year,
        )

    async def preview_pension_adjustment(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
        employee_id: uuid.UUID,
        new_pension_percent: Decimal,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Show the payslip at a candidate pension rate without saving anything.

        The rate must be within the allowed range. The result also says
        whether the adjustment window is still open.
        """
        payslip = await self._get_own_payslip(organization_id, payslip_id, employee_id)
        if payslip is None:
            raise PayslipNotFoundException(payslip_id)

        new_percent = validate_pension_percent(new_pension_percent)

        employee = await self.get_my_details(organization_id, employee_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)

        breakdown = self._breakdown_at_rate(payslip, employee, new_percent)
        period = payslip.payroll_period

        return {
            "payslip_id": payslip.id,
            "current_pension_percent": payslip.pension_percent,
            "new_pension_percent": new_percent,
            "current_net_pay": payslip.net_pay,
            "new_net_pay": breakdown.net_pay,
            "net_pay_change": breakdown.net_pay - payslip.net_pay,
            "can_adjust": can_adjust_pension(period.status, period.adjustment_deadline, now),
            "breakdown": breakdown.to_dict(),
        }

    async def can_adjust_pension(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
        employee_id: uuid.UUID,
        now: Optional[datetime] = None,
    ) -> bool:
        """Whether the employee may still change the pension rate on this payslip."""
        payslip = await self._get_own_payslip(organization_id, payslip_id, employee_id)
        if payslip is None:
            return False
        period = payslip.payroll_period
        return can_adjust_pension(period.status, period.adjustment_deadline, now)

    async def adjust_pension(
        self,
        organization_id: uuid.UUID,
        payslip_id: uuid.UUID,
        employee_id: uuid.UUID,
        new_pension_percent: Decimal,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Decimal:
        """
        Change the employee pension rate on a preview payslip.

        The payslip keeps its gross composition and tax code snapshot; the
        new rate also becomes the employee's default for future periods.

        Returns:
            The payslip's new net pay
        """
        payslip = await self._get_own_payslip(organization_id, payslip_id, employee_id, for_update=True)
        if payslip is None:
            raise PayslipNotFoundException(payslip_id)

        period = payslip.payroll_period
        ensure_can_adjust_pension(period.status, period.adjustment_deadline, now)
        new_percent = validate_pension_percent(new_pension_percent)

        employee = await self.get_my_details(organization_id, employee_id)
        if employee is None:
            raise EmployeeNotFoundException(employee_id)

        breakdown = self._breakdown_at_rate(payslip, employee, new_percent)

        note = (reason or "").strip() or None
        self.db.add(PayslipAdjustment(
            payslip_id=payslip.id,
            employee_id=employee_id,
            previous_pension_percent=payslip.pension_percent,
            new_pension_percent=new_percent,
            previous_net_pay=payslip.net_pay,
            new_net_pay=breakdown.net_pay,
            reason=note,
        ))

        previous_percent = payslip.pension_percent
        apply_breakdown(payslip, breakdown)
        payslip.status = PayslipStatus.ADJUSTED
        payslip.employee_adjusted = True
        payslip.adjustment_note = note

        employee.default_pension_percent = new_percent

        await self.db.flush()
        result = await self.db.execute(
            select(Payslip).where(Payslip.payroll_period_id == period.id)
        )
        recompute_totals(result.scalars().all()).apply_to(period)

        await self.db.commit()

        logger.info(
            f"Employee {employee_id} adjusted pension on payslip {payslip_id} "
            f"from {previous_percent}% to {new_percent}%"
        )
        return breakdown.net_pay
