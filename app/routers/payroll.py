"""
PayAdjust - Payroll Router

Admin API endpoints for employee payroll details, payroll periods,
payslips, bonuses and payments within an organization.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_profile_id
from app.services.payroll_service import PayrollService
from app.services.payslip_calculator import calculate_payslip
from app.services.tax_calculators import PAYECalculator, get_tax_year
from app.utils.error_handling import EmployeeNotFoundException
from app.schemas.payroll import (
    # Employee schemas
    EmployeeDetailsUpsert,
    EmployeeDetailsResponse,
    # Calculation schemas
    PayslipCalculationRequest,
    PayslipCalculationResponse,
    # Period schemas
    PayrollPeriodCreate,
    PayrollPeriodResponse,
    PayrollPeriodDetailResponse,
    PayrollStatusUpdate,
    PayrollRevertRequest,
    PeriodTotalsResponse,
    GeneratePayslipsResponse,
    # Payslip schemas
    PayslipResponse,
    BonusCreate,
    BonusUpdate,
    BonusResponse,
    BulkBonusResponse,
    # Payment schemas
    PaymentOverviewResponse,
    PaymentStatsResponse,
)


router = APIRouter()


# ===========================================
# EMPLOYEE PAYROLL DETAILS
# ===========================================

@router.get(
    "/employees",
    response_model=List[EmployeeDetailsResponse],
    summary="List employee payroll details",
)
async def list_employees(
    org_id: uuid.UUID,
    include_inactive: bool = Query(False, description="Include deactivated employees"),
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """List employees with payroll details."""
    service = PayrollService(db)
    return await service.list_employee_details(org_id, include_inactive=include_inactive)


@router.get(
    "/employees/{profile_id}",
    response_model=EmployeeDetailsResponse,
    summary="Get employee payroll details",
)
async def get_employee(
    org_id: uuid.UUID,
    profile_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Get one employee's payroll details."""
    service = PayrollService(db)
    employee = await service.get_employee_details(org_id, profile_id)
    if employee is None:
        raise EmployeeNotFoundException(profile_id)
    return employee


@router.put(
    "/employees/{profile_id}",
    response_model=EmployeeDetailsResponse,
    summary="Create or update employee payroll details",
)
async def upsert_employee(
    org_id: uuid.UUID,
    profile_id: uuid.UUID,
    data: EmployeeDetailsUpsert,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Set salary, tax code and pension defaults for an employee."""
    service = PayrollService(db)
    return await service.upsert_employee_details(org_id, profile_id, data.model_dump())


@router.post(
    "/employees/{profile_id}/deactivate",
    response_model=EmployeeDetailsResponse,
    summary="Exclude an employee from future payroll runs",
)
async def deactivate_employee(
    org_id: uuid.UUID,
    profile_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.set_employee_active(org_id, profile_id, False)


@router.post(
    "/employees/{profile_id}/reactivate",
    response_model=EmployeeDetailsResponse,
    summary="Include an employee in payroll runs again",
)
async def reactivate_employee(
    org_id: uuid.UUID,
    profile_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.set_employee_active(org_id, profile_id, True)


# ===========================================
# CALCULATOR
# ===========================================

@router.post(
    "/payroll/calculate",
    response_model=PayslipCalculationResponse,
    summary="Calculate a monthly payslip",
    description="Itemized monthly pay for a salary, tax code and pension rates. Nothing is stored.",
)
async def calculate(
    org_id: uuid.UUID,
    data: PayslipCalculationRequest,
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Run the payslip calculator."""
    tax_year = get_tax_year(data.tax_year)
    breakdown = calculate_payslip(
        annual_salary=data.annual_salary,
        tax_code=data.tax_code,
        employee_pension_percent=data.employee_pension_percent,
        employer_pension_percent=data.employer_pension_percent,
        bonus=data.bonus,
        other_additions=data.other_additions,
        other_deductions=data.other_deductions,
        tax_year=tax_year,
    )
    detail = PAYECalculator(tax_year).explain(breakdown.annual_taxable_pay, data.tax_code)
    return {"breakdown": breakdown.to_dict(), "income_tax_detail": detail}


# ===========================================
# PAYROLL PERIODS
# ===========================================

@router.get(
    "/payroll/periods",
    response_model=List[PayrollPeriodResponse],
    summary="List payroll periods",
)
async def list_periods(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """List payroll periods, newest first."""
    service = PayrollService(db)
    return await service.list_payroll_periods(org_id)


@router.post(
    "/payroll/periods",
    response_model=PayrollPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a payroll period",
)
async def create_period(
    org_id: uuid.UUID,
    data: PayrollPeriodCreate,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Create a draft payroll period for a month."""
    service = PayrollService(db)
    return await service.create_payroll_period(
        org_id, data.year, data.month, created_by_id=current_profile_id,
    )


@router.get(
    "/payroll/periods/{period_id}",
    response_model=PayrollPeriodDetailResponse,
    summary="Get a payroll period with payslips",
)
async def get_period(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.get_payroll_period(org_id, period_id)


@router.patch(
    "/payroll/periods/{period_id}/status",
    response_model=PayrollPeriodDetailResponse,
    summary="Change payroll period status",
    description="Moves the period along draft -> preview -> approved -> processing -> processed. "
                "Moving a preview period back to draft requires confirm=true.",
)
async def update_period_status(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    data: PayrollStatusUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.update_payroll_status(
        org_id,
        period_id,
        data.status,
        preview_start_date=data.preview_start_date,
        adjustment_deadline=data.adjustment_deadline,
        processing_date=data.processing_date,
        updated_by_id=current_profile_id,
        confirm=data.confirm,
    )


@router.post(
    "/payroll/periods/{period_id}/revert",
    response_model=PayrollPeriodDetailResponse,
    summary="Revert a preview period to draft",
)
async def revert_period(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    data: PayrollRevertRequest,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Revert to draft, discarding employee adjustments."""
    service = PayrollService(db)
    return await service.revert_to_draft(
        org_id, period_id, confirm=data.confirm, updated_by_id=current_profile_id,
    )


@router.delete(
    "/payroll/periods/{period_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a payroll period",
)
async def delete_period(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    force: bool = Query(False, description="Required to delete a period in preview"),
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    await service.delete_payroll_period(org_id, period_id, force=force)


@router.post(
    "/payroll/periods/{period_id}/generate",
    response_model=GeneratePayslipsResponse,
    summary="Generate payslips for all active employees",
)
async def generate_payslips(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """Replace the period's payslips. Draft periods only."""
    service = PayrollService(db)
    count = await service.generate_payslips(org_id, period_id)
    return {"count": count}


@router.post(
    "/payroll/periods/{period_id}/recalculate",
    response_model=PeriodTotalsResponse,
    summary="Recompute period totals from payslips",
)
async def recalculate_totals(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    totals = await service.recalculate_period_totals(org_id, period_id)
    return totals.to_dict()


@router.post(
    "/payroll/periods/{period_id}/payslips/{employee_id}/regenerate",
    response_model=PayslipResponse,
    summary="Regenerate one employee's payslip",
    description="Recalculates from current employee details. Any pension rate the employee chose is replaced by their default.",
)
async def regenerate_payslip(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.regenerate_payslip(org_id, period_id, employee_id)


@router.post(
    "/payroll/periods/{period_id}/bonuses",
    response_model=BulkBonusResponse,
    summary="Add a bonus to every payslip in a period",
)
async def add_bonus_to_all(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    data: BonusCreate,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    count = await service.add_bonus_to_all_payslips(
        org_id, period_id, data.description, data.amount, created_by_id=current_profile_id,
    )
    return {"count": count}


# ===========================================
# PAYSLIPS & BONUSES
# ===========================================

@router.get(
    "/payroll/payslips/{payslip_id}",
    response_model=PayslipResponse,
    summary="Get a payslip",
)
async def get_payslip(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.get_payslip(org_id, payslip_id)


@router.delete(
    "/payroll/payslips/{payslip_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a payslip",
)
async def delete_payslip(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    await service.delete_payslip(org_id, payslip_id)


@router.post(
    "/payroll/payslips/{payslip_id}/bonuses",
    response_model=BonusResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a bonus to a payslip",
)
async def add_bonus(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    data: BonusCreate,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.add_bonus_to_payslip(
        org_id, payslip_id, data.description, data.amount, created_by_id=current_profile_id,
    )


@router.put(
    "/payroll/bonuses/{bonus_id}",
    response_model=BonusResponse,
    summary="Update a bonus",
)
async def update_bonus(
    org_id: uuid.UUID,
    bonus_id: uuid.UUID,
    data: BonusUpdate,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.update_bonus(org_id, bonus_id, data.description, data.amount)


@router.delete(
    "/payroll/bonuses/{bonus_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a bonus",
)
async def delete_bonus(
    org_id: uuid.UUID,
    bonus_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    await service.delete_bonus(org_id, bonus_id)


# ===========================================
# PAYMENTS
# ===========================================

@router.get(
    "/payroll/payments",
    response_model=PaymentStatsResponse,
    summary="Get payment statistics",
    description="Net pay awaiting payment on approved periods, and net pay "
                "paid on processed periods in the given year.",
)
async def get_payment_stats(
    org_id: uuid.UUID,
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Defaults to the current year"),
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.get_payment_stats(org_id, year)


@router.get(
    "/payroll/payments/periods",
    response_model=List[PayrollPeriodResponse],
    summary="List periods ready for or past payment",
)
async def list_payment_periods(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.list_payment_periods(org_id)


@router.get(
    "/payroll/periods/{period_id}/payments",
    response_model=PaymentOverviewResponse,
    summary="Get net pay owed per employee for a period",
)
async def get_payment_overview(
    org_id: uuid.UUID,
    period_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = PayrollService(db)
    return await service.get_payment_overview(org_id, period_id)
