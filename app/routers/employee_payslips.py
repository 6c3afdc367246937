"""
PayAdjust - Employee Payslips Router

Self-service endpoints: an employee views their own payslips, previews
a different pension rate, and adjusts their pension contribution while a
period is in preview.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_profile_id
from app.models.payroll import Payslip
from app.services.employee_payslip_service import EmployeePayslipService
from app.utils.error_handling import EmployeeNotFoundException
from app.schemas.payroll import (
    EmployeeDetailsResponse,
    EmployeePayslipResponse,
    PayslipResponse,
    PayslipHistoryItem,
    PensionAdjustmentRequest,
    PensionAdjustmentResponse,
    CanAdjustResponse,
    PensionPreviewResponse,
)


router = APIRouter()


def _employee_payslip(payslip: Payslip) -> dict:
    """Flatten a payslip and its period for the employee view."""
    data = PayslipResponse.model_validate(payslip).model_dump()
    period = payslip.payroll_period
    data.update(
        period_year=period.year,
        period_month=period.month,
        period_status=period.status,
        adjustment_deadline=period.adjustment_deadline,
        created_at=payslip.created_at,
    )
    return data


@router.get(
    "/details",
    response_model=EmployeeDetailsResponse,
    summary="Get my payroll details",
)
async def get_my_details(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    employee = await service.get_my_details(org_id, current_profile_id)
    if employee is None:
        raise EmployeeNotFoundException(current_profile_id)
    return employee


@router.get(
    "/payslips",
    response_model=List[EmployeePayslipResponse],
    summary="List my payslips",
)
async def list_my_payslips(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    """All of the caller's payslips, newest period first."""
    service = EmployeePayslipService(db)
    payslips = await service.get_my_payslips(org_id, current_profile_id)
    return [_employee_payslip(p) for p in payslips]


@router.get(
    "/payslips/current",
    response_model=Optional[EmployeePayslipResponse],
    summary="Get my current payslip",
    description="The payslip open for preview if there is one, otherwise the most recent.",
)
async def get_current_payslip(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    payslip = await service.get_current_payslip(org_id, current_profile_id)
    if payslip is None:
        return None
    return _employee_payslip(payslip)


@router.get(
    "/payslips/history",
    response_model=List[PayslipHistoryItem],
    summary="Get my net pay history",
)
async def get_payslip_history(
    org_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    return await service.get_payslip_history(org_id, current_profile_id)


@router.get(
    "/payslips/{payslip_id}/can-adjust",
    response_model=CanAdjustResponse,
    summary="Check whether my pension can still be adjusted",
)
async def can_adjust(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    allowed = await service.can_adjust_pension(org_id, payslip_id, current_profile_id)
    return {"can_adjust": allowed}


@router.get(
    "/payslips/{payslip_id}/pension-preview",
    response_model=PensionPreviewResponse,
    summary="Preview my payslip at a different pension rate",
    description="Recalculates the payslip at the given rate without saving anything.",
)
async def preview_pension(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    percent: Decimal = Query(..., description="Candidate employee pension percentage"),
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    return await service.preview_pension_adjustment(org_id, payslip_id, current_profile_id, percent)


@router.post(
    "/payslips/{payslip_id}/pension",
    response_model=PensionAdjustmentResponse,
    summary="Adjust my pension contribution",
    description="Only while the period is in preview and before the adjustment deadline. "
                "The new rate also becomes the default for future payroll runs.",
)
async def adjust_pension(
    org_id: uuid.UUID,
    payslip_id: uuid.UUID,
    data: PensionAdjustmentRequest,
    db: AsyncSession = Depends(get_async_session),
    current_profile_id: uuid.UUID = Depends(get_current_profile_id),
):
    service = EmployeePayslipService(db)
    new_net_pay = await service.adjust_pension(
        org_id,
        payslip_id,
        current_profile_id,
        data.pension_percent,
        reason=data.reason,
    )
    return {"success": True, "new_net_pay": new_net_pay}
