"""
PayAdjust - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.payroll import (
    # Employee
    EmployeeDetailsBase,
    EmployeeDetailsUpsert,
    EmployeeDetailsResponse,
    # Calculator
    PayslipCalculationRequest,
    PayslipBreakdownResponse,
    TaxBandLine,
    IncomeTaxDetail,
    PayslipCalculationResponse,
    # Periods
    PayrollPeriodCreate,
    PayrollStatusUpdate,
    PayrollRevertRequest,
    PayrollPeriodResponse,
    PayrollPeriodDetailResponse,
    PeriodTotalsResponse,
    GeneratePayslipsResponse,
    # Payslips
    BonusCreate,
    BonusUpdate,
    BonusResponse,
    BulkBonusResponse,
    PayslipResponse,
    # Payments
    PaymentLine,
    PaymentOverviewResponse,
    PaymentStatsResponse,
    # Self-service
    EmployeePayslipResponse,
    PayslipHistoryItem,
    PensionAdjustmentRequest,
    PensionAdjustmentResponse,
    CanAdjustResponse,
    PensionPreviewResponse,
)

__all__ = [
    "EmployeeDetailsBase",
    "EmployeeDetailsUpsert",
    "EmployeeDetailsResponse",
    "PayslipCalculationRequest",
    "PayslipBreakdownResponse",
    "TaxBandLine",
    "IncomeTaxDetail",
    "PayslipCalculationResponse",
    "PayrollPeriodCreate",
    "PayrollStatusUpdate",
    "PayrollRevertRequest",
    "PayrollPeriodResponse",
    "PayrollPeriodDetailResponse",
    "PeriodTotalsResponse",
    "GeneratePayslipsResponse",
    "BonusCreate",
    "BonusUpdate",
    "BonusResponse",
    "BulkBonusResponse",
    "PayslipResponse",
    "PaymentLine",
    "PaymentOverviewResponse",
    "PaymentStatsResponse",
    "EmployeePayslipResponse",
    "PayslipHistoryItem",
    "PensionAdjustmentRequest",
    "PensionAdjustmentResponse",
    "CanAdjustResponse",
    "PensionPreviewResponse",
]
