"""
PayAdjust - Payroll Schemas

Pydantic schemas for payroll requests and responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from app.models.payroll import PeriodStatus, PayslipStatus


# ===========================================
# EMPLOYEE PAYROLL DETAILS
# ===========================================

class EmployeeDetailsBase(BaseModel):
    """Base employee payroll details schema."""
    full_name: Optional[str] = Field(None, max_length=200)
    department: Optional[str] = Field(None, max_length=100)
    annual_salary: Decimal = Field(..., ge=0)
    tax_code: str = Field("1257L", min_length=1, max_length=10)
    default_pension_percent: Decimal = Field(Decimal("5"), ge=0, le=100)
    employer_pension_percent: Decimal = Field(Decimal("3"), ge=0, le=100)
    start_date: Optional[date] = None

    @field_validator("tax_code")
    @classmethod
    def strip_tax_code(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tax code is required")
        return v


class EmployeeDetailsUpsert(EmployeeDetailsBase):
    """Create or update payroll details."""
    is_active: Optional[bool] = None


class EmployeeDetailsResponse(EmployeeDetailsBase):
    """Employee payroll details response."""
    id: UUID
    organization_id: UUID
    profile_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# CALCULATOR
# ===========================================

class PayslipCalculationRequest(BaseModel):
    """Ad-hoc payslip calculation."""
    annual_salary: Decimal = Field(..., ge=0)
    tax_code: str = Field("1257L", min_length=1, max_length=10)
    employee_pension_percent: Decimal = Field(Decimal("5"), ge=0, le=100)
    employer_pension_percent: Decimal = Field(Decimal("3"), ge=0, le=100)
    bonus: Decimal = Field(Decimal("0"), ge=0)
    other_additions: Decimal = Field(Decimal("0"), ge=0)
    other_deductions: Decimal = Field(Decimal("0"), ge=0)
    tax_year: Optional[str] = None


class PayslipBreakdownResponse(BaseModel):
    """Itemized monthly payslip."""
    base_salary: Decimal
    bonus: Decimal
    other_additions: Decimal
    gross_pay: Decimal
    pension_percent: Decimal
    pension_employee: Decimal
    pension_employer: Decimal
    taxable_pay: Decimal
    income_tax: Decimal
    national_insurance: Decimal
    employer_ni: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    annual_taxable_pay: Decimal

    class Config:
        from_attributes = True


class TaxBandLine(BaseModel):
    range: str
    rate: str
    tax_amount: Decimal


class IncomeTaxDetail(BaseModel):
    """How the income tax figure was reached."""
    tax_year: str
    tax_code: str
    annual_taxable_pay: Decimal
    personal_allowance: Decimal
    taxable_income: Decimal
    annual_tax: Decimal
    monthly_tax: Decimal
    tax_bands: List[TaxBandLine] = []


class PayslipCalculationResponse(BaseModel):
    """Calculator result."""
    breakdown: PayslipBreakdownResponse
    income_tax_detail: IncomeTaxDetail


# ===========================================
# PAYROLL PERIOD SCHEMAS
# ===========================================

class PayrollPeriodCreate(BaseModel):
    """Create payroll period request."""
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)


class PayrollStatusUpdate(BaseModel):
    """Move a payroll period to another status."""
    status: PeriodStatus
    preview_start_date: Optional[datetime] = None
    adjustment_deadline: Optional[datetime] = None
    processing_date: Optional[date] = None
    confirm: bool = False

    @model_validator(mode="after")
    def validate_window(self):
        if (
            self.preview_start_date
            and self.adjustment_deadline
            and self.adjustment_deadline < self.preview_start_date
        ):
            raise ValueError("Adjustment deadline must be after the preview start date")
        return self


class PayrollRevertRequest(BaseModel):
    """Revert a preview period to draft."""
    confirm: bool = False


class PayrollPeriodResponse(BaseModel):
    """Payroll period summary."""
    id: UUID
    organization_id: UUID
    year: int
    month: int
    status: PeriodStatus
    preview_start_date: Optional[datetime] = None
    adjustment_deadline: Optional[datetime] = None
    processing_date: Optional[date] = None
    total_gross: Decimal
    total_net: Decimal
    total_tax: Decimal
    total_ni: Decimal
    total_pension_employee: Decimal
    total_pension_employer: Decimal
    employee_count: int
    created_at: datetime

    class Config:
        from_attributes = True


class PeriodTotalsResponse(BaseModel):
    total_gross: Decimal
    total_net: Decimal
    total_tax: Decimal
    total_ni: Decimal
    total_pension_employee: Decimal
    total_pension_employer: Decimal
    employee_count: int

    class Config:
        from_attributes = True


# ===========================================
# PAYSLIP SCHEMAS
# ===========================================

class BonusCreate(BaseModel):
    """Add a bonus line. Range checks happen in the service."""
    description: str = Field(..., max_length=255)
    amount: Decimal


class BonusUpdate(BonusCreate):
    pass


class BonusResponse(BaseModel):
    """Bonus line response."""
    id: UUID
    payslip_id: UUID
    description: str
    amount: Decimal
    created_by_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayslipResponse(BaseModel):
    """Payslip response."""
    id: UUID
    payroll_period_id: UUID
    employee_id: UUID

    base_salary: Decimal
    bonus: Decimal
    other_additions: Decimal
    gross_pay: Decimal

    pension_percent: Decimal
    pension_employee: Decimal
    pension_employer: Decimal

    taxable_pay: Decimal
    income_tax: Decimal
    national_insurance: Decimal

    other_deductions: Decimal
    total_deductions: Decimal
    net_pay: Decimal

    status: PayslipStatus
    employee_adjusted: bool
    adjustment_note: Optional[str] = None
    tax_code: str
    bonuses: List[BonusResponse] = []

    class Config:
        from_attributes = True


class PayrollPeriodDetailResponse(PayrollPeriodResponse):
    """Payroll period with payslips."""
    payslips: List[PayslipResponse] = []


class GeneratePayslipsResponse(BaseModel):
    count: int


class BulkBonusResponse(BaseModel):
    count: int


# ===========================================
# PAYMENT SCHEMAS
# ===========================================

class PaymentLine(BaseModel):
    """Net pay owed to one employee."""
    payslip_id: UUID
    employee_id: UUID
    full_name: str
    net_pay: Decimal
    status: PayslipStatus


class PaymentOverviewResponse(BaseModel):
    period: PayrollPeriodResponse
    payments: List[PaymentLine] = []
    total_net: Decimal


class PaymentStatsResponse(BaseModel):
    """Approved periods awaiting payment and processed periods for a year."""
    year: int
    pending_total: Decimal
    pending_count: int
    processed_total: Decimal
    processed_count: int


# ===========================================
# EMPLOYEE SELF-SERVICE SCHEMAS
# ===========================================

class EmployeePayslipResponse(PayslipResponse):
    """Payslip as seen by the employee, with its period."""
    period_year: int
    period_month: int
    period_status: PeriodStatus
    adjustment_deadline: Optional[datetime] = None
    created_at: datetime


class PayslipHistoryItem(BaseModel):
    id: UUID
    year: int
    month: int
    status: PayslipStatus
    net_pay: Decimal


class PensionAdjustmentRequest(BaseModel):
    """Employee pension change. Range checks happen in the service."""
    pension_percent: Decimal
    reason: Optional[str] = Field(None, max_length=1000)


class PensionAdjustmentResponse(BaseModel):
    success: bool = True
    new_net_pay: Decimal


class CanAdjustResponse(BaseModel):
    can_adjust: bool


class PensionPreviewResponse(BaseModel):
    """What a payslip would look like at a different pension rate. Nothing is saved."""
    payslip_id: UUID
    current_pension_percent: Decimal
    new_pension_percent: Decimal
    current_net_pay: Decimal
    new_net_pay: Decimal
    net_pay_change: Decimal
    can_adjust: bool
    breakdown: PayslipBreakdownResponse
