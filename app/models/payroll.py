"""
PayAdjust - Payroll Models

Monthly UK payroll for multi-tenant organizations:
- Employee payroll details (salary, tax code, pension defaults)
- Payroll periods (one per organization per calendar month)
- Payslips (one per employee per period)
- Payslip bonuses (itemized additions that drive gross pay)
- Payslip adjustments (employee pension changes made during preview)

Period lifecycle:
    draft -> preview -> approved -> processing -> processed
    (preview -> draft is an explicit admin revert)

Period totals are derived from the payslip rows and recomputed after
every payslip mutation.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, List

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid,
    Enum as SQLEnum, UniqueConstraint, CheckConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, AuditMixin


# ===========================================
# ENUMS
# ===========================================

class PeriodStatus(str, Enum):
    """Payroll period status."""
    DRAFT = "draft"
    PREVIEW = "preview"
    APPROVED = "approved"
    PROCESSING = "processing"
    PROCESSED = "processed"


class PayslipStatus(str, Enum):
    """Payslip status."""
    DRAFT = "draft"
    PREVIEW = "preview"
    ADJUSTED = "adjusted"
    APPROVED = "approved"
    PAID = "paid"


# ===========================================
# EMPLOYEE PAYROLL DETAILS
# ===========================================

class EmployeeDetails(BaseModel):
    """
    Payroll master data for one member of an organization.

    Profiles and memberships live in the identity service; this row only
    carries what the payroll engine reads.
    """

    __tablename__ = "employee_details"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    full_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    annual_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    tax_code: Mapped[str] = mapped_column(
        String(10), default="1257L", nullable=False,
    )
    default_pension_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        default=Decimal("5.00"),
        nullable=False,
        comment="Employee contribution used when a payslip is generated",
    )
    employer_pension_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        default=Decimal("3.00"),
        nullable=False,
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        UniqueConstraint('organization_id', 'profile_id', name='uq_employee_details_org_profile'),
        CheckConstraint('annual_salary >= 0', name='annual_salary_non_negative'),
    )

    def __repr__(self) -> str:
        return f"<EmployeeDetails(profile_id={self.profile_id}, tax_code={self.tax_code})>"


# ===========================================
# PAYROLL PERIOD
# ===========================================

class PayrollPeriod(BaseModel, AuditMixin):
    """
    Monthly payroll period for an organization.

    Aggregate totals are a cache of the payslip rows, never edited directly.
    """

    __tablename__ = "payroll_periods"

    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    status: Mapped[PeriodStatus] = mapped_column(
        SQLEnum(PeriodStatus),
        default=PeriodStatus.DRAFT,
        nullable=False,
    )

    # Preview window
    preview_start_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    adjustment_deadline: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="Employees may adjust pension until this instant",
    )
    processing_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Summary (derived)
    total_gross: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_net: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_tax: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_ni: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_pension_employee: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_pension_employer: Mapped[Decimal] = mapped_column(
        Numeric(precision=18, scale=2), default=Decimal("0.00"), nullable=False,
    )
    employee_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    payslips: Mapped[List["Payslip"]] = relationship(
        "Payslip",
        back_populates="payroll_period",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint('organization_id', 'year', 'month', name='uq_payroll_period_org_month'),
        CheckConstraint('month >= 1 AND month <= 12', name='month_range'),
    )

    def __repr__(self) -> str:
        return f"<PayrollPeriod(id={self.id}, {self.year}-{self.month:02d}, status={self.status})>"


# ===========================================
# PAYSLIP
# ===========================================

class Payslip(BaseModel):
    """
    Individual employee payslip for a payroll period.
    """

    __tablename__ = "payslips"

    payroll_period_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_periods.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True,
        comment="Profile id of the employee",
    )

    # Earnings
    base_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    bonus: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Sum of the payslip's bonus records",
    )
    other_additions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    gross_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    # Pension
    pension_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Employee rate actually applied",
    )
    pension_employee: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    pension_employer: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    # Tax & NI
    taxable_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    income_tax: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    national_insurance: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    # Deductions & net
    other_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    status: Mapped[PayslipStatus] = mapped_column(
        SQLEnum(PayslipStatus),
        default=PayslipStatus.DRAFT,
        nullable=False,
    )
    employee_adjusted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    adjustment_note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tax_code: Mapped[str] = mapped_column(
        String(10), nullable=False,
        comment="Tax code at generation time",
    )

    # Relationships
    payroll_period: Mapped["PayrollPeriod"] = relationship(
        "PayrollPeriod", back_populates="payslips",
    )
    bonuses: Mapped[List["PayslipBonus"]] = relationship(
        "PayslipBonus",
        back_populates="payslip",
        cascade="all, delete-orphan",
        order_by="PayslipBonus.created_at",
    )
    adjustments: Mapped[List["PayslipAdjustment"]] = relationship(
        "PayslipAdjustment",
        back_populates="payslip",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint('payroll_period_id', 'employee_id', name='uq_payslip_period_employee'),
    )

    def __repr__(self) -> str:
        return f"<Payslip(id={self.id}, employee={self.employee_id}, net={self.net_pay})>"


# ===========================================
# PAYSLIP BONUS
# ===========================================

class PayslipBonus(BaseModel):
    """One-off bonus line on a payslip."""

    __tablename__ = "payslip_bonuses"

    payslip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payslips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True), nullable=True,
    )

    payslip: Mapped["Payslip"] = relationship("Payslip", back_populates="bonuses")

    __table_args__ = (
        CheckConstraint('amount > 0', name='bonus_amount_positive'),
    )

    def __repr__(self) -> str:
        return f"<PayslipBonus(id={self.id}, amount={self.amount})>"


# ===========================================
# PAYSLIP ADJUSTMENT
# ===========================================

class PayslipAdjustment(BaseModel):
    """
    Record of an employee changing their pension rate during preview.
    """

    __tablename__ = "payslip_adjustments"

    payslip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payslips.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    previous_pension_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), nullable=False,
    )
    new_pension_percent: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2), nullable=False,
    )
    previous_net_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    new_net_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payslip: Mapped["Payslip"] = relationship("Payslip", back_populates="adjustments")

    def __repr__(self) -> str:
        return (
            f"<PayslipAdjustment(payslip={self.payslip_id}, "
            f"{self.previous_pension_percent}% -> {self.new_pension_percent}%)>"
        )
