"""
PayAdjust - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, AuditMixin
from app.models.payroll import (
    PeriodStatus,
    PayslipStatus,
    EmployeeDetails,
    PayrollPeriod,
    Payslip,
    PayslipBonus,
    PayslipAdjustment,
)

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "AuditMixin",
    # Payroll
    "PeriodStatus",
    "PayslipStatus",
    "EmployeeDetails",
    "PayrollPeriod",
    "Payslip",
    "PayslipBonus",
    "PayslipAdjustment",
]
