"""
PayAdjust - Services Package

Business logic services.
"""

from app.services.payslip_calculator import PayslipBreakdown, calculate_payslip
from app.services.period_aggregator import PeriodTotals, recompute_totals
from app.services.payroll_service import PayrollService
from app.services.employee_payslip_service import EmployeePayslipService

# Tax Calculators
from app.services.tax_calculators import (
    PAYECalculator,
    NICalculator,
    calculate_monthly_tax,
    calculate_monthly_ni,
)

__all__ = [
    "PayslipBreakdown",
    "calculate_payslip",
    "PeriodTotals",
    "recompute_totals",
    "PayrollService",
    "EmployeePayslipService",
    "PAYECalculator",
    "NICalculator",
    "calculate_monthly_tax",
    "calculate_monthly_ni",
]
