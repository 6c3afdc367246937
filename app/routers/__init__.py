"""
PayAdjust - Routers Package

FastAPI route handlers.

Routers:
- payroll: Employee payroll details, periods, payslips and bonuses (admin)
- employee_payslips: Employee self-service payslips and pension adjustment
"""

from app.routers import (
    payroll,
    employee_payslips,
)

__all__ = [
    "payroll",
    "employee_payslips",
]
