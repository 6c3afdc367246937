"""
PayAdjust - Payslip Calculator

Turns an employee's annual salary, tax code and pension rates into an
itemized monthly payslip.

Each monetary field is rounded to pence as it is produced and later
fields are derived from the rounded values, so the itemized lines always
reconcile exactly:

    gross_pay        = base_salary + bonus + other_additions
    taxable_pay      = gross_pay - pension_employee
    total_deductions = pension_employee + income_tax + national_insurance + other_deductions
    net_pay          = gross_pay - total_deductions

Pension is deducted before tax (net pay arrangement) but NI is charged on
the full gross pay.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Optional

from app.services.tax_calculators import (
    NICalculator,
    PAYECalculator,
    TaxYearConfig,
    get_tax_year,
    round_money,
    to_decimal,
)
from app.services.tax_calculators.tax_year import Number


# Fields stored on a payslip row
PAYSLIP_FIELDS = (
    "base_salary",
    "bonus",
    "other_additions",
    "gross_pay",
    "pension_percent",
    "pension_employee",
    "pension_employer",
    "taxable_pay",
    "income_tax",
    "national_insurance",
    "other_deductions",
    "total_deductions",
    "net_pay",
)


@dataclass(frozen=True)
class PayslipBreakdown:
    """Itemized monthly payslip, all money in pounds to 2dp."""
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

    def payslip_fields(self) -> Dict[str, Decimal]:
        """Values to copy onto a persisted payslip."""
        return {name: getattr(self, name) for name in PAYSLIP_FIELDS}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def calculate_payslip(
    annual_salary: Number,
    tax_code: str,
    employee_pension_percent: Number,
    employer_pension_percent: Number,
    bonus: Number = 0,
    other_additions: Number = 0,
    other_deductions: Number = 0,
    tax_year: Optional[TaxYearConfig] = None,
) -> PayslipBreakdown:
    """
    Calculate a complete monthly payslip.

    Args:
        annual_salary: Annual base salary
        tax_code: HMRC tax code snapshot for the payslip
        employee_pension_percent: Employee contribution as a percentage of gross
        employer_pension_percent: Employer contribution as a percentage of gross
        bonus: Total bonus for the month
        other_additions: Other taxable additions for the month
        other_deductions: Post-tax deductions for the month
        tax_year: Tax year parameters (defaults to the configured year)

    Returns:
        PayslipBreakdown
    """
    tax_year = tax_year or get_tax_year()
    employee_rate = to_decimal(employee_pension_percent)
    employer_rate = to_decimal(employer_pension_percent)

    base_salary = round_money(to_decimal(annual_salary) / 12)
    bonus_amount = round_money(bonus)
    additions = round_money(other_additions)
    gross_pay = base_salary + bonus_amount + additions

    pension_employee = round_money(gross_pay * employee_rate / 100)
    pension_employer = round_money(gross_pay * employer_rate / 100)

    taxable_pay = gross_pay - pension_employee
    annual_taxable_pay = taxable_pay * 12

    income_tax = PAYECalculator(tax_year).calculate_monthly_tax(annual_taxable_pay, tax_code)
    ni = NICalculator(tax_year).calculate_monthly_ni(gross_pay * 12)

    deductions = round_money(other_deductions)
    total_deductions = pension_employee + income_tax + ni.employee + deductions
    net_pay = gross_pay - total_deductions

    return PayslipBreakdown(
        base_salary=base_salary,
        bonus=bonus_amount,
        other_additions=additions,
        gross_pay=gross_pay,
        pension_percent=employee_rate,
        pension_employee=pension_employee,
        pension_employer=pension_employer,
        taxable_pay=taxable_pay,
        income_tax=income_tax,
        national_insurance=ni.employee,
        employer_ni=ni.employer,
        other_deductions=deductions,
        total_deductions=total_deductions,
        net_pay=net_pay,
        annual_taxable_pay=annual_taxable_pay,
    )
