"""
PayAdjust - National Insurance Calculator

Class 1 National Insurance on annualised gross pay.

- Employee: main rate between the primary threshold and the upper
  earnings limit, upper rate above the limit
- Employer: single rate above the secondary threshold, no upper limit

Employer NI is reported for cost displays only; it is never deducted
from the employee's pay.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from app.services.tax_calculators.tax_year import (
    Number,
    TaxYearConfig,
    get_tax_year,
    round_money,
    to_decimal,
)


@dataclass(frozen=True)
class NationalInsurance:
    """Monthly NI figures, rounded to pence."""
    employee: Decimal
    employer: Decimal


class NICalculator:
    """National Insurance calculator."""

    def __init__(self, tax_year: Optional[TaxYearConfig] = None):
        self.tax_year = tax_year or get_tax_year()

    def annual_employee_ni(self, annual_gross_pay: Decimal) -> Decimal:
        ty = self.tax_year
        if annual_gross_pay <= ty.ni_primary_threshold:
            return Decimal("0")

        if annual_gross_pay <= ty.ni_upper_earnings_limit:
            return (annual_gross_pay - ty.ni_primary_threshold) * ty.ni_employee_rate

        main = (ty.ni_upper_earnings_limit - ty.ni_primary_threshold) * ty.ni_employee_rate
        upper = (annual_gross_pay - ty.ni_upper_earnings_limit) * ty.ni_employee_upper_rate
        return main + upper

    def annual_employer_ni(self, annual_gross_pay: Decimal) -> Decimal:
        ty = self.tax_year
        if annual_gross_pay <= ty.ni_employer_threshold:
            return Decimal("0")
        return (annual_gross_pay - ty.ni_employer_threshold) * ty.ni_employer_rate

    def calculate_monthly_ni(self, annual_gross_pay: Number) -> NationalInsurance:
        """
        Monthly employee and employer NI.

        Args:
            annual_gross_pay: Gross pay projected to a year (pension is not deducted)
        """
        gross = to_decimal(annual_gross_pay)
        return NationalInsurance(
            employee=round_money(self.annual_employee_ni(gross) / 12),
            employer=round_money(self.annual_employer_ni(gross) / 12),
        )
