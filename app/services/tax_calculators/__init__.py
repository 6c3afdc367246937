"""
PayAdjust - Tax Calculators Package

UK payroll tax calculation.

Modules:
- tax_year: immutable per-year parameters (2024/25 shipped) and money rounding
- paye_service: income tax with tax-code dispatch and allowance tapering
- ni_service: employee and employer Class 1 National Insurance
"""

from decimal import Decimal
from typing import Optional

from app.services.tax_calculators.tax_year import (
    TaxYearConfig,
    UK_2024_25,
    TAX_YEARS,
    get_tax_year,
    round_money,
    to_decimal,
)
from app.services.tax_calculators.paye_service import PAYECalculator, PAYETaxBand
from app.services.tax_calculators.ni_service import NICalculator, NationalInsurance


# ===========================================
# CONVENIENCE FUNCTIONS
# ===========================================

def calculate_monthly_tax(
    annual_taxable_pay: Decimal,
    tax_code: str,
    tax_year: Optional[TaxYearConfig] = None,
) -> Decimal:
    """
    Calculate monthly income tax.

    Args:
        annual_taxable_pay: Monthly taxable pay x 12
        tax_code: HMRC tax code (e.g. 1257L, BR, NT)
        tax_year: Tax year parameters (defaults to the configured year)

    Returns:
        Monthly tax rounded to pence
    """
    return PAYECalculator(tax_year).calculate_monthly_tax(annual_taxable_pay, tax_code)


def calculate_monthly_ni(
    annual_gross_pay: Decimal,
    tax_year: Optional[TaxYearConfig] = None,
) -> NationalInsurance:
    """
    Calculate monthly employee and employer National Insurance.

    Args:
        annual_gross_pay: Monthly gross pay x 12
        tax_year: Tax year parameters (defaults to the configured year)

    Returns:
        NationalInsurance(employee, employer), each rounded to pence
    """
    return NICalculator(tax_year).calculate_monthly_ni(annual_gross_pay)


__all__ = [
    # Tax year
    "TaxYearConfig",
    "UK_2024_25",
    "TAX_YEARS",
    "get_tax_year",
    "round_money",
    "to_decimal",
    # PAYE
    "PAYECalculator",
    "PAYETaxBand",
    # NI
    "NICalculator",
    "NationalInsurance",
    # Convenience functions
    "calculate_monthly_tax",
    "calculate_monthly_ni",
]
