"""
PayAdjust - PAYE Calculator

UK income tax (PAYE) for a monthly payslip, computed on the annualised
taxable pay and returned as a monthly figure.

Tax code handling:
- BR: flat basic rate on all taxable pay, no allowance
- D0: flat higher rate, no allowance
- D1: flat additional rate, no allowance
- NT: no tax
- 0T: no allowance, normal banding
- Numeric codes (e.g. 1257L): allowance = leading digits x 10
- Anything else: standard personal allowance
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Dict, List, Optional, Any

from app.services.tax_calculators.tax_year import (
    Number,
    TaxYearConfig,
    get_tax_year,
    round_money,
    to_decimal,
)

logger = logging.getLogger(__name__)

NO_TAX_CODE = "NT"

_LEADING_DIGITS = re.compile(r"^(\d+)")


@dataclass
class PAYETaxBand:
    """Tax band definition on taxable income (after allowance)."""
    lower: Decimal
    upper: Optional[Decimal]
    rate: Decimal

    def calculate_tax(self, taxable_income: Decimal) -> Decimal:
        """Calculate tax for this band."""
        if taxable_income <= self.lower:
            return Decimal("0")

        if self.upper is None:
            taxable_in_band = taxable_income - self.lower
        else:
            taxable_in_band = min(taxable_income, self.upper) - self.lower

        return taxable_in_band * self.rate


def build_tax_bands(tax_year: TaxYearConfig) -> List[PAYETaxBand]:
    """Basic, higher and additional bands measured on taxable income."""
    basic_top = tax_year.basic_band_width
    higher_top = basic_top + tax_year.higher_band_width
    return [
        PAYETaxBand(Decimal("0"), basic_top, tax_year.basic_rate),
        PAYETaxBand(basic_top, higher_top, tax_year.higher_rate),
        PAYETaxBand(higher_top, None, tax_year.additional_rate),
    ]


class PAYECalculator:
    """
    PAYE calculator for the UK tax system.

    Bands are fixed in width, so a reduced or tapered allowance shifts
    where the higher rate starts in gross terms.
    """

    def __init__(self, tax_year: Optional[TaxYearConfig] = None):
        self.tax_year = tax_year or get_tax_year()
        self.tax_bands = build_tax_bands(self.tax_year)

    def flat_rate_for(self, tax_code: str) -> Optional[Decimal]:
        """Rate applied to all taxable pay for BR/D0/D1, otherwise None."""
        return {
            "BR": self.tax_year.basic_rate,
            "D0": self.tax_year.higher_rate,
            "D1": self.tax_year.additional_rate,
        }.get(tax_code)

    def allowance_for_code(self, tax_code: str) -> Decimal:
        """
        Annual personal allowance implied by a tax code, before tapering.

        Codes without a leading number fall back to the standard allowance.
        """
        match = _LEADING_DIGITS.match(tax_code or "")
        if match:
            return Decimal(int(match.group(1)) * 10)

        logger.warning(f"Unrecognised tax code '{tax_code}', using standard personal allowance")
        return self.tax_year.personal_allowance

    def taper_allowance(self, allowance: Decimal, annual_taxable_pay: Decimal) -> Decimal:
        """Reduce the allowance by £1 for every £2 above the taper threshold."""
        threshold = self.tax_year.allowance_taper_threshold
        if annual_taxable_pay <= threshold:
            return allowance

        reduction = ((annual_taxable_pay - threshold) / 2).to_integral_value(rounding=ROUND_FLOOR)
        return max(Decimal("0"), allowance - reduction)

    def calculate_annual_tax(self, annual_taxable_pay: Number, tax_code: str) -> Decimal:
        """Unrounded annual income tax."""
        pay = max(Decimal("0"), to_decimal(annual_taxable_pay))

        if tax_code == NO_TAX_CODE:
            return Decimal("0")

        flat_rate = self.flat_rate_for(tax_code)
        if flat_rate is not None:
            return pay * flat_rate

        allowance = self.taper_allowance(self.allowance_for_code(tax_code), pay)
        taxable_income = max(Decimal("0"), pay - allowance)

        return sum(
            (band.calculate_tax(taxable_income) for band in self.tax_bands),
            Decimal("0"),
        )

    def calculate_monthly_tax(self, annual_taxable_pay: Number, tax_code: str) -> Decimal:
        """Monthly income tax, rounded to pence."""
        return round_money(self.calculate_annual_tax(annual_taxable_pay, tax_code) / 12)

    def explain(self, annual_taxable_pay: Number, tax_code: str) -> Dict[str, Any]:
        """
        Breakdown of an income tax calculation for display.

        Returns:
            Allowance used, taxable income, per-band tax and monthly figure
        """
        pay = max(Decimal("0"), to_decimal(annual_taxable_pay))
        flat_rate = self.flat_rate_for(tax_code)

        if tax_code == NO_TAX_CODE or flat_rate is not None:
            allowance = Decimal("0")
            taxable_income = Decimal("0") if tax_code == NO_TAX_CODE else pay
            band_breakdown = []
        else:
            allowance = self.taper_allowance(self.allowance_for_code(tax_code), pay)
            taxable_income = max(Decimal("0"), pay - allowance)
            band_breakdown = [
                {
                    "range": f"£{band.lower:,.0f} - {'∞' if band.upper is None else f'£{band.upper:,.0f}'}",
                    "rate": f"{band.rate * 100:.0f}%",
                    "tax_amount": round_money(band.calculate_tax(taxable_income)),
                }
                for band in self.tax_bands
                if taxable_income > band.lower
            ]

        annual_tax = self.calculate_annual_tax(pay, tax_code)
        return {
            "tax_year": self.tax_year.label,
            "tax_code": tax_code,
            "annual_taxable_pay": round_money(pay),
            "personal_allowance": allowance,
            "taxable_income": round_money(taxable_income),
            "annual_tax": round_money(annual_tax),
            "monthly_tax": round_money(annual_tax / 12),
            "tax_bands": band_breakdown,
        }
