"""
PayAdjust - UK Tax Year Configuration

Income tax and National Insurance parameters, one immutable value
object per tax year.

UK 2024/25:
- Personal allowance: £12,570 (tapered by £1 per £2 above £100,000)
- Basic rate 20% up to £50,270
- Higher rate 40% up to £125,140
- Additional rate 45% above £125,140
- Employee NI: 8% between £12,570 and £50,270, 2% above
- Employer NI: 13.8% above £9,100
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from app.config import settings
from app.utils.error_handling import InvalidInputException


Number = Union[Decimal, int, float, str]

PENNY = Decimal("0.01")


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a numeric input to Decimal; floats go through str()."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: Number) -> Decimal:
    """Round to pence, halves away from zero."""
    return to_decimal(value).quantize(PENNY, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class TaxYearConfig:
    """Income tax and NI parameters for one UK tax year."""
    label: str

    # Income tax
    personal_allowance: Decimal
    basic_rate_limit: Decimal
    higher_rate_limit: Decimal
    basic_rate: Decimal
    higher_rate: Decimal
    additional_rate: Decimal
    allowance_taper_threshold: Decimal

    # National Insurance
    ni_primary_threshold: Decimal
    ni_upper_earnings_limit: Decimal
    ni_employee_rate: Decimal
    ni_employee_upper_rate: Decimal
    ni_employer_rate: Decimal
    ni_employer_threshold: Decimal

    @property
    def basic_band_width(self) -> Decimal:
        return self.basic_rate_limit - self.personal_allowance

    @property
    def higher_band_width(self) -> Decimal:
        return self.higher_rate_limit - self.basic_rate_limit


UK_2024_25 = TaxYearConfig(
    label="2024/25",
    personal_allowance=Decimal("12570"),
    basic_rate_limit=Decimal("50270"),
    higher_rate_limit=Decimal("125140"),
    basic_rate=Decimal("0.20"),
    higher_rate=Decimal("0.40"),
    additional_rate=Decimal("0.45"),
    allowance_taper_threshold=Decimal("100000"),
    ni_primary_threshold=Decimal("12570"),
    ni_upper_earnings_limit=Decimal("50270"),
    ni_employee_rate=Decimal("0.08"),
    ni_employee_upper_rate=Decimal("0.02"),
    ni_employer_rate=Decimal("0.138"),
    ni_employer_threshold=Decimal("9100"),
)


TAX_YEARS: Dict[str, TaxYearConfig] = {
    UK_2024_25.label: UK_2024_25,
}


def get_tax_year(label: Optional[str] = None) -> TaxYearConfig:
    """
    Look up a tax year configuration.

    Args:
        label: Tax year label such as "2024/25"; defaults to the configured year

    Raises:
        InvalidInputException: If no configuration exists for the label
    """
    label = label or settings.tax_year
    config = TAX_YEARS.get(label)
    if config is None:
        raise InvalidInputException(
            f"Unsupported tax year: {label}",
            field="tax_year",
            details={"supported": sorted(TAX_YEARS)},
        )
    return config
