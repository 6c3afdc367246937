"""
PayAdjust - Period Aggregator

Folds a period's payslips into the totals cached on the payroll period.
Totals are always recomputed from the full payslip set.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal
from typing import Any, Dict, Iterable

from app.services.tax_calculators.tax_year import to_decimal


@dataclass(frozen=True)
class PeriodTotals:
    """Aggregate payroll figures for one period."""
    total_gross: Decimal = Decimal("0.00")
    total_net: Decimal = Decimal("0.00")
    total_tax: Decimal = Decimal("0.00")
    total_ni: Decimal = Decimal("0.00")
    total_pension_employee: Decimal = Decimal("0.00")
    total_pension_employer: Decimal = Decimal("0.00")
    employee_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def apply_to(self, period: Any) -> None:
        """Copy the totals onto a payroll period."""
        for name, value in asdict(self).items():
            setattr(period, name, value)


# total field -> payslip field
_SUMMED_FIELDS = {
    "total_gross": "gross_pay",
    "total_net": "net_pay",
    "total_tax": "income_tax",
    "total_ni": "national_insurance",
    "total_pension_employee": "pension_employee",
    "total_pension_employer": "pension_employer",
}


def recompute_totals(payslips: Iterable[Any]) -> PeriodTotals:
    """
    Sum payslip fields into period totals.

    Accepts anything with gross_pay, net_pay, income_tax,
    national_insurance, pension_employee and pension_employer attributes
    (ORM payslips or PayslipBreakdown).
    """
    sums = {name: Decimal("0.00") for name in _SUMMED_FIELDS}
    count = 0

    for payslip in payslips:
        count += 1
        for total_name, payslip_field in _SUMMED_FIELDS.items():
            sums[total_name] += to_decimal(getattr(payslip, payslip_field))

    return PeriodTotals(employee_count=count, **sums)
