"""
PayAdjust - Employee Payslip Service Tests

Employee self-service: viewing payslips and adjusting pension in preview.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.models.payroll import PayslipAdjustment, PeriodStatus, PayslipStatus
from app.services.employee_payslip_service import EmployeePayslipService
from app.utils.error_handling import (
    AdjustmentDeadlinePassedException,
    EmployeeNotFoundException,
    IllegalStateTransitionException,
    PayslipNotFoundException,
    RangeViolationException,
)


@pytest.fixture
def employee_service(db_session) -> EmployeePayslipService:
    return EmployeePayslipService(db_session)


class TestViewingPayslips:
    """Read access for the signed-in employee."""

    @pytest.mark.asyncio
    async def test_my_details(self, employee_service, org_id, employee):
        details = await employee_service.get_my_details(org_id, employee.profile_id)

        assert details.id == employee.id
        assert await employee_service.get_my_details(uuid4(), employee.profile_id) is None

    @pytest.mark.asyncio
    async def test_payslips_newest_first(self, employee_service, payroll_service, org_id, generated_period, employee):
        earlier = await payroll_service.create_payroll_period(org_id, 2024, 5)
        await payroll_service.generate_payslips(org_id, earlier.id)

        payslips = await employee_service.get_my_payslips(org_id, employee.profile_id)

        assert [(p.payroll_period.year, p.payroll_period.month) for p in payslips] == [(2024, 6), (2024, 5)]
        assert all(p.employee_id == employee.profile_id for p in payslips)

    @pytest.mark.asyncio
    async def test_current_prefers_preview(self, employee_service, payroll_service, org_id, preview_period, employee):
        later = await payroll_service.create_payroll_period(org_id, 2024, 7)
        await payroll_service.generate_payslips(org_id, later.id)

        current = await employee_service.get_current_payslip(org_id, employee.profile_id)

        assert current.payroll_period_id == preview_period.id

    @pytest.mark.asyncio
    async def test_current_falls_back_to_latest(self, employee_service, org_id, generated_period, employee):
        current = await employee_service.get_current_payslip(org_id, employee.profile_id)

        assert current.payroll_period_id == generated_period.id

    @pytest.mark.asyncio
    async def test_no_payslips(self, employee_service, org_id):
        assert await employee_service.get_current_payslip(org_id, uuid4()) is None
        assert await employee_service.get_payslip_history(org_id, uuid4()) == []

    @pytest.mark.asyncio
    async def test_history(self, employee_service, org_id, generated_period, second_employee):
        history = await employee_service.get_payslip_history(org_id, second_employee.profile_id)

        assert history == [{
            "id": history[0]["id"],
            "year": 2024,
            "month": 6,
            "status": PayslipStatus.DRAFT,
            "net_pay": Decimal("1883.80"),
        }]


class TestCanAdjust:
    """Whether the adjustment window is open."""

    @pytest.mark.asyncio
    async def test_open_during_preview(self, employee_service, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)

        assert await employee_service.can_adjust_pension(org_id, payslip.id, employee.profile_id)

    @pytest.mark.asyncio
    async def test_closed_in_draft(self, employee_service, org_id, generated_period, employee, payslip_for):
        payslip = payslip_for(generated_period, employee)

        assert not await employee_service.can_adjust_pension(org_id, payslip.id, employee.profile_id)

    @pytest.mark.asyncio
    async def test_closed_after_deadline(self, employee_service, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)
        later = datetime.now(timezone.utc) + timedelta(days=8)

        assert not await employee_service.can_adjust_pension(org_id, payslip.id, employee.profile_id, now=later)

    @pytest.mark.asyncio
    async def test_someone_elses_payslip(self, employee_service, org_id, preview_period, employee, second_employee, payslip_for):
        payslip = payslip_for(preview_period, employee)

        assert not await employee_service.can_adjust_pension(org_id, payslip.id, second_employee.profile_id)


class TestAdjustPension:
    """Changing the pension rate on a preview payslip."""

    @pytest.mark.asyncio
    async def test_adjust_recalculates_payslip(
        self, employee_service, payroll_service, db_session, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        new_net = await employee_service.adjust_pension(
            org_id, payslip.id, employee.profile_id, Decimal("8"), reason="  Saving more  ",
        )
        updated = await payroll_service.get_payslip(org_id, payslip.id)

        assert new_net == Decimal("3026.64")
        assert updated.net_pay == Decimal("3026.64")
        assert updated.pension_percent == Decimal("8")
        assert updated.pension_employee == Decimal("333.33")
        assert updated.income_tax == Decimal("557.17")
        assert updated.national_insurance == Decimal("249.53")
        assert updated.status == PayslipStatus.ADJUSTED
        assert updated.employee_adjusted is True
        assert updated.adjustment_note == "Saving more"

    @pytest.mark.asyncio
    async def test_adjust_records_history_and_default(
        self, employee_service, db_session, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("10"))

        result = await db_session.execute(select(PayslipAdjustment))
        adjustment = result.scalar_one()
        details = await employee_service.get_my_details(org_id, employee.profile_id)

        assert adjustment.previous_pension_percent == Decimal("5")
        assert adjustment.new_pension_percent == Decimal("10")
        assert adjustment.previous_net_pay == Decimal("3126.64")
        assert adjustment.new_net_pay < adjustment.previous_net_pay
        assert adjustment.reason is None
        assert details.default_pension_percent == Decimal("10")

    @pytest.mark.asyncio
    async def test_adjust_updates_period_totals(
        self, employee_service, payroll_service, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("8"))
        period = await payroll_service.get_payroll_period(org_id, preview_period.id)

        assert period.total_net == Decimal("4910.44")
        assert period.total_pension_employee == Decimal("333.33")

    @pytest.mark.asyncio
    async def test_adjust_keeps_tax_code_snapshot(
        self, employee_service, payroll_service, org_id, preview_period, employee, payslip_for,
    ):
        """Later master-data changes do not leak into an adjustment."""
        payslip = payslip_for(preview_period, employee)
        await payroll_service.upsert_employee_details(org_id, employee.profile_id, {"tax_code": "BR"})

        await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("8"))
        updated = await payroll_service.get_payslip(org_id, payslip.id)

        assert updated.tax_code == "1257L"
        assert updated.income_tax == Decimal("557.17")

    @pytest.mark.asyncio
    async def test_rejected_when_approved(
        self, employee_service, payroll_service, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)
        await payroll_service.update_payroll_status(org_id, preview_period.id, PeriodStatus.APPROVED)

        with pytest.raises(IllegalStateTransitionException):
            await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("8"))

        unchanged = await payroll_service.get_payslip(org_id, payslip.id)
        assert unchanged.pension_percent == Decimal("5")
        assert unchanged.net_pay == Decimal("3126.64")
        assert unchanged.status == PayslipStatus.APPROVED
        assert unchanged.employee_adjusted is False

    @pytest.mark.asyncio
    async def test_rejected_after_deadline(self, employee_service, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)
        later = datetime.now(timezone.utc) + timedelta(days=8)

        with pytest.raises(AdjustmentDeadlinePassedException):
            await employee_service.adjust_pension(
                org_id, payslip.id, employee.profile_id, Decimal("8"), now=later,
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percent", ["2", "100.5"])
    async def test_rejected_outside_range(self, employee_service, org_id, preview_period, employee, payslip_for, percent):
        payslip = payslip_for(preview_period, employee)

        with pytest.raises(RangeViolationException):
            await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal(percent))

    @pytest.mark.asyncio
    async def test_cannot_adjust_someone_elses_payslip(
        self, employee_service, org_id, preview_period, employee, second_employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        with pytest.raises(PayslipNotFoundException):
            await employee_service.adjust_pension(org_id, payslip.id, second_employee.profile_id, Decimal("8"))

    @pytest.mark.asyncio
    async def test_missing_employee_details(
        self, employee_service, db_session, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)
        await db_session.delete(employee)
        await db_session.commit()

        with pytest.raises(EmployeeNotFoundException):
            await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("8"))


class TestPensionPreview:
    """Trying a pension rate before committing to it."""

    @pytest.mark.asyncio
    async def test_preview_matches_adjustment_without_saving(
        self, employee_service, payroll_service, db_session, org_id, preview_period, employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        preview = await employee_service.preview_pension_adjustment(
            org_id, payslip.id, employee.profile_id, Decimal("8"),
        )
        stored = await payroll_service.get_payslip(org_id, payslip.id)
        adjustments = await db_session.execute(select(PayslipAdjustment))

        assert preview["new_net_pay"] == Decimal("3026.64")
        assert preview["current_net_pay"] == Decimal("3126.64")
        assert preview["net_pay_change"] == Decimal("-100.00")
        assert preview["breakdown"]["income_tax"] == Decimal("557.17")
        assert preview["can_adjust"] is True
        assert stored.pension_percent == Decimal("5")
        assert stored.net_pay == Decimal("3126.64")
        assert stored.status == PayslipStatus.PREVIEW
        assert adjustments.scalars().all() == []

        new_net = await employee_service.adjust_pension(org_id, payslip.id, employee.profile_id, Decimal("8"))
        assert new_net == preview["new_net_pay"]

    @pytest.mark.asyncio
    async def test_preview_reports_closed_window(self, employee_service, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)
        later = datetime.now(timezone.utc) + timedelta(days=8)

        preview = await employee_service.preview_pension_adjustment(
            org_id, payslip.id, employee.profile_id, Decimal("8"), now=later,
        )

        assert preview["can_adjust"] is False
        assert preview["new_net_pay"] == Decimal("3026.64")

    @pytest.mark.asyncio
    async def test_preview_rejects_out_of_range(self, employee_service, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)

        with pytest.raises(RangeViolationException):
            await employee_service.preview_pension_adjustment(
                org_id, payslip.id, employee.profile_id, Decimal("2"),
            )

    @pytest.mark.asyncio
    async def test_preview_someone_elses_payslip(
        self, employee_service, org_id, preview_period, employee, second_employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        with pytest.raises(PayslipNotFoundException):
            await employee_service.preview_pension_adjustment(
                org_id, payslip.id, second_employee.profile_id, Decimal("8"),
            )
