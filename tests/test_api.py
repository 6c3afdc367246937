"""
PayAdjust - API Integration Tests

Integration tests for REST API endpoints.
"""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.dependencies import PROFILE_HEADER


class TestHealthEndpoint:
    """Test health check endpoint."""

    @pytest.mark.asyncio
    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["api_version"] == "v1"
        assert data["tax_year"] == "2024/25"


class TestAuthentication:
    """Caller identity header."""

    @pytest.mark.asyncio
    async def test_missing_profile_header(self, client: AsyncClient, org_id):
        response = await client.get(f"/api/v1/organizations/{org_id}/payroll/periods")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "UNAUTHORIZED"

    @pytest.mark.asyncio
    async def test_malformed_profile_header(self, client: AsyncClient, org_id):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/payroll/periods",
            headers={PROFILE_HEADER: "not-a-uuid"},
        )

        assert response.status_code == 401


class TestCalculatorAPI:
    """Stateless payslip calculator."""

    @pytest.mark.asyncio
    async def test_calculate(self, client: AsyncClient, org_id, admin_headers):
        response = await client.post(
            f"/api/v1/organizations/{org_id}/payroll/calculate",
            json={
                "annual_salary": "50000",
                "tax_code": "1257L",
                "employee_pension_percent": "5",
                "employer_pension_percent": "3",
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["breakdown"]["gross_pay"] == "4166.67"
        assert data["breakdown"]["net_pay"] == "3126.64"
        assert data["income_tax_detail"]["monthly_tax"] == "582.17"
        assert data["income_tax_detail"]["tax_bands"][0]["rate"] == "20%"

    @pytest.mark.asyncio
    async def test_unknown_tax_year(self, client: AsyncClient, org_id, admin_headers):
        response = await client.post(
            f"/api/v1/organizations/{org_id}/payroll/calculate",
            json={"annual_salary": "50000", "tax_year": "1999/00"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_negative_salary_rejected(self, client: AsyncClient, org_id, admin_headers):
        response = await client.post(
            f"/api/v1/organizations/{org_id}/payroll/calculate",
            json={"annual_salary": "-1"},
            headers=admin_headers,
        )

        assert response.status_code == 422


class TestEmployeesAPI:
    """Employee payroll details endpoints."""

    @pytest.mark.asyncio
    async def test_upsert_and_get(self, client: AsyncClient, org_id, admin_headers):
        profile_id = uuid4()
        base = f"/api/v1/organizations/{org_id}/employees/{profile_id}"

        response = await client.put(
            base,
            json={"full_name": "Dana Dale", "annual_salary": "36000", "tax_code": "1257L"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["profile_id"] == str(profile_id)

        response = await client.get(base, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["annual_salary"] == "36000.00"

    @pytest.mark.asyncio
    async def test_get_unknown_employee(self, client: AsyncClient, org_id, admin_headers):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/employees/{uuid4()}",
            headers=admin_headers,
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "EMPLOYEE_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_deactivate(self, client: AsyncClient, org_id, admin_headers, employee):
        response = await client.post(
            f"/api/v1/organizations/{org_id}/employees/{employee.profile_id}/deactivate",
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        listing = await client.get(f"/api/v1/organizations/{org_id}/employees", headers=admin_headers)
        assert listing.json() == []


class TestPayrollWorkflowAPI:
    """End-to-end admin and employee flow over HTTP."""

    @pytest.mark.asyncio
    async def test_full_workflow(self, client: AsyncClient, org_id, admin_headers, employee, second_employee):
        base = f"/api/v1/organizations/{org_id}"
        employee_headers = {PROFILE_HEADER: str(employee.profile_id)}

        # Create and generate
        response = await client.post(f"{base}/payroll/periods", json={"year": 2024, "month": 6}, headers=admin_headers)
        assert response.status_code == 201
        period_id = response.json()["id"]

        response = await client.post(f"{base}/payroll/periods/{period_id}/generate", headers=admin_headers)
        assert response.json() == {"count": 2}

        # Open preview
        now = datetime.now(timezone.utc)
        response = await client.patch(
            f"{base}/payroll/periods/{period_id}/status",
            json={
                "status": "preview",
                "preview_start_date": now.isoformat(),
                "adjustment_deadline": (now + timedelta(days=5)).isoformat(),
            },
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "preview"

        # Employee sees and adjusts their payslip
        response = await client.get(f"{base}/me/payslips/current", headers=employee_headers)
        assert response.status_code == 200
        current = response.json()
        assert current["period_status"] == "preview"
        assert current["net_pay"] == "3126.64"

        response = await client.get(f"{base}/me/payslips/{current['id']}/can-adjust", headers=employee_headers)
        assert response.json() == {"can_adjust": True}

        response = await client.post(
            f"{base}/me/payslips/{current['id']}/pension",
            json={"pension_percent": "8", "reason": "Saving more"},
            headers=employee_headers,
        )
        assert response.status_code == 200
        assert response.json() == {"success": True, "new_net_pay": "3026.64"}

        # Admin adds a bonus; the employee's 8% survives
        response = await client.post(
            f"{base}/payroll/payslips/{current['id']}/bonuses",
            json={"description": "Bonus", "amount": "500"},
            headers=admin_headers,
        )
        assert response.status_code == 201

        response = await client.get(f"{base}/payroll/payslips/{current['id']}", headers=admin_headers)
        payslip = response.json()
        assert payslip["pension_percent"] == "8.00"
        assert payslip["net_pay"] == "3362.46"
        assert payslip["status"] == "adjusted"

        # Approve closes the window
        response = await client.patch(
            f"{base}/payroll/periods/{period_id}/status",
            json={"status": "approved"},
            headers=admin_headers,
        )
        assert response.status_code == 200

        response = await client.post(
            f"{base}/me/payslips/{current['id']}/pension",
            json={"pension_percent": "5"},
            headers=employee_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "ILLEGAL_STATE_TRANSITION"

        response = await client.get(f"{base}/me/payslips/history", headers=employee_headers)
        assert response.json()[0]["status"] == "approved"

    @pytest.mark.asyncio
    async def test_illegal_transition(self, client: AsyncClient, org_id, admin_headers, draft_period):
        response = await client.patch(
            f"/api/v1/organizations/{org_id}/payroll/periods/{draft_period.id}/status",
            json={"status": "processed"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["details"]["allowed"] == ["preview"]

    @pytest.mark.asyncio
    async def test_deadline_before_preview_start_rejected(self, client: AsyncClient, org_id, admin_headers, draft_period):
        now = datetime.now(timezone.utc)
        response = await client.patch(
            f"/api/v1/organizations/{org_id}/payroll/periods/{draft_period.id}/status",
            json={
                "status": "preview",
                "preview_start_date": now.isoformat(),
                "adjustment_deadline": (now - timedelta(days=1)).isoformat(),
            },
            headers=admin_headers,
        )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_revert_and_delete_need_confirmation(self, client: AsyncClient, org_id, admin_headers, preview_period):
        base = f"/api/v1/organizations/{org_id}/payroll/periods/{preview_period.id}"

        response = await client.post(f"{base}/revert", json={}, headers=admin_headers)
        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "CONFIRMATION_REQUIRED"

        response = await client.delete(base, headers=admin_headers)
        assert response.status_code == 422

        response = await client.delete(f"{base}?force=true", headers=admin_headers)
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_duplicate_period(self, client: AsyncClient, org_id, admin_headers, draft_period):
        response = await client.post(
            f"/api/v1/organizations/{org_id}/payroll/periods",
            json={"year": 2024, "month": 6},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "DUPLICATE_ENTRY"

    @pytest.mark.asyncio
    async def test_period_detail_and_totals(self, client: AsyncClient, org_id, admin_headers, generated_period):
        base = f"/api/v1/organizations/{org_id}/payroll/periods/{generated_period.id}"

        response = await client.get(base, headers=admin_headers)
        assert response.status_code == 200
        assert len(response.json()["payslips"]) == 2

        response = await client.post(f"{base}/recalculate", headers=admin_headers)
        assert response.json()["total_gross"] == "6666.67"
        assert response.json()["employee_count"] == 2

    @pytest.mark.asyncio
    async def test_bulk_bonus_and_bonus_edits(self, client: AsyncClient, org_id, admin_headers, generated_period):
        base = f"/api/v1/organizations/{org_id}/payroll"

        response = await client.post(
            f"{base}/periods/{generated_period.id}/bonuses",
            json={"description": "Christmas", "amount": "100"},
            headers=admin_headers,
        )
        assert response.json() == {"count": 2}

        detail = (await client.get(f"{base}/periods/{generated_period.id}", headers=admin_headers)).json()
        bonus_id = detail["payslips"][0]["bonuses"][0]["id"]

        response = await client.put(
            f"{base}/bonuses/{bonus_id}",
            json={"description": "Christmas", "amount": "150"},
            headers=admin_headers,
        )
        assert response.json()["amount"] == "150.00"

        response = await client.delete(f"{base}/bonuses/{bonus_id}", headers=admin_headers)
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_zero_bonus_rejected(self, client: AsyncClient, org_id, admin_headers, generated_period):
        payslip_id = generated_period.payslips[0].id

        response = await client.post(
            f"/api/v1/organizations/{org_id}/payroll/payslips/{payslip_id}/bonuses",
            json={"description": "Nothing", "amount": "0"},
            headers=admin_headers,
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "RANGE_VIOLATION"

    @pytest.mark.asyncio
    async def test_regenerate_and_delete_payslip(
        self, client: AsyncClient, org_id, admin_headers, generated_period, employee, payslip_for,
    ):
        base = f"/api/v1/organizations/{org_id}/payroll"
        payslip = payslip_for(generated_period, employee)

        response = await client.post(
            f"{base}/periods/{generated_period.id}/payslips/{employee.profile_id}/regenerate",
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["net_pay"] == "3126.64"

        response = await client.delete(f"{base}/payslips/{payslip.id}", headers=admin_headers)
        assert response.status_code == 204

        response = await client.get(f"{base}/payslips/{payslip.id}", headers=admin_headers)
        assert response.status_code == 404


class TestMyPayslipsAPI:
    """Employee self-service endpoints."""

    @pytest.mark.asyncio
    async def test_my_details(self, client: AsyncClient, org_id, employee):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/me/details",
            headers={PROFILE_HEADER: str(employee.profile_id)},
        )

        assert response.status_code == 200
        assert response.json()["tax_code"] == "1257L"

    @pytest.mark.asyncio
    async def test_no_current_payslip(self, client: AsyncClient, org_id):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/me/payslips/current",
            headers={PROFILE_HEADER: str(uuid4())},
        )

        assert response.status_code == 200
        assert response.json() is None

    @pytest.mark.asyncio
    async def test_list_payslips(self, client: AsyncClient, org_id, generated_period, second_employee):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/me/payslips",
            headers={PROFILE_HEADER: str(second_employee.profile_id)},
        )

        data = response.json()
        assert len(data) == 1
        assert data[0]["period_year"] == 2024
        assert data[0]["period_month"] == 6
        assert data[0]["income_tax"] == "500.00"

    @pytest.mark.asyncio
    async def test_pension_out_of_range(self, client: AsyncClient, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)

        response = await client.post(
            f"/api/v1/organizations/{org_id}/me/payslips/{payslip.id}/pension",
            json={"pension_percent": "1"},
            headers={PROFILE_HEADER: str(employee.profile_id)},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["details"]["minimum"] == "3"

    @pytest.mark.asyncio
    async def test_pension_preview_saves_nothing(self, client: AsyncClient, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)
        base = f"/api/v1/organizations/{org_id}/me/payslips/{payslip.id}"
        headers = {PROFILE_HEADER: str(employee.profile_id)}

        response = await client.get(f"{base}/pension-preview", params={"percent": "8"}, headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["current_net_pay"] == "3126.64"
        assert data["new_net_pay"] == "3026.64"
        assert data["net_pay_change"] == "-100.00"
        assert data["can_adjust"] is True
        assert data["breakdown"]["income_tax"] == "557.17"
        assert data["breakdown"]["pension_employee"] == "333.33"

        response = await client.get(f"/api/v1/organizations/{org_id}/me/payslips/current", headers=headers)
        current = response.json()
        assert current["net_pay"] == "3126.64"
        assert current["status"] == "preview"
        assert current["employee_adjusted"] is False

    @pytest.mark.asyncio
    async def test_pension_preview_out_of_range(self, client: AsyncClient, org_id, preview_period, employee, payslip_for):
        payslip = payslip_for(preview_period, employee)

        response = await client.get(
            f"/api/v1/organizations/{org_id}/me/payslips/{payslip.id}/pension-preview",
            params={"percent": "101"},
            headers={PROFILE_HEADER: str(employee.profile_id)},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "RANGE_VIOLATION"

    @pytest.mark.asyncio
    async def test_pension_preview_other_employee(
        self, client: AsyncClient, org_id, preview_period, employee, second_employee, payslip_for,
    ):
        payslip = payslip_for(preview_period, employee)

        response = await client.get(
            f"/api/v1/organizations/{org_id}/me/payslips/{payslip.id}/pension-preview",
            params={"percent": "8"},
            headers={PROFILE_HEADER: str(second_employee.profile_id)},
        )

        assert response.status_code == 404


class TestPaymentsAPI:
    """Payment overview endpoints."""

    @pytest.mark.asyncio
    async def test_stats_and_overview(self, client: AsyncClient, org_id, admin_headers, preview_period):
        base = f"/api/v1/organizations/{org_id}/payroll"
        response = await client.patch(
            f"{base}/periods/{preview_period.id}/status",
            json={"status": "approved"},
            headers=admin_headers,
        )
        assert response.status_code == 200

        response = await client.get(f"{base}/payments", params={"year": 2024}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json() == {
            "year": 2024,
            "pending_total": "5010.44",
            "pending_count": 1,
            "processed_total": "0.00",
            "processed_count": 0,
        }

        response = await client.get(f"{base}/payments/periods", headers=admin_headers)
        assert [p["id"] for p in response.json()] == [str(preview_period.id)]

        response = await client.get(f"{base}/periods/{preview_period.id}/payments", headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["period"]["status"] == "approved"
        assert [p["full_name"] for p in data["payments"]] == ["Alice Archer", "Ben Baker"]
        assert [p["net_pay"] for p in data["payments"]] == ["3126.64", "1883.80"]
        assert data["total_net"] == "5010.44"

    @pytest.mark.asyncio
    async def test_overview_unknown_period(self, client: AsyncClient, org_id, admin_headers):
        response = await client.get(
            f"/api/v1/organizations/{org_id}/payroll/periods/{uuid4()}/payments",
            headers=admin_headers,
        )

        assert response.status_code == 404
