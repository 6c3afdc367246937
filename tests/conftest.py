"""
PayAdjust - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.database import Base, get_async_session
from app.dependencies import PROFILE_HEADER
from app.models.payroll import EmployeeDetails, PayrollPeriod, PeriodStatus
from app.services.payroll_service import PayrollService
from main import app


# In-memory database shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def org_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin_headers(admin_id: UUID) -> dict:
    return {PROFILE_HEADER: str(admin_id)}


@pytest.fixture
def payroll_service(db_session: AsyncSession) -> PayrollService:
    return PayrollService(db_session)


@pytest_asyncio.fixture
async def employee(db_session: AsyncSession, org_id: UUID) -> EmployeeDetails:
    """£50,000 on 1257L with 5% / 3% pension."""
    record = EmployeeDetails(
        organization_id=org_id,
        profile_id=uuid4(),
        full_name="Alice Archer",
        department="Engineering",
        annual_salary=Decimal("50000.00"),
        tax_code="1257L",
        default_pension_percent=Decimal("5"),
        employer_pension_percent=Decimal("3"),
        is_active=True,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest_asyncio.fixture
async def second_employee(db_session: AsyncSession, org_id: UUID) -> EmployeeDetails:
    """£30,000 on BR with no pension."""
    record = EmployeeDetails(
        organization_id=org_id,
        profile_id=uuid4(),
        full_name="Ben Baker",
        annual_salary=Decimal("30000.00"),
        tax_code="BR",
        default_pension_percent=Decimal("0"),
        employer_pension_percent=Decimal("0"),
        is_active=True,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest_asyncio.fixture
async def draft_period(
    payroll_service: PayrollService,
    org_id: UUID,
    admin_id: UUID,
) -> PayrollPeriod:
    return await payroll_service.create_payroll_period(org_id, 2024, 6, created_by_id=admin_id)


@pytest_asyncio.fixture
async def generated_period(
    payroll_service: PayrollService,
    org_id: UUID,
    draft_period: PayrollPeriod,
    employee: EmployeeDetails,
    second_employee: EmployeeDetails,
) -> PayrollPeriod:
    """Draft period with payslips for both employees."""
    await payroll_service.generate_payslips(org_id, draft_period.id)
    return await payroll_service.get_payroll_period(org_id, draft_period.id)


@pytest_asyncio.fixture
async def preview_period(
    payroll_service: PayrollService,
    org_id: UUID,
    generated_period: PayrollPeriod,
) -> PayrollPeriod:
    """Period in preview with a deadline a week away."""
    now = datetime.now(timezone.utc)
    return await payroll_service.update_payroll_status(
        org_id,
        generated_period.id,
        PeriodStatus.PREVIEW,
        preview_start_date=now,
        adjustment_deadline=now + timedelta(days=7),
    )


@pytest.fixture
def payslip_for():
    """Find the period's payslip belonging to an employee."""

    def _find(period: PayrollPeriod, employee: EmployeeDetails):
        return next(p for p in period.payslips if p.employee_id == employee.profile_id)

    return _find
