"""Create payroll tables

Revision ID: 20261018_0900
Revises:
Create Date: 2026-10-18 09:00:00.000000

This migration creates the monthly payroll schema:
- employee_details: Salary, tax code and pension defaults per organization member
- payroll_periods: One period per organization per calendar month, with derived totals
- payslips: One payslip per employee per period
- payslip_bonuses: Itemized bonus lines that make up payslip.bonus
- payslip_adjustments: Employee pension changes made during preview
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision = '20261018_0900'
down_revision = None
branch_labels = None
depends_on = None


PERIOD_STATUSES = ('DRAFT', 'PREVIEW', 'APPROVED', 'PROCESSING', 'PROCESSED')
PAYSLIP_STATUSES = ('DRAFT', 'PREVIEW', 'ADJUSTED', 'APPROVED', 'PAID')


def table_exists(table_name: str) -> bool:
    """Check if a table exists."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    # ===========================================
    # EMPLOYEE DETAILS TABLE
    # ===========================================
    if not table_exists('employee_details'):
        op.create_table('employee_details',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('organization_id', UUID(as_uuid=True), nullable=False, index=True),
            sa.Column('profile_id', UUID(as_uuid=True), nullable=False, index=True),
            sa.Column('full_name', sa.String(200), nullable=True),
            sa.Column('department', sa.String(100), nullable=True),
            sa.Column('annual_salary', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('tax_code', sa.String(10), nullable=False, server_default='1257L'),
            sa.Column('default_pension_percent', sa.Numeric(5, 2), nullable=False, server_default='5',
                      comment='Employee contribution used when a payslip is generated'),
            sa.Column('employer_pension_percent', sa.Numeric(5, 2), nullable=False, server_default='3'),
            sa.Column('start_date', sa.Date, nullable=True),
            sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.UniqueConstraint('organization_id', 'profile_id', name='uq_employee_details_org_profile'),
            sa.CheckConstraint('annual_salary >= 0', name='ck_employee_details_annual_salary_non_negative'),
        )

    # ===========================================
    # PAYROLL PERIODS TABLE
    # ===========================================
    if not table_exists('payroll_periods'):
        op.create_table('payroll_periods',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('organization_id', UUID(as_uuid=True), nullable=False, index=True),
            sa.Column('year', sa.Integer, nullable=False),
            sa.Column('month', sa.Integer, nullable=False),
            sa.Column('status', sa.Enum(*PERIOD_STATUSES, name='periodstatus'), nullable=False,
                      server_default='DRAFT'),

            # Preview window
            sa.Column('preview_start_date', sa.DateTime(timezone=True), nullable=True),
            sa.Column('adjustment_deadline', sa.DateTime(timezone=True), nullable=True,
                      comment='Employees may adjust pension until this instant'),
            sa.Column('processing_date', sa.Date, nullable=True),

            # Summary (derived from payslips)
            sa.Column('total_gross', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('total_net', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('total_tax', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('total_ni', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('total_pension_employee', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('total_pension_employer', sa.Numeric(18, 2), nullable=False, server_default='0'),
            sa.Column('employee_count', sa.Integer, nullable=False, server_default='0'),

            # Audit
            sa.Column('created_by_id', UUID(as_uuid=True), nullable=True),
            sa.Column('updated_by_id', UUID(as_uuid=True), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint('organization_id', 'year', 'month', name='uq_payroll_period_org_month'),
            sa.CheckConstraint('month >= 1 AND month <= 12', name='ck_payroll_periods_month_range'),
        )

    # ===========================================
    # PAYSLIPS TABLE
    # ===========================================
    if not table_exists('payslips'):
        op.create_table('payslips',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('payroll_period_id', UUID(as_uuid=True),
                      sa.ForeignKey('payroll_periods.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('employee_id', UUID(as_uuid=True), nullable=False, index=True,
                      comment='Profile id of the employee'),

            # Earnings
            sa.Column('base_salary', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('bonus', sa.Numeric(15, 2), nullable=False, server_default='0',
                      comment="Sum of the payslip's bonus records"),
            sa.Column('other_additions', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('gross_pay', sa.Numeric(15, 2), nullable=False, server_default='0'),

            # Pension
            sa.Column('pension_percent', sa.Numeric(5, 2), nullable=False, server_default='0',
                      comment='Employee rate actually applied'),
            sa.Column('pension_employee', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('pension_employer', sa.Numeric(15, 2), nullable=False, server_default='0'),

            # Tax & NI
            sa.Column('taxable_pay', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('income_tax', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('national_insurance', sa.Numeric(15, 2), nullable=False, server_default='0'),

            # Deductions & net
            sa.Column('other_deductions', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('total_deductions', sa.Numeric(15, 2), nullable=False, server_default='0'),
            sa.Column('net_pay', sa.Numeric(15, 2), nullable=False, server_default='0'),

            sa.Column('status', sa.Enum(*PAYSLIP_STATUSES, name='payslipstatus'), nullable=False,
                      server_default='DRAFT'),
            sa.Column('employee_adjusted', sa.Boolean, nullable=False, server_default=sa.false()),
            sa.Column('adjustment_note', sa.Text, nullable=True),
            sa.Column('tax_code', sa.String(10), nullable=False, comment='Tax code at generation time'),
            *_timestamps(),
            sa.UniqueConstraint('payroll_period_id', 'employee_id', name='uq_payslip_period_employee'),
        )

    # ===========================================
    # PAYSLIP BONUSES TABLE
    # ===========================================
    if not table_exists('payslip_bonuses'):
        op.create_table('payslip_bonuses',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('payslip_id', UUID(as_uuid=True),
                      sa.ForeignKey('payslips.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('description', sa.String(255), nullable=False),
            sa.Column('amount', sa.Numeric(15, 2), nullable=False),
            sa.Column('created_by_id', UUID(as_uuid=True), nullable=True),
            *_timestamps(),
            sa.CheckConstraint('amount > 0', name='ck_payslip_bonuses_bonus_amount_positive'),
        )

    # ===========================================
    # PAYSLIP ADJUSTMENTS TABLE
    # ===========================================
    if not table_exists('payslip_adjustments'):
        op.create_table('payslip_adjustments',
            sa.Column('id', UUID(as_uuid=True), primary_key=True),
            sa.Column('payslip_id', UUID(as_uuid=True),
                      sa.ForeignKey('payslips.id', ondelete='CASCADE'), nullable=False, index=True),
            sa.Column('employee_id', UUID(as_uuid=True), nullable=False),
            sa.Column('previous_pension_percent', sa.Numeric(5, 2), nullable=False),
            sa.Column('new_pension_percent', sa.Numeric(5, 2), nullable=False),
            sa.Column('previous_net_pay', sa.Numeric(15, 2), nullable=False),
            sa.Column('new_net_pay', sa.Numeric(15, 2), nullable=False),
            sa.Column('reason', sa.Text, nullable=True),
            *_timestamps(),
        )


def downgrade() -> None:
    op.drop_table('payslip_adjustments')
    op.drop_table('payslip_bonuses')
    op.drop_table('payslips')
    op.drop_table('payroll_periods')
    op.drop_table('employee_details')
    sa.Enum(name='payslipstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='periodstatus').drop(op.get_bind(), checkfirst=True)
