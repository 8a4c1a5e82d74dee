"""Initial database schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ROLES = ('admin', 'supervisor', 'technician', 'helpdesk', 'noc')
ENUM_TYPES = ('provenance', 'shiftperiod', 'daytype', 'leavestatus', 'leavetype', 'weekstatus', 'employeestatus', 'employeerole')


def _existing_enum(*values, name):
    """Reference an enum type an earlier table already created."""
    if op.get_bind().dialect.name == 'postgresql':
        return postgresql.ENUM(*values, name=name, create_type=False)
    return sa.Enum(*values, name=name)


def upgrade() -> None:
    # === EMPLOYEES TABLE ===
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', sa.Enum(*ROLES, name='employeerole'), nullable=False),
        sa.Column('status', sa.Enum('active', 'inactive', name='employeestatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_employees_id', 'employees', ['id'])

    # === WEEK SCHEDULES TABLE ===
    op.create_table(
        'week_schedules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('status', sa.Enum('draft', 'active', 'historical', name='weekstatus'), nullable=False),
        sa.Column('created_by', sa.Integer(), nullable=False),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['employees.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_week_schedules_id', 'week_schedules', ['id'])
    op.create_index('ix_week_schedules_start_date', 'week_schedules', ['start_date'])

    # === LEAVE REQUESTS TABLE ===
    op.create_table(
        'leave_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('employee_role', _existing_enum(*ROLES, name='employeerole'), nullable=False),
        sa.Column('type', sa.Enum('vacation', 'rest', 'compensation', 'permission', 'license', name='leavetype'), nullable=False),
        sa.Column('date_start', sa.Date(), nullable=False),
        sa.Column('date_end', sa.Date(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('status', sa.Enum('pending', 'approved', 'rejected', name='leavestatus'), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('corrected_by', sa.Integer(), nullable=True),
        sa.Column('corrected_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('correction_note', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['employees.id']),
        sa.ForeignKeyConstraint(['corrected_by'], ['employees.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_leave_requests_id', 'leave_requests', ['id'])
    op.create_index('ix_leave_requests_employee_id', 'leave_requests', ['employee_id'])
    op.create_index('ix_leave_requests_status_dates', 'leave_requests', ['status', 'date_start', 'date_end'])

    # === DAY ENTRIES TABLE ===
    op.create_table(
        'day_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('week_id', sa.Integer(), nullable=True),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('shift_start', sa.Time(), nullable=True),
        sa.Column('shift_end', sa.Time(), nullable=True),
        sa.Column('lunch_start', sa.Time(), nullable=True),
        sa.Column('lunch_end', sa.Time(), nullable=True),
        sa.Column('day_type', sa.Enum('normal', 'rest', 'compensated', 'vacation', 'permission', name='daytype'), nullable=False),
        sa.Column('shift_period', sa.Enum('morning', 'afternoon', name='shiftperiod'), nullable=True),
        sa.Column('provenance', sa.Enum('manual', 'from_approved_request', name='provenance'), nullable=False),
        sa.Column('source_request_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['week_id'], ['week_schedules.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.ForeignKeyConstraint(['source_request_id'], ['leave_requests.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_id', 'date', name='uq_day_entry_employee_date')
    )
    op.create_index('ix_day_entries_id', 'day_entries', ['id'])
    op.create_index('ix_day_entries_week_employee', 'day_entries', ['week_id', 'employee_id'])


def downgrade() -> None:
    # Drop tables in reverse order of creation (respecting foreign keys)
    op.drop_index('ix_day_entries_week_employee', 'day_entries')
    op.drop_index('ix_day_entries_id', 'day_entries')
    op.drop_table('day_entries')

    op.drop_index('ix_leave_requests_status_dates', 'leave_requests')
    op.drop_index('ix_leave_requests_employee_id', 'leave_requests')
    op.drop_index('ix_leave_requests_id', 'leave_requests')
    op.drop_table('leave_requests')

    op.drop_index('ix_week_schedules_start_date', 'week_schedules')
    op.drop_index('ix_week_schedules_id', 'week_schedules')
    op.drop_table('week_schedules')

    op.drop_index('ix_employees_id', 'employees')
    op.drop_table('employees')

    if op.get_bind().dialect.name == 'postgresql':
        for name in ENUM_TYPES:
            postgresql.ENUM(name=name).drop(op.get_bind(), checkfirst=True)
