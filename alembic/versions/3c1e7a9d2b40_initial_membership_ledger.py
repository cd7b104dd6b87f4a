"""Initial membership ledger schema

Revision ID: 3c1e7a9d2b40
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e7a9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'companies',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table(
        'gyms',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_gyms_company_id'), 'gyms', ['company_id'], unique=False)
    op.create_table(
        'staffs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=True),
        sa.Column('gym_id', sa.Uuid(), nullable=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_staffs_email'), 'staffs', ['email'], unique=True)
    op.create_table(
        'members',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('gender', sa.String(length=16), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('trainer_id', sa.Uuid(), nullable=True),
        sa.Column('memo', sa.Text(), nullable=True),
        sa.Column('height_cm', sa.Float(), nullable=True),
        sa.Column('weight_kg', sa.Float(), nullable=True),
        sa.Column('body_fat_percent', sa.Float(), nullable=True),
        sa.Column('skeletal_muscle_kg', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['trainer_id'], ['staffs.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_members_company_id'), 'members', ['company_id'], unique=False)
    op.create_index(op.f('ix_members_gym_id'), 'members', ['gym_id'], unique=False)
    op.create_table(
        'member_memberships',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('membership_type', sa.String(length=32), nullable=True),
        sa.Column('total_sessions', sa.Integer(), nullable=True),
        sa.Column('used_sessions', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('used_sessions >= 0', name='ck_member_memberships_used_non_negative'),
        sa.CheckConstraint(
            'total_sessions IS NULL OR used_sessions <= total_sessions',
            name='ck_member_memberships_used_within_total',
        ),
        sa.CheckConstraint(
            'end_date IS NULL OR start_date IS NULL OR end_date >= start_date',
            name='ck_member_memberships_date_order',
        ),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_member_memberships_gym_id'), 'member_memberships', ['gym_id'], unique=False)
    op.create_index(op.f('ix_member_memberships_member_id'), 'member_memberships', ['member_id'], unique=False)
    op.create_table(
        'member_membership_holds',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('membership_id', sa.Uuid(), nullable=False),
        sa.Column('hold_days', sa.Integer(), nullable=False),
        sa.Column('hold_start_date', sa.Date(), nullable=False),
        sa.Column('hold_end_date', sa.Date(), nullable=False),
        sa.Column('hold_reason', sa.String(), nullable=True),
        sa.Column('original_end_date', sa.Date(), nullable=True),
        sa.Column('new_end_date', sa.Date(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['created_by'], ['staffs.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['membership_id'], ['member_memberships.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_member_membership_holds_member_id'), 'member_membership_holds', ['member_id'], unique=False)
    op.create_index(op.f('ix_member_membership_holds_membership_id'), 'member_membership_holds', ['membership_id'], unique=False)
    op.create_table(
        'member_activity_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=True),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('membership_id', sa.Uuid(), nullable=True),
        sa.Column('action_type', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['created_by'], ['staffs.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_member_activity_logs_member_id'), 'member_activity_logs', ['member_id'], unique=False)
    op.create_table(
        'member_membership_transfers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('from_member_id', sa.Uuid(), nullable=False),
        sa.Column('from_membership_id', sa.Uuid(), nullable=False),
        sa.Column('to_member_id', sa.Uuid(), nullable=False),
        sa.Column('to_membership_id', sa.Uuid(), nullable=False),
        sa.Column('transferred_sessions', sa.Integer(), nullable=False),
        sa.Column('transfer_fee', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=True),
        sa.Column('transfer_reason', sa.String(), nullable=True),
        sa.Column('transfer_date', sa.Date(), nullable=False),
        sa.Column('original_membership_data', sa.JSON(), nullable=False),
        sa.Column('created_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['created_by'], ['staffs.id']),
        sa.ForeignKeyConstraint(['from_member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['from_membership_id'], ['member_memberships.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['to_member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['to_membership_id'], ['member_memberships.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_member_membership_transfers_from_member_id'), 'member_membership_transfers', ['from_member_id'], unique=False)
    op.create_index(op.f('ix_member_membership_transfers_to_member_id'), 'member_membership_transfers', ['to_member_id'], unique=False)
    op.create_table(
        'member_payments',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=False),
        sa.Column('membership_id', sa.Uuid(), nullable=True),
        sa.Column('registration_type', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('memo', sa.String(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_member_payments_member_id'), 'member_payments', ['member_id'], unique=False)
    op.create_table(
        'sales_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('company_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=True),
        sa.Column('sales_type', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=True),
        sa.Column('memo', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staffs.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_sales_logs_gym_id'), 'sales_logs', ['gym_id'], unique=False)
    op.create_table(
        'schedules',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=True),
        sa.Column('member_name', sa.String(), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('membership_id', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['membership_id'], ['member_memberships.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staffs.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_schedules_gym_id'), 'schedules', ['gym_id'], unique=False)
    op.create_index(op.f('ix_schedules_member_id'), 'schedules', ['member_id'], unique=False)
    op.create_table(
        'attendances',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('gym_id', sa.Uuid(), nullable=False),
        sa.Column('schedule_id', sa.Uuid(), nullable=False),
        sa.Column('staff_id', sa.Uuid(), nullable=False),
        sa.Column('member_id', sa.Uuid(), nullable=True),
        sa.Column('status_code', sa.String(length=32), nullable=False),
        sa.Column('attended_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('memo', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['gym_id'], ['gyms.id']),
        sa.ForeignKeyConstraint(['member_id'], ['members.id']),
        sa.ForeignKeyConstraint(['schedule_id'], ['schedules.id']),
        sa.ForeignKeyConstraint(['staff_id'], ['staffs.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('schedule_id')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('attendances')
    op.drop_index(op.f('ix_schedules_member_id'), table_name='schedules')
    op.drop_index(op.f('ix_schedules_gym_id'), table_name='schedules')
    op.drop_table('schedules')
    op.drop_index(op.f('ix_sales_logs_gym_id'), table_name='sales_logs')
    op.drop_table('sales_logs')
    op.drop_index(op.f('ix_member_payments_member_id'), table_name='member_payments')
    op.drop_table('member_payments')
    op.drop_index(op.f('ix_member_membership_transfers_to_member_id'), table_name='member_membership_transfers')
    op.drop_index(op.f('ix_member_membership_transfers_from_member_id'), table_name='member_membership_transfers')
    op.drop_table('member_membership_transfers')
    op.drop_index(op.f('ix_member_activity_logs_member_id'), table_name='member_activity_logs')
    op.drop_table('member_activity_logs')
    op.drop_index(op.f('ix_member_membership_holds_membership_id'), table_name='member_membership_holds')
    op.drop_index(op.f('ix_member_membership_holds_member_id'), table_name='member_membership_holds')
    op.drop_table('member_membership_holds')
    op.drop_index(op.f('ix_member_memberships_member_id'), table_name='member_memberships')
    op.drop_index(op.f('ix_member_memberships_gym_id'), table_name='member_memberships')
    op.drop_table('member_memberships')
    op.drop_index(op.f('ix_members_gym_id'), table_name='members')
    op.drop_index(op.f('ix_members_company_id'), table_name='members')
    op.drop_table('members')
    op.drop_index(op.f('ix_staffs_email'), table_name='staffs')
    op.drop_table('staffs')
    op.drop_index(op.f('ix_gyms_company_id'), table_name='gyms')
    op.drop_table('gyms')
    op.drop_table('companies')
