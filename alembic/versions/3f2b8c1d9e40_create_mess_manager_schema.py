"""create_mess_manager_schema

Revision ID: 3f2b8c1d9e40
Revises:
Create Date: 2026-10-19 09:12:44.581203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2b8c1d9e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def _approval() -> list:
    return [
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['approved_by'], ['persons.id'], ondelete='SET NULL'),
    ]


def upgrade() -> None:
    """
    Create the mess manager schema.

    Creates:
    - persons, messes, mess_members
    - meal_entries (one row per mess/member/date)
    - bazar_records, expense_categories, expense_records, payment_records
    - attendance_tokens, attendances
    """
    # 1. People and messes
    op.create_table(
        'persons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('auth_user_id', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_persons_auth_user_id'), 'persons', ['auth_user_id'], unique=True)

    op.create_table(
        'messes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('breakfast_rate', sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column('lunch_rate', sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column('dinner_rate', sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column('meal_cutoff_time', sa.Time(), nullable=False),
        sa.Column('auto_bazar_rotation', sa.Boolean(), nullable=False),
        sa.Column('max_members', sa.Integer(), nullable=True),
        sa.Column('payment_cycle', sa.String(length=20), nullable=False),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['manager_id'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'breakfast_rate >= 0 AND lunch_rate >= 0 AND dinner_rate >= 0',
            name='ck_mess_rates_non_negative',
        ),
    )
    op.create_index(op.f('ix_messes_name'), 'messes', ['name'], unique=False)
    op.create_index(op.f('ix_messes_manager_id'), 'messes', ['manager_id'], unique=False)

    # 2. Memberships
    op.create_table(
        'mess_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('person_id', sa.Integer(), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('room_number', sa.String(length=50), nullable=True),
        sa.Column('monthly_fixed_cost', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('deposit_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.Column('left_at', sa.DateTime(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['person_id'], ['persons.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['approved_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_mess_members_mess_id'), 'mess_members', ['mess_id'], unique=False)
    op.create_index(op.f('ix_mess_members_person_id'), 'mess_members', ['person_id'], unique=False)
    op.create_index('ix_mess_members_mess_status', 'mess_members', ['mess_id', 'status'], unique=False)

    # 3. Meal ledger
    op.create_table(
        'meal_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('meal_date', sa.Date(), nullable=False),
        sa.Column('breakfast', sa.Integer(), nullable=False),
        sa.Column('lunch', sa.Integer(), nullable=False),
        sa.Column('dinner', sa.Integer(), nullable=False),
        sa.Column('extra_items', sa.JSON(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('entered_by', sa.Integer(), nullable=True),
        sa.Column('locked_at', sa.DateTime(), nullable=True),
        sa.Column('locked_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['entered_by'], ['persons.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['locked_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mess_id', 'member_id', 'meal_date', name='uq_meal_member_date'),
        sa.CheckConstraint(
            'breakfast BETWEEN 0 AND 10 AND lunch BETWEEN 0 AND 10 AND dinner BETWEEN 0 AND 10',
            name='ck_meal_counts_range',
        ),
    )
    op.create_index(op.f('ix_meal_entries_mess_id'), 'meal_entries', ['mess_id'], unique=False)
    op.create_index(op.f('ix_meal_entries_member_id'), 'meal_entries', ['member_id'], unique=False)
    op.create_index(op.f('ix_meal_entries_meal_date'), 'meal_entries', ['meal_date'], unique=False)
    op.create_index('ix_meal_entries_mess_date', 'meal_entries', ['mess_id', 'meal_date'], unique=False)

    # 4. Bazar purchases
    op.create_table(
        'bazar_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('assignee_id', sa.Integer(), nullable=False),
        sa.Column('bazar_date', sa.Date(), nullable=False),
        sa.Column('item_list', sa.JSON(), nullable=False),
        sa.Column('total_cost', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_approval(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assignee_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['created_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mess_id', 'assignee_id', 'bazar_date', name='uq_bazar_assignee_date'),
    )
    op.create_index(op.f('ix_bazar_records_mess_id'), 'bazar_records', ['mess_id'], unique=False)
    op.create_index(op.f('ix_bazar_records_assignee_id'), 'bazar_records', ['assignee_id'], unique=False)
    op.create_index(op.f('ix_bazar_records_bazar_date'), 'bazar_records', ['bazar_date'], unique=False)
    op.create_index(op.f('ix_bazar_records_status'), 'bazar_records', ['status'], unique=False)
    op.create_index('ix_bazar_records_mess_date', 'bazar_records', ['mess_id', 'bazar_date'], unique=False)

    # 5. Expenses
    op.create_table(
        'expense_categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('rate', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mess_id', 'name', name='uq_expense_category_name'),
        sa.CheckConstraint('rate >= 0', name='ck_expense_category_rate'),
    )
    op.create_index(op.f('ix_expense_categories_mess_id'), 'expense_categories', ['mess_id'], unique=False)

    op.create_table(
        'expense_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('expense_date', sa.Date(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_approval(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['category_id'], ['expense_categories.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'mess_id', 'member_id', 'category_id', 'expense_date',
            name='uq_expense_member_category_date',
        ),
        sa.CheckConstraint('amount > 0', name='ck_expense_amount_positive'),
    )
    op.create_index(op.f('ix_expense_records_mess_id'), 'expense_records', ['mess_id'], unique=False)
    op.create_index(op.f('ix_expense_records_member_id'), 'expense_records', ['member_id'], unique=False)
    op.create_index(op.f('ix_expense_records_category_id'), 'expense_records', ['category_id'], unique=False)
    op.create_index(op.f('ix_expense_records_expense_date'), 'expense_records', ['expense_date'], unique=False)
    op.create_index(op.f('ix_expense_records_status'), 'expense_records', ['status'], unique=False)
    op.create_index('ix_expense_records_mess_date', 'expense_records', ['mess_id', 'expense_date'], unique=False)

    # 6. Payments
    op.create_table(
        'payment_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column('method', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('transaction_ref', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['approved_by'], ['persons.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('mess_id', 'member_id', 'payment_date', name='uq_payment_member_date'),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
    )
    op.create_index(op.f('ix_payment_records_mess_id'), 'payment_records', ['mess_id'], unique=False)
    op.create_index(op.f('ix_payment_records_member_id'), 'payment_records', ['member_id'], unique=False)
    op.create_index(op.f('ix_payment_records_payment_date'), 'payment_records', ['payment_date'], unique=False)
    op.create_index(op.f('ix_payment_records_status'), 'payment_records', ['status'], unique=False)
    op.create_index('ix_payment_records_mess_date', 'payment_records', ['mess_id', 'payment_date'], unique=False)

    # 7. Attendance tokens and records
    op.create_table(
        'attendance_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=True),
        sa.Column('purpose', sa.String(length=20), nullable=False),
        sa.Column('issued_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('max_usage', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('signature', sa.String(length=128), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('usage_count <= max_usage', name='ck_token_usage_cap'),
        sa.CheckConstraint('max_usage >= 1', name='ck_token_max_usage'),
    )
    op.create_index(op.f('ix_attendance_tokens_token'), 'attendance_tokens', ['token'], unique=True)
    op.create_index(op.f('ix_attendance_tokens_mess_id'), 'attendance_tokens', ['mess_id'], unique=False)
    op.create_index(op.f('ix_attendance_tokens_member_id'), 'attendance_tokens', ['member_id'], unique=False)
    op.create_index('ix_attendance_tokens_mess_purpose', 'attendance_tokens', ['mess_id', 'purpose'], unique=False)

    op.create_table(
        'attendances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('mess_id', sa.Integer(), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('meal_type', sa.String(length=20), nullable=False),
        sa.Column('meal_date', sa.Date(), nullable=False),
        sa.Column('scan_time', sa.DateTime(), nullable=False),
        sa.Column('token_id', sa.Integer(), nullable=True),
        sa.Column('is_manual_entry', sa.Boolean(), nullable=False),
        sa.Column('scanned_by', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_approval(),
        *_timestamps(),
        sa.ForeignKeyConstraint(['mess_id'], ['messes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['mess_members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['token_id'], ['attendance_tokens.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['scanned_by'], ['persons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_attendances_mess_id'), 'attendances', ['mess_id'], unique=False)
    op.create_index(op.f('ix_attendances_member_id'), 'attendances', ['member_id'], unique=False)
    op.create_index(op.f('ix_attendances_status'), 'attendances', ['status'], unique=False)
    op.create_index(
        'ix_attendances_member_date_type', 'attendances', ['member_id', 'meal_date', 'meal_type'], unique=False
    )
    op.create_index('ix_attendances_mess_date', 'attendances', ['mess_id', 'meal_date'], unique=False)


def downgrade() -> None:
    """Drop the mess manager schema in reverse dependency order."""
    op.drop_table('attendances')
    op.drop_table('attendance_tokens')
    op.drop_table('payment_records')
    op.drop_table('expense_records')
    op.drop_table('expense_categories')
    op.drop_table('bazar_records')
    op.drop_table('meal_entries')
    op.drop_table('mess_members')
    op.drop_table('messes')
    op.drop_table('persons')
