"""initial_gym_schema

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CONTRACT_STATUSES = ('active', 'frozen', 'expired', 'cancelled', 'about_to_expire')
SESSION_STATUSES = ('scheduled', 'in_progress', 'completed', 'cancelled')
OPEN_CONTRACTS = sa.text("status IN ('active', 'frozen')")


def upgrade() -> None:
    """Upgrade schema."""
    # People
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=15), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('code', name='uq_users_code'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'persons',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_persons_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_persons'),
        sa.UniqueConstraint('code', name='uq_persons_code'),
    )
    op.create_index('ix_persons_user_id', 'persons', ['user_id'], unique=False)

    op.create_table(
        'trainers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('specialty', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['user_id'], ['users.id'], name='fk_trainers_user_id_users', ondelete='CASCADE'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_trainers'),
        sa.UniqueConstraint('code', name='uq_trainers_code'),
        sa.UniqueConstraint('user_id', name='uq_trainers_user_id'),
    )

    # Contracts
    op.create_table(
        'membership_plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('access_days', sa.Integer(), nullable=False),
        sa.Column('validity_days', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'validity_days > 0', name='ck_membership_plans_validity_days_positive'
        ),
        sa.CheckConstraint('price > 0', name='ck_membership_plans_price_positive'),
        sa.PrimaryKeyConstraint('id', name='pk_membership_plans'),
        sa.UniqueConstraint('code', name='uq_membership_plans_code'),
    )

    op.create_table(
        'contracts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('code', sa.String(length=10), nullable=False),
        sa.Column('person_id', sa.Integer(), nullable=False),
        sa.Column('membership_plan_id', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('snapshotted_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*CONTRACT_STATUSES, name='contract_status_enum'),
            nullable=False,
        ),
        sa.Column('frozen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('updated_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['person_id'], ['persons.id'], name='fk_contracts_person_id_persons'
        ),
        sa.ForeignKeyConstraint(
            ['membership_plan_id'],
            ['membership_plans.id'],
            name='fk_contracts_membership_plan_id_membership_plans',
        ),
        sa.ForeignKeyConstraint(
            ['created_by_id'], ['users.id'], name='fk_contracts_created_by_id_users'
        ),
        sa.ForeignKeyConstraint(
            ['updated_by_id'], ['users.id'], name='fk_contracts_updated_by_id_users'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_contracts'),
        sa.UniqueConstraint('code', name='uq_contracts_code'),
    )
    op.create_index('ix_contracts_person_id', 'contracts', ['person_id'], unique=False)
    # At most one active-or-frozen contract per person
    op.create_index(
        'uq_contracts_person_open',
        'contracts',
        ['person_id'],
        unique=True,
        postgresql_where=OPEN_CONTRACTS,
        sqlite_where=OPEN_CONTRACTS,
    )

    op.create_table(
        'contract_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=False),
        sa.Column(
            'previous_status',
            sa.Enum(*CONTRACT_STATUSES, name='contract_history_previous_status_enum'),
            nullable=True,
        ),
        sa.Column(
            'new_status',
            sa.Enum(*CONTRACT_STATUSES, name='contract_history_new_status_enum'),
            nullable=False,
        ),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('changed_by_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(
            ['contract_id'], ['contracts.id'], name='fk_contract_history_contract_id_contracts'
        ),
        sa.ForeignKeyConstraint(
            ['changed_by_id'], ['users.id'], name='fk_contract_history_changed_by_id_users'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_contract_history'),
    )
    op.create_index(
        'ix_contract_history_contract_id', 'contract_history', ['contract_id'], unique=False
    )

    op.create_table(
        'code_sequences',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('name', name='pk_code_sequences'),
    )

    # Sessions
    op.create_table(
        'training_sessions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('trainer_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            sa.Enum(*SESSION_STATUSES, name='training_session_status_enum'),
            server_default='scheduled',
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            'end_time > start_time', name='ck_training_sessions_end_after_start'
        ),
        sa.ForeignKeyConstraint(
            ['trainer_id'], ['users.id'], name='fk_training_sessions_trainer_id_users'
        ),
        sa.ForeignKeyConstraint(
            ['client_id'], ['persons.id'], name='fk_training_sessions_client_id_persons'
        ),
        sa.PrimaryKeyConstraint('id', name='pk_training_sessions'),
    )
    op.create_index(
        'ix_training_sessions_trainer_window',
        'training_sessions',
        ['trainer_id', 'start_time', 'end_time'],
        unique=False,
    )
    op.create_index(
        'ix_training_sessions_client_window',
        'training_sessions',
        ['client_id', 'start_time', 'end_time'],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_training_sessions_client_window', table_name='training_sessions')
    op.drop_index('ix_training_sessions_trainer_window', table_name='training_sessions')
    op.drop_table('training_sessions')
    op.drop_table('code_sequences')
    op.drop_index('ix_contract_history_contract_id', table_name='contract_history')
    op.drop_table('contract_history')
    op.drop_index('uq_contracts_person_open', table_name='contracts')
    op.drop_index('ix_contracts_person_id', table_name='contracts')
    op.drop_table('contracts')
    op.drop_table('membership_plans')
    op.drop_table('trainers')
    op.drop_index('ix_persons_user_id', table_name='persons')
    op.drop_table('persons')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    bind = op.get_bind()
    if bind.dialect.name == 'postgresql':
        for name in (
            'training_session_status_enum',
            'contract_history_new_status_enum',
            'contract_history_previous_status_enum',
            'contract_status_enum',
        ):
            sa.Enum(name=name).drop(bind, checkfirst=True)
