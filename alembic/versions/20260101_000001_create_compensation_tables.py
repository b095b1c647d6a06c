"""Create compensation tables.

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01

Users with sponsor links, binary tree nodes, match and commission
records, investment events, wallet ledger and matching runs.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20260101_000001'
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.DECIMAL(precision=18, scale=8)
RATE = sa.DECIMAL(precision=10, scale=4)


def _credit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            'credit_status', sa.String(length=20), nullable=False,
            server_default='pending',
        ),
        sa.Column(
            'credit_attempts', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column('credit_error', sa.Text(), nullable=True),
        sa.Column('credited_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create all compensation tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('username', sa.String(length=255), nullable=True),
        sa.Column('sponsor_id', sa.Integer(), nullable=True),
        sa.Column(
            'direct_count', sa.Integer(), nullable=False, server_default='0'
        ),
        sa.Column('balance', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earned', MONEY, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['sponsor_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.CheckConstraint(
            'balance >= 0', name='check_user_balance_non_negative'
        ),
        sa.CheckConstraint(
            'total_earned >= 0', name='check_user_total_earned_non_negative'
        ),
        sa.CheckConstraint(
            'direct_count >= 0', name='check_user_direct_count_non_negative'
        ),
        sa.CheckConstraint(
            'sponsor_id IS NULL OR sponsor_id <> id',
            name='check_user_not_self_sponsored',
        ),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_sponsor_id', 'users', ['sponsor_id'])

    op.create_table(
        'matching_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('period_key', sa.String(length=32), nullable=False),
        sa.Column('trigger', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('users_processed', sa.Integer(), nullable=True),
        sa.Column('users_matched', sa.Integer(), nullable=True),
        sa.Column('below_minimum', sa.Integer(), nullable=True),
        sa.Column('daily_limit_reached', sa.Integer(), nullable=True),
        sa.Column('credit_failures', sa.Integer(), nullable=True),
        sa.Column('errors', sa.Integer(), nullable=True),
        sa.Column('total_matched_volume', MONEY, nullable=True),
        sa.Column('total_payout', MONEY, nullable=True),
        sa.Column('duration_seconds', sa.Float(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_matching_runs_period_status',
        'matching_runs',
        ['period_key', 'status'],
    )

    op.create_table(
        'investment_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('investor_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column(
            'volume_applied_at', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column(
            'level_income_applied_at', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['investor_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.CheckConstraint(
            'amount > 0', name='check_investment_amount_positive'
        ),
    )
    op.create_index(
        'ix_investment_events_idempotency_key',
        'investment_events',
        ['idempotency_key'],
        unique=True,
    )
    op.create_index(
        'ix_investment_events_investor_id', 'investment_events', ['investor_id']
    )

    op.create_table(
        'binary_nodes',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('left_child_id', sa.Integer(), nullable=True),
        sa.Column('right_child_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.String(length=10), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('left_volume', MONEY, nullable=False, server_default='0'),
        sa.Column('right_volume', MONEY, nullable=False, server_default='0'),
        sa.Column('left_unmatched', MONEY, nullable=False, server_default='0'),
        sa.Column('right_unmatched', MONEY, nullable=False, server_default='0'),
        sa.Column('matched_to_date', MONEY, nullable=False, server_default='0'),
        sa.Column(
            'last_matched_at', sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['parent_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['left_child_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.ForeignKeyConstraint(
            ['right_child_id'], ['users.id'], ondelete='SET NULL'
        ),
        sa.CheckConstraint(
            'left_unmatched >= 0', name='check_node_left_unmatched_non_negative'
        ),
        sa.CheckConstraint(
            'right_unmatched >= 0',
            name='check_node_right_unmatched_non_negative',
        ),
        sa.CheckConstraint(
            'left_unmatched <= left_volume',
            name='check_node_left_unmatched_within_volume',
        ),
        sa.CheckConstraint(
            'right_unmatched <= right_volume',
            name='check_node_right_unmatched_within_volume',
        ),
        sa.CheckConstraint(
            'matched_to_date >= 0', name='check_node_matched_non_negative'
        ),
        sa.CheckConstraint(
            "position IN ('left', 'right', 'root')", name='check_node_position'
        ),
    )
    op.create_index(
        'ix_binary_nodes_user_id', 'binary_nodes', ['user_id'], unique=True
    )
    op.create_index('ix_binary_nodes_parent_id', 'binary_nodes', ['parent_id'])
    op.create_index(
        'idx_binary_nodes_matched_to_date', 'binary_nodes', ['matched_to_date']
    )

    op.create_table(
        'binary_matches',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('run_id', sa.Integer(), nullable=True),
        sa.Column('matched_volume', MONEY, nullable=False),
        sa.Column('left_volume_before', MONEY, nullable=False),
        sa.Column('left_volume_after', MONEY, nullable=False),
        sa.Column('right_volume_before', MONEY, nullable=False),
        sa.Column('right_volume_after', MONEY, nullable=False),
        sa.Column('payout_amount', MONEY, nullable=False),
        sa.Column('payout_percentage', RATE, nullable=False),
        *_credit_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['run_id'], ['matching_runs.id'], ondelete='SET NULL'
        ),
        sa.CheckConstraint(
            'matched_volume > 0', name='check_match_volume_positive'
        ),
        sa.CheckConstraint(
            'payout_amount >= 0', name='check_match_payout_non_negative'
        ),
    )
    op.create_index('ix_binary_matches_user_id', 'binary_matches', ['user_id'])
    op.create_index('ix_binary_matches_run_id', 'binary_matches', ['run_id'])
    op.create_index(
        'ix_binary_matches_created_at', 'binary_matches', ['created_at']
    )
    op.create_index(
        'idx_binary_matches_user_created',
        'binary_matches',
        ['user_id', 'created_at'],
    )
    op.create_index(
        'idx_binary_matches_credit_status', 'binary_matches', ['credit_status']
    )

    op.create_table(
        'level_commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('source_user_id', sa.Integer(), nullable=False),
        sa.Column('investment_event_id', sa.Integer(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('investment_amount', MONEY, nullable=False),
        sa.Column('percentage_applied', RATE, nullable=False),
        sa.Column('commission_amount', MONEY, nullable=False),
        *_credit_columns(),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['recipient_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['source_user_id'], ['users.id'], ondelete='CASCADE'
        ),
        sa.ForeignKeyConstraint(
            ['investment_event_id'],
            ['investment_events.id'],
            ondelete='SET NULL',
        ),
        sa.UniqueConstraint(
            'investment_event_id', 'level',
            name='uq_level_commission_event_level',
        ),
        sa.CheckConstraint(
            'level >= 1 AND level <= 30', name='check_commission_level_range'
        ),
        sa.CheckConstraint(
            'commission_amount > 0', name='check_commission_amount_positive'
        ),
    )
    op.create_index(
        'ix_level_commissions_recipient_id',
        'level_commissions',
        ['recipient_id'],
    )
    op.create_index(
        'ix_level_commissions_source_user_id',
        'level_commissions',
        ['source_user_id'],
    )
    op.create_index(
        'idx_level_commissions_recipient_level',
        'level_commissions',
        ['recipient_id', 'level'],
    )
    op.create_index(
        'idx_level_commissions_credit_status',
        'level_commissions',
        ['credit_status'],
    )

    op.create_table(
        'wallet_credits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('reason', sa.String(length=50), nullable=False),
        sa.Column('reference_id', sa.String(length=100), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('reference_id'),
        sa.CheckConstraint('amount > 0', name='check_wallet_credit_positive'),
    )
    op.create_index('ix_wallet_credits_user_id', 'wallet_credits', ['user_id'])


def downgrade() -> None:
    """Drop all compensation tables."""
    op.drop_table('wallet_credits')
    op.drop_table('level_commissions')
    op.drop_table('binary_matches')
    op.drop_table('binary_nodes')
    op.drop_table('investment_events')
    op.drop_table('matching_runs')
    op.drop_table('users')
