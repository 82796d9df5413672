"""Create rewards schema.

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260101_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.DECIMAL(18, 8)
PV = sa.DECIMAL(18, 4)
PERCENT = sa.DECIMAL(7, 4)


def _timestamp(name: str = 'created_at') -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text('CURRENT_TIMESTAMP'),
    )


def upgrade() -> None:
    """Create users, catalog, rebate, binary plan and rank tables."""

    op.create_table(
        'ranks',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('min_direct_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_group_volume', MONEY, nullable=False, server_default='0'),
        sa.Column('min_personal_sales', MONEY, nullable=False, server_default='0'),
        sa.Column('min_qualified_downline', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qualified_rank_id', sa.Integer(), nullable=True),
        sa.Column('benefits', sa.Text(), nullable=True),
        sa.CheckConstraint('level >= 1', name='ck_ranks_rank_level_positive'),
        sa.CheckConstraint('min_direct_referrals >= 0', name='ck_ranks_rank_min_direct_referrals_non_negative'),
        sa.CheckConstraint('min_group_volume >= 0', name='ck_ranks_rank_min_group_volume_non_negative'),
        sa.CheckConstraint('min_qualified_downline >= 0', name='ck_ranks_rank_min_qualified_downline_non_negative'),
        sa.ForeignKeyConstraint(['qualified_rank_id'], ['ranks.id'], name='fk_ranks_qualified_rank_id_ranks', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_ranks'),
    )
    op.create_index('ix_ranks_level', 'ranks', ['level'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('upline_id', sa.Integer(), nullable=True),
        sa.Column('rank_id', sa.Integer(), nullable=True),
        sa.Column('wallet_balance', MONEY, nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('wallet_balance >= 0', name='ck_users_user_wallet_balance_non_negative'),
        sa.CheckConstraint('upline_id IS NULL OR upline_id <> id', name='ck_users_user_not_own_upline'),
        sa.ForeignKeyConstraint(['upline_id'], ['users.id'], name='fk_users_upline_id_users', ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['rank_id'], ['ranks.id'], name='fk_users_rank_id_ranks', ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_index('ix_users_upline_id', 'users', ['upline_id'])
    op.create_index('ix_users_rank_id', 'users', ['rank_id'])
    op.create_index('ix_users_created_at', 'users', ['created_at'])
    op.create_index('idx_users_upline_created', 'users', ['upline_id', 'created_at', 'id'])

    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', MONEY, nullable=False, server_default='0'),
        sa.Column('pv', PV, nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id', name='pk_products'),
    )

    op.create_table(
        'purchases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('total_pv', PV, nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        _timestamp('created_at'),
        sa.CheckConstraint('total_amount >= 0', name='ck_purchases_purchase_amount_non_negative'),
        sa.CheckConstraint('total_pv >= 0', name='ck_purchases_purchase_pv_non_negative'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_purchases_user_id_users', ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_purchases_product_id_products', ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('id', name='pk_purchases'),
    )
    op.create_index('ix_purchases_user_id', 'purchases', ['user_id'])
    op.create_index('ix_purchases_product_id', 'purchases', ['product_id'])
    op.create_index('ix_purchases_status', 'purchases', ['status'])
    op.create_index('idx_purchases_user_status_created', 'purchases', ['user_id', 'status', 'created_at'])

    op.create_table(
        'rebate_configs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('reward_type', sa.String(length=20), nullable=False, server_default='percentage'),
        sa.Column('percentage', PERCENT, nullable=True),
        sa.Column('fixed_amount', MONEY, nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('level >= 1', name='ck_rebate_configs_rebate_config_level_positive'),
        sa.CheckConstraint(
            'percentage IS NULL OR (percentage >= 0 AND percentage <= 100)',
            name='ck_rebate_configs_rebate_config_percentage_range',
        ),
        sa.CheckConstraint(
            'fixed_amount IS NULL OR fixed_amount >= 0',
            name='ck_rebate_configs_rebate_config_fixed_non_negative',
        ),
        sa.CheckConstraint(
            "(reward_type = 'percentage' AND percentage IS NOT NULL AND fixed_amount IS NULL)"
            " OR (reward_type = 'fixed' AND fixed_amount IS NOT NULL AND percentage IS NULL)",
            name='ck_rebate_configs_rebate_config_reward_exclusive',
        ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], name='fk_rebate_configs_product_id_products', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_rebate_configs'),
        sa.UniqueConstraint('product_id', 'level', name='uq_rebate_config_product_level'),
    )
    op.create_index('ix_rebate_configs_product_id', 'rebate_configs', ['product_id'])

    op.create_table(
        'wallet_transactions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False, server_default='rebate'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='completed'),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id', name='pk_wallet_transactions'),
    )
    op.create_index('ix_wallet_transactions_user_id', 'wallet_transactions', ['user_id'])
    op.create_index('ix_wallet_transactions_type', 'wallet_transactions', ['type'])

    op.create_table(
        'rebates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('generator_id', sa.Integer(), nullable=False),
        sa.Column('receiver_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('reward_type', sa.String(length=20), nullable=False, server_default='percentage'),
        sa.Column('percentage', PERCENT, nullable=True),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending'),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('wallet_transaction_id', sa.Integer(), nullable=True),
        _timestamp('created_at'),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount >= 0', name='ck_rebates_rebate_amount_non_negative'),
        sa.CheckConstraint('level >= 1', name='ck_rebates_rebate_level_positive'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], name='fk_rebates_purchase_id_purchases', ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(
            ['wallet_transaction_id'], ['wallet_transactions.id'],
            name='fk_rebates_wallet_transaction_id_wallet_transactions', ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_rebates'),
        sa.UniqueConstraint('purchase_id', 'level', name='uq_rebate_purchase_level'),
    )
    op.create_index('ix_rebates_purchase_id', 'rebates', ['purchase_id'])
    op.create_index('ix_rebates_generator_id', 'rebates', ['generator_id'])
    op.create_index('ix_rebates_receiver_id', 'rebates', ['receiver_id'])
    op.create_index('ix_rebates_status', 'rebates', ['status'])
    op.create_index('idx_rebates_status_id', 'rebates', ['status', 'id'])

    op.create_table(
        'binary_placements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('position', sa.String(length=10), nullable=True),
        _timestamp('created_at'),
        sa.CheckConstraint("position IN ('left', 'right')", name='ck_binary_placements_binary_position_valid'),
        sa.CheckConstraint(
            'parent_id IS NULL OR parent_id <> user_id',
            name='ck_binary_placements_binary_not_own_parent',
        ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_binary_placements_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id'], name='fk_binary_placements_parent_id_users', ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id', name='pk_binary_placements'),
        sa.UniqueConstraint('user_id', name='uq_binary_placements_user_id'),
        sa.UniqueConstraint('parent_id', 'position', name='uq_binary_parent_position'),
    )
    op.create_index('ix_binary_placements_parent_id', 'binary_placements', ['parent_id'])

    op.create_table(
        'commission_rates',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=30), nullable=False),
        sa.Column('level', sa.Integer(), nullable=True),
        sa.Column('reward_type', sa.String(length=20), nullable=False, server_default='percentage'),
        sa.Column('percentage', PERCENT, nullable=True),
        sa.Column('fixed_amount', MONEY, nullable=True),
        sa.Column('threshold_pv', PV, nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at'),
        sa.CheckConstraint(
            'percentage IS NULL OR (percentage >= 0 AND percentage <= 100)',
            name='ck_commission_rates_commission_rate_percentage_range',
        ),
        sa.CheckConstraint(
            'fixed_amount IS NULL OR fixed_amount >= 0',
            name='ck_commission_rates_commission_rate_fixed_non_negative',
        ),
        sa.CheckConstraint(
            'threshold_pv IS NULL OR threshold_pv > 0',
            name='ck_commission_rates_commission_rate_threshold_positive',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_commission_rates'),
    )
    op.create_index('ix_commission_rates_type', 'commission_rates', ['type'])

    op.create_table(
        'monthly_performance',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('personal_pv', PV, nullable=False, server_default='0'),
        sa.Column('left_leg_pv', PV, nullable=False, server_default='0'),
        sa.Column('right_leg_pv', PV, nullable=False, server_default='0'),
        sa.Column('total_group_pv', PV, nullable=False, server_default='0'),
        sa.Column('direct_referral_bonus', MONEY, nullable=False, server_default='0'),
        sa.Column('level_commissions', MONEY, nullable=False, server_default='0'),
        sa.Column('group_volume_bonus', MONEY, nullable=False, server_default='0'),
        sa.Column('total_earnings', MONEY, nullable=False, server_default='0'),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.CheckConstraint('month >= 1 AND month <= 12', name='ck_monthly_performance_monthly_performance_month_range'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_monthly_performance_user_id_users', ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name='pk_monthly_performance'),
        sa.UniqueConstraint('user_id', 'year', 'month', name='uq_monthly_performance_period'),
    )
    op.create_index('ix_monthly_performance_user_id', 'monthly_performance', ['user_id'])
    op.create_index(
        'idx_monthly_performance_period_earnings',
        'monthly_performance',
        ['year', 'month', 'total_earnings'],
    )

    op.create_table(
        'rank_advancements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('previous_rank_id', sa.Integer(), nullable=True),
        sa.Column('new_rank_id', sa.Integer(), nullable=False),
        sa.Column('direct_referrals', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('group_volume', MONEY, nullable=False, server_default='0'),
        sa.Column('personal_sales', MONEY, nullable=False, server_default='0'),
        sa.Column('qualified_downline', sa.Integer(), nullable=False, server_default='0'),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_rank_advancements_user_id_users', ondelete='CASCADE'),
        sa.ForeignKeyConstraint(
            ['previous_rank_id'], ['ranks.id'],
            name='fk_rank_advancements_previous_rank_id_ranks', ondelete='RESTRICT',
        ),
        sa.ForeignKeyConstraint(
            ['new_rank_id'], ['ranks.id'],
            name='fk_rank_advancements_new_rank_id_ranks', ondelete='RESTRICT',
        ),
        sa.PrimaryKeyConstraint('id', name='pk_rank_advancements'),
    )
    op.create_index('ix_rank_advancements_user_id', 'rank_advancements', ['user_id'])
    op.create_index('ix_rank_advancements_created_at', 'rank_advancements', ['created_at'])


def downgrade() -> None:
    """Drop rewards schema."""
    op.drop_table('rank_advancements')
    op.drop_table('monthly_performance')
    op.drop_table('commission_rates')
    op.drop_table('binary_placements')
    op.drop_table('rebates')
    op.drop_table('wallet_transactions')
    op.drop_table('rebate_configs')
    op.drop_table('purchases')
    op.drop_table('products')
    op.drop_table('users')
    op.drop_table('ranks')
