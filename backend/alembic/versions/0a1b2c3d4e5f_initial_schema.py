"""initial schema

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0a1b2c3d4e5f'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

AMOUNT = sa.Numeric(precision=20, scale=8)

admin_role = sa.Enum('superadmin', 'admin', 'subadmin', name='adminrole')
mining_status = sa.Enum('PENDING', 'ACTIVE', 'REJECTED', 'ABORTED', 'COMPLETED', name='miningstatus')
deposit_status = sa.Enum('PENDING', 'CONFIRMED', 'REJECTED', name='depositstatus')
withdraw_status = sa.Enum('PENDING', 'CONFIRMED', 'FROZEN', name='withdrawstatus')
trade_side = sa.Enum('BUY', 'SELL', name='tradeside')
trade_result = sa.Enum('PENDING', 'WIN', 'LOSE', name='traderesult')
notification_status = sa.Enum('PENDING', 'READ', name='notificationstatus')


def _timestamps(updated: bool = True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()))
    return cols


def upgrade() -> None:
    op.create_table(
        'admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_address', sa.String(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('role', admin_role, nullable=False),
        sa.Column('managed_by', sa.Integer(), sa.ForeignKey('admins.id'), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_admins_wallet_address', 'admins', ['wallet_address'], unique=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('wallet_address', sa.String(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('managed_by', sa.Integer(), sa.ForeignKey('admins.id'), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_users_wallet_address', 'users', ['wallet_address'], unique=True)
    op.create_index('ix_users_managed_by', 'users', ['managed_by'])

    op.create_table(
        'balances',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('balance', AMOUNT, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('balance >= 0', name='ck_balance_non_negative'),
    )

    op.create_table(
        'holdings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('asset', sa.String(length=20), nullable=False),
        sa.Column('balance', AMOUNT, nullable=False, server_default='0'),
        sa.UniqueConstraint('user_id', 'asset', name='uq_holding_user_asset'),
        sa.CheckConstraint('balance >= 0', name='ck_holding_non_negative'),
    )
    op.create_index('ix_holdings_user_id', 'holdings', ['user_id'])

    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id'), nullable=True),
        sa.Column('asset', sa.String(length=20), nullable=False),
        sa.Column('amount', AMOUNT, nullable=False),
        sa.Column('balance_after', AMOUNT, nullable=True),
        sa.Column('kind', sa.String(length=30), nullable=False),
        sa.Column('note', sa.String(length=500), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('ix_ledger_entries_user_id', 'ledger_entries', ['user_id'])

    op.create_table(
        'mining_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('plan_id', sa.String(length=20), nullable=False),
        sa.Column('amount', AMOUNT, nullable=False),
        sa.Column('status', mining_status, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('activated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('note', sa.String(length=500), nullable=True),
    )
    op.create_index('ix_mining_orders_user_id', 'mining_orders', ['user_id'])
    op.create_index('ix_mining_orders_status', 'mining_orders', ['status'])

    for table, status_type in (('deposit_requests', deposit_status), ('withdraw_requests', withdraw_status)):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id'), nullable=True),
            sa.Column('asset', sa.String(length=20), nullable=False, server_default='USDT'),
            sa.Column('amount', AMOUNT, nullable=False),
            sa.Column('wallet_address', sa.String(), nullable=False),
            sa.Column('status', status_type, nullable=False),
            sa.Column('note', sa.String(length=500), nullable=True),
            *_timestamps(),
        )
        op.create_index(f'ix_{table}_user_id', table, ['user_id'])
        op.create_index(f'ix_{table}_admin_id', table, ['admin_id'])
        op.create_index(f'ix_{table}_status', table, ['status'])

    op.create_table(
        'admin_deposit_addresses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id'), nullable=False),
        sa.Column('asset', sa.String(length=20), nullable=False),
        sa.Column('address', sa.String(), nullable=False, server_default=''),
        sa.UniqueConstraint('admin_id', 'asset', name='uq_deposit_address_admin_asset'),
    )

    op.create_table(
        'user_access_controls',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('trade_restricted', sa.Boolean(), nullable=True),
        sa.Column('mining_restricted', sa.Boolean(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'trade_permissions',
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), primary_key=True),
        sa.Column('buy_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('sell_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'trade_orders',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('side', trade_side, nullable=False),
        sa.Column('stake', AMOUNT, nullable=False),
        sa.Column('pnl', AMOUNT, nullable=False, server_default='0'),
        sa.Column('result', trade_result, nullable=False),
        *_timestamps(updated=False),
    )
    op.create_index('ix_trade_orders_user_id', 'trade_orders', ['user_id'])

    op.create_table(
        'user_notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('admin_id', sa.Integer(), sa.ForeignKey('admins.id'), nullable=True),
        sa.Column('subject', sa.String(length=180), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('status', notification_status, nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_user_notifications_user_id', 'user_notifications', ['user_id'])


def downgrade() -> None:
    for table in (
        'user_notifications', 'trade_orders', 'trade_permissions', 'user_access_controls',
        'admin_deposit_addresses', 'withdraw_requests', 'deposit_requests', 'mining_orders',
        'ledger_entries', 'holdings', 'balances', 'users', 'admins',
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in (
        notification_status, trade_result, trade_side, withdraw_status,
        deposit_status, mining_status, admin_role,
    ):
        enum_type.drop(bind, checkfirst=True)
