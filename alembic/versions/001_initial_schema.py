"""Initial schema: user wallets and swap transactions.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Exact decimal text on SQLite, which has no fixed-point type
AMOUNT = sa.Numeric(36, 18).with_variant(sa.String(64), 'sqlite')


def upgrade() -> None:
    # User wallets table (owned by the user-management service)
    op.create_table(
        'user_wallets',
        sa.Column('wallet_address', sa.String(255), nullable=False),
        sa.Column('cardano_address', sa.String(255), nullable=False),
        sa.Column('cardano_key_iv', sa.String(64), nullable=False),
        sa.Column('cardano_key_data', sa.Text(), nullable=False),
        sa.Column('cardano_key_tag', sa.String(64), nullable=False),
        sa.Column('solana_address', sa.String(255), nullable=False),
        sa.Column('solana_key_iv', sa.String(64), nullable=False),
        sa.Column('solana_key_data', sa.Text(), nullable=False),
        sa.Column('solana_key_tag', sa.String(64), nullable=False),
        sa.Column('venue_account_id', sa.String(255), nullable=True),
        sa.Column('venue_key_iv', sa.String(64), nullable=True),
        sa.Column('venue_key_data', sa.Text(), nullable=True),
        sa.Column('venue_key_tag', sa.String(64), nullable=True),
        sa.Column('nonce', sa.String(255), nullable=True),
        sa.Column('refresh_token_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('wallet_address')
    )

    # Transactions table
    op.create_table(
        'transactions',
        sa.Column('id', sa.String(32), nullable=False),
        sa.Column('direction', sa.String(16), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('exchange_id', sa.String(128), nullable=True),
        sa.Column('flow', sa.String(20), nullable=True),
        sa.Column('exchange_type', sa.String(20), nullable=True),
        sa.Column('from_currency', sa.String(20), nullable=False),
        sa.Column('to_currency', sa.String(20), nullable=False),
        sa.Column('from_network', sa.String(20), nullable=False),
        sa.Column('to_network', sa.String(20), nullable=False),
        sa.Column('from_amount', AMOUNT, nullable=False),
        sa.Column('to_amount', AMOUNT, nullable=True),
        sa.Column('payin_address', sa.String(255), nullable=True),
        sa.Column('payout_address', sa.String(255), nullable=True),
        sa.Column('user_address', sa.String(255), nullable=False),
        sa.Column('funding_hash', sa.String(255), nullable=True),
        sa.Column('venue_tx_id', sa.String(255), nullable=True),
        sa.Column('payout_hash', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['user_address'], ['user_wallets.wallet_address']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_transactions_status', 'transactions', ['status'])
    op.create_index('ix_transactions_exchange_id', 'transactions', ['exchange_id'])
    op.create_index('ix_transactions_user_address', 'transactions', ['user_address'])


def downgrade() -> None:
    op.drop_index('ix_transactions_user_address', table_name='transactions')
    op.drop_index('ix_transactions_exchange_id', table_name='transactions')
    op.drop_index('ix_transactions_status', table_name='transactions')
    op.drop_table('transactions')
    op.drop_table('user_wallets')
