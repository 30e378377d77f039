"""Initial migration - create churches, stripe_connect_accounts, payout_summaries and reconciliation_run_locks tables

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


def upgrade() -> None:
    # Create churches table
    op.create_table(
        'churches',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Create stripe_connect_accounts table
    op.create_table(
        'stripe_connect_accounts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False, unique=True),
        sa.Column('stripe_account_id', sa.String(255), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    # Create payout_summaries table
    op.create_table(
        'payout_summaries',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('stripe_payout_id', sa.String(255), nullable=False),
        sa.Column('church_id', sa.String(36), sa.ForeignKey('churches.id'), nullable=False),
        sa.Column('payout_date', sa.DateTime(), nullable=False),
        sa.Column('arrival_date', sa.DateTime(), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='usd'),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('transaction_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('gross_volume', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_fees', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_refunds', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_disputes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('net_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reconciled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # Create indexes for payout_summaries
    op.create_index('ix_payout_summaries_stripe_payout_id', 'payout_summaries', ['stripe_payout_id'], unique=True)
    op.create_index('ix_payout_summaries_church_id', 'payout_summaries', ['church_id'])
    op.create_index('ix_payout_summaries_status', 'payout_summaries', ['status'])
    op.create_index('ix_payout_summaries_payout_date', 'payout_summaries', ['payout_date'])
    op.create_index('ix_payout_summaries_church_id_payout_date', 'payout_summaries', ['church_id', 'payout_date'])

    # Create reconciliation_run_locks table
    op.create_table(
        'reconciliation_run_locks',
        sa.Column('name', sa.String(100), primary_key=True),
        sa.Column('owner', sa.String(36), nullable=False),
        sa.Column('acquired_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    # Drop indexes
    op.drop_index('ix_payout_summaries_church_id_payout_date', table_name='payout_summaries')
    op.drop_index('ix_payout_summaries_payout_date', table_name='payout_summaries')
    op.drop_index('ix_payout_summaries_status', table_name='payout_summaries')
    op.drop_index('ix_payout_summaries_church_id', table_name='payout_summaries')
    op.drop_index('ix_payout_summaries_stripe_payout_id', table_name='payout_summaries')

    # Drop tables
    op.drop_table('reconciliation_run_locks')
    op.drop_table('payout_summaries')
    op.drop_table('stripe_connect_accounts')
    op.drop_table('churches')
