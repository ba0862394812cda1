"""Create payments and order_timeline tables

Revision ID: 20261019_000002
Revises: 20261019_000001
Create Date: 2026-10-19

payments holds invoices and their single PENDING -> COMPLETED | FAILED
transition; order_timeline is the append-only audit log (completion proofs
live in its details column).
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000002'
down_revision: Union[str, None] = '20261019_000001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the payments and order_timeline tables."""
    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=10), nullable=False, server_default='UAH'),
        sa.Column(
            'provider',
            sa.Enum('LIQPAY', 'STRIPE', 'WEB3', name='payment_provider'),
            nullable=False,
            server_default='LIQPAY'
        ),
        sa.Column(
            'method',
            sa.Enum('CARD', 'BANK_TRANSFER', 'CRYPTO', 'CASH', name='payment_method'),
            nullable=False,
            server_default='CARD'
        ),
        sa.Column(
            'purpose',
            sa.Enum('ADVANCE', 'REPAIR', 'INSURANCE', name='payment_purpose'),
            nullable=False,
            server_default='REPAIR'
        ),
        sa.Column('description', sa.String(length=200), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PENDING', 'COMPLETED', 'FAILED', name='payment_status'),
            nullable=False,
            server_default='PENDING'
        ),
        sa.Column('fingerprint', sa.String(length=64), nullable=True),
        sa.Column('provider_ref', sa.String(length=255), nullable=True),
        sa.Column('invoice_url', sa.String(length=500), nullable=True),
        sa.Column('tx_hash', sa.String(length=66), nullable=True),
        sa.Column('receipt_url', sa.String(length=500), nullable=True),
        sa.Column('receipt_hash', sa.String(length=64), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_payments_order_id',
            ondelete='NO ACTION'
        ),
    )

    op.create_index('ix_payments_order_id', 'payments', ['order_id'])
    op.create_index('ix_payments_status', 'payments', ['status'])
    op.create_index('ix_payments_fingerprint', 'payments', ['fingerprint'])
    op.create_index('ix_payments_tx_hash', 'payments', ['tx_hash'])

    op.create_table(
        'order_timeline',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('event', sa.String(length=255), nullable=False),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(
            ['order_id'],
            ['orders.id'],
            name='fk_order_timeline_order_id',
            ondelete='CASCADE'
        ),
    )

    op.create_index('ix_order_timeline_order_id', 'order_timeline', ['order_id'])
    op.create_index('ix_order_timeline_event', 'order_timeline', ['event'])


def downgrade() -> None:
    """Drop the order_timeline and payments tables."""
    op.drop_index('ix_order_timeline_event', table_name='order_timeline')
    op.drop_index('ix_order_timeline_order_id', table_name='order_timeline')
    op.drop_table('order_timeline')

    op.drop_index('ix_payments_tx_hash', table_name='payments')
    op.drop_index('ix_payments_fingerprint', table_name='payments')
    op.drop_index('ix_payments_status', table_name='payments')
    op.drop_index('ix_payments_order_id', table_name='payments')
    op.drop_table('payments')
