"""Create ledger_roots for daily ledger digests.

Revision ID: 003
Revises: 002
Create Date: 2025-12-04
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '003'
down_revision = '002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'ledger_roots',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=36), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('root_hash', sa.String(length=64), nullable=False),
        sa.Column('event_count', sa.Integer(), nullable=False),
        sa.Column('first_event_id', sa.String(length=36), nullable=True),
        sa.Column('last_event_id', sa.String(length=36), nullable=True),
        sa.Column('first_seq', sa.BigInteger(), nullable=True),
        sa.Column('last_seq', sa.BigInteger(), nullable=True),
        sa.Column('computed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.ForeignKeyConstraint(['first_event_id'], ['audit_logs.id'], ),
        sa.ForeignKeyConstraint(['last_event_id'], ['audit_logs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'date', name='ledger_roots_org_date_unique')
    )
    op.create_index('ix_ledger_roots_org_date', 'ledger_roots', ['organization_id', 'date'])


def downgrade() -> None:
    op.drop_index('ix_ledger_roots_org_date', table_name='ledger_roots')
    op.drop_table('ledger_roots')
