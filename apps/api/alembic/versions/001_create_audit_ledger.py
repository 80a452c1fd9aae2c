"""Create organizations and the audit_logs ledger.

Revision ID: 001
Revises:
Create Date: 2025-12-03
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('organization_id', sa.String(length=36), nullable=False),
        sa.Column('ledger_seq', sa.BigInteger(), nullable=False),
        sa.Column('actor_id', sa.String(length=36), nullable=True),
        sa.Column('event_name', sa.String(length=255), nullable=False),
        sa.Column('target_type', sa.String(length=100), nullable=False),
        sa.Column('target_id', sa.String(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('prev_hash', sa.String(length=64), nullable=True),
        sa.Column('hash', sa.String(length=64), nullable=False),
        sa.Column('severity', sa.String(length=20), nullable=False),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('outcome', sa.String(length=20), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('actor_name', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('organization_id', 'ledger_seq', name='audit_logs_org_seq_unique')
    )
    op.create_index('ix_audit_logs_organization_id', 'audit_logs', ['organization_id'])
    op.create_index('ix_audit_logs_event_name', 'audit_logs', ['event_name'])
    op.create_index('ix_audit_logs_org_hash', 'audit_logs', ['organization_id', 'hash'])
    op.create_index('ix_audit_logs_org_created_at', 'audit_logs', ['organization_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_audit_logs_org_created_at', table_name='audit_logs')
    op.drop_index('ix_audit_logs_org_hash', table_name='audit_logs')
    op.drop_index('ix_audit_logs_event_name', table_name='audit_logs')
    op.drop_index('ix_audit_logs_organization_id', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('organizations')
