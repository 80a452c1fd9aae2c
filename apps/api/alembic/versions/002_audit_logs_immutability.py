"""Reject UPDATE and DELETE on audit_logs (PostgreSQL only).

Revision ID: 002
Revises: 001
Create Date: 2025-12-03
"""
from alembic import op


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    if op.get_bind().dialect.name != 'postgresql':
        return

    op.execute("""
        CREATE OR REPLACE FUNCTION audit_logs_reject_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
          RAISE EXCEPTION 'audit_logs is append-only: % rejected', TG_OP;
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER audit_logs_immutability_trigger
          BEFORE UPDATE OR DELETE ON audit_logs
          FOR EACH ROW
          EXECUTE FUNCTION audit_logs_reject_mutation();
    """)


def downgrade() -> None:
    if op.get_bind().dialect.name != 'postgresql':
        return

    op.execute("DROP TRIGGER IF EXISTS audit_logs_immutability_trigger ON audit_logs")
    op.execute("DROP FUNCTION IF EXISTS audit_logs_reject_mutation()")
