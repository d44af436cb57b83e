"""004: create accounts table

One row per (user, scope): scope_id is an arena id or 'GLOBAL'.
Points are whole integers and never negative.

Revision ID: 004
Revises: 003
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE accounts (
            id              UUID        PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id         VARCHAR(64) NOT NULL,
            scope_id        VARCHAR(64) NOT NULL,
            role            VARCHAR(10) NOT NULL DEFAULT 'MEMBER',
            points          BIGINT      NOT NULL DEFAULT 0,
            version         BIGINT      NOT NULL DEFAULT 0,
            created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_accounts_user_scope   UNIQUE (user_id, scope_id),
            CONSTRAINT ck_accounts_points_gte_0 CHECK (points >= 0),
            CONSTRAINT ck_accounts_role         CHECK (role IN ('MEMBER', 'ADMIN', 'SYSTEM'))
        );
    """)
    op.execute("CREATE INDEX idx_accounts_scope ON accounts (scope_id, user_id);")
    op.execute("""
        CREATE TRIGGER trg_accounts_updated_at
            BEFORE UPDATE ON accounts
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("COMMENT ON TABLE accounts IS 'Point balances per user and scope (arena or GLOBAL)';")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS accounts CASCADE;")
