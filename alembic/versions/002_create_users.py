"""002: create users table

Users are owned by the auth collaborator; the ledger only reads id and
email (transfer receiver lookup).

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE users (
            id              VARCHAR(64)     PRIMARY KEY,
            email           VARCHAR(254)    NOT NULL,
            display_name    VARCHAR(100),
            role            VARCHAR(10)     NOT NULL DEFAULT 'USER',
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_users_role CHECK (role IN ('USER', 'ADMIN'))
        );
    """)
    op.execute("CREATE UNIQUE INDEX uq_users_email_lower ON users (lower(email));")
    op.execute("""
        CREATE TRIGGER trg_users_updated_at
            BEFORE UPDATE ON users
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS users CASCADE;")
