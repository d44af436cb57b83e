"""006: create bets table

UNIQUE (user_id, market_id, idempotency_key) backs client retries; rows
with a NULL key never collide.

Revision ID: 006
Revises: 005
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "006"
down_revision: Union[str, None] = "005"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE bets (
            id              VARCHAR(64)         PRIMARY KEY,
            user_id         VARCHAR(64)         NOT NULL,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets(id),
            option_id       VARCHAR(64)         REFERENCES options(id),
            numeric_value   DOUBLE PRECISION,
            amount          BIGINT              NOT NULL,
            fee             BIGINT              NOT NULL DEFAULT 0,
            shares          DOUBLE PRECISION    NOT NULL,
            idempotency_key VARCHAR(64),
            created_at      TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT uq_bets_idempotency UNIQUE (user_id, market_id, idempotency_key),
            CONSTRAINT ck_bets_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_bets_fee_range   CHECK (fee >= 0 AND fee <= amount),
            CONSTRAINT ck_bets_target      CHECK (option_id IS NOT NULL OR numeric_value IS NOT NULL)
        );
    """)
    op.execute("CREATE INDEX idx_bets_market ON bets (market_id, user_id);")
    op.execute("""
        CREATE TRIGGER trg_bets_append_only
            BEFORE UPDATE OR DELETE ON bets
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS bets CASCADE;")
