"""007: create transactions table (append-only ledger)

Amounts are always positive; from_user_id is the debited account owner and
to_user_id the credited one, both within arena_id (NULL arena = GLOBAL scope).

Revision ID: 007
Revises: 006
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "007"
down_revision: Union[str, None] = "006"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE transactions (
            id              BIGSERIAL       PRIMARY KEY,
            type            VARCHAR(20)     NOT NULL,
            amount          BIGINT          NOT NULL,
            from_user_id    VARCHAR(64),
            to_user_id      VARCHAR(64),
            market_id       VARCHAR(64)     REFERENCES markets(id),
            arena_id        VARCHAR(64)     REFERENCES arenas(id),
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_transactions_type CHECK (
                type IN (
                    'BET_PLACED', 'WIN_PAYOUT', 'USER_TRANSFER', 'MONTHLY_RESET',
                    'TRADING_FEE', 'SETTLEMENT_DUST', 'BET_REFUND', 'MEMBERSHIP_GRANT'
                )
            ),
            CONSTRAINT ck_transactions_amount_gt_0 CHECK (amount > 0),
            CONSTRAINT ck_transactions_party CHECK (
                from_user_id IS NOT NULL OR to_user_id IS NOT NULL
            )
        );
    """)
    op.execute("CREATE INDEX idx_transactions_from ON transactions (from_user_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_to ON transactions (to_user_id, id DESC);")
    op.execute("CREATE INDEX idx_transactions_market ON transactions (market_id);")
    op.execute("CREATE INDEX idx_transactions_arena ON transactions (arena_id);")
    op.execute("""
        CREATE TRIGGER trg_transactions_append_only
            BEFORE UPDATE OR DELETE ON transactions
            FOR EACH ROW EXECUTE FUNCTION fn_reject_mutation();
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS transactions CASCADE;")
