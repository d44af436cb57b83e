"""005: create markets and options tables

Revision ID: 005
Revises: 004
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "005"
down_revision: Union[str, None] = "004"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE markets (
            id                  VARCHAR(64)         PRIMARY KEY,
            arena_id            VARCHAR(64)         NOT NULL REFERENCES arenas(id),
            creator_id          VARCHAR(64)         NOT NULL,
            question            VARCHAR(500)        NOT NULL,
            type                VARCHAR(20)         NOT NULL,
            status              VARCHAR(20)         NOT NULL DEFAULT 'OPEN',
            resolution_date     TIMESTAMPTZ         NOT NULL,
            min_bet             INTEGER,
            max_bet             INTEGER,
            winning_option_id   VARCHAR(64),
            winning_value       DOUBLE PRECISION,
            resolved_at         TIMESTAMPTZ,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_markets_type CHECK (
                type IN ('BINARY', 'MULTIPLE_CHOICE', 'NUMERIC_RANGE')
            ),
            CONSTRAINT ck_markets_status CHECK (
                status IN ('OPEN', 'PENDING_RESOLUTION', 'RESOLVED', 'CANCELLED')
            ),
            CONSTRAINT ck_markets_bet_bounds CHECK (
                (min_bet IS NULL OR min_bet > 0)
                AND (max_bet IS NULL OR max_bet > 0)
                AND (min_bet IS NULL OR max_bet IS NULL OR min_bet <= max_bet)
            )
        );
    """)
    op.execute("CREATE INDEX idx_markets_arena_status ON markets (arena_id, status);")
    op.execute("""
        CREATE TRIGGER trg_markets_updated_at
            BEFORE UPDATE ON markets
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE options (
            id              VARCHAR(64)         PRIMARY KEY,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets(id),
            text            VARCHAR(200)        NOT NULL,
            liquidity       DOUBLE PRECISION    NOT NULL,
            position        INTEGER             NOT NULL DEFAULT 0,
            range_low       DOUBLE PRECISION,
            range_high      DOUBLE PRECISION,
            CONSTRAINT ck_options_liquidity_gt_0 CHECK (liquidity > 0),
            CONSTRAINT ck_options_range CHECK (
                (range_low IS NULL AND range_high IS NULL)
                OR (range_low IS NOT NULL AND range_high IS NOT NULL AND range_low < range_high)
            )
        );
    """)
    op.execute("CREATE INDEX idx_options_market ON options (market_id);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS options CASCADE;")
    op.execute("DROP TABLE IF EXISTS markets CASCADE;")
