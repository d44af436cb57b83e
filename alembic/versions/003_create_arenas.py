"""003: create arenas, arena_settings and arena_cycles

Revision ID: 003
Revises: 002
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE arenas (
            id              VARCHAR(64)     PRIMARY KEY,
            name            VARCHAR(200)    NOT NULL,
            creator_id      VARCHAR(64)     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW(),
            updated_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_arenas_updated_at
            BEFORE UPDATE ON arenas
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)

    op.execute("""
        CREATE TABLE arena_settings (
            arena_id            VARCHAR(64)         PRIMARY KEY REFERENCES arenas(id),
            schema_version      SMALLINT            NOT NULL DEFAULT 1,
            trading_fee_percent DOUBLE PRECISION    NOT NULL DEFAULT 0,
            seed_liquidity      INTEGER             NOT NULL DEFAULT 100,
            allow_transfers     BOOLEAN             NOT NULL DEFAULT TRUE,
            transfer_limit      INTEGER,
            monthly_allocation  INTEGER             NOT NULL DEFAULT 1000,
            allow_carryover     BOOLEAN             NOT NULL DEFAULT FALSE,
            reset_frequency     VARCHAR(10)         NOT NULL DEFAULT 'MONTHLY',
            custom_reset_days   INTEGER,
            winner_rule         VARCHAR(20)         NOT NULL DEFAULT 'HIGHEST_BALANCE',
            limit_multiple_bets BOOLEAN             NOT NULL DEFAULT FALSE,
            multi_bet_threshold INTEGER             NOT NULL DEFAULT 3,
            next_reset_at       TIMESTAMPTZ,
            created_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            updated_at          TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_arena_settings_version    CHECK (schema_version = 1),
            CONSTRAINT ck_arena_settings_fee        CHECK (trading_fee_percent BETWEEN 0 AND 100),
            CONSTRAINT ck_arena_settings_seed       CHECK (seed_liquidity > 0),
            CONSTRAINT ck_arena_settings_limit      CHECK (transfer_limit IS NULL OR transfer_limit > 0),
            CONSTRAINT ck_arena_settings_allocation CHECK (monthly_allocation >= 0),
            CONSTRAINT ck_arena_settings_frequency  CHECK (
                reset_frequency IN ('WEEKLY', 'MONTHLY', 'CUSTOM', 'MANUAL')
            ),
            CONSTRAINT ck_arena_settings_custom     CHECK (
                reset_frequency <> 'CUSTOM' OR custom_reset_days > 0
            ),
            CONSTRAINT ck_arena_settings_winner     CHECK (winner_rule IN ('HIGHEST_BALANCE'))
        );
    """)
    op.execute("""
        CREATE TRIGGER trg_arena_settings_updated_at
            BEFORE UPDATE ON arena_settings
            FOR EACH ROW EXECUTE FUNCTION fn_update_timestamp();
    """)
    op.execute("""
        CREATE INDEX idx_arena_settings_next_reset
            ON arena_settings (next_reset_at)
            WHERE next_reset_at IS NOT NULL;
    """)

    op.execute("""
        CREATE TABLE arena_cycles (
            id              BIGSERIAL       PRIMARY KEY,
            arena_id        VARCHAR(64)     NOT NULL REFERENCES arenas(id),
            winner_user_id  VARCHAR(64),
            winner_points   BIGINT          NOT NULL DEFAULT 0,
            member_count    INTEGER         NOT NULL DEFAULT 0,
            reset_at        TIMESTAMPTZ     NOT NULL,
            created_at      TIMESTAMPTZ     NOT NULL DEFAULT NOW()
        );
    """)
    op.execute("CREATE INDEX idx_arena_cycles_arena ON arena_cycles (arena_id, reset_at DESC);")


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS arena_cycles CASCADE;")
    op.execute("DROP TABLE IF EXISTS arena_settings CASCADE;")
    op.execute("DROP TABLE IF EXISTS arenas CASCADE;")
