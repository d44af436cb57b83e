"""008: create price_history table

Revision ID: 008
Revises: 007
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op

revision: str = "008"
down_revision: Union[str, None] = "007"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("""
        CREATE TABLE price_history (
            id              BIGSERIAL           PRIMARY KEY,
            market_id       VARCHAR(64)         NOT NULL REFERENCES markets(id),
            option_id       VARCHAR(64)         NOT NULL REFERENCES options(id),
            probability     DOUBLE PRECISION    NOT NULL,
            recorded_at     TIMESTAMPTZ         NOT NULL DEFAULT NOW(),
            CONSTRAINT ck_price_history_probability CHECK (probability >= 0 AND probability <= 1)
        );
    """)
    op.execute(
        "CREATE INDEX idx_price_history_market ON price_history (market_id, recorded_at);"
    )


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS price_history CASCADE;")
