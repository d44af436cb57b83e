"""ArenaRepository: read side of arena policy plus reset bookkeeping.

All queries use raw text() SQL (no ORM). Settings rows are converted into
the validated ArenaSettings model here; a malformed row raises InternalError.
"""

from datetime import datetime

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_arena.domain.models import Arena, ArenaSettings, CycleRecord
from src.pa_common.errors import InternalError

# ---------------------------------------------------------------------------
# SQL
# ---------------------------------------------------------------------------

_GET_ARENA_SQL = text("""
    SELECT id, name, creator_id, created_at
    FROM arenas
    WHERE id = :arena_id
""")

_SETTINGS_COLUMNS = """
    arena_id, schema_version, trading_fee_percent, seed_liquidity,
    allow_transfers, transfer_limit, monthly_allocation, allow_carryover,
    reset_frequency, custom_reset_days, winner_rule,
    limit_multiple_bets, multi_bet_threshold, next_reset_at
"""

_GET_SETTINGS_SQL = text(f"""
    SELECT {_SETTINGS_COLUMNS}
    FROM arena_settings
    WHERE arena_id = :arena_id
""")

_LOCK_SETTINGS_SQL = text(f"""
    SELECT {_SETTINGS_COLUMNS}
    FROM arena_settings
    WHERE arena_id = :arena_id
    FOR UPDATE
""")

_LIST_DUE_SQL = text("""
    SELECT arena_id
    FROM arena_settings
    WHERE next_reset_at IS NOT NULL AND next_reset_at <= :now
    ORDER BY next_reset_at, arena_id
""")

_SET_NEXT_RESET_SQL = text("""
    UPDATE arena_settings
    SET next_reset_at = :next_reset_at,
        updated_at = NOW()
    WHERE arena_id = :arena_id
""")

_INSERT_CYCLE_SQL = text("""
    INSERT INTO arena_cycles
        (arena_id, winner_user_id, winner_points, member_count, reset_at)
    VALUES
        (:arena_id, :winner_user_id, :winner_points, :member_count, :reset_at)
""")

_FIND_USER_BY_EMAIL_SQL = text("""
    SELECT id FROM users WHERE lower(email) = lower(:email)
""")


def _row_to_settings(row: object) -> ArenaSettings:
    try:
        return ArenaSettings.model_validate(row._mapping)  # type: ignore[attr-defined]
    except PydanticValidationError as exc:
        arena_id = row._mapping.get("arena_id")  # type: ignore[attr-defined]
        raise InternalError(f"Invalid settings for arena {arena_id}: {exc}") from exc


class ArenaRepository:
    async def get_arena(self, db: AsyncSession, arena_id: str) -> Arena | None:
        row = (await db.execute(_GET_ARENA_SQL, {"arena_id": arena_id})).fetchone()
        if row is None:
            return None
        return Arena(
            id=row.id,
            name=row.name,
            creator_id=row.creator_id,
            created_at=row.created_at,
        )

    async def get_settings(
        self, db: AsyncSession, arena_id: str, for_update: bool = False
    ) -> ArenaSettings | None:
        sql = _LOCK_SETTINGS_SQL if for_update else _GET_SETTINGS_SQL
        row = (await db.execute(sql, {"arena_id": arena_id})).fetchone()
        return _row_to_settings(row) if row else None

    async def list_due_arena_ids(self, db: AsyncSession, now: datetime) -> list[str]:
        rows = (await db.execute(_LIST_DUE_SQL, {"now": now})).fetchall()
        return [row.arena_id for row in rows]

    async def set_next_reset(
        self, db: AsyncSession, arena_id: str, next_reset_at: datetime | None
    ) -> None:
        await db.execute(
            _SET_NEXT_RESET_SQL,
            {"arena_id": arena_id, "next_reset_at": next_reset_at},
        )

    async def record_cycle(self, db: AsyncSession, record: CycleRecord) -> None:
        await db.execute(
            _INSERT_CYCLE_SQL,
            {
                "arena_id": record.arena_id,
                "winner_user_id": record.winner_user_id,
                "winner_points": record.winner_points,
                "member_count": record.member_count,
                "reset_at": record.reset_at,
            },
        )

    async def find_user_id_by_email(self, db: AsyncSession, email: str) -> str | None:
        row = (await db.execute(_FIND_USER_BY_EMAIL_SQL, {"email": email})).fetchone()
        return str(row.id) if row else None
