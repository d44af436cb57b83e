"""MarketRepository: concrete implementation of MarketRepositoryProtocol.

All queries use raw text() SQL (no ORM).
asyncpg NULL parameter pattern: CAST(:param AS TYPE) IS NULL required for None values.

Lock order used by every writer: market row, then accounts (by user_id),
then option rows (by id).
"""

from datetime import datetime

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_market.domain.models import Bet, Market, Option

# ---------------------------------------------------------------------------
# SQL: markets
# ---------------------------------------------------------------------------

_MARKET_COLUMNS = """
    id, arena_id, creator_id, question, type, status, resolution_date,
    min_bet, max_bet, winning_option_id, winning_value, resolved_at,
    created_at, updated_at
"""

_GET_MARKET_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
""")

_LOCK_MARKET_SHARE_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
    FOR SHARE
""")

_LOCK_MARKET_UPDATE_SQL = text(f"""
    SELECT {_MARKET_COLUMNS}
    FROM markets
    WHERE id = :market_id
    FOR UPDATE
""")

_INSERT_MARKET_SQL = text("""
    INSERT INTO markets (id, arena_id, creator_id, question, type, status,
                         resolution_date, min_bet, max_bet)
    VALUES (:id, :arena_id, :creator_id, :question, :type, :status,
            :resolution_date, :min_bet, :max_bet)
""")

_MARK_RESOLVED_SQL = text("""
    UPDATE markets
    SET status = 'RESOLVED',
        winning_option_id = :winning_option_id,
        winning_value = :winning_value,
        resolved_at = :resolved_at,
        updated_at = NOW()
    WHERE id = :market_id
""")

_MARK_CANCELLED_SQL = text("""
    UPDATE markets
    SET status = 'CANCELLED',
        resolved_at = :resolved_at,
        updated_at = NOW()
    WHERE id = :market_id
""")

# ---------------------------------------------------------------------------
# SQL: options
# ---------------------------------------------------------------------------

_OPTION_COLUMNS = "id, market_id, text, liquidity, position, range_low, range_high"

_LIST_OPTIONS_SQL = text(f"""
    SELECT {_OPTION_COLUMNS}
    FROM options
    WHERE market_id = :market_id
    ORDER BY position, id
""")

_LOCK_OPTIONS_SQL = text(f"""
    SELECT {_OPTION_COLUMNS}
    FROM options
    WHERE market_id = :market_id
    ORDER BY id
    FOR UPDATE
""")

_INSERT_OPTION_SQL = text("""
    INSERT INTO options (id, market_id, text, liquidity, position, range_low, range_high)
    VALUES (:id, :market_id, :text, :liquidity, :position, :range_low, :range_high)
""")

_UPDATE_LIQUIDITY_SQL = text("""
    UPDATE options
    SET liquidity = :liquidity
    WHERE id = :option_id
""")

# ---------------------------------------------------------------------------
# SQL: bets + price history
# ---------------------------------------------------------------------------

_BET_COLUMNS = """
    id, user_id, market_id, option_id, numeric_value, amount, fee, shares,
    idempotency_key, created_at
"""

_INSERT_BET_SQL = text("""
    INSERT INTO bets (id, user_id, market_id, option_id, numeric_value,
                      amount, fee, shares, idempotency_key, created_at)
    VALUES (:id, :user_id, :market_id, :option_id, :numeric_value,
            :amount, :fee, :shares, :idempotency_key,
            COALESCE(CAST(:created_at AS TIMESTAMPTZ), NOW()))
""")

_FIND_BET_BY_KEY_SQL = text(f"""
    SELECT {_BET_COLUMNS}
    FROM bets
    WHERE user_id = :user_id
      AND market_id = :market_id
      AND idempotency_key = :idempotency_key
""")

_LIST_BETS_SQL = text(f"""
    SELECT {_BET_COLUMNS}
    FROM bets
    WHERE market_id = :market_id
    ORDER BY created_at, id
""")

_COUNT_USER_BETS_SQL = text("""
    SELECT COUNT(*) FROM bets
    WHERE market_id = :market_id AND user_id = :user_id
""")

_COUNT_OTHER_BETTORS_SQL = text("""
    SELECT COUNT(DISTINCT user_id) FROM bets
    WHERE market_id = :market_id AND user_id <> :user_id
""")

_INSERT_PRICE_SQL = text("""
    INSERT INTO price_history (market_id, option_id, probability, recorded_at)
    VALUES (:market_id, :option_id, :probability, :recorded_at)
""")


def _row_to_market(row: object) -> Market:
    return Market(
        id=row.id,  # type: ignore[attr-defined]
        arena_id=row.arena_id,  # type: ignore[attr-defined]
        creator_id=row.creator_id,  # type: ignore[attr-defined]
        question=row.question,  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        status=row.status,  # type: ignore[attr-defined]
        resolution_date=row.resolution_date,  # type: ignore[attr-defined]
        min_bet=row.min_bet,  # type: ignore[attr-defined]
        max_bet=row.max_bet,  # type: ignore[attr-defined]
        winning_option_id=row.winning_option_id,  # type: ignore[attr-defined]
        winning_value=row.winning_value,  # type: ignore[attr-defined]
        resolved_at=row.resolved_at,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_option(row: object) -> Option:
    return Option(
        id=row.id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        text=row.text,  # type: ignore[attr-defined]
        liquidity=float(row.liquidity),  # type: ignore[attr-defined]
        position=row.position,  # type: ignore[attr-defined]
        range_low=row.range_low,  # type: ignore[attr-defined]
        range_high=row.range_high,  # type: ignore[attr-defined]
    )


def _row_to_bet(row: object) -> Bet:
    return Bet(
        id=row.id,  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        fee=row.fee,  # type: ignore[attr-defined]
        shares=float(row.shares),  # type: ignore[attr-defined]
        option_id=row.option_id,  # type: ignore[attr-defined]
        numeric_value=row.numeric_value,  # type: ignore[attr-defined]
        idempotency_key=row.idempotency_key,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class MarketRepository:
    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None:
        row = (await db.execute(_GET_MARKET_SQL, {"market_id": market_id})).fetchone()
        return _row_to_market(row) if row else None

    async def lock_market(
        self, db: AsyncSession, market_id: str, exclusive: bool = False
    ) -> Market | None:
        # FOR SHARE lets concurrent bets proceed while blocking a resolve/cancel
        sql = _LOCK_MARKET_UPDATE_SQL if exclusive else _LOCK_MARKET_SHARE_SQL
        row = (await db.execute(sql, {"market_id": market_id})).fetchone()
        return _row_to_market(row) if row else None

    async def insert_market(self, db: AsyncSession, market: Market) -> None:
        await db.execute(
            _INSERT_MARKET_SQL,
            {
                "id": market.id,
                "arena_id": market.arena_id,
                "creator_id": market.creator_id,
                "question": market.question,
                "type": market.type,
                "status": market.status,
                "resolution_date": market.resolution_date,
                "min_bet": market.min_bet,
                "max_bet": market.max_bet,
            },
        )

    async def mark_resolved(
        self,
        db: AsyncSession,
        market_id: str,
        winning_option_id: str | None,
        winning_value: float | None,
        resolved_at: datetime,
    ) -> None:
        await db.execute(
            _MARK_RESOLVED_SQL,
            {
                "market_id": market_id,
                "winning_option_id": winning_option_id,
                "winning_value": winning_value,
                "resolved_at": resolved_at,
            },
        )

    async def mark_cancelled(
        self, db: AsyncSession, market_id: str, resolved_at: datetime
    ) -> None:
        await db.execute(
            _MARK_CANCELLED_SQL, {"market_id": market_id, "resolved_at": resolved_at}
        )

    async def list_options(self, db: AsyncSession, market_id: str) -> list[Option]:
        rows = (await db.execute(_LIST_OPTIONS_SQL, {"market_id": market_id})).fetchall()
        return [_row_to_option(row) for row in rows]

    async def lock_options(self, db: AsyncSession, market_id: str) -> list[Option]:
        rows = (await db.execute(_LOCK_OPTIONS_SQL, {"market_id": market_id})).fetchall()
        return [_row_to_option(row) for row in rows]

    async def insert_options(self, db: AsyncSession, options: list[Option]) -> None:
        for option in options:
            await db.execute(
                _INSERT_OPTION_SQL,
                {
                    "id": option.id,
                    "market_id": option.market_id,
                    "text": option.text,
                    "liquidity": option.liquidity,
                    "position": option.position,
                    "range_low": option.range_low,
                    "range_high": option.range_high,
                },
            )

    async def update_liquidity(
        self, db: AsyncSession, liquidity: dict[str, float]
    ) -> None:
        for option_id in sorted(liquidity):
            await db.execute(
                _UPDATE_LIQUIDITY_SQL,
                {"option_id": option_id, "liquidity": liquidity[option_id]},
            )

    async def insert_bet(self, db: AsyncSession, bet: Bet) -> None:
        await db.execute(
            _INSERT_BET_SQL,
            {
                "id": bet.id,
                "user_id": bet.user_id,
                "market_id": bet.market_id,
                "option_id": bet.option_id,
                "numeric_value": bet.numeric_value,
                "amount": bet.amount,
                "fee": bet.fee,
                "shares": bet.shares,
                "idempotency_key": bet.idempotency_key,
                "created_at": bet.created_at,
            },
        )

    async def find_bet_by_key(
        self, db: AsyncSession, user_id: str, market_id: str, idempotency_key: str
    ) -> Bet | None:
        row = (
            await db.execute(
                _FIND_BET_BY_KEY_SQL,
                {
                    "user_id": user_id,
                    "market_id": market_id,
                    "idempotency_key": idempotency_key,
                },
            )
        ).fetchone()
        return _row_to_bet(row) if row else None

    async def list_bets(self, db: AsyncSession, market_id: str) -> list[Bet]:
        rows = (await db.execute(_LIST_BETS_SQL, {"market_id": market_id})).fetchall()
        return [_row_to_bet(row) for row in rows]

    async def count_user_bets(
        self, db: AsyncSession, user_id: str, market_id: str
    ) -> int:
        result = await db.execute(
            _COUNT_USER_BETS_SQL, {"user_id": user_id, "market_id": market_id}
        )
        return int(result.scalar_one())

    async def count_other_bettors(
        self, db: AsyncSession, user_id: str, market_id: str
    ) -> int:
        result = await db.execute(
            _COUNT_OTHER_BETTORS_SQL, {"user_id": user_id, "market_id": market_id}
        )
        return int(result.scalar_one())

    async def record_prices(
        self,
        db: AsyncSession,
        market_id: str,
        probabilities: dict[str, float],
        recorded_at: datetime,
    ) -> None:
        for option_id, probability in probabilities.items():
            await db.execute(
                _INSERT_PRICE_SQL,
                {
                    "market_id": market_id,
                    "option_id": option_id,
                    "probability": probability,
                    "recorded_at": recorded_at,
                },
            )
