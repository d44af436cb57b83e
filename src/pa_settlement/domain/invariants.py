"""Arena conservation audit.

Two checks, both read-only:
  * balances: SUM(accounts.points) == credits - debits over the arena's transactions
  * market flows: for every RESOLVED or CANCELLED market, points staked
    (BET_PLACED) == points paid out (TRADING_FEE + WIN_PAYOUT + SETTLEMENT_DUST + BET_REFUND)

Returns a list of violation strings; empty means the arena is consistent.
"""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

_BALANCE_SUM_SQL = text("""
    SELECT COALESCE(SUM(points), 0)
    FROM accounts
    WHERE scope_id = :arena_id
""")

_CREDITS_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM transactions
    WHERE arena_id = :arena_id AND to_user_id IS NOT NULL
""")

_DEBITS_SQL = text("""
    SELECT COALESCE(SUM(amount), 0)
    FROM transactions
    WHERE arena_id = :arena_id AND from_user_id IS NOT NULL
""")

_MARKET_FLOWS_SQL = text("""
    SELECT m.id AS market_id,
           COALESCE(SUM(t.amount) FILTER (WHERE t.type = 'BET_PLACED'), 0) AS inflow,
           COALESCE(SUM(t.amount) FILTER (
               WHERE t.type IN ('TRADING_FEE', 'WIN_PAYOUT', 'SETTLEMENT_DUST', 'BET_REFUND')
           ), 0) AS outflow
    FROM markets m
    LEFT JOIN transactions t ON t.market_id = m.id
    WHERE m.arena_id = :arena_id AND m.status IN ('RESOLVED', 'CANCELLED')
    GROUP BY m.id
    ORDER BY m.id
""")


async def verify_arena_invariants(db: AsyncSession, arena_id: str) -> list[str]:
    violations: list[str] = []
    params = {"arena_id": arena_id}

    balances = (await db.execute(_BALANCE_SUM_SQL, params)).scalar_one()
    credits = (await db.execute(_CREDITS_SQL, params)).scalar_one()
    debits = (await db.execute(_DEBITS_SQL, params)).scalar_one()
    if balances != credits - debits:
        msg = (
            f"Arena {arena_id}: balances({balances}) != "
            f"credits({credits}) - debits({debits}) = {credits - debits}"
        )
        violations.append(msg)
        logger.error(msg)

    for row in (await db.execute(_MARKET_FLOWS_SQL, params)).fetchall():
        if row.inflow != row.outflow:
            msg = (
                f"Market {row.market_id}: staked({row.inflow}) != "
                f"paid out({row.outflow})"
            )
            violations.append(msg)
            logger.error(msg)
    return violations
