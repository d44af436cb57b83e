"""Repository Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the PostgreSQL implementation.

Lock methods must be called inside the caller's transaction; the lock is
held until that transaction commits or rolls back.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_market.domain.models import Bet, Market, Option


class MarketRepositoryProtocol(Protocol):
    async def get_market(self, db: AsyncSession, market_id: str) -> Market | None: ...

    async def lock_market(
        self, db: AsyncSession, market_id: str, exclusive: bool = False
    ) -> Market | None: ...

    async def insert_market(self, db: AsyncSession, market: Market) -> None: ...

    async def mark_resolved(
        self,
        db: AsyncSession,
        market_id: str,
        winning_option_id: str | None,
        winning_value: float | None,
        resolved_at: datetime,
    ) -> None: ...

    async def mark_cancelled(
        self, db: AsyncSession, market_id: str, resolved_at: datetime
    ) -> None: ...

    async def list_options(self, db: AsyncSession, market_id: str) -> list[Option]: ...

    async def lock_options(self, db: AsyncSession, market_id: str) -> list[Option]: ...

    async def insert_options(self, db: AsyncSession, options: list[Option]) -> None: ...

    async def update_liquidity(
        self, db: AsyncSession, liquidity: dict[str, float]
    ) -> None: ...

    async def insert_bet(self, db: AsyncSession, bet: Bet) -> None: ...

    async def find_bet_by_key(
        self, db: AsyncSession, user_id: str, market_id: str, idempotency_key: str
    ) -> Bet | None: ...

    async def list_bets(self, db: AsyncSession, market_id: str) -> list[Bet]: ...

    async def count_user_bets(
        self, db: AsyncSession, user_id: str, market_id: str
    ) -> int: ...

    async def count_other_bettors(
        self, db: AsyncSession, user_id: str, market_id: str
    ) -> int: ...

    async def record_prices(
        self,
        db: AsyncSession,
        market_id: str,
        probabilities: dict[str, float],
        recorded_at: datetime,
    ) -> None: ...
