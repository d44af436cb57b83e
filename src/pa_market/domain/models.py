"""Domain models for pa_market: pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Market:
    id: str
    arena_id: str
    creator_id: str
    question: str
    type: str                          # MarketType value
    status: str                        # MarketStatus value
    resolution_date: datetime
    min_bet: int | None = None
    max_bet: int | None = None
    winning_option_id: str | None = None
    winning_value: float | None = None
    resolved_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Option:
    """One outcome and its AMM pool.

    NUMERIC_RANGE markets may carry bucket options with [range_low, range_high)
    bounds; bucketless numeric markets have no options at all.
    """

    id: str
    market_id: str
    text: str
    liquidity: float
    position: int = 0
    range_low: float | None = None
    range_high: float | None = None


@dataclass
class Bet:
    id: str
    user_id: str
    market_id: str
    amount: int                        # gross points debited from the bettor
    fee: int                           # part of amount paid to the creator
    shares: float
    option_id: str | None = None
    numeric_value: float | None = None
    idempotency_key: str | None = None
    created_at: datetime | None = None

    @property
    def net_stake(self) -> int:
        return self.amount - self.fee
