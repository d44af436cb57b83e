"""Pydantic schemas for market resolution and cancellation."""

from pydantic import BaseModel


class ResolveMarketRequest(BaseModel):
    winning_option_id: str | None = None
    winning_value: float | None = None


class SettlementResult(BaseModel):
    market_id: str
    status: str
    winning_option_id: str | None = None
    winning_value: float | None = None
    total_pool: int
    payouts: dict[str, int]
    dust: int
    replayed: bool = False


class CancellationResult(BaseModel):
    market_id: str
    status: str
    refunds: dict[str, int]
    replayed: bool = False


class InvariantReport(BaseModel):
    arena_id: str
    ok: bool
    violations: list[str]
