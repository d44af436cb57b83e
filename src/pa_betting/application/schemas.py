"""Pydantic schemas for bet placement and quotes."""

from pydantic import BaseModel, Field, field_validator

from src.pa_market.domain.models import Bet


class PlaceBetRequest(BaseModel):
    market_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0, description="Points to stake, fee included")
    option_id: str | None = None
    numeric_value: float | None = None
    idempotency_key: str | None = Field(None, min_length=1, max_length=64)

    @field_validator("idempotency_key")
    @classmethod
    def no_whitespace(cls, v: str | None) -> str | None:
        if v is not None and any(c.isspace() for c in v):
            raise ValueError("idempotency_key must not contain whitespace")
        return v


class BetResponse(BaseModel):
    id: str
    market_id: str
    option_id: str | None
    numeric_value: float | None
    amount: int
    fee: int
    net_stake: int
    shares: float
    idempotency_key: str | None
    created_at: str | None

    @classmethod
    def from_domain(cls, bet: Bet) -> "BetResponse":
        return cls(
            id=bet.id,
            market_id=bet.market_id,
            option_id=bet.option_id,
            numeric_value=bet.numeric_value,
            amount=bet.amount,
            fee=bet.fee,
            net_stake=bet.net_stake,
            shares=bet.shares,
            idempotency_key=bet.idempotency_key,
            created_at=bet.created_at.isoformat() if bet.created_at else None,
        )


class PlaceBetResponse(BaseModel):
    bet: BetResponse
    replayed: bool = False


class QuoteResponse(BaseModel):
    market_id: str
    option_id: str
    numeric_value: float | None = None
    amount: int
    fee: int
    net_stake: int
    probability: float
    payout: int
    estimated_shares: float
    probability_after: float
