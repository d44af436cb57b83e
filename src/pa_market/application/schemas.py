"""Pydantic schemas for pa_market requests and responses."""

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from src.pa_common.enums import MarketType
from src.pa_market.domain.models import Market, Option


class OptionIn(BaseModel):
    text: str = Field(..., min_length=1, max_length=200)
    range_low: float | None = None
    range_high: float | None = None


class CreateMarketRequest(BaseModel):
    arena_id: str = Field(..., min_length=1)
    question: str = Field(..., min_length=1, max_length=500)
    type: MarketType
    resolution_date: datetime
    options: list[OptionIn] = Field(default_factory=list)
    min_bet: int | None = Field(None, gt=0)
    max_bet: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def _bet_bounds(self) -> "CreateMarketRequest":
        if self.min_bet is not None and self.max_bet is not None and self.min_bet > self.max_bet:
            raise ValueError("min_bet must not exceed max_bet")
        return self


class OptionOut(BaseModel):
    id: str
    text: str
    liquidity: float
    probability: float
    range_low: float | None
    range_high: float | None

    @classmethod
    def from_domain(cls, option: Option, probability: float) -> "OptionOut":
        return cls(
            id=option.id,
            text=option.text,
            liquidity=option.liquidity,
            probability=probability,
            range_low=option.range_low,
            range_high=option.range_high,
        )


class MarketDetail(BaseModel):
    id: str
    arena_id: str
    creator_id: str
    question: str
    type: str
    status: str
    resolution_date: str
    min_bet: int | None
    max_bet: int | None
    winning_option_id: str | None
    winning_value: float | None
    resolved_at: str | None
    options: list[OptionOut]

    @classmethod
    def from_domain(
        cls, market: Market, options: list[Option], probabilities: dict[str, float]
    ) -> "MarketDetail":
        return cls(
            id=market.id,
            arena_id=market.arena_id,
            creator_id=market.creator_id,
            question=market.question,
            type=market.type,
            status=market.status,
            resolution_date=market.resolution_date.isoformat(),
            min_bet=market.min_bet,
            max_bet=market.max_bet,
            winning_option_id=market.winning_option_id,
            winning_value=market.winning_value,
            resolved_at=market.resolved_at.isoformat() if market.resolved_at else None,
            options=[OptionOut.from_domain(o, probabilities.get(o.id, 0.0)) for o in options],
        )
