"""Arena policy models.

ArenaSettings is validated at the repository boundary: a row that does not
fit this schema is rejected there rather than leaking loosely-typed values
into the ledger services.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.pa_common.enums import ResetFrequency, WinnerRule

SETTINGS_SCHEMA_VERSION = 1


class ArenaSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    schema_version: Literal[1] = SETTINGS_SCHEMA_VERSION
    arena_id: str
    trading_fee_percent: float = Field(0.0, ge=0, le=100)
    seed_liquidity: int = Field(100, gt=0)
    allow_transfers: bool = True
    transfer_limit: int | None = Field(None, gt=0)
    monthly_allocation: int = Field(1000, ge=0)
    allow_carryover: bool = False
    reset_frequency: ResetFrequency = ResetFrequency.MONTHLY
    custom_reset_days: int | None = Field(None, gt=0)
    winner_rule: WinnerRule = WinnerRule.HIGHEST_BALANCE
    limit_multiple_bets: bool = False
    multi_bet_threshold: int = Field(3, ge=0)
    next_reset_at: datetime | None = None

    @model_validator(mode="after")
    def _custom_needs_interval(self) -> "ArenaSettings":
        if self.reset_frequency == ResetFrequency.CUSTOM and self.custom_reset_days is None:
            raise ValueError("CUSTOM reset frequency requires custom_reset_days")
        return self


@dataclass
class Arena:
    id: str
    name: str
    creator_id: str
    created_at: datetime | None = None


@dataclass
class CycleRecord:
    """One completed reset: who won and what the arena looked like."""

    arena_id: str
    winner_user_id: str | None
    winner_points: int
    member_count: int
    reset_at: datetime
