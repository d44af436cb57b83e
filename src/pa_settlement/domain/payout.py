"""Settlement math: pure functions, no I/O.

totalPool is the sum of net stakes (amount - fee) over every bet on the
market, creator LP seed bets included. Each winning bet gets

    floor(weight_i * totalPool / sum(weights))

computed with exact rationals, so sum(payouts) <= totalPool always holds.
The remainder (rounding dust, or the whole pool when nobody backed the
winning outcome) is reported as `dust` for the caller to sweep.
"""

import math
from collections.abc import Callable
from dataclasses import dataclass, field
from fractions import Fraction

from src.pa_common.enums import MarketType
from src.pa_common.errors import InvalidResolutionDataError
from src.pa_market.domain.buckets import closest_bets, is_bucketed, winning_bucket
from src.pa_market.domain.models import Bet, Market, Option


@dataclass(frozen=True)
class Outcome:
    """Winning side of a market: the winning option (if any) and its bets."""

    winning_option_id: str | None
    winning_value: float | None
    winners: list[Bet]
    weight: Callable[[Bet], float]


@dataclass(frozen=True)
class SettlementPlan:
    total_pool: int
    payouts: dict[str, int] = field(default_factory=dict)  # user_id -> points
    dust: int = 0


def _by_shares(bet: Bet) -> float:
    return bet.shares


def _by_net_stake(bet: Bet) -> float:
    return float(bet.net_stake)


def total_pool(bets: list[Bet]) -> int:
    return sum(b.net_stake for b in bets)


def pick_outcome(
    market: Market,
    options: list[Option],
    bets: list[Bet],
    winning_option_id: str | None,
    winning_value: float | None,
) -> Outcome:
    """Validate resolution data against the market type and select winning bets."""
    if market.type == MarketType.NUMERIC_RANGE.value:
        if winning_value is None:
            raise InvalidResolutionDataError("A numeric market resolves with winning_value")
        if not math.isfinite(winning_value):
            raise InvalidResolutionDataError("winning_value must be a finite number")
        if is_bucketed(options):
            bucket = winning_bucket(options, winning_value)
            if winning_option_id is not None and winning_option_id != bucket.id:
                raise InvalidResolutionDataError(
                    "winning_option_id does not match the bucket of winning_value"
                )
            winners = [b for b in bets if b.option_id == bucket.id]
            return Outcome(bucket.id, winning_value, winners, _by_shares)
        if winning_option_id is not None:
            raise InvalidResolutionDataError("This numeric market has no options")
        return Outcome(None, winning_value, closest_bets(bets, winning_value), _by_net_stake)

    if winning_value is not None:
        raise InvalidResolutionDataError("Only numeric markets resolve with winning_value")
    if winning_option_id is None:
        raise InvalidResolutionDataError("winning_option_id is required")
    if winning_option_id not in {o.id for o in options}:
        raise InvalidResolutionDataError(
            f"Option {winning_option_id} is not part of market {market.id}"
        )
    winners = [b for b in bets if b.option_id == winning_option_id]
    return Outcome(winning_option_id, None, winners, _by_shares)


def plan_settlement(bets: list[Bet], outcome: Outcome) -> SettlementPlan:
    pool = total_pool(bets)
    weights = [(bet, Fraction(outcome.weight(bet))) for bet in outcome.winners]
    weight_sum = sum((w for _, w in weights), Fraction(0))
    if pool <= 0 or weight_sum <= 0:
        return SettlementPlan(total_pool=pool, payouts={}, dust=max(pool, 0))

    payouts: dict[str, int] = {}
    for bet, weight in weights:
        amount = math.floor(weight * pool / weight_sum)
        if amount > 0:
            payouts[bet.user_id] = payouts.get(bet.user_id, 0) + amount
    return SettlementPlan(total_pool=pool, payouts=payouts, dust=pool - sum(payouts.values()))


def plan_refunds(bets: list[Bet]) -> dict[str, int]:
    """Net stake per bettor; fees already paid to the creator are not clawed back."""
    refunds: dict[str, int] = {}
    for bet in bets:
        if bet.net_stake > 0:
            refunds[bet.user_id] = refunds.get(bet.user_id, 0) + bet.net_stake
    return refunds
