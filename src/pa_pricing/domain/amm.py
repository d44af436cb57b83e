"""AMM pricing: pure functions over per-option liquidity pools.

Implied probability uses inverse-liquidity weighting:

    p(i) = (1 / L_i) / sum_j (1 / L_j)

so a thinner pool means a pricier outcome. Quotes are integer points;
fees round down (the bettor never pays more than the stated percentage).

Pool updates follow a constant-product rule: a bet of net stake `s` on
option t adds `s` to every other pool and shrinks pool t so that the
product of all pools is unchanged. The bettor receives `s + (L_t - L_t')`
shares.

No I/O here. Callers must pass liquidity read inside their own ledger
transaction.
"""

import math
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal

from src.pa_common.errors import InvalidInputError


@dataclass(frozen=True)
class Quote:
    option_id: str
    amount: int
    fee: int
    net_stake: int
    probability: float
    payout: int


@dataclass(frozen=True)
class PoolUpdate:
    """Post-bet pools for every option plus the shares minted to the bettor."""

    liquidity: dict[str, float]
    shares: float


def probabilities(liquidity: dict[str, float]) -> dict[str, float]:
    """Implied probability per option. All zero if the pools are unusable."""
    if not liquidity:
        return {}
    inverse = {oid: (1.0 / pool if pool > 0 else 0.0) for oid, pool in liquidity.items()}
    total = math.fsum(inverse.values())
    if total <= 0:
        return {oid: 0.0 for oid in liquidity}
    return {oid: inv / total for oid, inv in inverse.items()}


def probability(liquidity: dict[str, float], option_id: str) -> float:
    if option_id not in liquidity:
        raise InvalidInputError(f"Unknown option: {option_id}")
    return probabilities(liquidity)[option_id]


def trading_fee(amount: int, fee_percent: float) -> int:
    """floor(amount * fee_percent / 100), computed in decimal to avoid float drift."""
    if amount <= 0 or fee_percent <= 0:
        return 0
    fee = Decimal(amount) * Decimal(str(fee_percent)) / Decimal(100)
    return int(fee.to_integral_value(rounding=ROUND_FLOOR))


def quote(
    liquidity: dict[str, float],
    option_id: str,
    amount: int,
    fee_percent: float,
) -> Quote:
    """Fee-adjusted payout if `option_id` wins, ignoring the bet's own slippage."""
    if amount <= 0:
        raise InvalidInputError(f"Amount must be positive, got {amount}")
    p = probability(liquidity, option_id)
    if p <= 0:
        raise InvalidInputError(f"Option {option_id} has no price")
    fee = trading_fee(amount, fee_percent)
    net_stake = amount - fee
    return Quote(
        option_id=option_id,
        amount=amount,
        fee=fee,
        net_stake=net_stake,
        probability=p,
        payout=math.floor(net_stake / p),
    )


def apply_bet(
    liquidity: dict[str, float],
    option_id: str,
    net_stake: int,
) -> PoolUpdate:
    """Constant-product pool update for a bet of `net_stake` on `option_id`."""
    if option_id not in liquidity:
        raise InvalidInputError(f"Unknown option: {option_id}")
    if net_stake <= 0:
        return PoolUpdate(liquidity=dict(liquidity), shares=0.0)

    updated = {
        oid: (pool if oid == option_id else pool + net_stake)
        for oid, pool in liquidity.items()
    }
    # k / prod(others') == L_t * prod(others / others'), kept as a ratio product
    # so large pools do not overflow the float range.
    new_target = liquidity[option_id]
    for oid, pool in liquidity.items():
        if oid != option_id:
            new_target *= pool / updated[oid]
    updated[option_id] = new_target

    swapped = liquidity[option_id] - new_target
    return PoolUpdate(liquidity=updated, shares=net_stake + swapped)
