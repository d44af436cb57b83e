"""Numeric-range outcome rules.

Bucket markets: the winning bucket is the option with range_low <= v < range_high,
except the highest bucket, which also includes its upper bound. A value
outside every bucket is invalid resolution data.

Bucketless markets: the bets whose guess is closest to the resolved value win;
every bet tied at the minimum distance wins.
"""

from src.pa_common.errors import InvalidMarketError, InvalidResolutionDataError
from src.pa_market.domain.models import Bet, Option


def is_bucketed(options: list[Option]) -> bool:
    return any(o.range_low is not None and o.range_high is not None for o in options)


def validate_buckets(options: list[Option]) -> None:
    """Buckets must be non-empty intervals that do not overlap."""
    ordered = sorted(options, key=lambda o: o.range_low if o.range_low is not None else 0.0)
    previous_high: float | None = None
    for option in ordered:
        if option.range_low is None or option.range_high is None:
            raise InvalidMarketError(f"Option {option.text!r} has no range bounds")
        if option.range_low >= option.range_high:
            raise InvalidMarketError(
                f"Option {option.text!r}: range_low must be below range_high"
            )
        if previous_high is not None and option.range_low < previous_high:
            raise InvalidMarketError(f"Option {option.text!r} overlaps another bucket")
        previous_high = option.range_high


def bucket_for(options: list[Option], value: float) -> Option | None:
    bucketed = [o for o in options if o.range_low is not None and o.range_high is not None]
    if not bucketed:
        return None
    top = max(bucketed, key=lambda o: o.range_high)  # type: ignore[arg-type, return-value]
    for option in bucketed:
        if option.range_low <= value < option.range_high:  # type: ignore[operator]
            return option
    if value == top.range_high:
        return top
    return None


def winning_bucket(options: list[Option], value: float) -> Option:
    if not is_bucketed(options):
        raise InvalidResolutionDataError("Market has no numeric buckets")
    option = bucket_for(options, value)
    if option is None:
        raise InvalidResolutionDataError(f"Value {value} falls outside every bucket")
    return option


def closest_bets(bets: list[Bet], value: float) -> list[Bet]:
    guesses = [b for b in bets if b.numeric_value is not None]
    if not guesses:
        return []
    best = min(abs(b.numeric_value - value) for b in guesses)  # type: ignore[operator]
    return [b for b in guesses if abs(b.numeric_value - value) == best]  # type: ignore[operator]
