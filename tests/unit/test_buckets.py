"""Tests for numeric-range bucket rules."""

import pytest

from src.pa_common.errors import InvalidMarketError, InvalidResolutionDataError
from src.pa_market.domain.buckets import (
    bucket_for,
    closest_bets,
    is_bucketed,
    validate_buckets,
    winning_bucket,
)
from src.pa_market.domain.models import Bet, Option


def _bucket(oid: str, low: float | None, high: float | None) -> Option:
    return Option(id=oid, market_id="m1", text=oid, liquidity=100.0, range_low=low, range_high=high)


def _guess(bid: str, user: str, value: float | None, amount: int = 10) -> Bet:
    return Bet(
        id=bid, user_id=user, market_id="m1", amount=amount, fee=0, shares=amount,
        numeric_value=value,
    )


BUCKETS = [_bucket("low", 0, 10), _bucket("mid", 10, 20), _bucket("high", 20, 30)]


class TestValidateBuckets:
    def test_contiguous_buckets_ok(self) -> None:
        validate_buckets(BUCKETS)

    def test_gaps_allowed(self) -> None:
        validate_buckets([_bucket("a", 0, 5), _bucket("b", 10, 15)])

    def test_overlap_rejected(self) -> None:
        with pytest.raises(InvalidMarketError, match="overlaps"):
            validate_buckets([_bucket("a", 0, 10), _bucket("b", 5, 15)])

    def test_empty_interval_rejected(self) -> None:
        with pytest.raises(InvalidMarketError):
            validate_buckets([_bucket("a", 5, 5), _bucket("b", 6, 7)])

    def test_missing_bounds_rejected(self) -> None:
        with pytest.raises(InvalidMarketError, match="no range bounds"):
            validate_buckets([_bucket("a", 0, 5), _bucket("b", 5, None)])


class TestBucketFor:
    def test_lower_bound_inclusive(self) -> None:
        assert bucket_for(BUCKETS, 10).id == "mid"  # type: ignore[union-attr]

    def test_upper_bound_exclusive(self) -> None:
        assert bucket_for(BUCKETS, 9.999).id == "low"  # type: ignore[union-attr]

    def test_top_bucket_includes_its_high(self) -> None:
        assert bucket_for(BUCKETS, 30).id == "high"  # type: ignore[union-attr]

    def test_outside_every_bucket(self) -> None:
        assert bucket_for(BUCKETS, -1) is None
        assert bucket_for(BUCKETS, 30.5) is None

    def test_bucketless(self) -> None:
        assert not is_bucketed([])
        assert bucket_for([], 3) is None


class TestWinningBucket:
    def test_found(self) -> None:
        assert winning_bucket(BUCKETS, 15).id == "mid"

    def test_outside_raises(self) -> None:
        with pytest.raises(InvalidResolutionDataError):
            winning_bucket(BUCKETS, 100)

    def test_no_buckets_raises(self) -> None:
        with pytest.raises(InvalidResolutionDataError):
            winning_bucket([], 1)


class TestClosestBets:
    def test_single_closest(self) -> None:
        bets = [_guess("1", "a", 10), _guess("2", "b", 14), _guess("3", "c", 20)]
        assert [b.id for b in closest_bets(bets, 13)] == ["2"]

    def test_ties_all_win(self) -> None:
        bets = [_guess("1", "a", 10), _guess("2", "b", 14), _guess("3", "c", 20)]
        assert [b.id for b in closest_bets(bets, 12)] == ["1", "2"]

    def test_bets_without_guess_ignored(self) -> None:
        assert closest_bets([_guess("1", "a", None)], 5) == []
