"""Unit tests for BetService: placement, idempotency, limits and quotes."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.pa_betting.application.schemas import PlaceBetRequest
from src.pa_betting.application.service import BetService
from src.pa_common.datetime_utils import utc_now
from src.pa_common.enums import MarketType, TransactionType
from src.pa_common.errors import (
    BetLimitViolationError,
    InsufficientFundsError,
    InvalidOptionError,
    MarketClosedError,
    MarketExpiredError,
    MarketNotFoundError,
    NotAMemberError,
)
from src.pa_market.application.schemas import OptionIn
from tests.unit.fakes import FakeStore
from tests.unit.helpers import Repos, open_market, option_id


def _req(market_id: str, **fields: object) -> PlaceBetRequest:
    return PlaceBetRequest(market_id=market_id, **fields)  # type: ignore[arg-type]


def _bet_service(repos: Repos, floor: float | None = 0.01) -> BetService:
    return BetService(repos.markets, repos.ledger, repos.arenas, liquidity_floor=floor)


async def _binary_setup(
    fee_percent: float = 5, alice_points: int = 500, **policy: object
) -> tuple[FakeStore, Repos, str, str, str]:
    store = FakeStore()
    store.add_arena(trading_fee_percent=fee_percent, seed_liquidity=100, **policy)
    store.add_account("creator", points=1000)
    store.add_account("alice", points=alice_points)
    store.add_account("bob", points=500)
    store.add_account("carol", points=500)
    repos = Repos()
    market_id, options = await open_market(store, repos)
    return store, repos, market_id, option_id(options, "Yes"), option_id(options, "No")


class TestPlaceBetRequest:
    def test_amount_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            PlaceBetRequest(market_id="m", option_id="o", amount=0)

    def test_idempotency_key_without_whitespace(self) -> None:
        with pytest.raises(ValidationError):
            PlaceBetRequest(market_id="m", option_id="o", amount=1, idempotency_key="a b")

    def test_idempotency_key_length(self) -> None:
        with pytest.raises(ValidationError):
            PlaceBetRequest(market_id="m", option_id="o", amount=1, idempotency_key="x" * 65)


class TestPlaceBet:
    async def test_gross_debit_fee_to_creator_and_pool_update(self) -> None:
        store, repos, market_id, yes, no = await _binary_setup()
        db = store.session()

        result = await _bet_service(repos).place_bet(
            db, "alice", _req(market_id, option_id=yes, amount=50)
        )

        assert result.replayed is False
        assert result.bet.fee == 2
        assert result.bet.net_stake == 48
        assert result.bet.shares == pytest.approx(48 + 100 - 100 * 100 / 148)
        assert store.points("alice") == 450
        assert store.points("creator") == 802
        pools = {o.id: o.liquidity for o in store.state.options.values()}
        assert pools[no] == 148.0
        assert pools[yes] == pytest.approx(100 * 100 / 148)
        txs = [
            t
            for t in store.state.transactions
            if t.from_user_id == "alice" or t.type == TransactionType.TRADING_FEE.value
        ]
        assert [(t.type, t.amount) for t in txs] == [
            (TransactionType.BET_PLACED.value, 50),
            (TransactionType.TRADING_FEE.value, 2),
        ]
        assert db.commits == 1

    async def test_locks_market_then_accounts_then_options(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        db = store.session()

        await _bet_service(repos).place_bet(
            db, "bob", _req(market_id, option_id=yes, amount=10)
        )

        assert [kind for kind, _ in db.locks] == ["market", "accounts", "options"]
        assert db.locks[0] == ("market", "share")
        assert db.locks[1] == ("accounts", ("bob", "creator"))

    async def test_price_history_recorded(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        before = len(store.state.prices)

        await _bet_service(repos).place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=20)
        )

        assert len(store.state.prices) == before + 2

    async def test_creator_pays_no_fee_on_own_market(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()

        result = await _bet_service(repos).place_bet(
            store.session(), "creator", _req(market_id, option_id=yes, amount=50)
        )

        assert result.bet.fee == 0
        assert store.points("creator") == 750
        assert not any(t.type == "TRADING_FEE" for t in store.state.transactions)

    async def test_points_conserved_between_accounts_and_pool(self) -> None:
        store, repos, market_id, yes, no = await _binary_setup()
        initial = store.total_points() + sum(b.net_stake for b in store.state.bets)
        svc = _bet_service(repos)

        for user, target, amount in [("alice", yes, 37), ("bob", no, 81), ("carol", yes, 5)]:
            await svc.place_bet(
                store.session(), user, _req(market_id, option_id=target, amount=amount)
            )

        assert store.total_points() + sum(b.net_stake for b in store.state.bets) == initial


class TestIdempotency:
    async def test_replay_returns_same_bet_and_moves_nothing(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)
        req = _req(market_id, option_id=yes, amount=50, idempotency_key="k-1")

        first = await svc.place_bet(store.session(), "alice", req)
        tx_count = len(store.state.transactions)
        second = await svc.place_bet(store.session(), "alice", req)

        assert second.replayed is True
        assert second.bet.id == first.bet.id
        assert store.points("alice") == 450
        assert len(store.state.transactions) == tx_count
        assert sum(1 for b in store.state.bets if b.user_id == "alice") == 1

    async def test_same_key_for_another_user_is_independent(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)

        await svc.place_bet(
            store.session(), "alice",
            _req(market_id, option_id=yes, amount=10, idempotency_key="k"),
        )
        other = await svc.place_bet(
            store.session(), "bob",
            _req(market_id, option_id=yes, amount=10, idempotency_key="k"),
        )

        assert other.replayed is False

    async def test_unique_violation_race_returns_winner(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)
        req = _req(market_id, option_id=yes, amount=50, idempotency_key="race")
        first = await svc.place_bet(store.session(), "alice", req)
        repos.markets.stale_key_reads = 1
        db = store.session()

        second = await svc.place_bet(db, "alice", req)

        assert second.replayed is True
        assert second.bet.id == first.bet.id
        assert db.rollbacks == 1
        assert store.points("alice") == 450

    @pytest.mark.parametrize("status", ["PENDING_RESOLUTION", "RESOLVED", "CANCELLED"])
    async def test_replay_after_market_closed(self, status: str) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)
        req = _req(market_id, option_id=yes, amount=50, idempotency_key="k-1")
        first = await svc.place_bet(store.session(), "alice", req)
        store.state.markets[market_id].status = status
        tx_count = len(store.state.transactions)

        second = await svc.place_bet(store.session(), "alice", req)

        assert second.replayed is True
        assert second.bet.id == first.bet.id
        assert store.points("alice") == 450
        assert len(store.state.transactions) == tx_count

    async def test_replay_after_market_expired(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)
        req = _req(market_id, option_id=yes, amount=50, idempotency_key="k-1")
        first = await svc.place_bet(store.session(), "alice", req)
        store.state.markets[market_id].resolution_date = utc_now() - timedelta(seconds=1)

        second = await svc.place_bet(store.session(), "alice", req)

        assert second.replayed is True
        assert second.bet.id == first.bet.id

    async def test_unknown_key_on_closed_market_still_rejected(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        store.state.markets[market_id].status = "RESOLVED"

        with pytest.raises(MarketClosedError):
            await _bet_service(repos).place_bet(
                store.session(),
                "alice",
                _req(market_id, option_id=yes, amount=50, idempotency_key="fresh"),
            )


class TestRejections:
    async def test_insufficient_funds_changes_nothing(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup(alice_points=30)
        pools_before = {o.id: o.liquidity for o in store.state.options.values()}
        tx_before = len(store.state.transactions)

        with pytest.raises(InsufficientFundsError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=50)
            )

        assert store.points("alice") == 30
        assert {o.id: o.liquidity for o in store.state.options.values()} == pools_before
        assert len(store.state.transactions) == tx_before

    async def test_closed_market(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        store.state.markets[market_id].status = "RESOLVED"

        with pytest.raises(MarketClosedError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=5)
            )

    async def test_expired_market(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        store.state.markets[market_id].resolution_date = utc_now() - timedelta(seconds=1)

        with pytest.raises(MarketExpiredError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=5)
            )

    async def test_unknown_market(self) -> None:
        store, repos, _, yes, _ = await _binary_setup()
        with pytest.raises(MarketNotFoundError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req("nope", option_id=yes, amount=5)
            )

    async def test_non_member(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        with pytest.raises(NotAMemberError):
            await _bet_service(repos).place_bet(
                store.session(), "mallory", _req(market_id, option_id=yes, amount=5)
            )

    async def test_foreign_option(self) -> None:
        store, repos, market_id, _, _ = await _binary_setup()
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, option_id="bogus", amount=5)
            )

    async def test_missing_option(self) -> None:
        store, repos, market_id, _, _ = await _binary_setup()
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, amount=5)
            )

    async def test_min_and_max_bet(self) -> None:
        store = FakeStore()
        store.add_arena()
        store.add_account("creator", points=1000)
        store.add_account("alice", points=1000)
        repos = Repos()
        market_id, options = await open_market(store, repos, min_bet=10, max_bet=100)
        yes = option_id(options, "Yes")
        svc = _bet_service(repos)

        with pytest.raises(BetLimitViolationError, match="Minimum"):
            await svc.place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=5)
            )
        with pytest.raises(BetLimitViolationError, match="Maximum"):
            await svc.place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=101)
            )
        ok = await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=100)
        )
        assert ok.bet.amount == 100

    async def test_bet_draining_pool_below_floor(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup(fee_percent=0)
        svc = _bet_service(repos, floor=60.0)

        with pytest.raises(BetLimitViolationError):
            await svc.place_bet(
                store.session(), "alice", _req(market_id, option_id=yes, amount=100)
            )
        assert store.points("alice") == 500

        ok = await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=50)
        )
        assert ok.replayed is False


class TestMultiBetLimit:
    async def test_repeat_bet_needs_enough_other_bettors(self) -> None:
        store, repos, market_id, yes, no = await _binary_setup(
            limit_multiple_bets=True, multi_bet_threshold=2
        )
        svc = _bet_service(repos)

        await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=10)
        )
        # only the creator's seed bets so far
        with pytest.raises(BetLimitViolationError):
            await svc.place_bet(
                store.session(), "alice", _req(market_id, option_id=no, amount=10)
            )

        await svc.place_bet(
            store.session(), "bob", _req(market_id, option_id=no, amount=10)
        )
        again = await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=no, amount=10)
        )
        assert again.replayed is False

    async def test_first_bet_always_allowed(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup(
            limit_multiple_bets=True, multi_bet_threshold=10
        )
        result = await _bet_service(repos).place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=10)
        )
        assert result.replayed is False


class TestNumericBets:
    async def _numeric(self, buckets: bool) -> tuple[FakeStore, Repos, str, list]:
        store = FakeStore()
        store.add_arena(trading_fee_percent=0)
        store.add_account("creator", points=1000)
        store.add_account("alice", points=500)
        repos = Repos()
        specs = (
            [
                OptionIn(text="0-10", range_low=0, range_high=10),
                OptionIn(text="10-20", range_low=10, range_high=20),
            ]
            if buckets
            else []
        )
        market_id, options = await open_market(
            store, repos, market_type=MarketType.NUMERIC_RANGE, options=specs
        )
        return store, repos, market_id, options

    async def test_value_mapped_to_bucket(self) -> None:
        store, repos, market_id, options = await self._numeric(buckets=True)

        result = await _bet_service(repos).place_bet(
            store.session(), "alice", _req(market_id, numeric_value=12.5, amount=20)
        )

        assert result.bet.option_id == option_id(options, "10-20")
        assert result.bet.numeric_value == 12.5

    async def test_value_outside_buckets(self) -> None:
        store, repos, market_id, _ = await self._numeric(buckets=True)
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, numeric_value=25, amount=20)
            )

    async def test_mismatched_option_and_value(self) -> None:
        store, repos, market_id, options = await self._numeric(buckets=True)
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).place_bet(
                store.session(),
                "alice",
                PlaceBetRequest(
                    market_id=market_id,
                    option_id=option_id(options, "0-10"),
                    numeric_value=15,
                    amount=20,
                ),
            )

    async def test_bucketless_guess_has_no_option(self) -> None:
        store, repos, market_id, _ = await self._numeric(buckets=False)

        result = await _bet_service(repos).place_bet(
            store.session(), "alice", _req(market_id, numeric_value=42, amount=30)
        )

        assert result.bet.option_id is None
        assert result.bet.shares == 30.0
        assert store.points("alice") == 470

    async def test_quote_by_value_uses_bucket(self) -> None:
        store, repos, market_id, options = await self._numeric(buckets=True)

        q = await _bet_service(repos).get_quote(
            store.session(), "alice", market_id, 20, numeric_value=12.5
        )

        assert q.option_id == option_id(options, "10-20")
        assert q.numeric_value == 12.5
        assert (q.fee, q.net_stake) == (0, 20)

    async def test_quote_bucketless_market_rejected(self) -> None:
        store, repos, market_id, _ = await self._numeric(buckets=False)
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).get_quote(
                store.session(), "alice", market_id, 20, numeric_value=42
            )

    async def test_numeric_value_required(self) -> None:
        store, repos, market_id, _ = await self._numeric(buckets=False)
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).place_bet(
                store.session(), "alice", _req(market_id, amount=30)
            )


class TestQuote:
    async def test_quote_matches_pricing(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()

        q = await _bet_service(repos).get_quote(
            store.session(), "alice", market_id, 50, option_id=yes
        )

        assert (q.fee, q.net_stake, q.payout) == (2, 48, 96)
        assert q.probability == pytest.approx(0.5)
        assert q.probability_after > 0.5
        assert store.points("alice") == 500

    async def test_quote_unknown_option(self) -> None:
        store, repos, market_id, _, _ = await _binary_setup()
        with pytest.raises(InvalidOptionError):
            await _bet_service(repos).get_quote(
                store.session(), "alice", market_id, 50, option_id="bogus"
            )

    async def test_creator_quote_matches_fee_charged(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)

        q = await svc.get_quote(store.session(), "creator", market_id, 50, option_id=yes)
        placed = await svc.place_bet(
            store.session(), "creator", _req(market_id, option_id=yes, amount=50)
        )

        assert q.fee == placed.bet.fee == 0
        assert q.net_stake == 50
        assert q.payout == 100
        assert q.estimated_shares == pytest.approx(placed.bet.shares)

    async def test_quote_without_creator_account_has_no_fee(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        del store.state.accounts[("creator", "arena-1")]
        svc = _bet_service(repos)

        q = await svc.get_quote(store.session(), "alice", market_id, 50, option_id=yes)
        placed = await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=50)
        )

        assert q.fee == placed.bet.fee == 0

    async def test_quote_shares_match_placed_bet(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        svc = _bet_service(repos)

        q = await svc.get_quote(store.session(), "alice", market_id, 50, option_id=yes)
        placed = await svc.place_bet(
            store.session(), "alice", _req(market_id, option_id=yes, amount=50)
        )

        assert (q.fee, q.net_stake) == (placed.bet.fee, placed.bet.net_stake)
        assert q.estimated_shares == pytest.approx(placed.bet.shares)

    async def test_quote_on_closed_market(self) -> None:
        store, repos, market_id, yes, _ = await _binary_setup()
        store.state.markets[market_id].status = "CANCELLED"
        with pytest.raises(MarketClosedError):
            await _bet_service(repos).get_quote(
                store.session(), "alice", market_id, 50, option_id=yes
            )
