"""Unit tests for MarketApplicationService (creation, seeding, reads)."""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from src.pa_common.datetime_utils import utc_now
from src.pa_common.enums import MarketType, TransactionType
from src.pa_common.errors import (
    ArenaNotFoundError,
    InsufficientFundsError,
    InvalidMarketError,
    MarketNotFoundError,
    NotAMemberError,
)
from src.pa_market.application.schemas import CreateMarketRequest, OptionIn
from src.pa_market.application.service import MarketApplicationService
from tests.unit.fakes import FakeStore
from tests.unit.helpers import Repos, open_market


def _store(creator_points: int = 1000, seed: int = 100) -> FakeStore:
    store = FakeStore()
    store.add_arena(seed_liquidity=seed)
    store.add_account("creator", points=creator_points)
    return store


def _request(**overrides: object) -> CreateMarketRequest:
    fields: dict[str, object] = {
        "arena_id": "arena-1",
        "question": "Will it rain?",
        "type": MarketType.BINARY,
        "resolution_date": utc_now() + timedelta(days=1),
    }
    fields.update(overrides)
    return CreateMarketRequest(**fields)  # type: ignore[arg-type]


class TestCreateMarketRequest:
    def test_min_above_max_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _request(min_bet=50, max_bet=10)

    def test_non_positive_bounds_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _request(min_bet=0)

    def test_empty_question_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _request(question="")


class TestCreateMarket:
    async def test_binary_market_seeds_both_pools(self) -> None:
        store = _store()
        repos = Repos()

        market_id, options = await open_market(store, repos)

        assert [o.text for o in options] == ["Yes", "No"]
        assert all(o.liquidity == 100.0 for o in options)
        assert store.points("creator") == 800
        seeds = [t for t in store.state.transactions if t.market_id == market_id]
        assert [t.type for t in seeds] == [TransactionType.BET_PLACED.value] * 2
        lp_bets = store.state.bets
        assert len(lp_bets) == 2
        assert all(b.user_id == "creator" and b.fee == 0 and b.shares == 100 for b in lp_bets)
        assert len(store.state.prices) == 2

    async def test_multiple_choice_uses_given_options(self) -> None:
        store = _store(seed=50)

        _, options = await open_market(
            store,
            Repos(),
            market_type=MarketType.MULTIPLE_CHOICE,
            options=[OptionIn(text="Red"), OptionIn(text="Green"), OptionIn(text="Blue")],
        )

        assert [o.text for o in options] == ["Red", "Green", "Blue"]
        assert store.points("creator") == 850

    async def test_multiple_choice_needs_two_options(self) -> None:
        store = _store()
        svc = MarketApplicationService(*_repos_tuple())

        with pytest.raises(InvalidMarketError):
            await svc.create_market(
                store.session(),
                "creator",
                _request(type=MarketType.MULTIPLE_CHOICE, options=[OptionIn(text="Only")]),
            )

    async def test_bucketless_numeric_market_costs_nothing(self) -> None:
        store = _store()

        _, options = await open_market(store, Repos(), market_type=MarketType.NUMERIC_RANGE)

        assert options == []
        assert store.points("creator") == 1000
        assert store.state.transactions == []

    async def test_overlapping_buckets_rejected(self) -> None:
        store = _store()
        svc = MarketApplicationService(*_repos_tuple())

        with pytest.raises(InvalidMarketError):
            await svc.create_market(
                store.session(),
                "creator",
                _request(
                    type=MarketType.NUMERIC_RANGE,
                    options=[
                        OptionIn(text="0-10", range_low=0, range_high=10),
                        OptionIn(text="5-15", range_low=5, range_high=15),
                    ],
                ),
            )
        assert store.state.markets == {}

    async def test_past_resolution_date_rejected(self) -> None:
        svc = MarketApplicationService(*_repos_tuple())
        with pytest.raises(InvalidMarketError):
            await svc.create_market(
                _store().session(),
                "creator",
                _request(resolution_date=utc_now() - timedelta(minutes=1)),
            )

    async def test_creator_cannot_afford_seed(self) -> None:
        store = _store(creator_points=150)
        svc = MarketApplicationService(*_repos_tuple())

        with pytest.raises(InsufficientFundsError):
            await svc.create_market(store.session(), "creator", _request())

        assert store.points("creator") == 150
        assert store.state.markets == {}
        assert store.state.bets == []

    async def test_non_member_rejected(self) -> None:
        svc = MarketApplicationService(*_repos_tuple())
        with pytest.raises(NotAMemberError):
            await svc.create_market(_store().session(), "stranger", _request())

    async def test_unknown_arena(self) -> None:
        svc = MarketApplicationService(*_repos_tuple())
        with pytest.raises(ArenaNotFoundError):
            await svc.create_market(_store().session(), "creator", _request(arena_id="nope"))


class TestGetMarket:
    async def test_detail_carries_probabilities(self) -> None:
        store = _store()
        repos = Repos()
        market_id, _ = await open_market(store, repos)
        svc = MarketApplicationService(repos.markets, repos.ledger, repos.arenas)

        detail = await svc.get_market(store.session(), market_id)

        assert detail.status == "OPEN"
        assert [o.probability for o in detail.options] == [0.5, 0.5]

    async def test_missing_market(self) -> None:
        svc = MarketApplicationService(*_repos_tuple())
        with pytest.raises(MarketNotFoundError):
            await svc.get_market(_store().session(), "missing")


def _repos_tuple() -> tuple:
    repos = Repos()
    return repos.markets, repos.ledger, repos.arenas
