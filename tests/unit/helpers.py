"""Scenario builders shared by the service tests."""

from datetime import timedelta

from src.pa_common.datetime_utils import utc_now
from src.pa_common.enums import MarketType
from src.pa_market.application.schemas import CreateMarketRequest, OptionIn
from src.pa_market.application.service import MarketApplicationService
from src.pa_market.domain.models import Option
from tests.unit.fakes import (
    FakeArenaRepository,
    FakeLedgerRepository,
    FakeMarketRepository,
    FakeStore,
)


class Repos:
    def __init__(self) -> None:
        self.ledger = FakeLedgerRepository()
        self.markets = FakeMarketRepository()
        self.arenas = FakeArenaRepository()


async def open_market(
    store: FakeStore,
    repos: Repos,
    creator_id: str = "creator",
    arena_id: str = "arena-1",
    market_type: MarketType = MarketType.BINARY,
    options: list[OptionIn] | None = None,
    **bounds: int,
) -> tuple[str, list[Option]]:
    """Create a market through the service; returns its id and option rows."""
    svc = MarketApplicationService(repos.markets, repos.ledger, repos.arenas)
    detail = await svc.create_market(
        store.session(),
        creator_id,
        CreateMarketRequest(
            arena_id=arena_id,
            question="Will it happen?",
            type=market_type,
            resolution_date=utc_now() + timedelta(days=7),
            options=options or [],
            **bounds,
        ),
    )
    return detail.id, await repos.markets.list_options(store.session(), detail.id)


def option_id(options: list[Option], text: str) -> str:
    return next(o.id for o in options if o.text == text)
