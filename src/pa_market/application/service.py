"""MarketApplicationService: market creation and the market read model.

create_market owns its commit/rollback: the creator's seed debit, the market,
its option pools and the creator's LP bets land in one ledger transaction.
get_market is read-only.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.domain.models import Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_arena.domain.repository import ArenaRepositoryProtocol
from src.pa_arena.infrastructure.persistence import ArenaRepository
from src.pa_common.datetime_utils import as_utc, utc_now
from src.pa_common.enums import MarketStatus, MarketType, TransactionType
from src.pa_common.errors import (
    ArenaNotFoundError,
    InsufficientFundsError,
    InvalidMarketError,
    MarketNotFoundError,
    NotAMemberError,
)
from src.pa_market.application.schemas import CreateMarketRequest, MarketDetail, OptionIn
from src.pa_market.domain.buckets import validate_buckets
from src.pa_market.domain.models import Bet, Market, Option
from src.pa_market.domain.repository import MarketRepositoryProtocol
from src.pa_market.infrastructure.persistence import MarketRepository
from src.pa_pricing.domain.amm import probabilities

logger = logging.getLogger(__name__)

_BINARY_OPTIONS = [OptionIn(text="Yes"), OptionIn(text="No")]


def _option_specs(req: CreateMarketRequest) -> list[OptionIn]:
    if req.type == MarketType.BINARY:
        return list(_BINARY_OPTIONS)
    if req.type == MarketType.MULTIPLE_CHOICE:
        if len(req.options) < 2:
            raise InvalidMarketError("A multiple-choice market needs at least two options")
        return list(req.options)
    # NUMERIC_RANGE: either bucket options or none (closest guess wins)
    if len(req.options) == 1:
        raise InvalidMarketError("A bucketed numeric market needs at least two buckets")
    return list(req.options)


class MarketApplicationService:
    def __init__(
        self,
        markets: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        arenas: ArenaRepositoryProtocol | None = None,
    ) -> None:
        self._markets: MarketRepositoryProtocol = markets or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._arenas: ArenaRepositoryProtocol = arenas or ArenaRepository()

    async def create_market(
        self, db: AsyncSession, creator_id: str, req: CreateMarketRequest
    ) -> MarketDetail:
        """Open a market and seed every option pool from the creator's balance.

        The creator pays seed_liquidity per option and receives one LP bet per
        option (amount = shares = seed_liquidity, no fee).
        """
        if as_utc(req.resolution_date) <= utc_now():
            raise InvalidMarketError("Resolution date must be in the future")
        specs = _option_specs(req)
        settings = await self._arenas.get_settings(db, req.arena_id)
        if settings is None:
            raise ArenaNotFoundError(req.arena_id)

        market_id = uuid.uuid4().hex
        seed = settings.seed_liquidity
        options = [
            Option(
                id=uuid.uuid4().hex,
                market_id=market_id,
                text=spec.text,
                liquidity=float(seed),
                position=i,
                range_low=spec.range_low,
                range_high=spec.range_high,
            )
            for i, spec in enumerate(specs)
        ]
        if req.type == MarketType.NUMERIC_RANGE and options:
            validate_buckets(options)
        total_cost = seed * len(options)

        market = Market(
            id=market_id,
            arena_id=req.arena_id,
            creator_id=creator_id,
            question=req.question,
            type=req.type.value,
            status=MarketStatus.OPEN.value,
            resolution_date=as_utc(req.resolution_date),
            min_bet=req.min_bet,
            max_bet=req.max_bet,
        )

        try:
            accounts = await self._ledger.lock_accounts(db, req.arena_id, [creator_id])
            account = accounts.get(creator_id)
            if account is None:
                raise NotAMemberError(req.arena_id)
            if account.points < total_cost:
                raise InsufficientFundsError(total_cost, account.points)

            await self._markets.insert_market(db, market)
            await self._markets.insert_options(db, options)
            for option in options:
                await self._ledger.post(
                    db,
                    Posting(
                        type=TransactionType.BET_PLACED,
                        amount=seed,
                        scope_id=req.arena_id,
                        from_user_id=creator_id,
                        market_id=market_id,
                    ),
                )
                await self._markets.insert_bet(
                    db,
                    Bet(
                        id=uuid.uuid4().hex,
                        user_id=creator_id,
                        market_id=market_id,
                        amount=seed,
                        fee=0,
                        shares=float(seed),
                        option_id=option.id,
                    ),
                )
            prices = probabilities({o.id: o.liquidity for o in options})
            if prices:
                await self._markets.record_prices(db, market_id, prices, utc_now())
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Market created: id=%s arena=%s type=%s options=%d seed_cost=%d",
            market_id,
            req.arena_id,
            req.type.value,
            len(options),
            total_cost,
        )
        return MarketDetail.from_domain(
            market, options, probabilities({o.id: o.liquidity for o in options})
        )

    async def get_market(self, db: AsyncSession, market_id: str) -> MarketDetail:
        market = await self._markets.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        options = await self._markets.list_options(db, market_id)
        prices = probabilities({o.id: o.liquidity for o in options})
        return MarketDetail.from_domain(market, options, prices)
