"""BetService: quote and place a single wager.

place_bet runs as one ledger transaction:
  1. lock the market row (FOR SHARE)
  2. idempotency lookup; a hit returns the stored bet and touches nothing,
     even once the market has closed or expired
  3. re-check the market is OPEN and unexpired, lock bettor + creator
     accounts (user_id order)
  4. multi-bet policy, funds check
  5. lock option rows (FOR UPDATE, id order), apply the constant-product update
  6. debit BET_PLACED, credit creator TRADING_FEE, insert bet, write pools and prices
  7. commit

Concurrent retries with the same idempotency key that both miss step 2 are
settled by UNIQUE(user_id, market_id, idempotency_key): the loser rolls back
and returns the winner's bet.
"""

import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings as app_settings
from src.pa_account.domain.models import Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_arena.domain.models import ArenaSettings
from src.pa_arena.domain.repository import ArenaRepositoryProtocol
from src.pa_arena.infrastructure.persistence import ArenaRepository
from src.pa_betting.application.schemas import (
    BetResponse,
    PlaceBetRequest,
    PlaceBetResponse,
    QuoteResponse,
)
from src.pa_common.datetime_utils import as_utc, utc_now
from src.pa_common.enums import MarketStatus, MarketType, TransactionType
from src.pa_common.errors import (
    ArenaNotFoundError,
    BetLimitViolationError,
    InsufficientFundsError,
    InvalidOptionError,
    MarketClosedError,
    MarketExpiredError,
    MarketNotFoundError,
    NotAMemberError,
)
from src.pa_market.domain.buckets import bucket_for, is_bucketed
from src.pa_market.domain.models import Bet, Market, Option
from src.pa_market.domain.repository import MarketRepositoryProtocol
from src.pa_market.infrastructure.persistence import MarketRepository
from src.pa_pricing.domain import amm

logger = logging.getLogger(__name__)


def _check_open(market: Market) -> None:
    if market.status != MarketStatus.OPEN.value:
        raise MarketClosedError(market.id, market.status)
    if utc_now() >= as_utc(market.resolution_date):
        raise MarketExpiredError(market.id)


def _check_bounds(market: Market, amount: int) -> None:
    if market.min_bet is not None and amount < market.min_bet:
        raise BetLimitViolationError(f"Minimum bet is {market.min_bet} points")
    if market.max_bet is not None and amount > market.max_bet:
        raise BetLimitViolationError(f"Maximum bet is {market.max_bet} points")


def _resolve_target(
    market: Market,
    options: list[Option],
    option_id: str | None,
    numeric_value: float | None,
) -> str | None:
    """Return the option the bet lands on, or None for a bucketless numeric guess."""
    if market.type == MarketType.NUMERIC_RANGE.value:
        if numeric_value is None:
            raise InvalidOptionError("A numeric market needs numeric_value")
        if not is_bucketed(options):
            return None
        bucket = bucket_for(options, numeric_value)
        if bucket is None:
            raise InvalidOptionError(f"Value {numeric_value} falls outside every bucket")
        if option_id is not None and option_id != bucket.id:
            raise InvalidOptionError("option_id does not match the bucket of numeric_value")
        return bucket.id

    if option_id is None:
        raise InvalidOptionError("option_id is required")
    if option_id not in {o.id for o in options}:
        raise InvalidOptionError(f"Option {option_id} is not part of market {market.id}")
    return option_id


def _fee_percent(
    policy: ArenaSettings, market: Market, user_id: str, creator_has_account: bool
) -> float:
    """Fee rate charged to this bettor; the creator never pays on their own market."""
    if user_id == market.creator_id or not creator_has_account:
        return 0.0
    return policy.trading_fee_percent


class BetService:
    def __init__(
        self,
        markets: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        arenas: ArenaRepositoryProtocol | None = None,
        liquidity_floor: float | None = None,
    ) -> None:
        self._markets: MarketRepositoryProtocol = markets or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._arenas: ArenaRepositoryProtocol = arenas or ArenaRepository()
        self._floor = (
            app_settings.LIQUIDITY_FLOOR if liquidity_floor is None else liquidity_floor
        )

    async def _settings(self, db: AsyncSession, arena_id: str) -> ArenaSettings:
        policy = await self._arenas.get_settings(db, arena_id)
        if policy is None:
            raise ArenaNotFoundError(arena_id)
        return policy

    async def get_quote(
        self,
        db: AsyncSession,
        user_id: str,
        market_id: str,
        amount: int,
        option_id: str | None = None,
        numeric_value: float | None = None,
    ) -> QuoteResponse:
        """Price a prospective bet for `user_id` from a snapshot read; nothing is locked.

        The fee follows the same rule as place_bet, so the creator quoting their
        own market sees fee 0. Bucketed numeric markets take `numeric_value` and
        are quoted on the matching bucket.
        """
        market = await self._markets.get_market(db, market_id)
        if market is None:
            raise MarketNotFoundError(market_id)
        _check_open(market)
        options = await self._markets.list_options(db, market_id)
        target = _resolve_target(market, options, option_id, numeric_value)
        if target is None:
            raise InvalidOptionError(
                "Bucketless numeric markets pay the closest guesses and have no price"
            )
        policy = await self._settings(db, market.arena_id)
        creator = await self._ledger.get_account(db, market.creator_id, market.arena_id)
        fee_percent = _fee_percent(policy, market, user_id, creator is not None)

        liquidity = {o.id: o.liquidity for o in options}
        q = amm.quote(liquidity, target, amount, fee_percent)
        update = amm.apply_bet(liquidity, target, q.net_stake)
        return QuoteResponse(
            market_id=market_id,
            option_id=target,
            numeric_value=numeric_value,
            amount=q.amount,
            fee=q.fee,
            net_stake=q.net_stake,
            probability=q.probability,
            payout=q.payout,
            estimated_shares=update.shares,
            probability_after=amm.probability(update.liquidity, target),
        )

    async def place_bet(
        self, db: AsyncSession, user_id: str, req: PlaceBetRequest
    ) -> PlaceBetResponse:
        try:
            bet = await self._place(db, user_id, req)
            if bet is None:
                # Idempotent hit: nothing was written, release the locks.
                await db.rollback()
                existing = await self._markets.find_bet_by_key(
                    db, user_id, req.market_id, req.idempotency_key  # type: ignore[arg-type]
                )
                logger.info(
                    "Bet idempotency hit: user=%s market=%s key=%s",
                    user_id,
                    req.market_id,
                    req.idempotency_key,
                )
                bet = BetResponse.from_domain(existing)  # type: ignore[arg-type]
                return PlaceBetResponse(bet=bet, replayed=True)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            if req.idempotency_key is None:
                raise
            existing = await self._markets.find_bet_by_key(
                db, user_id, req.market_id, req.idempotency_key
            )
            if existing is None:
                raise
            logger.info(
                "Bet idempotency race resolved: user=%s market=%s key=%s",
                user_id,
                req.market_id,
                req.idempotency_key,
            )
            return PlaceBetResponse(bet=BetResponse.from_domain(existing), replayed=True)
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Bet placed: id=%s user=%s market=%s amount=%d fee=%d shares=%.4f",
            bet.id,
            user_id,
            bet.market_id,
            bet.amount,
            bet.fee,
            bet.shares,
        )
        return PlaceBetResponse(bet=BetResponse.from_domain(bet), replayed=False)

    async def _place(
        self, db: AsyncSession, user_id: str, req: PlaceBetRequest
    ) -> Bet | None:
        """All reads and writes of one bet; returns None on an idempotent hit."""
        market = await self._markets.lock_market(db, req.market_id)
        if market is None:
            raise MarketNotFoundError(req.market_id)

        # A committed bet replays even after the market closed or expired.
        if req.idempotency_key is not None:
            existing = await self._markets.find_bet_by_key(
                db, user_id, market.id, req.idempotency_key
            )
            if existing is not None:
                return None

        _check_open(market)
        _check_bounds(market, req.amount)
        policy = await self._settings(db, market.arena_id)

        accounts = await self._ledger.lock_accounts(
            db, market.arena_id, [user_id, market.creator_id]
        )
        account = accounts.get(user_id)
        if account is None:
            raise NotAMemberError(market.arena_id)

        if policy.limit_multiple_bets:
            if await self._markets.count_user_bets(db, user_id, market.id) > 0:
                others = await self._markets.count_other_bettors(db, user_id, market.id)
                if others < policy.multi_bet_threshold:
                    raise BetLimitViolationError(
                        f"Additional bets need at least {policy.multi_bet_threshold} "
                        f"other bettors on this market, currently {others}"
                    )

        if account.points < req.amount:
            raise InsufficientFundsError(req.amount, account.points)

        fee_percent = _fee_percent(policy, market, user_id, market.creator_id in accounts)
        fee = amm.trading_fee(req.amount, fee_percent)
        net_stake = req.amount - fee

        options = await self._markets.lock_options(db, market.id)
        target = _resolve_target(market, options, req.option_id, req.numeric_value)
        new_liquidity: dict[str, float] | None = None
        if target is not None:
            liquidity = {o.id: o.liquidity for o in options}
            update = amm.apply_bet(liquidity, target, net_stake)
            if update.liquidity[target] < self._floor:
                raise BetLimitViolationError(
                    "Bet is too large for the current pool depth of this option"
                )
            shares = update.shares
            new_liquidity = update.liquidity
        else:
            shares = float(net_stake)

        await self._ledger.post(
            db,
            Posting(
                type=TransactionType.BET_PLACED,
                amount=req.amount,
                scope_id=market.arena_id,
                from_user_id=user_id,
                market_id=market.id,
            ),
        )
        if fee > 0:
            await self._ledger.post(
                db,
                Posting(
                    type=TransactionType.TRADING_FEE,
                    amount=fee,
                    scope_id=market.arena_id,
                    to_user_id=market.creator_id,
                    market_id=market.id,
                ),
            )

        bet = Bet(
            id=uuid.uuid4().hex,
            user_id=user_id,
            market_id=market.id,
            amount=req.amount,
            fee=fee,
            shares=shares,
            option_id=target,
            numeric_value=req.numeric_value,
            idempotency_key=req.idempotency_key,
            created_at=utc_now(),
        )
        await self._markets.insert_bet(db, bet)

        if new_liquidity is not None:
            await self._markets.update_liquidity(db, new_liquidity)
            await self._markets.record_prices(
                db, market.id, amm.probabilities(new_liquidity), utc_now()
            )
        return bet
