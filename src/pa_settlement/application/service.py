"""SettlementService: resolve or cancel a market and disburse its pool.

Both operations are one ledger transaction under an exclusive market lock
(FOR UPDATE), so no bet can land between reading the bets and paying them.
Status is re-checked under the lock; a market already in the requested end
state returns its recorded result instead of paying twice.

Dust policy: rounding residue, unclaimed pools and shares owed to users
without an arena account are credited to the DUST_SINK_USER_ID account
(role SYSTEM) as SETTLEMENT_DUST.

Notifications are published after commit; delivery failures never surface.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings as app_settings
from src.pa_account.domain.models import Account, Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_common.datetime_utils import utc_now
from src.pa_common.enums import MarketStatus, MemberRole, NotificationType, TransactionType
from src.pa_common.errors import ForbiddenError, MarketClosedError, MarketNotFoundError
from src.pa_common.principal import CurrentUser
from src.pa_market.domain.models import Bet, Market
from src.pa_market.domain.repository import MarketRepositoryProtocol
from src.pa_market.infrastructure.persistence import MarketRepository
from src.pa_notify.application.dispatcher import dispatch
from src.pa_notify.domain.events import NotificationEvent, NotificationPublisherProtocol
from src.pa_notify.infrastructure.redis_publisher import RedisNotificationPublisher
from src.pa_settlement.application.schemas import (
    CancellationResult,
    InvariantReport,
    ResolveMarketRequest,
    SettlementResult,
)
from src.pa_settlement.domain.invariants import verify_arena_invariants
from src.pa_settlement.domain.payout import (
    pick_outcome,
    plan_refunds,
    plan_settlement,
    total_pool,
)

logger = logging.getLogger(__name__)

_SETTLEABLE = {MarketStatus.OPEN.value, MarketStatus.PENDING_RESOLUTION.value}


class SettlementService:
    def __init__(
        self,
        markets: MarketRepositoryProtocol | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        publisher: NotificationPublisherProtocol | None = None,
        sink_user_id: str | None = None,
    ) -> None:
        self._markets: MarketRepositoryProtocol = markets or MarketRepository()
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._publisher: NotificationPublisherProtocol = (
            publisher or RedisNotificationPublisher()
        )
        self._sink = sink_user_id or app_settings.DUST_SINK_USER_ID

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def resolve_market(
        self,
        db: AsyncSession,
        caller: CurrentUser,
        market_id: str,
        req: ResolveMarketRequest,
    ) -> SettlementResult:
        try:
            market = await self._lock_market(db, market_id)
            await self._authorize(db, market, caller)

            if market.status == MarketStatus.RESOLVED.value:
                result = await self._replay_resolution(db, market, req)
                await db.rollback()
                return result
            if market.status not in _SETTLEABLE:
                raise MarketClosedError(market.id, market.status)

            options = await self._markets.list_options(db, market.id)
            bets = await self._markets.list_bets(db, market.id)
            outcome = pick_outcome(
                market, options, bets, req.winning_option_id, req.winning_value
            )
            plan = plan_settlement(bets, outcome)

            accounts = await self._ledger.lock_accounts(
                db, market.arena_id, [*plan.payouts, self._sink]
            )
            payouts: dict[str, int] = {}
            dust = plan.dust
            for user_id in sorted(plan.payouts):
                if user_id in accounts:
                    payouts[user_id] = plan.payouts[user_id]
                else:
                    logger.warning(
                        "Winner %s has no account in arena %s; %d points go to the sink",
                        user_id,
                        market.arena_id,
                        plan.payouts[user_id],
                    )
                    dust += plan.payouts[user_id]

            for user_id, amount in payouts.items():
                await self._ledger.post(
                    db,
                    Posting(
                        type=TransactionType.WIN_PAYOUT,
                        amount=amount,
                        scope_id=market.arena_id,
                        to_user_id=user_id,
                        market_id=market.id,
                    ),
                )
            await self._sweep(db, market, dust, accounts)

            await self._markets.mark_resolved(
                db, market.id, outcome.winning_option_id, outcome.winning_value, utc_now()
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Market resolved: id=%s option=%s value=%s pool=%d winners=%d dust=%d",
            market.id,
            outcome.winning_option_id,
            outcome.winning_value,
            plan.total_pool,
            len(payouts),
            dust,
        )
        await dispatch(
            self._publisher,
            self._resolution_events(market, bets, payouts, plan.total_pool),
        )
        return SettlementResult(
            market_id=market.id,
            status=MarketStatus.RESOLVED.value,
            winning_option_id=outcome.winning_option_id,
            winning_value=outcome.winning_value,
            total_pool=plan.total_pool,
            payouts=payouts,
            dust=dust,
        )

    async def _replay_resolution(
        self, db: AsyncSession, market: Market, req: ResolveMarketRequest
    ) -> SettlementResult:
        if (
            req.winning_option_id is not None
            and market.winning_option_id is not None
            and req.winning_option_id != market.winning_option_id
        ) or (
            req.winning_value is not None
            and market.winning_value is not None
            and req.winning_value != market.winning_value
        ):
            logger.warning(
                "Resolve replay ignores new data: market=%s recorded=%s/%s "
                "requested=%s/%s",
                market.id,
                market.winning_option_id,
                market.winning_value,
                req.winning_option_id,
                req.winning_value,
            )
        payouts: dict[str, int] = {}
        dust = 0
        for tx in await self._ledger.list_market_transactions(db, market.id):
            if tx.type == TransactionType.WIN_PAYOUT.value and tx.to_user_id is not None:
                payouts[tx.to_user_id] = payouts.get(tx.to_user_id, 0) + tx.amount
            elif tx.type == TransactionType.SETTLEMENT_DUST.value:
                dust += tx.amount
        bets = await self._markets.list_bets(db, market.id)
        logger.info("Resolve replay: market=%s already RESOLVED", market.id)
        return SettlementResult(
            market_id=market.id,
            status=MarketStatus.RESOLVED.value,
            winning_option_id=market.winning_option_id,
            winning_value=market.winning_value,
            total_pool=total_pool(bets),
            payouts=payouts,
            dust=dust,
            replayed=True,
        )

    def _resolution_events(
        self,
        market: Market,
        bets: list[Bet],
        payouts: dict[str, int],
        pool: int,
    ) -> list[NotificationEvent]:
        events = [
            NotificationEvent(
                type=NotificationType.WIN_PAYOUT,
                user_id=user_id,
                market_id=market.id,
                arena_id=market.arena_id,
                payload={"amount": amount, "question": market.question},
            )
            for user_id, amount in payouts.items()
        ]
        for user_id in sorted({b.user_id for b in bets}):
            events.append(
                NotificationEvent(
                    type=NotificationType.BET_RESOLVED,
                    user_id=user_id,
                    market_id=market.id,
                    arena_id=market.arena_id,
                    payload={"won": user_id in payouts, "payout": payouts.get(user_id, 0)},
                )
            )
        events.append(
            NotificationEvent(
                type=NotificationType.MARKET_RESOLVED,
                user_id=market.creator_id,
                market_id=market.id,
                arena_id=market.arena_id,
                payload={"total_pool": pool, "winners": len(payouts)},
            )
        )
        return events

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    async def cancel_market(
        self, db: AsyncSession, caller: CurrentUser, market_id: str
    ) -> CancellationResult:
        try:
            market = await self._lock_market(db, market_id)
            await self._authorize(db, market, caller)

            if market.status == MarketStatus.CANCELLED.value:
                refunds: dict[str, int] = {}
                for tx in await self._ledger.list_market_transactions(db, market.id):
                    if tx.type == TransactionType.BET_REFUND.value and tx.to_user_id:
                        refunds[tx.to_user_id] = refunds.get(tx.to_user_id, 0) + tx.amount
                await db.rollback()
                logger.info("Cancel replay: market=%s already CANCELLED", market.id)
                return CancellationResult(
                    market_id=market.id,
                    status=market.status,
                    refunds=refunds,
                    replayed=True,
                )
            if market.status not in _SETTLEABLE:
                raise MarketClosedError(market.id, market.status)

            planned = plan_refunds(await self._markets.list_bets(db, market.id))
            accounts = await self._ledger.lock_accounts(
                db, market.arena_id, [*planned, self._sink]
            )
            refunds = {}
            orphaned = 0
            for user_id in sorted(planned):
                if user_id in accounts:
                    refunds[user_id] = planned[user_id]
                    await self._ledger.post(
                        db,
                        Posting(
                            type=TransactionType.BET_REFUND,
                            amount=planned[user_id],
                            scope_id=market.arena_id,
                            to_user_id=user_id,
                            market_id=market.id,
                        ),
                    )
                else:
                    orphaned += planned[user_id]
            await self._sweep(db, market, orphaned, accounts)
            await self._markets.mark_cancelled(db, market.id, utc_now())
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Market cancelled: id=%s refunded=%d bettors=%d",
            market.id,
            sum(refunds.values()),
            len(refunds),
        )
        return CancellationResult(
            market_id=market.id, status=MarketStatus.CANCELLED.value, refunds=refunds
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def verify_invariants(self, db: AsyncSession, arena_id: str) -> InvariantReport:
        violations = await verify_arena_invariants(db, arena_id)
        return InvariantReport(arena_id=arena_id, ok=not violations, violations=violations)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _lock_market(self, db: AsyncSession, market_id: str) -> Market:
        market = await self._markets.lock_market(db, market_id, exclusive=True)
        if market is None:
            raise MarketNotFoundError(market_id)
        return market

    async def _authorize(self, db: AsyncSession, market: Market, caller: CurrentUser) -> None:
        """Creator, global admin, or an ADMIN member of the market's arena."""
        if caller.is_admin or caller.user_id == market.creator_id:
            return
        account = await self._ledger.get_account(db, caller.user_id, market.arena_id)
        if account is None or account.role != MemberRole.ADMIN.value:
            raise ForbiddenError("Only the market creator or an arena admin can do this")

    async def _sweep(
        self,
        db: AsyncSession,
        market: Market,
        amount: int,
        accounts: dict[str, Account],
    ) -> None:
        if amount <= 0:
            return
        if self._sink not in accounts:
            await self._ledger.ensure_account(
                db, self._sink, market.arena_id, MemberRole.SYSTEM.value
            )
        await self._ledger.post(
            db,
            Posting(
                type=TransactionType.SETTLEMENT_DUST,
                amount=amount,
                scope_id=market.arena_id,
                to_user_id=self._sink,
                market_id=market.id,
            ),
        )
