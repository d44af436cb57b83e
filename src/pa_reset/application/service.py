"""CycleResetJob: per-arena season close and point re-allocation.

Each arena is reset in its own session and transaction: one arena failing
rolls back only that arena. Within an arena:

  1. lock the arena_settings row and re-check the reset is due (unless forced)
  2. lock every account in the arena (user_id order), skipping SYSTEM accounts
  3. pick the winner on pre-reset balances
  4. post one MONTHLY_RESET per member whose balance changes
  5. advance next_reset_at (None for MANUAL) and record the cycle
  6. commit, then notify the winner
"""

import logging
from collections.abc import Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.domain.models import Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_arena.domain.models import CycleRecord
from src.pa_arena.domain.repository import ArenaRepositoryProtocol
from src.pa_arena.infrastructure.persistence import ArenaRepository
from src.pa_common.database import async_session_factory
from src.pa_common.datetime_utils import as_utc, utc_now
from src.pa_common.enums import MemberRole, NotificationType, TransactionType
from src.pa_common.errors import ArenaNotFoundError, ForbiddenError
from src.pa_common.principal import CurrentUser
from src.pa_notify.application.dispatcher import dispatch
from src.pa_notify.domain.events import NotificationEvent, NotificationPublisherProtocol
from src.pa_notify.infrastructure.redis_publisher import RedisNotificationPublisher
from src.pa_reset.application.schemas import ArenaResetResult
from src.pa_reset.domain.schedule import is_due, next_reset_at, pick_winner, plan_adjustments

logger = logging.getLogger(__name__)


class CycleResetJob:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] | None = None,
        ledger: LedgerRepositoryProtocol | None = None,
        arenas: ArenaRepositoryProtocol | None = None,
        publisher: NotificationPublisherProtocol | None = None,
    ) -> None:
        self._session_factory = session_factory or async_session_factory
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._arenas: ArenaRepositoryProtocol = arenas or ArenaRepository()
        self._publisher: NotificationPublisherProtocol = (
            publisher or RedisNotificationPublisher()
        )

    async def run_due(self, now: datetime | None = None) -> list[ArenaResetResult]:
        """Reset every arena whose next_reset_at has passed. Safe to re-run."""
        now = as_utc(now) if now else utc_now()
        async with self._session_factory() as db:
            due = await self._arenas.list_due_arena_ids(db, now)

        results: list[ArenaResetResult] = []
        for arena_id in due:
            try:
                async with self._session_factory() as db:
                    results.append(await self.reset_arena(db, arena_id, now=now))
            except Exception as exc:
                logger.exception("Arena reset failed: arena=%s", arena_id)
                results.append(
                    ArenaResetResult(arena_id=arena_id, status="failed", error=str(exc))
                )
        if due:
            logger.info(
                "Reset run: due=%d success=%d failed=%d",
                len(due),
                sum(1 for r in results if r.status == "success"),
                sum(1 for r in results if r.status == "failed"),
            )
        return results

    async def reset_arena(
        self,
        db: AsyncSession,
        arena_id: str,
        now: datetime | None = None,
        force: bool = False,
        caller: CurrentUser | None = None,
    ) -> ArenaResetResult:
        """Reset one arena in the given session.

        force=True skips the due check (manual reset); `caller`, when given,
        must be a global admin or an ADMIN member of the arena.
        """
        now = as_utc(now) if now else utc_now()
        try:
            policy = await self._arenas.get_settings(db, arena_id, for_update=True)
            if policy is None:
                raise ArenaNotFoundError(arena_id)
            if caller is not None:
                await self._authorize(db, arena_id, caller)
            if not force and not is_due(policy, now):
                await db.rollback()
                scheduled = policy.next_reset_at
                return ArenaResetResult(
                    arena_id=arena_id,
                    status="skipped",
                    next_reset_at=scheduled.isoformat() if scheduled else None,
                )

            members = [
                a
                for a in await self._ledger.lock_scope_accounts(db, arena_id)
                if a.role != MemberRole.SYSTEM.value
            ]
            winner = pick_winner(policy, members)
            for adj in plan_adjustments(policy, members):
                if adj.delta == 0:
                    continue
                await self._ledger.post(
                    db,
                    Posting(
                        type=TransactionType.MONTHLY_RESET,
                        amount=abs(adj.delta),
                        scope_id=arena_id,
                        to_user_id=adj.user_id if adj.delta > 0 else None,
                        from_user_id=adj.user_id if adj.delta < 0 else None,
                    ),
                )

            upcoming = next_reset_at(policy, now)
            await self._arenas.set_next_reset(db, arena_id, upcoming)
            await self._arenas.record_cycle(
                db,
                CycleRecord(
                    arena_id=arena_id,
                    winner_user_id=winner.user_id if winner else None,
                    winner_points=winner.points if winner else 0,
                    member_count=len(members),
                    reset_at=now,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Arena reset: arena=%s members=%d winner=%s points=%s next=%s",
            arena_id,
            len(members),
            winner.user_id if winner else None,
            winner.points if winner else None,
            upcoming,
        )
        if winner is not None:
            await dispatch(
                self._publisher,
                [
                    NotificationEvent(
                        type=NotificationType.MONTHLY_WINNER,
                        user_id=winner.user_id,
                        arena_id=arena_id,
                        payload={"points": winner.points},
                    )
                ],
            )
        return ArenaResetResult(
            arena_id=arena_id,
            status="success",
            winner_user_id=winner.user_id if winner else None,
            winner_points=winner.points if winner else None,
            member_count=len(members),
            next_reset_at=upcoming.isoformat() if upcoming else None,
        )

    async def _authorize(self, db: AsyncSession, arena_id: str, caller: CurrentUser) -> None:
        if caller.is_admin:
            return
        account = await self._ledger.get_account(db, caller.user_id, arena_id)
        if account is None or account.role != MemberRole.ADMIN.value:
            raise ForbiddenError("Only an arena admin can reset the arena")
