"""AccountApplicationService: balances, history and account opening.

open_account mutates the ledger and owns its commit/rollback.
get_balance and list_transactions are read-only and run without explicit transaction.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.application.schemas import (
    BalanceResponse,
    TransactionItem,
    TransactionListResponse,
    cursor_decode,
    cursor_encode,
)
from src.pa_account.domain.models import Account, Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_arena.domain.repository import ArenaRepositoryProtocol
from src.pa_arena.infrastructure.persistence import ArenaRepository
from src.pa_common.enums import MemberRole, TransactionType
from src.pa_common.errors import AccountNotFoundError, ArenaNotFoundError


class AccountApplicationService:
    def __init__(
        self,
        ledger: LedgerRepositoryProtocol | None = None,
        arenas: ArenaRepositoryProtocol | None = None,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._arenas: ArenaRepositoryProtocol = arenas or ArenaRepository()

    async def get_balance(
        self, db: AsyncSession, user_id: str, scope_id: str
    ) -> BalanceResponse:
        account = await self._ledger.get_account(db, user_id, scope_id)
        if account is None:
            raise AccountNotFoundError(user_id, scope_id)
        return BalanceResponse(
            user_id=account.user_id,
            scope_id=account.scope_id,
            role=account.role,
            points=account.points,
        )

    async def open_account(
        self,
        db: AsyncSession,
        user_id: str,
        arena_id: str,
        role: MemberRole = MemberRole.MEMBER,
    ) -> Account:
        """Create the arena account on first membership and grant the cycle allocation.

        Opening an account that already exists is a no-op returning it unchanged.
        """
        settings = await self._arenas.get_settings(db, arena_id)
        if settings is None:
            raise ArenaNotFoundError(arena_id)
        try:
            existing = await self._ledger.get_account(db, user_id, arena_id)
            if existing is not None:
                await db.rollback()
                return existing
            account = await self._ledger.ensure_account(db, user_id, arena_id, role.value)
            if settings.monthly_allocation > 0:
                await self._ledger.post(
                    db,
                    Posting(
                        type=TransactionType.MEMBERSHIP_GRANT,
                        amount=settings.monthly_allocation,
                        scope_id=arena_id,
                        to_user_id=user_id,
                    ),
                )
                account.points += settings.monthly_allocation
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return account

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        arena_id: str | None,
        cursor: str | None,
        limit: int,
    ) -> TransactionListResponse:
        cursor_id = cursor_decode(cursor)
        # Fetch limit+1 to detect has_more without a COUNT(*) query
        entries = await self._ledger.list_user_transactions(
            db, user_id, arena_id, cursor_id, limit + 1
        )
        has_more = len(entries) > limit
        page = entries[:limit]

        items = [TransactionItem.from_domain(tx, user_id) for tx in page]
        next_cursor = cursor_encode(page[-1].id) if has_more and page else None
        return TransactionListResponse(items=items, next_cursor=next_cursor, has_more=has_more)
