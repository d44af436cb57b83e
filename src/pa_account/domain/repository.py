"""Ledger Store Protocol: dependency inversion for testability.

Unit tests inject an in-memory fake that conforms to this Protocol.
Infrastructure layer provides the PostgreSQL implementation.

Every method runs inside the caller's transaction; none of them commit.
"""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.domain.models import Account, LedgerTransaction, Posting


class LedgerRepositoryProtocol(Protocol):
    async def get_account(
        self, db: AsyncSession, user_id: str, scope_id: str
    ) -> Account | None: ...

    async def lock_accounts(
        self, db: AsyncSession, scope_id: str, user_ids: list[str]
    ) -> dict[str, Account]: ...

    async def lock_scope_accounts(
        self, db: AsyncSession, scope_id: str
    ) -> list[Account]: ...

    async def ensure_account(
        self, db: AsyncSession, user_id: str, scope_id: str, role: str
    ) -> Account: ...

    async def post(self, db: AsyncSession, posting: Posting) -> LedgerTransaction: ...

    async def list_market_transactions(
        self, db: AsyncSession, market_id: str
    ) -> list[LedgerTransaction]: ...

    async def list_user_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        arena_id: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerTransaction]: ...
