"""LedgerRepository: concrete implementation of LedgerRepositoryProtocol.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
A debit that returns 0 rows means the account is missing or short of points;
the CHECK (points >= 0) constraint on accounts is the last line of defence.

Row locks are always taken in user_id order so that two units of work that
touch the same pair of accounts cannot deadlock.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.domain.models import Account, LedgerTransaction, Posting
from src.pa_common.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    InternalError,
    InvalidInputError,
)

# ---------------------------------------------------------------------------
# SQL: accounts
# ---------------------------------------------------------------------------

_ACCOUNT_COLUMNS = "id, user_id, scope_id, role, points, version, created_at, updated_at"

_GET_ACCOUNT_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE user_id = :user_id AND scope_id = :scope_id
""")

_LOCK_ACCOUNTS_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE scope_id = :scope_id AND user_id IN :user_ids
    ORDER BY user_id
    FOR UPDATE
""").bindparams(bindparam("user_ids", expanding=True))

_LOCK_SCOPE_SQL = text(f"""
    SELECT {_ACCOUNT_COLUMNS}
    FROM accounts
    WHERE scope_id = :scope_id
    ORDER BY user_id
    FOR UPDATE
""")

_INSERT_ACCOUNT_SQL = text("""
    INSERT INTO accounts (user_id, scope_id, role, points)
    VALUES (:user_id, :scope_id, :role, 0)
    ON CONFLICT (user_id, scope_id) DO NOTHING
""")

_DEBIT_SQL = text(f"""
    UPDATE accounts
    SET points = points - :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND scope_id = :scope_id AND points >= :amount
    RETURNING {_ACCOUNT_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE accounts
    SET points = points + :amount,
        version = version + 1,
        updated_at = NOW()
    WHERE user_id = :user_id AND scope_id = :scope_id
    RETURNING {_ACCOUNT_COLUMNS}
""")

# ---------------------------------------------------------------------------
# SQL: transactions (append-only)
# ---------------------------------------------------------------------------

_TX_COLUMNS = "id, type, amount, from_user_id, to_user_id, market_id, arena_id, created_at"

_INSERT_TX_SQL = text(f"""
    INSERT INTO transactions
        (type, amount, from_user_id, to_user_id, market_id, arena_id)
    VALUES
        (:type, :amount, :from_user_id, :to_user_id, :market_id, :arena_id)
    RETURNING {_TX_COLUMNS}
""")

_LIST_MARKET_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE market_id = :market_id
    ORDER BY id
""")

_LIST_USER_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    WHERE (from_user_id = :user_id OR to_user_id = :user_id)
      AND (CAST(:arena_id AS TEXT) IS NULL OR arena_id = CAST(:arena_id AS TEXT))
      AND (CAST(:cursor_id AS BIGINT) IS NULL OR id < CAST(:cursor_id AS BIGINT))
    ORDER BY id DESC
    LIMIT :limit
""")


def _row_to_account(row: object) -> Account:
    return Account(
        id=str(row.id),  # type: ignore[attr-defined]
        user_id=row.user_id,  # type: ignore[attr-defined]
        scope_id=row.scope_id,  # type: ignore[attr-defined]
        role=row.role,  # type: ignore[attr-defined]
        points=row.points,  # type: ignore[attr-defined]
        version=row.version,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
        updated_at=row.updated_at,  # type: ignore[attr-defined]
    )


def _row_to_tx(row: object) -> LedgerTransaction:
    return LedgerTransaction(
        id=row.id,  # type: ignore[attr-defined]
        type=row.type,  # type: ignore[attr-defined]
        amount=row.amount,  # type: ignore[attr-defined]
        from_user_id=row.from_user_id,  # type: ignore[attr-defined]
        to_user_id=row.to_user_id,  # type: ignore[attr-defined]
        market_id=row.market_id,  # type: ignore[attr-defined]
        arena_id=row.arena_id,  # type: ignore[attr-defined]
        created_at=row.created_at,  # type: ignore[attr-defined]
    )


class LedgerRepository:
    """Concrete ledger store: all balance changes atomic at the SQL level."""

    async def get_account(
        self, db: AsyncSession, user_id: str, scope_id: str
    ) -> Account | None:
        result = await db.execute(
            _GET_ACCOUNT_SQL, {"user_id": user_id, "scope_id": scope_id}
        )
        row = result.fetchone()
        return _row_to_account(row) if row else None

    async def lock_accounts(
        self, db: AsyncSession, scope_id: str, user_ids: list[str]
    ) -> dict[str, Account]:
        if not user_ids:
            return {}
        result = await db.execute(
            _LOCK_ACCOUNTS_SQL,
            {"scope_id": scope_id, "user_ids": sorted(set(user_ids))},
        )
        return {row.user_id: _row_to_account(row) for row in result.fetchall()}

    async def lock_scope_accounts(
        self, db: AsyncSession, scope_id: str
    ) -> list[Account]:
        result = await db.execute(_LOCK_SCOPE_SQL, {"scope_id": scope_id})
        return [_row_to_account(row) for row in result.fetchall()]

    async def ensure_account(
        self, db: AsyncSession, user_id: str, scope_id: str, role: str
    ) -> Account:
        await db.execute(
            _INSERT_ACCOUNT_SQL,
            {"user_id": user_id, "scope_id": scope_id, "role": role},
        )
        account = await self.get_account(db, user_id, scope_id)
        if account is None:
            raise InternalError("Account upsert returned no rows; this should never happen")
        return account

    async def post(self, db: AsyncSession, posting: Posting) -> LedgerTransaction:
        if posting.amount <= 0:
            raise InvalidInputError(f"Posting amount must be positive, got {posting.amount}")
        if posting.from_user_id is None and posting.to_user_id is None:
            raise InternalError("Posting must debit or credit at least one account")

        if posting.from_user_id is not None:
            await self._debit(db, posting.from_user_id, posting.scope_id, posting.amount)
        if posting.to_user_id is not None:
            await self._credit(db, posting.to_user_id, posting.scope_id, posting.amount)

        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "type": posting.type.value,
                "amount": posting.amount,
                "from_user_id": posting.from_user_id,
                "to_user_id": posting.to_user_id,
                "market_id": posting.market_id,
                "arena_id": posting.arena_id,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows; this should never happen")
        return _row_to_tx(row)

    async def _debit(
        self, db: AsyncSession, user_id: str, scope_id: str, amount: int
    ) -> Account:
        result = await db.execute(
            _DEBIT_SQL, {"user_id": user_id, "scope_id": scope_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            account = await self.get_account(db, user_id, scope_id)
            if account is None:
                raise AccountNotFoundError(user_id, scope_id)
            raise InsufficientFundsError(amount, account.points)
        return _row_to_account(row)

    async def _credit(
        self, db: AsyncSession, user_id: str, scope_id: str, amount: int
    ) -> Account:
        result = await db.execute(
            _CREDIT_SQL, {"user_id": user_id, "scope_id": scope_id, "amount": amount}
        )
        row = result.fetchone()
        if row is None:
            raise AccountNotFoundError(user_id, scope_id)
        return _row_to_account(row)

    async def list_market_transactions(
        self, db: AsyncSession, market_id: str
    ) -> list[LedgerTransaction]:
        result = await db.execute(_LIST_MARKET_TX_SQL, {"market_id": market_id})
        return [_row_to_tx(row) for row in result.fetchall()]

    async def list_user_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        arena_id: str | None,
        cursor_id: int | None,
        limit: int,
    ) -> list[LedgerTransaction]:
        result = await db.execute(
            _LIST_USER_TX_SQL,
            {
                "user_id": user_id,
                "arena_id": arena_id,
                "cursor_id": cursor_id,
                "limit": limit,
            },
        )
        return [_row_to_tx(row) for row in result.fetchall()]
