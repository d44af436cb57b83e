"""Pydantic schemas and cursor utilities for pa_account API."""

import base64
import json

from pydantic import BaseModel

from src.pa_account.domain.models import LedgerTransaction

# ---------------------------------------------------------------------------
# Cursor-based pagination utilities
# ---------------------------------------------------------------------------


def cursor_encode(last_id: int) -> str:
    """Encode a BIGINT primary key into an opaque Base64 cursor string."""
    payload = json.dumps({"id": last_id})
    return base64.b64encode(payload.encode()).decode()


def cursor_decode(cursor: str | None) -> int | None:
    """Decode a cursor string back to the last seen id. Returns None on error."""
    if cursor is None:
        return None
    try:
        payload = json.loads(base64.b64decode(cursor.encode()).decode())
        return int(payload["id"])
    except (ValueError, KeyError, TypeError):
        return None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class BalanceResponse(BaseModel):
    user_id: str
    scope_id: str
    role: str
    points: int


class TransactionItem(BaseModel):
    id: int
    type: str
    amount: int
    signed_amount: int  # from the viewer's side: negative when debited
    from_user_id: str | None
    to_user_id: str | None
    market_id: str | None
    arena_id: str | None
    created_at: str  # ISO8601 string

    @classmethod
    def from_domain(cls, tx: LedgerTransaction, viewer_id: str) -> "TransactionItem":
        signed = 0
        if tx.to_user_id == viewer_id:
            signed += tx.amount
        if tx.from_user_id == viewer_id:
            signed -= tx.amount
        return cls(
            id=tx.id,
            type=tx.type,
            amount=tx.amount,
            signed_amount=signed,
            from_user_id=tx.from_user_id,
            to_user_id=tx.to_user_id,
            market_id=tx.market_id,
            arena_id=tx.arena_id,
            created_at=tx.created_at.isoformat() if tx.created_at else "",
        )


class TransactionListResponse(BaseModel):
    items: list[TransactionItem]
    next_cursor: str | None
    has_more: bool
