"""Domain models for pa_account: pure dataclasses, no SQLAlchemy dependency."""

from dataclasses import dataclass
from datetime import datetime

from src.pa_common.enums import TransactionType

GLOBAL_SCOPE = "GLOBAL"


@dataclass
class Account:
    id: str
    user_id: str
    scope_id: str        # arena id, or GLOBAL_SCOPE
    role: str            # MemberRole value
    points: int
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LedgerTransaction:
    id: int                          # BIGSERIAL
    type: str                        # TransactionType value
    amount: int                      # always > 0; direction from from/to
    from_user_id: str | None = None  # debited account owner
    to_user_id: str | None = None    # credited account owner
    market_id: str | None = None
    arena_id: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Posting:
    """One economic event: debit `from_user_id`, credit `to_user_id`, or both.

    Both accounts live in `scope_id`. Exactly one LedgerTransaction row is
    written per posting.
    """

    type: TransactionType
    amount: int
    scope_id: str
    from_user_id: str | None = None
    to_user_id: str | None = None
    market_id: str | None = None

    @property
    def arena_id(self) -> str | None:
        return None if self.scope_id == GLOBAL_SCOPE else self.scope_id
