"""Repository Protocol: dependency inversion for testability.

Unit tests inject a fake that conforms to this Protocol.
Infrastructure layer provides the real implementation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_arena.domain.models import Arena, ArenaSettings, CycleRecord


class ArenaRepositoryProtocol(Protocol):
    async def get_arena(self, db: AsyncSession, arena_id: str) -> Arena | None: ...

    async def get_settings(
        self, db: AsyncSession, arena_id: str, for_update: bool = False
    ) -> ArenaSettings | None: ...

    async def list_due_arena_ids(self, db: AsyncSession, now: datetime) -> list[str]: ...

    async def set_next_reset(
        self, db: AsyncSession, arena_id: str, next_reset_at: datetime | None
    ) -> None: ...

    async def record_cycle(self, db: AsyncSession, record: CycleRecord) -> None: ...

    async def find_user_id_by_email(self, db: AsyncSession, email: str) -> str | None: ...
