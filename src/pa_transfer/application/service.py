"""TransferService: move points between two members of one arena.

Policy checks run before any lock is taken. The debit, the credit and the
single USER_TRANSFER row are one ledger transaction, with both account rows
locked in user_id order.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.domain.models import Posting
from src.pa_account.domain.repository import LedgerRepositoryProtocol
from src.pa_account.infrastructure.persistence import LedgerRepository
from src.pa_arena.domain.repository import ArenaRepositoryProtocol
from src.pa_arena.infrastructure.persistence import ArenaRepository
from src.pa_common.enums import TransactionType
from src.pa_common.errors import (
    ArenaNotFoundError,
    InsufficientFundsError,
    LimitExceededError,
    NotAMemberError,
    ReceiverNotFoundError,
    ReceiverNotMemberError,
    SelfTransferError,
    TransfersDisabledError,
)
from src.pa_transfer.application.schemas import TransferRequest, TransferResponse

logger = logging.getLogger(__name__)


class TransferService:
    def __init__(
        self,
        ledger: LedgerRepositoryProtocol | None = None,
        arenas: ArenaRepositoryProtocol | None = None,
    ) -> None:
        self._ledger: LedgerRepositoryProtocol = ledger or LedgerRepository()
        self._arenas: ArenaRepositoryProtocol = arenas or ArenaRepository()

    async def transfer_points(
        self, db: AsyncSession, sender_id: str, req: TransferRequest
    ) -> TransferResponse:
        try:
            policy = await self._arenas.get_settings(db, req.arena_id)
            if policy is None:
                raise ArenaNotFoundError(req.arena_id)
            if not policy.allow_transfers:
                raise TransfersDisabledError(req.arena_id)
            if policy.transfer_limit is not None and req.amount > policy.transfer_limit:
                raise LimitExceededError(req.amount, policy.transfer_limit)

            receiver_id = await self._arenas.find_user_id_by_email(db, req.to_email)
            if receiver_id is None:
                raise ReceiverNotFoundError(req.to_email)
            if receiver_id == sender_id:
                raise SelfTransferError()

            accounts = await self._ledger.lock_accounts(
                db, req.arena_id, [sender_id, receiver_id]
            )
            sender = accounts.get(sender_id)
            if sender is None:
                raise NotAMemberError(req.arena_id)
            if receiver_id not in accounts:
                raise ReceiverNotMemberError(req.arena_id)
            if sender.points < req.amount:
                raise InsufficientFundsError(req.amount, sender.points)

            tx = await self._ledger.post(
                db,
                Posting(
                    type=TransactionType.USER_TRANSFER,
                    amount=req.amount,
                    scope_id=req.arena_id,
                    from_user_id=sender_id,
                    to_user_id=receiver_id,
                ),
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Transfer: arena=%s from=%s to=%s amount=%d tx=%s",
            req.arena_id,
            sender_id,
            receiver_id,
            req.amount,
            tx.id,
        )
        return TransferResponse(
            transaction_id=tx.id,
            arena_id=req.arena_id,
            from_user_id=sender_id,
            to_user_id=receiver_id,
            amount=req.amount,
            balance_after=sender.points - req.amount,
        )
