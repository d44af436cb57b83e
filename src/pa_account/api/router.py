"""pa_account REST API: balance and transaction history, JWT required."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_account.application.service import AccountApplicationService
from src.pa_common.database import get_db_session
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user

router = APIRouter(tags=["account"])

_service = AccountApplicationService()


@router.get("/arenas/{arena_id}/balance")
async def get_balance(
    arena_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
) -> ApiResponse:
    data = await _service.get_balance(db, current_user.user_id, arena_id)
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/transactions")
async def list_transactions(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    request: Request,
    arena_id: str | None = Query(None, description="Restrict to one arena"),
    cursor: str | None = Query(None, description="Pagination cursor (opaque Base64)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> ApiResponse:
    data = await _service.list_transactions(
        db, current_user.user_id, arena_id, cursor, limit
    )
    resp = success_response(data.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
