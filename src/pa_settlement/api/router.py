"""Settlement endpoints.

POST /markets/{market_id}/resolve          creator / arena admin / global admin
POST /markets/{market_id}/cancel           creator / arena admin / global admin
GET  /admin/arenas/{arena_id}/invariants   global admin, conservation audit
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_common.database import get_db_session
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user, require_admin
from src.pa_settlement.application.schemas import ResolveMarketRequest
from src.pa_settlement.application.service import SettlementService

router = APIRouter(tags=["settlement"])

_service = SettlementService()


@router.post("/markets/{market_id}/resolve")
async def resolve_market(
    market_id: str,
    body: ResolveMarketRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.resolve_market(db, current_user, market_id, body)
    resp = success_response(result.model_dump())
    if result.replayed:
        resp.message = "Market already resolved (idempotent)"
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/markets/{market_id}/cancel")
async def cancel_market(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.cancel_market(db, current_user, market_id)
    resp = success_response(result.model_dump())
    if result.replayed:
        resp.message = "Market already cancelled (idempotent)"
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/admin/arenas/{arena_id}/invariants")
async def verify_invariants(
    arena_id: str,
    request: Request,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.verify_invariants(db, arena_id)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
