"""pa_market REST endpoints.

POST /markets                create a market, seeding its pools from the creator
GET  /markets/{market_id}    detail with live option probabilities
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_common.database import get_db_session
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user
from src.pa_market.application.schemas import CreateMarketRequest
from src.pa_market.application.service import MarketApplicationService

router = APIRouter(prefix="/markets", tags=["markets"])

_service = MarketApplicationService()


@router.post("", status_code=201)
async def create_market(
    body: CreateMarketRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.create_market(db, current_user.user_id, body)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/{market_id}")
async def get_market(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_market(db, market_id)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
