"""Bet placement and quote endpoints.

POST /bets                        place a bet; 201 on success, 200 on idempotent replay
GET  /markets/{market_id}/quote   fee-adjusted payout for a prospective bet (option_id,
                                  or numeric_value on a bucketed numeric market)
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_betting.application.schemas import PlaceBetRequest
from src.pa_betting.application.service import BetService
from src.pa_common.database import get_db_session
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user

router = APIRouter(tags=["bets"])

_service = BetService()


@router.post("/bets", status_code=201)
async def place_bet(
    body: PlaceBetRequest,
    request: Request,
    response: Response,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.place_bet(db, current_user.user_id, body)
    resp = success_response(result.model_dump())
    if result.replayed:
        response.status_code = 200
        resp.message = "Bet already placed (idempotent)"
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.get("/markets/{market_id}/quote")
async def get_quote(
    market_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
    amount: int = Query(..., gt=0),
    option_id: str | None = Query(None, min_length=1),
    numeric_value: float | None = Query(None),
) -> ApiResponse:
    result = await _service.get_quote(
        db,
        current_user.user_id,
        market_id,
        amount,
        option_id=option_id,
        numeric_value=numeric_value,
    )
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
