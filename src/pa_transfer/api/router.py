"""POST /transfers: send points to another member of the same arena."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.pa_common.database import get_db_session
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user
from src.pa_transfer.application.schemas import TransferRequest
from src.pa_transfer.application.service import TransferService

router = APIRouter(tags=["transfers"])

_service = TransferService()


@router.post("/transfers", status_code=201)
async def transfer_points(
    body: TransferRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.transfer_points(db, current_user.user_id, body)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
