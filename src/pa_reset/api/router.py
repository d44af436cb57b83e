"""Cycle reset endpoints.

POST /arenas/{arena_id}/reset   immediate reset by an arena admin (MANUAL cadence)
POST /cron/arena-reset          external cron trigger, Bearer CRON_SECRET when configured
"""

import hmac
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.pa_common.database import get_db_session
from src.pa_common.errors import UnauthorizedError
from src.pa_common.principal import CurrentUser
from src.pa_common.response import ApiResponse, success_response
from src.pa_gateway.auth.dependencies import get_current_user
from src.pa_reset.application.schemas import ResetRunResponse
from src.pa_reset.application.service import CycleResetJob

router = APIRouter(tags=["reset"])

_job = CycleResetJob()


def _check_cron_secret(authorization: str | None) -> None:
    if settings.CRON_SECRET is None:
        return
    expected = f"Bearer {settings.CRON_SECRET}"
    if authorization is None or not hmac.compare_digest(authorization, expected):
        raise UnauthorizedError()


@router.post("/arenas/{arena_id}/reset")
async def reset_arena(
    arena_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _job.reset_arena(db, arena_id, force=True, caller=current_user)
    resp = success_response(result.model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp


@router.post("/cron/arena-reset")
async def cron_arena_reset(
    request: Request,
    authorization: Annotated[str | None, Header()] = None,
) -> ApiResponse:
    _check_cron_secret(authorization)
    results = await _job.run_due()
    resp = success_response(ResetRunResponse(results=results).model_dump())
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return resp
