"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.pa_account.api.router import router as account_router
from src.pa_betting.api.router import router as betting_router
from src.pa_common.database import engine
from src.pa_common.errors import AppError, InternalError, InvalidInputError
from src.pa_common.redis_client import close_redis, get_redis
from src.pa_common.response import error_response
from src.pa_gateway.middleware.request_log import RequestLogMiddleware
from src.pa_market.api.router import router as market_router
from src.pa_reset.api.router import router as reset_router
from src.pa_reset.scheduler import start_scheduler, stop_scheduler
from src.pa_settlement.api.router import router as settlement_router
from src.pa_transfer.api.router import router as transfer_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB + Redis connections, start the scheduler. Shutdown: dispose."""
    # Startup
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    await get_redis()
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    yield
    # Shutdown
    stop_scheduler()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


def _error_json(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.kind)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=exc.http_status, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return _error_json(request, exc)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(p) for p in first.get("loc", ()))
    detail = f"{location}: {first.get('msg', 'invalid request')}" if location else "invalid request"
    return _error_json(request, InvalidInputError(detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_json(request, InternalError())


app.include_router(account_router, prefix="/api/v1")
app.include_router(market_router, prefix="/api/v1")
app.include_router(betting_router, prefix="/api/v1")
app.include_router(settlement_router, prefix="/api/v1")
app.include_router(transfer_router, prefix="/api/v1")
app.include_router(reset_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
