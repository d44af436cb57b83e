"""Pydantic schemas for cycle reset results."""

from pydantic import BaseModel


class ArenaResetResult(BaseModel):
    arena_id: str
    status: str                      # "success" | "skipped" | "failed"
    winner_user_id: str | None = None
    winner_points: int | None = None
    member_count: int = 0
    next_reset_at: str | None = None
    error: str | None = None


class ResetRunResponse(BaseModel):
    results: list[ArenaResetResult]
