"""Pydantic schemas for peer-to-peer point transfers."""

from pydantic import BaseModel, Field, field_validator


class TransferRequest(BaseModel):
    arena_id: str = Field(..., min_length=1)
    to_email: str = Field(..., min_length=3, max_length=254)
    amount: int = Field(..., gt=0)

    @field_validator("to_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("to_email must be an email address")
        return v


class TransferResponse(BaseModel):
    transaction_id: int
    arena_id: str
    from_user_id: str
    to_user_id: str
    amount: int
    balance_after: int
