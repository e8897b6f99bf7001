from datetime import datetime

from pydantic import BaseModel, field_validator


class CreditsResponse(BaseModel):
    credits: int


class CreditTransactionOut(BaseModel):
    id: int
    amount: int
    kind: str
    description: str | None = None
    reference_id: str | None = None
    created_at: datetime


class RedeemRequest(BaseModel):
    code: str

    @field_validator("code")
    @classmethod
    def code_not_blank(cls, v: str) -> str:
        if not (v or "").strip():
            raise ValueError("Kod girilmedi.")
        return v


class RedeemResponse(BaseModel):
    success: bool = True
    credits_added: int
    new_balance: int


class GrantCreditsRequest(BaseModel):
    """Destek: kullanıcıya manuel kredi tanıma (X-Admin-Secret gerekir)."""
    user_id: int
    amount: int
    description: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_nonzero(cls, v: int) -> int:
        if v == 0:
            raise ValueError("Miktar 0 olamaz.")
        return v
