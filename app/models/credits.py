"""Kredi defteri: bakiye (user_credits) + değişmez hareketler (credit_transactions)."""
from datetime import datetime

from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


class UserCredits(SQLModel, table=True):
    __tablename__ = "user_credits"
    __table_args__ = (CheckConstraint("credits >= 0", name="ck_user_credits_non_negative"),)
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(unique=True, index=True)
    credits: int = 0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class CreditTransaction(SQLModel, table=True):
    __tablename__ = "credit_transactions"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    amount: int  # + eklenen, - harcanan
    kind: str  # render | promo_code | admin_grant | signup_grant
    description: str | None = None
    reference_id: str | None = None  # proje id, promo kod id vb.
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PromoCode(SQLModel, table=True):
    __tablename__ = "promo_codes"
    id: int | None = Field(default=None, primary_key=True)
    code: str = Field(unique=True, index=True, max_length=64)  # Büyük harf saklanır
    credits: int = 1
    max_uses: int | None = None  # None: sınırsız
    current_uses: int = 0
    expires_at: datetime | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=datetime.utcnow)


class CodeRedemption(SQLModel, table=True):
    __tablename__ = "code_redemptions"
    __table_args__ = (UniqueConstraint("user_id", "promo_code_id"),)
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    promo_code_id: int = Field(foreign_key="promo_codes.id", index=True)
    credits_granted: int
    redeemed_at: datetime = Field(default_factory=datetime.utcnow)
