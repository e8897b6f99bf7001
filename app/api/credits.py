from fastapi import APIRouter, Depends, Query, Request
from sqlmodel import Session

from app.api.deps import get_current_user_id
from app.core.database import get_db
from app.core.rate_limit import REDEEM_RATE_LIMIT, limiter
from app.schemas import CreditsResponse, CreditTransactionOut, RedeemRequest, RedeemResponse
from app.services.credits import get_balance, list_transactions, redeem_promo_code

router = APIRouter(prefix="/api/credits", tags=["credits"])


@router.get("", response_model=CreditsResponse)
def credits_balance(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return CreditsResponse(credits=get_balance(db, user_id))


@router.get("/transactions", response_model=list[CreditTransactionOut])
def credit_transactions(
    limit: int = Query(50, ge=1, le=200),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    return [
        CreditTransactionOut(
            id=t.id,
            amount=t.amount,
            kind=t.kind,
            description=t.description,
            reference_id=t.reference_id,
            created_at=t.created_at,
        )
        for t in list_transactions(db, user_id, limit=limit)
    ]


@router.post("/redeem", response_model=RedeemResponse)
@limiter.limit(REDEEM_RATE_LIMIT)
def redeem(
    request: Request,
    body: RedeemRequest,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    added, balance = redeem_promo_code(db, user_id, body.code)
    return RedeemResponse(credits_added=added, new_balance=balance)
