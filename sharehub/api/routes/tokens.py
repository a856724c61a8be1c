from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from sharehub.api.deps import get_current_account
from sharehub.db.session import get_db
from sharehub.models.user import Account
from sharehub.services.payments.service import TokenPurchaseService
from sharehub.services.tokens.service import TokenSpendService

router = APIRouter(prefix="/tokens", tags=["tokens"])


class BalanceOut(BaseModel):
    token_balance: float
    total_purchased: float


class PurchaseOut(BaseModel):
    invoice_id: str
    amount: float
    tokens_amount: float
    status: str
    pay_url: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


@router.get("/balance", response_model=BalanceOut)
def balance(account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    current = TokenSpendService(db).get_balance(account.id)
    return BalanceOut(token_balance=float(current or 0), total_purchased=float(account.total_purchased or 0))


@router.get("/purchases", response_model=list[PurchaseOut])
def purchases(
    limit: int = Query(50, ge=1, le=200),
    account: Account = Depends(get_current_account),
    db: Session = Depends(get_db),
):
    items = TokenPurchaseService(db).list_purchases(account.id, limit=limit)
    return [
        PurchaseOut(
            invoice_id=p.payment_id,
            amount=float(p.amount),
            tokens_amount=float(p.tokens_amount),
            status=p.status,
            pay_url=p.pay_url,
            created_at=p.created_at,
            completed_at=p.completed_at,
        )
        for p in items
    ]
