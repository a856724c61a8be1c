"""
TokenPurchase: счёт CryptoBot и его локальный статус.
payment_id (invoice_id провайдера) уникален; pending -> completed ровно один раз.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Numeric, String

from sharehub.db.base import Base

PURCHASE_PENDING = "pending"
PURCHASE_COMPLETED = "completed"
PURCHASE_EXPIRED = "expired"


class TokenPurchase(Base):
    __tablename__ = "token_purchases"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)         # фиат (USD)
    tokens_amount = Column(Numeric(12, 2), nullable=False)  # amount * курс
    payment_id = Column(String, unique=True, nullable=False)
    status = Column(String, nullable=False, default=PURCHASE_PENDING)
    pay_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime(timezone=True), nullable=True)
