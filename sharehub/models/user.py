from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Text

from sharehub.db.base import Base


class Account(Base):
    __tablename__ = "accounts"
    __table_args__ = (CheckConstraint("token_balance >= 0", name="ck_accounts_balance_non_negative"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    username = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    is_18_confirmed = Column(Boolean, nullable=False, default=False)
    avatar_url = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    subscribers_count = Column(Integer, nullable=False, default=0)
    # Баланс токенов: списывается при разблокировке, пополняется после оплаты счёта
    token_balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_purchased = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
