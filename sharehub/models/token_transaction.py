"""
TokenTransaction: запись о разблокировке контента за токены.
Уникальна по (user_id, post_id) и (user_id, media_id): повторная разблокировка не списывает токены.
"""
from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Numeric, String, UniqueConstraint

from sharehub.db.base import Base


class TokenTransaction(Base):
    __tablename__ = "token_transactions"
    __table_args__ = (
        UniqueConstraint("user_id", "post_id", name="uq_token_transactions_user_post"),
        UniqueConstraint("user_id", "media_id", name="uq_token_transactions_user_media"),
        CheckConstraint(
            "(post_id IS NULL) <> (media_id IS NULL)",
            name="ck_token_transactions_single_target",
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    post_id = Column(String, nullable=True, index=True)
    media_id = Column(String, nullable=True, index=True)
    tokens_spent = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
