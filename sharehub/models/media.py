from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text

from sharehub.db.base import Base


class Media(Base):
    __tablename__ = "media"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    post_id = Column(String, nullable=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    content_type = Column(String, nullable=False)  # image / video
    file_type = Column(String, nullable=False)     # mime type
    file_url = Column(String, nullable=False)
    file_path = Column(String, nullable=True)      # путь в storage (для удаления)
    file_size = Column(Integer, nullable=True)
    password = Column(String, nullable=True)
    token_cost = Column(Numeric(12, 2), nullable=True, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
