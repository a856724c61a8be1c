from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import JSON, Column, DateTime, Integer, Numeric, String, Text

from sharehub.db.base import Base

VIEW_CONDITIONS = ("none", "like", "comment", "subscription")


class Post(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    user_id = Column(String, nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False, default="general")  # general / media
    tags = Column(JSON, nullable=True)
    image_url = Column(String, nullable=True)
    likes_count = Column(Integer, nullable=False, default=0)
    views_count = Column(Integer, nullable=False, default=0)
    view_condition = Column(String, nullable=False, default="none")  # none / like / comment / subscription
    password = Column(String, nullable=True)
    token_cost = Column(Numeric(12, 2), nullable=True, default=Decimal("0"))
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
