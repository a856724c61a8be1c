"""
DTO доступа к контенту: ViewerContext (вход decide_access) и AccessDecision.
"""
from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


# ----- Вход для decide_access (единый контракт для постов и медиа) -----


class ViewerContext(BaseModel):
    """Кто смотрит, что требует контент и что зритель уже сделал."""

    viewer_id: str | None = None
    owner_id: str
    view_condition: str = "none"  # none / like / comment / subscription
    has_liked: bool = False
    has_commented: bool = False
    is_subscribed: bool = False
    token_cost: Decimal = Decimal("0")
    is_unlocked: bool = False  # есть TokenTransaction для (viewer, контент)
    has_password: bool = False
    password_verified: bool = False

    model_config = {"frozen": True}


# ----- Решение доступа (чистая логика, без I/O) -----


class AccessDecision(BaseModel):
    can_view: bool = Field(..., description="True = отдавать тело контента")
    blocked_by: str | None = Field(
        None,
        description="Что блокирует: condition / tokens / password; None при can_view",
    )
    view_condition: str = "none"
    token_cost: Decimal = Decimal("0")

    model_config = {"frozen": True}
