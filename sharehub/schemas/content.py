"""Посты и медиа. Закрытый контент отдаётся без тела: locked=True и что блокирует."""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict


class PostIn(BaseModel):
    title: str
    content: str = ""
    category: str = "general"
    tags: list[str] | None = None
    image_url: str | None = None
    view_condition: str = "none"
    password: str | None = None
    token_cost: Decimal | None = None


class PostOut(BaseModel):
    id: str
    user_id: str
    title: str
    content: str | None = None
    category: str
    tags: list[str] | None = None
    image_url: str | None = None
    likes_count: int = 0
    views_count: int = 0
    view_condition: str = "none"
    token_cost: float = 0
    has_password: bool = False
    locked: bool = False
    blocked_by: str | None = None
    created_at: datetime | None = None


class MediaOut(BaseModel):
    id: str
    user_id: str
    post_id: str | None = None
    title: str
    description: str | None = None
    content_type: str
    file_type: str
    file_url: str | None = None
    file_size: int | None = None
    token_cost: float = 0
    has_password: bool = False
    locked: bool = False
    blocked_by: str | None = None
    created_at: datetime | None = None


class PasswordIn(BaseModel):
    password: str


class PasswordGrantOut(BaseModel):
    success: bool = True
    grant: str


class CommentIn(BaseModel):
    content: str


class CommentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    post_id: str
    user_id: str
    content: str
    created_at: datetime | None = None


class ToggleOut(BaseModel):
    active: bool
