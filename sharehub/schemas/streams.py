from datetime import datetime

from pydantic import BaseModel, ConfigDict


class StreamIn(BaseModel):
    title: str
    description: str | None = None
    thumbnail_url: str | None = None


class StreamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    title: str
    description: str | None = None
    thumbnail_url: str | None = None
    is_active: bool
    viewer_count: int
    created_at: datetime | None = None
    ended_at: datetime | None = None


class ViewerCountOut(BaseModel):
    viewer_count: int
