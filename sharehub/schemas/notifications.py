from datetime import datetime

from pydantic import BaseModel, ConfigDict


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    content: str
    from_user_id: str | None = None
    post_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None


class NotificationSettingsIn(BaseModel):
    notify_on_new_posts: bool


class NotificationSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notify_on_new_posts: bool
