from datetime import datetime

from pydantic import BaseModel, ConfigDict


class MessageIn(BaseModel):
    receiver_id: str
    content: str = ""
    image_url: str | None = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    receiver_id: str
    content: str
    image_url: str | None = None
    is_read: bool = False
    created_at: datetime | None = None


class ConversationOut(BaseModel):
    partner_id: str
    partner_username: str
    partner_avatar_url: str | None = None
    last_message: str
    last_message_at: datetime
    unread_count: int = 0


class CountOut(BaseModel):
    count: int


class GroupCreateIn(BaseModel):
    name: str
    description: str | None = None
    avatar_url: str | None = None
    member_ids: list[str] = []


class GroupUpdateIn(BaseModel):
    name: str | None = None
    description: str | None = None
    avatar_url: str | None = None


class GroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str | None = None
    avatar_url: str | None = None
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class GroupMemberIn(BaseModel):
    user_id: str


class GroupMemberOut(BaseModel):
    user_id: str
    username: str
    avatar_url: str | None = None
    role: str
    joined_at: datetime


class GroupMessageIn(BaseModel):
    content: str = ""
    image_url: str | None = None


class GroupMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    sender_id: str
    content: str
    image_url: str | None = None
    created_at: datetime | None = None
