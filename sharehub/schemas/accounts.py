from datetime import datetime

from pydantic import BaseModel, ConfigDict


class SignupIn(BaseModel):
    username: str
    password: str
    is_18_confirmed: bool = False


class LoginIn(BaseModel):
    username: str
    password: str


class ProfileOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    avatar_url: str | None = None
    bio: str | None = None
    subscribers_count: int = 0
    created_at: datetime | None = None


class AccountOut(ProfileOut):
    """Собственный профиль: с балансом."""

    is_18_confirmed: bool = False
    token_balance: float = 0
    total_purchased: float = 0


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AccountOut


class ProfileUpdateIn(BaseModel):
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None


class PasswordChangeIn(BaseModel):
    current_password: str
    new_password: str


class UsernameAvailableOut(BaseModel):
    username: str
    available: bool
