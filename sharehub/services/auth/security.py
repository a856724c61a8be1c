"""
Пароли (bcrypt) и bearer-токены (JWT HS256) пользователей.
"""
import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from sharehub.core.config import settings
from sharehub.core.errors import AuthError

logger = logging.getLogger("auth")

# bcrypt учитывает только первые 72 байта; bcrypt>=5 на более длинных падает с ValueError
BCRYPT_MAX_PASSWORD_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(account_id: str, ttl_seconds: int | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": account_id,
        "iat": now,
        "exp": now + timedelta(seconds=ttl_seconds or settings.jwt_ttl_seconds),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> str:
    """Returns account id (sub). Raises AuthError on expired/invalid token."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthError("Token expired")
    except jwt.InvalidTokenError:
        raise AuthError("Invalid user token")
    sub = payload.get("sub")
    if not sub:
        raise AuthError("Invalid user token")
    return str(sub)
