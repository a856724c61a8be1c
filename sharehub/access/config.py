"""
Access config: типизированная обёртка над sharehub.core.config для отметки «пароль введён».
"""
from __future__ import annotations

from sharehub.core.config import settings


def get_password_grant_ttl() -> int:
    return settings.content_password_grant_ttl_seconds


def get_password_grant_secret() -> str:
    return settings.jwt_secret_key
