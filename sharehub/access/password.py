"""Проверка пароля контента и подписанная отметка «пароль введён» для последующих запросов."""
from __future__ import annotations

import hmac

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from sharehub.access.config import get_password_grant_secret, get_password_grant_ttl


def check_content_password(expected: str | None, provided: str) -> bool:
    if not expected:
        return True
    return hmac.compare_digest(expected.encode("utf-8"), (provided or "").encode("utf-8"))


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(get_password_grant_secret(), salt="content-password")


def issue_password_grant(viewer_id: str, content_id: str) -> str:
    return _serializer().dumps({"v": viewer_id, "c": content_id})


def grant_is_valid(grant: str | None, viewer_id: str | None, content_id: str) -> bool:
    if not grant or viewer_id is None:
        return False
    try:
        data = _serializer().loads(grant, max_age=get_password_grant_ttl())
    except (BadSignature, SignatureExpired):
        return False
    return isinstance(data, dict) and data.get("v") == viewer_id and data.get("c") == content_id
