"""
Realtime: события изменений таблиц публикуются в Redis pub/sub (канал realtime:{table}).
WebSocket-подписчики фильтруют их предикатом вида "post_id=eq.<id>".
"""
import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

import redis
from sqlalchemy import inspect

from sharehub.core.config import settings

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "realtime:"

# Поля, которые не уходят подписчикам
_HIDDEN_FIELDS = frozenset({"password", "password_hash", "file_path"})

# Тело закрытого поста/медиа отдаётся только через GET с проверкой доступа
_GATED_TABLES = frozenset({"posts", "media"})
_GATED_FIELDS = frozenset({"content", "image_url", "file_url"})


def channel_for(table: str) -> str:
    return f"{CHANNEL_PREFIX}{table}"


def is_gated(obj: Any) -> bool:
    """Есть цена в токенах, условие просмотра или пароль."""
    if getattr(obj, "__tablename__", None) not in _GATED_TABLES:
        return False
    cost = Decimal(getattr(obj, "token_cost", None) or 0)
    condition = getattr(obj, "view_condition", None) or "none"
    return cost > 0 or condition != "none" or bool(getattr(obj, "password", None))


def row_to_dict(obj: Any) -> dict[str, Any]:
    gated = is_gated(obj)
    result = {}
    for attr in inspect(obj).mapper.column_attrs:
        if attr.key in _HIDDEN_FIELDS or (gated and attr.key in _GATED_FIELDS):
            continue
        value = getattr(obj, attr.key)
        if isinstance(value, datetime):
            value = value.isoformat()
        elif isinstance(value, Decimal):
            value = float(value)
        result[attr.key] = value
    if obj.__tablename__ in _GATED_TABLES:
        result["locked"] = gated
    return result


def parse_filter(expr: str | None) -> tuple[str, str] | None:
    """'post_id=eq.abc' -> ('post_id', 'abc'). Поддерживается только eq."""
    if not expr:
        return None
    column, sep, rest = expr.partition("=")
    if not sep or not rest.startswith("eq."):
        raise ValueError(f"Unsupported filter: {expr}")
    return column.strip(), rest[3:]


def matches_filter(record: dict[str, Any], flt: tuple[str, str] | None) -> bool:
    if flt is None:
        return True
    column, value = flt
    return str(record.get(column)) == value


class RealtimePublisher:
    def __init__(self, client: redis.Redis | None = None, enabled: bool | None = None) -> None:
        self.enabled = settings.realtime_enabled if enabled is None else enabled
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(settings.redis_url, decode_responses=True)
        return self._client

    def publish(self, table: str, event: str, record: dict[str, Any]) -> None:
        """event: INSERT / UPDATE / DELETE. Ошибка Redis не ломает запись в БД."""
        if not self.enabled:
            return
        message = json.dumps({"table": table, "event": event, "record": record}, ensure_ascii=False, default=str)
        try:
            self.client.publish(channel_for(table), message)
        except redis.RedisError as e:
            logger.warning("realtime_publish_failed", extra={"error": str(e), "table": table})

    def publish_row(self, event: str, obj: Any) -> None:
        if not self.enabled:
            return
        self.publish(obj.__tablename__, event, row_to_dict(obj))


_publisher: RealtimePublisher | None = None


def get_publisher() -> RealtimePublisher:
    global _publisher
    if _publisher is None:
        _publisher = RealtimePublisher()
    return _publisher


# Личные таблицы: событие видят только участники
_PRIVATE_TABLES = {
    "messages": ("sender_id", "receiver_id"),
    "notifications": ("user_id",),
}

# Групповые таблицы: подписка только на одну группу (колонка фильтра), членство проверяется при подключении
GROUP_TABLES = {"group_chats": "id", "group_members": "group_id", "group_messages": "group_id"}

SUBSCRIBABLE_TABLES = frozenset(
    {"posts", "comments", "post_likes", "media", "live_streams", "messages", "notifications", *GROUP_TABLES}
)


def group_scope(table: str, flt: tuple[str, str] | None) -> str | None:
    """id группы, на которую сужена подписка; None для негрупповых таблиц."""
    column = GROUP_TABLES.get(table)
    if column is None:
        return None
    if flt is None or flt[0] != column or not flt[1]:
        raise ValueError(f"{table} requires filter {column}=eq.<group_id>")
    return flt[1]


def visible_to(table: str, record: dict[str, Any], viewer_id: str | None) -> bool:
    if table in GROUP_TABLES:
        return viewer_id is not None
    owners = _PRIVATE_TABLES.get(table)
    if owners is None:
        return True
    return viewer_id is not None and any(record.get(f) == viewer_id for f in owners)
