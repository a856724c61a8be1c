"""
WebSocket /realtime/{table}?filter=post_id=eq.<id>&token=<jwt>
Пересылает события таблицы из Redis pub/sub; личные таблицы: только участникам,
групповые: только по фильтру своей группы (group_id=eq.<id>).
"""
import json
import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from redis.exceptions import RedisError

from sharehub.core.config import settings
from sharehub.core.errors import AuthError
from sharehub.db.session import SessionLocal
from sharehub.services.auth.security import decode_access_token
from sharehub.services.messages.groups import GroupChatService
from sharehub.services.realtime.publisher import (
    SUBSCRIBABLE_TABLES,
    channel_for,
    group_scope,
    matches_filter,
    parse_filter,
    visible_to,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

POLICY_VIOLATION = 1008


def _is_group_member(group_id: str, user_id: str) -> bool:
    db = SessionLocal()
    try:
        return GroupChatService(db).get_membership(group_id, user_id) is not None
    finally:
        db.close()


@router.websocket("/realtime/{table}")
async def realtime(
    websocket: WebSocket,
    table: str,
    filter_expr: str | None = Query(None, alias="filter"),
    token: str | None = Query(None),
):
    if table not in SUBSCRIBABLE_TABLES:
        await websocket.close(code=POLICY_VIOLATION)
        return
    try:
        flt = parse_filter(filter_expr)
        group_id = group_scope(table, flt)
        viewer_id = decode_access_token(token) if token else None
    except (ValueError, AuthError):
        await websocket.close(code=POLICY_VIOLATION)
        return
    if group_id is not None:
        if viewer_id is None or not await run_in_threadpool(_is_group_member, group_id, viewer_id):
            await websocket.close(code=POLICY_VIOLATION)
            return

    await websocket.accept()
    client = aioredis.from_url(settings.redis_url, decode_responses=True)
    pubsub = client.pubsub()
    await pubsub.subscribe(channel_for(table))
    try:
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            if message is None:
                continue
            event = json.loads(message["data"])
            record = event.get("record") or {}
            if matches_filter(record, flt) and visible_to(table, record, viewer_id):
                await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    except RedisError as e:
        logger.warning("realtime_stream_failed", extra={"table": table, "error": str(e)})
        await websocket.close()
    finally:
        await pubsub.unsubscribe()
        await pubsub.aclose()
        await client.aclose()
