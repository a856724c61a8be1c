"""
StreamService: сессии прямых эфиров. Медиа-поток (WebRTC) вне бэкенда:
здесь только сессия и счётчик зрителей (атомарно, не ниже нуля).
"""
import logging
from datetime import datetime, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.models.live_stream import LiveStream
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher
from sharehub.utils.metrics import active_streams

logger = logging.getLogger(__name__)


class StreamService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()

    def get_stream(self, stream_id: str) -> LiveStream:
        stream = self.db.query(LiveStream).filter(LiveStream.id == stream_id).one_or_none()
        if stream is None:
            raise NotFoundError("Stream not found")
        return stream

    def start(
        self,
        user_id: str,
        title: str,
        description: str | None = None,
        thumbnail_url: str | None = None,
    ) -> LiveStream:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Название эфира обязательно")
        # Один активный эфир на пользователя: предыдущий закрывается
        closed = self.db.execute(
            update(LiveStream)
            .where(LiveStream.user_id == user_id, LiveStream.is_active.is_(True))
            .values(is_active=False, viewer_count=0, ended_at=datetime.now(timezone.utc))
        )
        stream = LiveStream(user_id=user_id, title=title, description=description, thumbnail_url=thumbnail_url)
        self.db.add(stream)
        self.db.commit()
        self.db.refresh(stream)
        if closed.rowcount:
            active_streams.dec(closed.rowcount)
        active_streams.inc()
        self.publisher.publish_row("INSERT", stream)
        logger.info("stream_started", extra={"user_id": user_id, "stream_id": stream.id})
        return stream

    def end(self, user_id: str, stream_id: str) -> LiveStream:
        stream = self.get_stream(stream_id)
        if stream.user_id != user_id:
            raise NotFoundError("Stream not found")
        res = self.db.execute(
            update(LiveStream)
            .where(LiveStream.id == stream_id, LiveStream.is_active.is_(True))
            .values(is_active=False, viewer_count=0, ended_at=datetime.now(timezone.utc))
        )
        self.db.commit()
        if res.rowcount:
            active_streams.dec()
        self.db.refresh(stream)
        self.publisher.publish_row("UPDATE", stream)
        logger.info("stream_ended", extra={"user_id": user_id, "stream_id": stream_id})
        return stream

    def list_active(self) -> list[LiveStream]:
        return (
            self.db.query(LiveStream)
            .filter(LiveStream.is_active.is_(True))
            .order_by(LiveStream.viewer_count.desc(), LiveStream.created_at.desc())
            .all()
        )

    def join(self, stream_id: str) -> int:
        res = self.db.execute(
            update(LiveStream)
            .where(LiveStream.id == stream_id, LiveStream.is_active.is_(True))
            .values(viewer_count=LiveStream.viewer_count + 1)
        )
        self.db.commit()
        if res.rowcount == 0:
            raise NotFoundError("Stream not found")
        return self._publish_count(stream_id)

    def leave(self, stream_id: str) -> int:
        self.db.execute(
            update(LiveStream)
            .where(LiveStream.id == stream_id, LiveStream.viewer_count > 0)
            .values(viewer_count=LiveStream.viewer_count - 1)
        )
        self.db.commit()
        return self._publish_count(stream_id)

    def _publish_count(self, stream_id: str) -> int:
        stream = self.get_stream(stream_id)
        self.db.refresh(stream)
        self.publisher.publish_row("UPDATE", stream)
        return stream.viewer_count
