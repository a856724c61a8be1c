"""
MediaService: загрузка фото/видео в storage, списки по типу, удаление.
Тип контента определяется по расширению файла (allowed_*_extensions).
"""
import logging
import os
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sharehub.access import (
    AccessDecision,
    ViewerContext,
    check_content_password,
    decide_access,
    grant_is_valid,
    issue_password_grant,
)
from sharehub.core.config import settings
from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.models.media import Media
from sharehub.services.posts.service import normalize_token_cost
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher
from sharehub.services.tokens.service import TokenSpendService
from sharehub.storage.base import Storage
from sharehub.storage.local import LocalStorage

logger = logging.getLogger(__name__)

CONTENT_IMAGE = "image"
CONTENT_VIDEO = "video"


class GatedMedia(BaseModel):
    media: Media
    access: AccessDecision

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


def detect_content_type(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    if ext in settings.allowed_image_extensions_set:
        return CONTENT_IMAGE
    if ext in settings.allowed_video_extensions_set:
        return CONTENT_VIDEO
    raise ValidationError(f"Неподдерживаемый тип файла: {ext or filename}")


class MediaService:
    def __init__(
        self,
        db: Session,
        storage: Storage | None = None,
        publisher: RealtimePublisher | None = None,
    ):
        self.db = db
        self.storage = storage or LocalStorage()
        self.publisher = publisher or get_publisher()
        self.tokens = TokenSpendService(db)

    def get_media(self, media_id: str) -> Media:
        media = self.db.query(Media).filter(Media.id == media_id).one_or_none()
        if media is None:
            raise NotFoundError("Media not found")
        return media

    def upload(
        self,
        user_id: str,
        filename: str,
        content: bytes,
        mime_type: str | None = None,
        title: str | None = None,
        description: str | None = None,
        post_id: str | None = None,
        password: str | None = None,
        token_cost=None,
    ) -> Media:
        content_type = detect_content_type(filename)
        if not content:
            raise ValidationError("Пустой файл")
        max_bytes = settings.max_file_size_mb * 1024 * 1024
        if len(content) > max_bytes:
            raise ValidationError(f"Файл больше {settings.max_file_size_mb} МБ")
        cost = normalize_token_cost(token_cost)

        path, url = self.storage.save_media(user_id, filename, content)
        media = Media(
            user_id=user_id,
            post_id=post_id,
            title=(title or "").strip() or filename,
            description=description,
            content_type=content_type,
            file_type=mime_type or "application/octet-stream",
            file_url=url,
            file_path=path,
            file_size=len(content),
            password=password or None,
            token_cost=cost,
        )
        try:
            self.db.add(media)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            self.storage.delete(path)
            raise
        self.db.refresh(media)
        self.publisher.publish_row("INSERT", media)
        logger.info("media_uploaded", extra={"user_id": user_id, "media_id": media.id})
        return media

    def _gate(
        self,
        items: list[Media],
        viewer_id: str | None,
        password_grants: dict[str, str] | None = None,
    ) -> list[GatedMedia]:
        unlocked = self.tokens.unlocked_media_ids(viewer_id) if viewer_id else set()
        grants = password_grants or {}
        result = []
        for media in items:
            ctx = ViewerContext(
                viewer_id=viewer_id,
                owner_id=media.user_id,
                token_cost=Decimal(media.token_cost or 0),
                is_unlocked=media.id in unlocked,
                has_password=bool(media.password),
                password_verified=grant_is_valid(grants.get(media.id), viewer_id, media.id),
            )
            result.append(GatedMedia(media=media, access=decide_access(ctx)))
        return result

    def list(
        self,
        viewer_id: str | None,
        content_type: str | None = None,
        user_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[GatedMedia]:
        """Разделы «Фото» / «Видео»: content_type = image / video."""
        q = self.db.query(Media)
        if content_type:
            q = q.filter(Media.content_type == content_type)
        if user_id:
            q = q.filter(Media.user_id == user_id)
        items = q.order_by(Media.created_at.desc()).offset(offset).limit(limit).all()
        return self._gate(items, viewer_id)

    def get(self, media_id: str, viewer_id: str | None, password_grant: str | None = None) -> GatedMedia:
        media = self.get_media(media_id)
        return self._gate([media], viewer_id, {media_id: password_grant} if password_grant else None)[0]

    def verify_password(self, viewer_id: str, media_id: str, password: str) -> str:
        media = self.get_media(media_id)
        if not check_content_password(media.password, password):
            raise ValidationError("Неверный пароль")
        return issue_password_grant(viewer_id, media_id)

    def delete(self, user_id: str, media_id: str) -> None:
        media = self.get_media(media_id)
        if media.user_id != user_id:
            raise NotFoundError("Media not found")
        path = media.file_path
        self.db.delete(media)
        self.db.commit()
        self.storage.delete(path)
        self.publisher.publish("media", "DELETE", {"id": media_id, "user_id": user_id})
        logger.info("media_deleted", extra={"user_id": user_id, "media_id": media_id})
