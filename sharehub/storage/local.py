"""
Локальное хранилище загрузок: {storage_base_path}/{user_id}/{uuid}{ext}.
Публичный URL: {public_base_url}{public_media_path}/{user_id}/{file}.
"""
import logging
import os
from uuid import uuid4

from sharehub.core.config import settings
from sharehub.storage.base import Storage

logger = logging.getLogger(__name__)


class LocalStorage(Storage):
    def __init__(self, base_path: str | None = None, public_url: str | None = None):
        self.base_path = base_path or settings.storage_base_path
        self.public_url = (
            public_url
            or f"{settings.public_base_url.rstrip('/')}{settings.public_media_path}"
        ).rstrip("/")

    def save_media(self, user_id: str, filename: str, content: bytes) -> tuple[str, str]:
        ext = os.path.splitext(filename or "")[1].lower()
        name = f"{uuid4().hex}{ext}"
        directory = os.path.join(self.base_path, user_id)
        os.makedirs(directory, exist_ok=True)
        path = os.path.join(directory, name)
        with open(path, "wb") as f:
            f.write(content)
        return path, f"{self.public_url}/{user_id}/{name}"

    def delete(self, path: str | None) -> bool:
        if not path:
            return False
        try:
            if os.path.isfile(path):
                os.unlink(path)
                return True
        except OSError:
            logger.warning("storage_delete_error", extra={"path": path})
        return False
