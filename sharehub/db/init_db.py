"""
Создание схемы БД. Импорт моделей регистрирует таблицы в Base.metadata.
Запуск: python -m sharehub.db.init_db
"""
import logging

from sqlalchemy.engine import Engine

from sharehub.db.base import Base
from sharehub.models import (  # noqa: F401
    group_chat,
    live_stream,
    media,
    message,
    notification,
    post,
    social,
    token_purchase,
    token_transaction,
    user,
)

logger = logging.getLogger(__name__)


def init_db(bind: Engine | None = None) -> None:
    if bind is None:
        from sharehub.db.session import engine as bind
    Base.metadata.create_all(bind=bind)
    logger.info("db_schema_created")


if __name__ == "__main__":
    from sharehub.core.logging import configure_logging

    configure_logging()
    init_db()
