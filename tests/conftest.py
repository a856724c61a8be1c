"""
Общие фикстуры: окружение до импорта sharehub, SQLite in-memory на каждый тест.
"""
import os
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("CELERY_BROKER_URL", "memory://")
os.environ.setdefault("CELERY_RESULT_BACKEND", "cache+memory://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-0123456789")
os.environ.setdefault("CRYPTOPAY_API_TOKEN", "12345:test-cryptopay-token")
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("PAYMENT_WATCHER_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sharehub.db.init_db import init_db


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_account(db):
    from sharehub.models.user import Account

    counter = {"n": 0}

    def _make(username: str | None = None, balance="0") -> Account:
        counter["n"] += 1
        account = Account(
            username=username or f"user{counter['n']}",
            password_hash="x",
            is_18_confirmed=True,
            token_balance=Decimal(balance),
        )
        db.add(account)
        db.commit()
        db.refresh(account)
        return account

    return _make


@pytest.fixture
def make_post(db):
    from sharehub.models.post import Post

    def _make(owner, token_cost="0", view_condition="none", password=None, title="Пост") -> Post:
        post = Post(
            user_id=owner.id,
            title=title,
            content="body",
            view_condition=view_condition,
            password=password,
            token_cost=Decimal(token_cost),
        )
        db.add(post)
        db.commit()
        db.refresh(post)
        return post

    return _make
