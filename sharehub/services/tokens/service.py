"""
TokenSpendService: разблокировка поста/медиа за токены.

Списание и запись TokenTransaction идут в одной транзакции БД:
условный UPDATE (balance >= cost) + INSERT с уникальным ключом (user, контент).
Повторная разблокировка: успех без списания.
"""
import logging
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from sharehub.core.errors import InsufficientBalanceError, NotFoundError, ValidationError
from sharehub.models.media import Media
from sharehub.models.post import Post
from sharehub.models.token_transaction import TokenTransaction
from sharehub.models.user import Account
from sharehub.utils.metrics import token_spend_total, tokens_spent_total

logger = logging.getLogger(__name__)

ALREADY_UNLOCKED = "Already unlocked"


class SpendResult(BaseModel):
    new_balance: Decimal
    tokens_spent: Decimal = Decimal("0")
    already_unlocked: bool = False

    model_config = {"frozen": True}

    @property
    def message(self) -> str | None:
        return ALREADY_UNLOCKED if self.already_unlocked else None


class TokenSpendService:
    def __init__(self, db: Session):
        self.db = db

    def get_balance(self, user_id: str) -> Decimal | None:
        value = self.db.execute(select(Account.token_balance).where(Account.id == user_id)).scalar_one_or_none()
        return Decimal(value) if value is not None else None

    def resolve_cost(self, post_id: str | None = None, media_id: str | None = None) -> Decimal:
        """Стоимость из записи контента; не задана -> 0."""
        if post_id:
            row = self.db.execute(select(Post.id, Post.token_cost).where(Post.id == post_id)).one_or_none()
            if row is None:
                raise NotFoundError("Post not found")
        else:
            row = self.db.execute(select(Media.id, Media.token_cost).where(Media.id == media_id)).one_or_none()
            if row is None:
                raise NotFoundError("Media not found")
        return Decimal(row.token_cost or 0)

    def is_unlocked(self, user_id: str, post_id: str | None = None, media_id: str | None = None) -> bool:
        stmt = select(TokenTransaction.id).where(TokenTransaction.user_id == user_id)
        if post_id:
            stmt = stmt.where(TokenTransaction.post_id == post_id)
        else:
            stmt = stmt.where(TokenTransaction.media_id == media_id)
        return self.db.query(stmt.exists()).scalar() or False

    def unlocked_post_ids(self, user_id: str) -> set[str]:
        rows = self.db.execute(
            select(TokenTransaction.post_id).where(
                TokenTransaction.user_id == user_id, TokenTransaction.post_id.isnot(None)
            )
        )
        return {r[0] for r in rows}

    def unlocked_media_ids(self, user_id: str) -> set[str]:
        rows = self.db.execute(
            select(TokenTransaction.media_id).where(
                TokenTransaction.user_id == user_id, TokenTransaction.media_id.isnot(None)
            )
        )
        return {r[0] for r in rows}

    def spend(self, user_id: str, post_id: str | None = None, media_id: str | None = None) -> SpendResult:
        """
        Списывает token_cost контента с баланса ровно один раз.
        Raises: ValidationError (нужен ровно один id), NotFoundError, InsufficientBalanceError.
        """
        if bool(post_id) == bool(media_id):
            raise ValidationError("Укажите postId или mediaId")

        balance = self.get_balance(user_id)
        if balance is None:
            raise NotFoundError("Profile not found")
        cost = self.resolve_cost(post_id, media_id)

        if self.is_unlocked(user_id, post_id, media_id):
            token_spend_total.labels(result="already_unlocked").inc()
            return SpendResult(new_balance=balance, already_unlocked=True)

        logger.info(
            "token_spend_attempt",
            extra={"user_id": user_id, "post_id": post_id, "media_id": media_id, "tokens": str(cost)},
        )
        try:
            res = self.db.execute(
                update(Account)
                .where(Account.id == user_id, Account.token_balance >= cost)
                .values(token_balance=Account.token_balance - cost)
            )
            if res.rowcount == 0:
                self.db.rollback()
                current = self.get_balance(user_id) or Decimal("0")
                token_spend_total.labels(result="insufficient").inc()
                raise InsufficientBalanceError(required=cost, balance=current)

            self.db.add(
                TokenTransaction(
                    user_id=user_id,
                    post_id=post_id or None,
                    media_id=media_id or None,
                    tokens_spent=cost,
                )
            )
            self.db.flush()
            self.db.commit()
        except IntegrityError:
            # Параллельный запрос уже записал разблокировку: списание откатывается вместе с INSERT
            self.db.rollback()
            logger.info("token_spend_duplicate", extra={"user_id": user_id, "post_id": post_id, "media_id": media_id})
            token_spend_total.labels(result="already_unlocked").inc()
            return SpendResult(new_balance=self.get_balance(user_id) or Decimal("0"), already_unlocked=True)
        except SQLAlchemyError:
            self.db.rollback()
            token_spend_total.labels(result="error").inc()
            logger.exception("token_spend_failed", extra={"user_id": user_id, "post_id": post_id, "media_id": media_id})
            raise

        new_balance = self.get_balance(user_id) or Decimal("0")
        token_spend_total.labels(result="unlocked").inc()
        tokens_spent_total.inc(float(cost))
        logger.info(
            "token_spend_completed",
            extra={"user_id": user_id, "post_id": post_id, "media_id": media_id, "new_balance": str(new_balance)},
        )
        return SpendResult(new_balance=new_balance, tokens_spent=cost)
