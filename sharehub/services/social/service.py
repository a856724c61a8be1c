"""
SocialService: лайки, комментарии, подписки.
Счётчики (likes_count, subscribers_count) меняются условным UPDATE в той же транзакции,
что и строка лайка/подписки; дубликат ловится уникальным ключом.
"""
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.models.post import Post
from sharehub.models.social import Comment, PostLike, Subscription
from sharehub.models.user import Account
from sharehub.services.notifications.service import (
    TYPE_COMMENT,
    TYPE_LIKE,
    TYPE_SUBSCRIPTION,
    NotificationService,
)
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 2000


class SocialService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()
        self.notifications = NotificationService(db, publisher=self.publisher)

    def _get_post(self, post_id: str) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).one_or_none()
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def _username(self, account_id: str) -> str:
        return self.db.execute(select(Account.username).where(Account.id == account_id)).scalar_one_or_none() or ""

    # ------------------------------------------------------------------
    # Likes
    # ------------------------------------------------------------------

    def has_liked(self, user_id: str | None, post_id: str) -> bool:
        if user_id is None:
            return False
        return (
            self.db.query(PostLike.id)
            .filter(PostLike.post_id == post_id, PostLike.user_id == user_id)
            .first()
            is not None
        )

    def liked_post_ids(self, user_id: str, post_ids: list[str]) -> set[str]:
        if not post_ids:
            return set()
        rows = self.db.execute(
            select(PostLike.post_id).where(PostLike.user_id == user_id, PostLike.post_id.in_(post_ids))
        )
        return {r[0] for r in rows}

    def toggle_like(self, user_id: str, post_id: str) -> bool:
        """Returns: True если лайк поставлен, False если снят."""
        post = self._get_post(post_id)
        existing = (
            self.db.query(PostLike)
            .filter(PostLike.post_id == post_id, PostLike.user_id == user_id)
            .one_or_none()
        )
        if existing is not None:
            self.db.delete(existing)
            self.db.execute(
                update(Post)
                .where(Post.id == post_id, Post.likes_count > 0)
                .values(likes_count=Post.likes_count - 1)
            )
            self.db.commit()
            self.publisher.publish("post_likes", "DELETE", {"post_id": post_id, "user_id": user_id})
            return False

        try:
            like = PostLike(post_id=post_id, user_id=user_id)
            self.db.add(like)
            self.db.flush()
            self.db.execute(
                update(Post).where(Post.id == post_id).values(likes_count=Post.likes_count + 1)
            )
            self.notifications.notify(
                post.user_id,
                TYPE_LIKE,
                f"{self._username(user_id)} оценил ваш пост: {post.title}",
                from_user_id=user_id,
                post_id=post_id,
            )
            self.db.commit()
        except IntegrityError:
            # Параллельный лайк того же пользователя уже записан
            self.db.rollback()
            return True
        self.publisher.publish_row("INSERT", like)
        logger.info("post_liked", extra={"user_id": user_id, "post_id": post_id})
        return True

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def has_commented(self, user_id: str | None, post_id: str) -> bool:
        if user_id is None:
            return False
        return (
            self.db.query(Comment.id)
            .filter(Comment.post_id == post_id, Comment.user_id == user_id)
            .first()
            is not None
        )

    def commented_post_ids(self, user_id: str, post_ids: list[str]) -> set[str]:
        if not post_ids:
            return set()
        rows = self.db.execute(
            select(Comment.post_id).where(Comment.user_id == user_id, Comment.post_id.in_(post_ids))
        )
        return {r[0] for r in rows}

    def list_comments(self, post_id: str) -> list[Comment]:
        return (
            self.db.query(Comment)
            .filter(Comment.post_id == post_id)
            .order_by(Comment.created_at.asc())
            .all()
        )

    def add_comment(self, user_id: str, post_id: str, content: str) -> Comment:
        content = (content or "").strip()
        if not content:
            raise ValidationError("Комментарий не может быть пустым")
        if len(content) > MAX_COMMENT_LENGTH:
            raise ValidationError(f"Комментарий длиннее {MAX_COMMENT_LENGTH} символов")
        post = self._get_post(post_id)
        comment = Comment(post_id=post_id, user_id=user_id, content=content)
        self.db.add(comment)
        self.db.flush()
        self.notifications.notify(
            post.user_id,
            TYPE_COMMENT,
            f"{self._username(user_id)} прокомментировал ваш пост: {post.title}",
            from_user_id=user_id,
            post_id=post_id,
        )
        self.db.commit()
        self.db.refresh(comment)
        self.publisher.publish_row("INSERT", comment)
        return comment

    def delete_comment(self, user_id: str, comment_id: str) -> None:
        comment = self.db.query(Comment).filter(Comment.id == comment_id).one_or_none()
        if comment is None or comment.user_id != user_id:
            raise NotFoundError("Comment not found")
        post_id = comment.post_id
        self.db.delete(comment)
        self.db.commit()
        self.publisher.publish("comments", "DELETE", {"id": comment_id, "post_id": post_id})

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def is_subscribed(self, subscriber_id: str | None, author_id: str) -> bool:
        if subscriber_id is None:
            return False
        return (
            self.db.query(Subscription.id)
            .filter(Subscription.subscriber_id == subscriber_id, Subscription.subscribed_to_id == author_id)
            .first()
            is not None
        )

    def subscribed_author_ids(self, subscriber_id: str) -> set[str]:
        rows = self.db.execute(
            select(Subscription.subscribed_to_id).where(Subscription.subscriber_id == subscriber_id)
        )
        return {r[0] for r in rows}

    def toggle_subscription(self, subscriber_id: str, author_id: str) -> bool:
        """Returns: True если подписка оформлена, False если отменена."""
        if subscriber_id == author_id:
            raise ValidationError("Нельзя подписаться на себя")
        author = self.db.query(Account).filter(Account.id == author_id).one_or_none()
        if author is None:
            raise NotFoundError("Profile not found")

        existing = (
            self.db.query(Subscription)
            .filter(Subscription.subscriber_id == subscriber_id, Subscription.subscribed_to_id == author_id)
            .one_or_none()
        )
        if existing is not None:
            self.db.delete(existing)
            self.db.execute(
                update(Account)
                .where(Account.id == author_id, Account.subscribers_count > 0)
                .values(subscribers_count=Account.subscribers_count - 1)
            )
            self.db.commit()
            logger.info("subscription_removed", extra={"user_id": subscriber_id, "target_user_id": author_id})
            return False

        try:
            self.db.add(Subscription(subscriber_id=subscriber_id, subscribed_to_id=author_id))
            self.db.flush()
            self.db.execute(
                update(Account)
                .where(Account.id == author_id)
                .values(subscribers_count=Account.subscribers_count + 1)
            )
            self.notifications.notify(
                author_id,
                TYPE_SUBSCRIPTION,
                f"{self._username(subscriber_id)} подписался на вас",
                from_user_id=subscriber_id,
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return True
        logger.info("subscription_added", extra={"user_id": subscriber_id, "target_user_id": author_id})
        return True

    def list_subscribers(self, author_id: str) -> list[Account]:
        return (
            self.db.query(Account)
            .join(Subscription, Subscription.subscriber_id == Account.id)
            .filter(Subscription.subscribed_to_id == author_id)
            .order_by(Account.username)
            .all()
        )

    def list_subscriptions(self, subscriber_id: str) -> list[Account]:
        return (
            self.db.query(Account)
            .join(Subscription, Subscription.subscribed_to_id == Account.id)
            .filter(Subscription.subscriber_id == subscriber_id)
            .order_by(Account.username)
            .all()
        )
