"""
PostService: посты и лента с проверкой доступа для конкретного зрителя.

Флаги зрителя (лайк, комментарий, подписка, разблокировка) собираются пачкой
для всей страницы ленты, затем decide_access решает по каждому посту.
"""
import logging
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.orm import Session

from sharehub.access import (
    AccessDecision,
    ViewerContext,
    check_content_password,
    decide_access,
    grant_is_valid,
    issue_password_grant,
)
from sharehub.core.errors import NotFoundError, ValidationError
from sharehub.models.post import VIEW_CONDITIONS, Post
from sharehub.models.social import Comment, PostLike
from sharehub.models.user import Account
from sharehub.services.notifications.service import NotificationService
from sharehub.services.realtime.publisher import RealtimePublisher, get_publisher
from sharehub.services.social.service import SocialService
from sharehub.services.tokens.service import TokenSpendService

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200


class GatedPost(BaseModel):
    post: Post
    access: AccessDecision

    model_config = {"frozen": True, "arbitrary_types_allowed": True}


def normalize_token_cost(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        cost = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Некорректная стоимость в токенах")
    if not cost.is_finite() or cost < 0:
        raise ValidationError("Стоимость в токенах не может быть отрицательной")
    return cost.quantize(Decimal("0.01"))


class PostService:
    def __init__(self, db: Session, publisher: RealtimePublisher | None = None):
        self.db = db
        self.publisher = publisher or get_publisher()
        self.social = SocialService(db, publisher=self.publisher)
        self.tokens = TokenSpendService(db)

    def get_post(self, post_id: str) -> Post:
        post = self.db.query(Post).filter(Post.id == post_id).one_or_none()
        if post is None:
            raise NotFoundError("Post not found")
        return post

    def create(
        self,
        author: Account,
        title: str,
        content: str,
        category: str = "general",
        tags: list[str] | None = None,
        image_url: str | None = None,
        view_condition: str = "none",
        password: str | None = None,
        token_cost=None,
    ) -> Post:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Заголовок обязателен")
        if len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Заголовок длиннее {MAX_TITLE_LENGTH} символов")
        if view_condition not in VIEW_CONDITIONS:
            raise ValidationError("Некорректное условие просмотра")

        post = Post(
            user_id=author.id,
            title=title,
            content=content or "",
            category=category or "general",
            tags=tags or None,
            image_url=image_url,
            view_condition=view_condition,
            password=password or None,
            token_cost=normalize_token_cost(token_cost),
        )
        self.db.add(post)
        self.db.flush()
        NotificationService(self.db, publisher=self.publisher).notify_subscribers_of_post(post, author.username)
        self.db.commit()
        self.db.refresh(post)
        self.publisher.publish_row("INSERT", post)
        logger.info("post_created", extra={"user_id": author.id, "post_id": post.id})
        return post

    def delete(self, user_id: str, post_id: str) -> None:
        post = self.get_post(post_id)
        if post.user_id != user_id:
            raise NotFoundError("Post not found")
        self.db.query(Comment).filter(Comment.post_id == post_id).delete(synchronize_session=False)
        self.db.query(PostLike).filter(PostLike.post_id == post_id).delete(synchronize_session=False)
        self.db.delete(post)
        self.db.commit()
        self.publisher.publish("posts", "DELETE", {"id": post_id, "user_id": user_id})
        logger.info("post_deleted", extra={"user_id": user_id, "post_id": post_id})

    # ------------------------------------------------------------------
    # Gating
    # ------------------------------------------------------------------

    def _gate(
        self,
        posts: list[Post],
        viewer_id: str | None,
        password_grants: dict[str, str] | None = None,
    ) -> list[GatedPost]:
        if viewer_id is None:
            liked, commented, subscribed, unlocked = set(), set(), set(), set()
        else:
            ids = [p.id for p in posts]
            liked = self.social.liked_post_ids(viewer_id, ids)
            commented = self.social.commented_post_ids(viewer_id, ids)
            subscribed = self.social.subscribed_author_ids(viewer_id)
            unlocked = self.tokens.unlocked_post_ids(viewer_id)
        grants = password_grants or {}

        result = []
        for post in posts:
            ctx = ViewerContext(
                viewer_id=viewer_id,
                owner_id=post.user_id,
                view_condition=post.view_condition or "none",
                has_liked=post.id in liked,
                has_commented=post.id in commented,
                is_subscribed=post.user_id in subscribed,
                token_cost=Decimal(post.token_cost or 0),
                is_unlocked=post.id in unlocked,
                has_password=bool(post.password),
                password_verified=grant_is_valid(grants.get(post.id), viewer_id, post.id),
            )
            result.append(GatedPost(post=post, access=decide_access(ctx)))
        return result

    def feed(
        self,
        viewer_id: str | None,
        limit: int = 20,
        offset: int = 0,
        author_id: str | None = None,
        category: str | None = None,
        password_grants: dict[str, str] | None = None,
    ) -> list[GatedPost]:
        q = self.db.query(Post)
        if author_id:
            q = q.filter(Post.user_id == author_id)
        if category:
            q = q.filter(Post.category == category)
        posts = q.order_by(Post.created_at.desc()).offset(offset).limit(limit).all()
        return self._gate(posts, viewer_id, password_grants)

    def get(self, post_id: str, viewer_id: str | None, password_grant: str | None = None) -> GatedPost:
        """Пост для зрителя; просмотр чужого открытого поста увеличивает views_count."""
        post = self.get_post(post_id)
        gated = self._gate([post], viewer_id, {post_id: password_grant} if password_grant else None)[0]
        if gated.access.can_view and viewer_id != post.user_id:
            self.db.execute(update(Post).where(Post.id == post_id).values(views_count=Post.views_count + 1))
            self.db.commit()
            self.db.refresh(post)
        return gated

    def verify_password(self, viewer_id: str, post_id: str, password: str) -> str:
        """Верный пароль -> подписанная отметка для последующих запросов."""
        post = self.get_post(post_id)
        if not check_content_password(post.password, password):
            logger.info("post_password_rejected", extra={"user_id": viewer_id, "post_id": post_id})
            raise ValidationError("Неверный пароль")
        return issue_password_grant(viewer_id, post_id)
